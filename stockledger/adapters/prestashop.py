"""
PrestaShop adapter — webservice API.

Stock lives in the ``stock_availables`` resource; updates are sent as the
XML document the webservice expects.

Usage in settings.py:
    STOCKLEDGER = {
        "PLATFORMS": {
            "prestashop": {
                "BACKEND": "stockledger.adapters.prestashop.PrestaShopAdapter",
                "OPTIONS": {"store_url": "https://shop.example.com", "api_key": "..."},
            },
        },
    }
"""

from __future__ import annotations

import logging
import threading

import httpx
from lxml import etree

from stockledger.adapters.http import HttpPlatformAdapter
from stockledger.exceptions import SyncPermanent

logger = logging.getLogger(__name__)

XLINK_NS = 'http://www.w3.org/1999/xlink'


def stock_available_xml(stock_id: int, quantity: int) -> bytes:
    """<prestashop><stock_available><id/><quantity/></stock_available></prestashop>"""
    root = etree.Element('prestashop', nsmap={'xlink': XLINK_NS})
    node = etree.SubElement(root, 'stock_available')
    etree.SubElement(node, 'id').text = str(stock_id)
    etree.SubElement(node, 'quantity').text = str(quantity)
    return etree.tostring(root, xml_declaration=True, encoding='UTF-8')


def _items(data, resource: str) -> list:
    # The webservice answers an empty list instead of {resource: []}
    if isinstance(data, dict):
        return data.get(resource) or []
    return []


class PrestaShopAdapter(HttpPlatformAdapter):
    """Sets the quantity of the first stock_available row of a product."""

    name = 'prestashop'

    def __init__(self, store_url: str, api_key: str = '', **kwargs):
        if not api_key:
            raise SyncPermanent('MISCONFIGURED', platform=kwargs.get('name') or self.name,
                                missing='api_key')
        self.api_key = api_key
        self._ids: dict[tuple[str, str], int] = {}
        self._ids_lock = threading.Lock()
        super().__init__(store_url, **kwargs)

    def get_auth(self) -> httpx.Auth:
        # Webservice key as user, empty password
        return httpx.BasicAuth(self.api_key, '')

    def _locate(self, identifier: str, by: str = 'sku') -> int | None:
        with self._ids_lock:
            if (by, identifier) in self._ids:
                return self._ids[(by, identifier)]

        if by == 'name':
            params = {'filter[name]': f'%[{identifier}]%', 'output_format': 'JSON'}
        else:
            params = {'filter[reference]': identifier, 'output_format': 'JSON'}
        products = _items(self.get_json('/api/products', params=params), 'products')
        if not products:
            return None

        product_id = int(products[0]['id'])
        with self._ids_lock:
            self._ids[(by, identifier)] = product_id
        return product_id

    def _known_id(self, identifier: str) -> int | None:
        """Id from an earlier lookup, else an exact reference lookup."""
        with self._ids_lock:
            for by in ('sku', 'name'):
                if (by, identifier) in self._ids:
                    return self._ids[(by, identifier)]
        return self._locate(identifier, by='sku')

    def _forget(self, identifier: str) -> None:
        with self._ids_lock:
            self._ids.pop(('sku', identifier), None)
            self._ids.pop(('name', identifier), None)

    def find_product(self, identifier: str, by: str = 'sku') -> bool:
        return self._locate(identifier, by=by) is not None

    def set_stock(self, identifier: str, quantity: int) -> None:
        product_id = self._known_id(identifier)
        if product_id is None:
            raise SyncPermanent('NOT_FOUND', platform=self.name, identifier=identifier)

        rows = _items(
            self.get_json('/api/stock_availables', params={
                'filter[id_product]': product_id,
                'output_format': 'JSON',
            }),
            'stock_availables',
        )
        if not rows:
            self._forget(identifier)
            raise SyncPermanent('NOT_FOUND', platform=self.name, identifier=identifier,
                                resource='stock_availables')

        stock_id = int(rows[0]['id'])
        self.request(
            'PUT',
            f'/api/stock_availables/{stock_id}',
            content=stock_available_xml(stock_id, quantity),
            headers={'Content-Type': 'application/xml'},
        )
        logger.info("prestashop: stock of %r set to %s", identifier, quantity)
