"""
Shopify adapter — Admin REST API.

Sets the ``available`` inventory level of the matched variant at the
shop's first location.

Usage in settings.py:
    STOCKLEDGER = {
        "PLATFORMS": {
            "shopify": {
                "BACKEND": "stockledger.adapters.shopify.ShopifyAdapter",
                "OPTIONS": {"store_url": "https://x.myshopify.com", "access_token": "shpat_..."},
            },
        },
    }
"""

from __future__ import annotations

import logging
import threading

from stockledger.adapters.http import HttpPlatformAdapter
from stockledger.adapters.woocommerce import name_matches
from stockledger.exceptions import SyncPermanent

logger = logging.getLogger(__name__)

API_VERSION = '2024-01'


class ShopifyAdapter(HttpPlatformAdapter):

    name = 'shopify'

    def __init__(self, store_url: str, access_token: str = '', api_version: str = API_VERSION,
                 **kwargs):
        if not access_token:
            raise SyncPermanent('MISCONFIGURED', platform=kwargs.get('name') or self.name,
                                missing='access_token')
        self.access_token = access_token
        self.api_version = api_version
        self._items: dict[tuple[str, str], int] = {}
        self._location_id: int | None = None
        self._cache_lock = threading.Lock()
        super().__init__(store_url, **kwargs)

    def get_headers(self) -> dict[str, str]:
        return {
            'Accept': 'application/json',
            'X-Shopify-Access-Token': self.access_token,
        }

    def _url(self, path: str) -> str:
        return f'/admin/api/{self.api_version}/{path}'

    def _inventory_item(self, identifier: str, by: str = 'sku') -> int | None:
        with self._cache_lock:
            if (by, identifier) in self._items:
                return self._items[(by, identifier)]

        variant = None
        if by == 'name':
            products = self.get_json(self._url('products.json'), params={'title': identifier}).get('products') or []
            products = [p for p in products if name_matches(p.get('title'), identifier)]
            if products and products[0].get('variants'):
                variant = products[0]['variants'][0]
        else:
            variants = self.get_json(self._url('variants.json'), params={'sku': identifier}).get('variants') or []
            variant = variants[0] if variants else None

        if variant is None:
            return None

        item_id = variant['inventory_item_id']
        with self._cache_lock:
            self._items[(by, identifier)] = item_id
        return item_id

    def _known_item(self, identifier: str) -> int | None:
        with self._cache_lock:
            for by in ('sku', 'name'):
                if (by, identifier) in self._items:
                    return self._items[(by, identifier)]
        return self._inventory_item(identifier, by='sku')

    def _location(self) -> int:
        if self._location_id is None:
            locations = self.get_json(self._url('locations.json')).get('locations') or []
            if not locations:
                raise SyncPermanent('NOT_FOUND', platform=self.name, resource='locations')
            self._location_id = locations[0]['id']
        return self._location_id

    def find_product(self, identifier: str, by: str = 'sku') -> bool:
        return self._inventory_item(identifier, by=by) is not None

    def set_stock(self, identifier: str, quantity: int) -> None:
        item_id = self._known_item(identifier)
        if item_id is None:
            raise SyncPermanent('NOT_FOUND', platform=self.name, identifier=identifier)

        self.request(
            'POST',
            self._url('inventory_levels/set.json'),
            json={
                'location_id': self._location(),
                'inventory_item_id': item_id,
                'available': quantity,
            },
        )
        logger.info("shopify: stock of %r set to %s", identifier, quantity)
