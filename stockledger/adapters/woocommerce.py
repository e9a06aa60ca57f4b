"""
WooCommerce adapter — REST API v3.

Usage in settings.py:
    STOCKLEDGER = {
        "PLATFORMS": {
            "woocommerce": {
                "BACKEND": "stockledger.adapters.woocommerce.WooCommerceAdapter",
                "OPTIONS": {
                    "store_url": "https://shop.example.com",
                    "api_key": "ck_...",
                    "api_secret": "cs_...",
                },
            },
        },
    }
"""

from __future__ import annotations

import logging
import threading

import httpx

from stockledger.adapters.http import HttpPlatformAdapter
from stockledger.exceptions import SyncPermanent

logger = logging.getLogger(__name__)


def name_matches(candidate: str, identifier: str) -> bool:
    """Case-insensitive containment in either direction."""
    a, b = (candidate or '').casefold(), (identifier or '').casefold()
    return bool(a and b) and (a in b or b in a)


class WooCommerceAdapter(HttpPlatformAdapter):
    """
    Sets ``stock_quantity`` (with ``manage_stock``) on a WooCommerce product.

    find_product(by='sku') only queries the exact SKU filter; by='name'
    queries the search endpoint and keeps results whose name contains the
    identifier (or is contained in it).
    """

    name = 'woocommerce'

    def __init__(self, store_url: str, api_key: str = '', api_secret: str = '', **kwargs):
        if not api_key or not api_secret:
            raise SyncPermanent('MISCONFIGURED', platform=kwargs.get('name') or self.name,
                                missing='api_key/api_secret')
        self.api_key = api_key
        self.api_secret = api_secret
        self._ids: dict[tuple[str, str], int] = {}
        self._ids_lock = threading.Lock()
        super().__init__(store_url, **kwargs)

    def get_auth(self) -> httpx.Auth:
        return httpx.BasicAuth(self.api_key, self.api_secret)

    def _locate(self, identifier: str, by: str = 'sku') -> int | None:
        with self._ids_lock:
            if (by, identifier) in self._ids:
                return self._ids[(by, identifier)]

        if by == 'name':
            results = self.get_json('/wp-json/wc/v3/products', params={'search': identifier})
            products = [p for p in results if name_matches(p.get('name'), identifier)]
            if len(products) > 1:
                logger.warning(
                    "woocommerce: %d products match %r, using %r",
                    len(products), identifier, products[0].get('name'),
                )
        else:
            products = self.get_json('/wp-json/wc/v3/products', params={'sku': identifier})

        if not products:
            return None

        product_id = products[0]['id']
        with self._ids_lock:
            self._ids[(by, identifier)] = product_id
        return product_id

    def _known_id(self, identifier: str) -> int | None:
        """Id from an earlier lookup, else an exact SKU lookup."""
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

        try:
            self.request(
                'PUT',
                f'/wp-json/wc/v3/products/{product_id}',
                json={'stock_quantity': quantity, 'manage_stock': True},
            )
        except SyncPermanent as e:
            if e.code == 'NOT_FOUND':
                self._forget(identifier)
            raise

        logger.info("woocommerce: stock of %r set to %s", identifier, quantity)
