"""
Platform Adapter Protocol — interface to external storefronts.

Stockledger defines this protocol; each storefront integration
(WooCommerce, PrestaShop, Shopify, ...) implements it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class PlatformAdapter(Protocol):
    """
    Protocol for pushing stock to a storefront.

    Implementations should:
    - Set the absolute stock of one product (never a relative delta)
    - Raise SyncTransient for network/timeout/5xx/rate limit failures
    - Raise SyncPermanent for auth, not-found and rejected requests
    """

    name: str

    def set_stock(self, identifier: str, quantity: int) -> None:
        """
        Set the stock of the product matching identifier.

        Args:
            identifier: SKU, or the product name a preceding
                find_product(name, by='name') matched
            quantity: Absolute stock value to publish
        """
        ...


@runtime_checkable
class ProductLookup(Protocol):
    """Optional capability: check an identifier before pushing."""

    def find_product(self, identifier: str, by: str = 'sku') -> bool:
        """
        Whether the platform knows a product for identifier.

        Args:
            identifier: SKU or product name
            by: 'sku' for an exact SKU lookup only, 'name' for the
                platform's name search. A SKU lookup never falls back to
                searching names.

        Raises:
            SyncTransient / SyncPermanent like set_stock()
        """
        ...


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one push to one platform."""

    platform: str
    success: bool
    error: str | None = None
    match_kind: str | None = None
    identifier: str | None = None
    quantity: int | None = None
    attempts: int = 0
    job_id: int | None = None
