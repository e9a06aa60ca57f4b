"""
Product catalog — read/update surface over ledger results.

Reads use no locking. adjust_reserved() locks the product row like the
ledger does, since reservations and movements touch the same row.
"""

import logging
from dataclasses import dataclass

from django.db import transaction

from stockledger.exceptions import StockError
from stockledger.models.enums import MatchKind
from stockledger.models.product import Product
from stockledger.services.ledger import lock_product
from stockledger.services.locks import KeyedLocks, product_key, stock_locks

logger = logging.getLogger('stockledger')


@dataclass(frozen=True)
class Availability:
    """Stock figures for read-models: available = current - reserved."""

    current: int
    reserved: int

    @property
    def available(self) -> int:
        return self.current - self.reserved

    def as_dict(self) -> dict[str, int]:
        return {'current': self.current, 'reserved': self.reserved, 'available': self.available}


class ProductCatalog:
    """Derived product state: stock, reservations and lookup."""

    def __init__(self, locks: KeyedLocks | None = None):
        self._locks = locks or stock_locks

    def get(self, product_id) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except Product.DoesNotExist:
            raise StockError('PRODUCT_NOT_FOUND', product_id=product_id) from None

    def get_by_sku(self, sku: str) -> Product:
        """Exact, case-sensitive SKU lookup."""
        product = Product.objects.filter(sku=sku).first()
        if product is None:
            raise StockError('PRODUCT_NOT_FOUND', sku=sku)
        return product

    def get_stock(self, product_id) -> int:
        return self.get(product_id).current_stock

    def get_available(self, product_id) -> Availability:
        product = self.get(product_id)
        return Availability(current=product.current_stock, reserved=product.reserved_stock)

    def adjust_reserved(self, product_id, delta: int) -> int:
        """
        Add delta to reserved_stock.

        A release (negative delta) clamps at 0: max(0, reserved + delta).
        Reservations may exceed current_stock (oversell is allowed).

        Returns:
            The new reserved_stock
        """
        with self._locks.hold(product_key(product_id)), transaction.atomic():
            locked = lock_product(product_id)
            before = locked.reserved_stock
            after = max(0, before + delta)
            if after != before:
                locked.reserved_stock = after
                locked.save(update_fields=['reserved_stock', 'updated_at'])

        if delta < 0 and before + delta < 0:
            logger.warning(
                "stock.reservation.clamped",
                extra={"product_id": product_id, "reserved": before, "delta": delta},
            )
        logger.info(
            "stock.reserved" if delta > 0 else "stock.reservation.released",
            extra={"product_id": product_id, "delta": delta, "reserved": after},
        )
        return after

    def find_by_sku_or_name(self, identifier: str) -> tuple[Product | None, MatchKind]:
        """
        Resolve an identifier: exact SKU first, then a loose name match.

        Read-side lookup for callers holding a free-text identifier,
        exposed as stock.find_product(). Order transitions match SKUs
        exactly and platform pushes match on the storefront side, so
        neither goes through here.

        The name match is case-insensitive containment in either direction
        among active products. It can produce false positives, so every
        fuzzy hit is logged. With several candidates the closest name length
        wins, then the lowest id.
        """
        identifier = (identifier or '').strip()
        if not identifier:
            return None, MatchKind.NONE

        product = Product.objects.filter(sku=identifier).first()
        if product is not None:
            logger.info("catalog.match", extra={"identifier": identifier, "kind": MatchKind.EXACT_SKU})
            return product, MatchKind.EXACT_SKU

        needle = identifier.casefold()
        candidates = [
            p for p in Product.objects.active().order_by('pk')
            if p.name and (needle in p.name.casefold() or p.name.casefold() in needle)
        ]
        if not candidates:
            logger.warning("catalog.match.none", extra={"identifier": identifier})
            return None, MatchKind.NONE

        candidates.sort(key=lambda p: (abs(len(p.name) - len(identifier)), p.pk))
        product = candidates[0]
        if len(candidates) > 1:
            logger.warning(
                "catalog.match.ambiguous",
                extra={
                    "identifier": identifier,
                    "chosen": product.sku,
                    "candidates": [p.sku for p in candidates],
                },
            )
        logger.warning(
            "catalog.match.fuzzy",
            extra={"identifier": identifier, "kind": MatchKind.FUZZY_NAME, "sku": product.sku},
        )
        return product, MatchKind.FUZZY_NAME

    def low_stock(self):
        """Active products at or below min_stock_level."""
        return Product.objects.active().low_stock()
