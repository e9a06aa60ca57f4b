"""
Ledger store — append-only stock movements and the counters they drive.

All state-changing methods run under transaction.atomic() with the
product row locked (select_for_update) and the in-process product lock
held, so movements of one product form a strict chain:
each stock_before equals the previous stock_after.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from django.db import transaction
from django.db.models import Case, F, IntegerField, Sum, Value, When
from django.db.models.functions import Coalesce
from django.utils import timezone

from stockledger.exceptions import StockError
from stockledger.models.enums import MovementType, signed_delta
from stockledger.models.movement import StockMovement
from stockledger.models.product import Product
from stockledger.models.warehouse import StockByWarehouse
from stockledger.services.locks import KeyedLocks, bucket_key, product_key, stock_locks

logger = logging.getLogger('stockledger')

INCREASING = [MovementType.IN, MovementType.RETURN, MovementType.INVENTORY]


@dataclass(frozen=True)
class AppendResult:
    """Outcome of LedgerStore.append()."""

    movement: StockMovement
    stock_before: int
    stock_after: int

    @property
    def is_negative(self) -> bool:
        return self.stock_after < 0


def _pk(obj) -> int:
    return getattr(obj, 'pk', obj)


def lock_product(product_id) -> Product:
    """Row-lock a product inside the current transaction."""
    try:
        return Product.objects.select_for_update().get(pk=product_id)
    except Product.DoesNotExist:
        raise StockError('PRODUCT_NOT_FOUND', product_id=product_id) from None


def lock_bucket(product_id, warehouse_id) -> StockByWarehouse:
    """Row-lock (creating if needed) a warehouse bucket."""
    bucket, _ = StockByWarehouse.objects.get_or_create(
        product_id=product_id,
        warehouse_id=warehouse_id,
    )
    return StockByWarehouse.objects.select_for_update().get(pk=bucket.pk)


class LedgerStore:
    """
    Append-only stock ledger.

    Does NOT refuse movements that drive stock negative: oversell is a
    business decision taken upstream. The resulting value is returned
    (and logged) so callers can warn.
    """

    def __init__(self, locks: KeyedLocks | None = None,
                 on_change: Callable[[int], None] | None = None):
        self._locks = locks or stock_locks
        self._on_change = on_change

    def set_on_change(self, callback: Callable[[int], None] | None) -> None:
        """Callback receiving the product id after each committed change."""
        self._on_change = callback

    def append(self, product, movement_type: str, quantity: int, warehouse=None,
               unit_price: Decimal = Decimal('0'), reason: str = '',
               idempotency_key: str = '') -> AppendResult:
        """
        Record one movement and update derived stock.

        In multi-warehouse mode a movement without warehouse goes to the
        default warehouse, and the bucket is updated in the same
        transaction. In single-warehouse mode the warehouse is ignored.

        Raises:
            StockError('INVALID_QUANTITY'): quantity <= 0
            StockError('INVALID_MOVEMENT_TYPE'): transfer (use WarehouseAllocator)
            StockError('PRODUCT_NOT_FOUND'): unknown product
        """
        if quantity is None or quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        movement_type = MovementType(movement_type)
        if movement_type == MovementType.TRANSFER:
            raise StockError('INVALID_MOVEMENT_TYPE', movement_type=movement_type)

        from stockledger.services.warehouses import default_warehouse, multi_warehouse_enabled

        product_id = _pk(product)
        if multi_warehouse_enabled():
            if warehouse is None:
                warehouse = default_warehouse()
        else:
            warehouse = None

        keys = [product_key(product_id)]
        if warehouse is not None:
            keys.append(bucket_key(product_id, warehouse.pk))

        delta = signed_delta(movement_type, quantity)

        with self._locks.hold(*keys), transaction.atomic():
            locked = lock_product(product_id)
            before = locked.current_stock
            after = before + delta

            movement = StockMovement.objects.create(
                product=locked,
                warehouse=warehouse,
                movement_type=movement_type,
                quantity=quantity,
                stock_before=before,
                stock_after=after,
                unit_price=unit_price,
                reason=reason,
                idempotency_key=idempotency_key,
            )

            locked.current_stock = after
            locked.updated_at = timezone.now()
            locked.save(update_fields=['current_stock', 'updated_at'])

            if warehouse is not None:
                bucket = lock_bucket(product_id, warehouse.pk)
                bucket.current_stock += delta
                bucket.save(update_fields=['current_stock', 'updated_at'])

            self._notify(product_id)

        logger.info(
            "stock.movement.appended",
            extra={
                "product_id": product_id,
                "type": str(movement_type),
                "qty": quantity,
                "before": before,
                "after": after,
                "warehouse": warehouse.code if warehouse else None,
                "reason": reason,
            },
        )
        if after < 0:
            logger.warning(
                "stock.oversell",
                extra={"product_id": product_id, "stock": after, "reason": reason},
            )
        return AppendResult(movement=movement, stock_before=before, stock_after=after)

    def receive(self, product, quantity: int, warehouse=None,
                unit_price: Decimal = Decimal('0'), reason: str = 'Receiving') -> AppendResult:
        """Stock entry (supplier delivery, initial stock)."""
        return self.append(product, MovementType.IN, quantity, warehouse=warehouse,
                           unit_price=unit_price, reason=reason)

    def adjust_to_count(self, product, counted: int, reason: str,
                        warehouse=None) -> AppendResult | None:
        """
        Inventory count correction.

        Computes the delta against the current value (the warehouse bucket
        when one is given in multi-warehouse mode). An increase is an
        INVENTORY movement, a decrease an OUT movement.

        Returns:
            AppendResult, or None when the count matches

        Raises:
            StockError('INVALID_QUANTITY'): If counted < 0
        """
        if counted is None or counted < 0:
            raise StockError('INVALID_QUANTITY', requested=counted)

        from stockledger.services.warehouses import multi_warehouse_enabled

        product_id = _pk(product)
        use_bucket = warehouse is not None and multi_warehouse_enabled()

        with self._locks.hold(product_key(product_id)), transaction.atomic():
            locked = lock_product(product_id)
            if use_bucket:
                current = lock_bucket(product_id, warehouse.pk).current_stock
            else:
                current = locked.current_stock

            delta = counted - current
            if delta == 0:
                return None

            label = f"Inventory count: {reason}" if reason else "Inventory count"
            if delta > 0:
                return self.append(locked, MovementType.INVENTORY, delta,
                                   warehouse=warehouse, reason=label)
            return self.append(locked, MovementType.OUT, -delta,
                               warehouse=warehouse, reason=label)

    def net_movements(self, product) -> int:
        """Signed sum of all movements of a product."""
        return StockMovement.objects.filter(product_id=_pk(product)).aggregate(
            t=Coalesce(
                Sum(
                    Case(
                        When(movement_type__in=INCREASING, then=F('quantity')),
                        When(movement_type=MovementType.OUT, then=-F('quantity')),
                        default=Value(0),
                        output_field=IntegerField(),
                    )
                ),
                Value(0),
            )
        )['t']

    def recalculate(self, product) -> int:
        """
        Rebuild current_stock from the ledger.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency

        Returns:
            The recalculated stock
        """
        product_id = _pk(product)
        with self._locks.hold(product_key(product_id)), transaction.atomic():
            locked = lock_product(product_id)
            total = self.net_movements(locked)

            if total != locked.current_stock:
                old = locked.current_stock
                locked.current_stock = total
                locked.save(update_fields=['current_stock', 'updated_at'])
                logger.warning(
                    f"Product {product_id} recalculated: {old} → {total} "
                    f"(diff: {total - old})"
                )
                self._notify(product_id)
        return total

    def verify_chain(self, product) -> list[StockMovement]:
        """Movements whose stock_before breaks the chain of the previous stock_after."""
        broken = []
        previous_after = 0
        for movement in StockMovement.objects.filter(product_id=_pk(product)).order_by('created_at', 'id'):
            if movement.stock_before != previous_after:
                broken.append(movement)
            previous_after = movement.stock_after
        return broken

    def _notify(self, product_id: int) -> None:
        if self._on_change is not None:
            callback = self._on_change
            transaction.on_commit(lambda: callback(product_id))
