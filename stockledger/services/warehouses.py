"""
Warehouse allocator — moves stock between warehouse buckets.

A transfer never changes Product.current_stock. When multi-warehouse
mode is off the allocator is inert and every stock operation bypasses it.
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from stockledger.conf import stockledger_settings
from stockledger.exceptions import StockError
from stockledger.models.enums import MovementType
from stockledger.models.movement import StockMovement
from stockledger.models.product import Product
from stockledger.models.settings import ApiSetting
from stockledger.models.warehouse import StockByWarehouse, Warehouse
from stockledger.services.ledger import lock_bucket, lock_product
from stockledger.services.locks import KeyedLocks, bucket_key, product_key, stock_locks

logger = logging.getLogger('stockledger')

MULTI_WAREHOUSE_KEY = 'multi_warehouse_enabled'


def multi_warehouse_enabled() -> bool:
    """ApiSetting switch, falling back to STOCKLEDGER['MULTI_WAREHOUSE']."""
    value = ApiSetting.get_value(MULTI_WAREHOUSE_KEY)
    if value is None:
        return bool(stockledger_settings.MULTI_WAREHOUSE)
    return value == 'true'


def default_warehouse() -> Warehouse:
    warehouse = Warehouse.objects.filter(is_default=True, is_active=True).first()
    if warehouse is None:
        raise StockError('WAREHOUSE_NOT_FOUND', warehouse='default')
    return warehouse


def _get_warehouse(warehouse) -> Warehouse:
    if isinstance(warehouse, Warehouse):
        return warehouse
    try:
        return Warehouse.objects.get(pk=warehouse)
    except Warehouse.DoesNotExist:
        raise StockError('WAREHOUSE_NOT_FOUND', warehouse=warehouse) from None


@dataclass(frozen=True)
class TransferResult:
    """Matched pair of transfer movements."""

    out_movement: StockMovement
    in_movement: StockMovement
    source_stock: int
    destination_stock: int


class WarehouseAllocator:
    """Per-warehouse stock buckets and transfers between them."""

    def __init__(self, locks: KeyedLocks | None = None):
        self._locks = locks or stock_locks

    def transfer(self, product, from_warehouse, to_warehouse, quantity: int,
                 reason: str = '') -> TransferResult:
        """
        Move quantity from one bucket to another. All-or-nothing.

        The source bucket's own stock must cover the quantity; reservations
        are not taken into account.

        Raises:
            StockError('MULTI_WAREHOUSE_DISABLED'): mode is off
            StockError('INVALID_QUANTITY'): quantity <= 0
            StockError('SAME_WAREHOUSE'): source == destination
            StockError('INSUFFICIENT_STOCK'): source bucket < quantity

        Concurrency:
            - Product lock and both bucket locks, taken in sorted key order
            - Runs under transaction.atomic() with both bucket rows locked
              in warehouse pk order
        """
        if not multi_warehouse_enabled():
            raise StockError('MULTI_WAREHOUSE_DISABLED')
        if quantity is None or quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        source = _get_warehouse(from_warehouse)
        destination = _get_warehouse(to_warehouse)
        if source.pk == destination.pk:
            raise StockError('SAME_WAREHOUSE', warehouse=source.code)

        product_id = getattr(product, 'pk', product)
        keys = (
            product_key(product_id),
            bucket_key(product_id, source.pk),
            bucket_key(product_id, destination.pk),
        )

        with self._locks.hold(*keys), transaction.atomic():
            locked = lock_product(product_id)

            buckets = {}
            for warehouse in sorted((source, destination), key=lambda w: w.pk):
                buckets[warehouse.pk] = lock_bucket(product_id, warehouse.pk)
            src, dst = buckets[source.pk], buckets[destination.pk]

            if src.current_stock < quantity:
                raise StockError(
                    'INSUFFICIENT_STOCK',
                    available=src.current_stock,
                    requested=quantity,
                    warehouse=source.code,
                )

            stock = locked.current_stock
            label = reason or f"Transfer {source.code} → {destination.code}"
            out_movement = StockMovement.objects.create(
                product=locked,
                warehouse=source,
                movement_type=MovementType.TRANSFER,
                quantity=quantity,
                stock_before=stock,
                stock_after=stock,
                reason=label,
            )
            in_movement = StockMovement.objects.create(
                product=locked,
                warehouse=destination,
                movement_type=MovementType.TRANSFER,
                quantity=quantity,
                stock_before=stock,
                stock_after=stock,
                reason=label,
            )

            src.current_stock -= quantity
            dst.current_stock += quantity
            src.save(update_fields=['current_stock', 'updated_at'])
            dst.save(update_fields=['current_stock', 'updated_at'])

        logger.info(
            "stock.transfer",
            extra={
                "product_id": product_id,
                "qty": quantity,
                "from": source.code,
                "to": destination.code,
            },
        )
        return TransferResult(
            out_movement=out_movement,
            in_movement=in_movement,
            source_stock=src.current_stock,
            destination_stock=dst.current_stock,
        )

    def stock_by_warehouse(self, product) -> dict[str, int]:
        """Bucket stock keyed by warehouse code."""
        product_id = getattr(product, 'pk', product)
        rows = StockByWarehouse.objects.filter(product_id=product_id).select_related('warehouse')
        return {row.warehouse.code: row.current_stock for row in rows}

    def bucket_total(self, product) -> int:
        product_id = getattr(product, 'pk', product)
        return StockByWarehouse.objects.filter(product_id=product_id).aggregate(
            t=Coalesce(Sum('current_stock'), 0)
        )['t']

    def enable_multi_warehouse(self) -> int:
        """
        Switch multi-warehouse mode on.

        Seeds the default warehouse bucket with whatever part of each
        product's stock is not yet in a bucket, so buckets sum to
        current_stock from the start.

        Returns:
            Number of products seeded
        """
        warehouse = default_warehouse()
        seeded = 0

        with transaction.atomic():
            ApiSetting.set_value(MULTI_WAREHOUSE_KEY, 'true')
            for product_id in Product.objects.values_list('pk', flat=True):
                with self._locks.hold(product_key(product_id), bucket_key(product_id, warehouse.pk)):
                    locked = lock_product(product_id)
                    missing = locked.current_stock - self.bucket_total(product_id)
                    if missing:
                        bucket = lock_bucket(product_id, warehouse.pk)
                        bucket.current_stock += missing
                        bucket.save(update_fields=['current_stock', 'updated_at'])
                        seeded += 1

        logger.info("stock.multi_warehouse.enabled", extra={"seeded": seeded})
        return seeded

    def disable_multi_warehouse(self) -> None:
        ApiSetting.set_value(MULTI_WAREHOUSE_KEY, 'false')
        logger.info("stock.multi_warehouse.disabled")
