"""
Stock Service — The single public interface for all stock operations.

Usage:
    from stockledger import stock, StockError

    stock.receive(mug.pk, 20)
    stock.on_order_status_changed(OrderStatusChange("1042", "Изпратена", items))
    stock.get_available(mug.pk).available  # 18
"""

import threading
from decimal import Decimal

from stockledger.exceptions import StockError
from stockledger.models.enums import MatchKind
from stockledger.models.product import Product
from stockledger.protocols.orders import OrderStatusChange
from stockledger.services.bundles import BundleResolver
from stockledger.services.catalog import Availability, ProductCatalog
from stockledger.services.deduction import (
    DeductionSettingsProvider,
    StockDeductionSettings,
    StockStateMachine,
    TransitionResult,
)
from stockledger.services.ledger import AppendResult, LedgerStore
from stockledger.services.locks import KeyedLocks, stock_locks
from stockledger.services.sync import SyncReconciler
from stockledger.services.warehouses import TransferResult, WarehouseAllocator, _get_warehouse


class StockEngine:
    """
    Single interface for all stock operations.

    Wires the components together: the ledger reports committed changes to
    the sync reconciler, the state machine drives the ledger and catalog.

    IMPORTANT: All state-changing methods use atomic transactions
    with appropriate locking. See each component's docstring.
    """

    def __init__(self, reconciler: SyncReconciler | None = None,
                 settings_provider: DeductionSettingsProvider | None = None,
                 locks: KeyedLocks | None = None):
        locks = locks or stock_locks
        self.reconciler = reconciler or SyncReconciler()
        self.ledger = LedgerStore(locks=locks, on_change=self.reconciler.on_stock_changed)
        self.catalog = ProductCatalog(locks=locks)
        self.bundles = BundleResolver()
        self.warehouses = WarehouseAllocator(locks=locks)
        self.settings = settings_provider or DeductionSettingsProvider()
        self.state_machine = StockStateMachine(
            self.settings,
            catalog=self.catalog,
            ledger=self.ledger,
            bundles=self.bundles,
            locks=locks,
        )

    # ══════════════════════════════════════════════════════════════
    # ORDERS
    # ══════════════════════════════════════════════════════════════

    def on_order_status_changed(self, event: OrderStatusChange) -> TransitionResult:
        return self.state_machine.on_order_status_changed(event)

    def reserve(self, sku: str, quantity: int, order_id) -> bool:
        return self.state_machine.reserve(sku, quantity, order_id)

    def deduct(self, sku: str, quantity: int, order_id) -> bool:
        return self.state_machine.deduct(sku, quantity, order_id)

    def restore(self, sku: str, quantity: int, order_id) -> bool:
        return self.state_machine.restore(sku, quantity, order_id)

    # ══════════════════════════════════════════════════════════════
    # STOCK
    # ══════════════════════════════════════════════════════════════

    def get_stock(self, product_id) -> int:
        return self.catalog.get_stock(product_id)

    def get_available(self, product_id) -> Availability:
        return self.catalog.get_available(product_id)

    def find_product(self, identifier: str) -> tuple[Product | None, MatchKind]:
        """Look a product up by SKU, or loosely by name (logged when fuzzy)."""
        return self.catalog.find_by_sku_or_name(identifier)

    def receive(self, product_id, quantity: int, warehouse_id=None,
                unit_price: Decimal = Decimal('0'), reason: str = 'Receiving') -> AppendResult:
        warehouse = _get_warehouse(warehouse_id) if warehouse_id is not None else None
        return self.ledger.receive(self._product(product_id), quantity, warehouse=warehouse,
                                   unit_price=unit_price, reason=reason)

    def adjust_to_count(self, product_id, counted: int, reason: str = '',
                        warehouse_id=None) -> AppendResult | None:
        warehouse = _get_warehouse(warehouse_id) if warehouse_id is not None else None
        return self.ledger.adjust_to_count(self._product(product_id), counted, reason,
                                           warehouse=warehouse)

    def transfer(self, product_id, from_warehouse_id, to_warehouse_id, quantity: int,
                 reason: str = '') -> TransferResult:
        return self.warehouses.transfer(self._product(product_id), from_warehouse_id,
                                        to_warehouse_id, quantity, reason=reason)

    def stock_by_warehouse(self, product_id) -> dict[str, int]:
        return self.warehouses.stock_by_warehouse(self._product(product_id))

    # ══════════════════════════════════════════════════════════════
    # SYNC & SETTINGS
    # ══════════════════════════════════════════════════════════════

    def sync_product(self, product_id, platforms: list[str] | None = None):
        return self.reconciler.sync_product(self._product(product_id), platforms=platforms)

    def save_settings(self, **changes) -> StockDeductionSettings:
        return self.settings.save(**changes)

    def _product(self, product_id) -> Product:
        if isinstance(product_id, Product):
            return product_id
        try:
            return Product.objects.get(pk=product_id)
        except Product.DoesNotExist:
            raise StockError('PRODUCT_NOT_FOUND', product_id=product_id) from None


_lock = threading.Lock()
_engine: StockEngine | None = None


def get_engine() -> StockEngine:
    """Process-wide engine built from settings."""
    global _engine

    if _engine is None:
        with _lock:
            if _engine is None:  # double-checked
                _engine = StockEngine()
    return _engine


def reset_engine() -> None:
    """Drop the cached engine (shutting down its sync workers). Useful for testing."""
    global _engine
    with _lock:
        engine, _engine = _engine, None
    if engine is not None:
        engine.reconciler.shutdown(wait=False)
