"""
Stock deduction — order status transitions driving reservations and movements.

Per order (tracked implicitly by its status):

    none ──reserve──► reserved ──deduct──► deducted
              │                              │
              └──────────restore─────────────┴──► restored

Which status label triggers which transition is configured in
StockDeductionSettings (hot-reloadable, persisted in ApiSetting).
"""

import logging
import threading
import time
import zlib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, fields, replace

from django.db import DatabaseError, connection, transaction

from stockledger.conf import stockledger_settings
from stockledger.exceptions import StockError
from stockledger.models.enums import MovementType, TransitionAction
from stockledger.models.product import Product
from stockledger.models.settings import ApiSetting
from stockledger.models.transition import AppliedTransition
from stockledger.protocols.orders import LineItem, OrderStatusChange
from stockledger.services.bundles import BundleResolver
from stockledger.services.catalog import ProductCatalog
from stockledger.services.ledger import LedgerStore
from stockledger.services.locks import KeyedLocks, product_key, stock_locks

logger = logging.getLogger('stockledger')


# ══════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════

SETTING_KEYS = {
    'reservation_status': 'stock_reservation_status',
    'deduction_status': 'stock_deduction_status',
    'restore_status': 'stock_restore_status',
    'auto_deduct_enabled': 'stock_auto_deduct_enabled',
}


@dataclass(frozen=True)
class StockDeductionSettings:
    """Which order statuses reserve, deduct and restore stock."""

    reservation_status: str = 'В обработка'
    deduction_status: str = 'Изпратена'
    restore_status: str = 'Върната'
    auto_deduct_enabled: bool = True

    def action_for(self, status: str) -> TransitionAction | None:
        """Transition fired by moving an order to status (None = no stock effect)."""
        if not self.auto_deduct_enabled or not status:
            return None
        if status == self.reservation_status:
            return TransitionAction.RESERVE
        if status == self.deduction_status:
            return TransitionAction.DEDUCT
        if status == self.restore_status:
            return TransitionAction.RESTORE
        return None

    @classmethod
    def from_store(cls, values: dict[str, str]) -> 'StockDeductionSettings':
        """Build from ApiSetting rows; blank values fall back to defaults."""
        defaults = cls()
        return cls(
            reservation_status=values.get(SETTING_KEYS['reservation_status']) or defaults.reservation_status,
            deduction_status=values.get(SETTING_KEYS['deduction_status']) or defaults.deduction_status,
            restore_status=values.get(SETTING_KEYS['restore_status']) or defaults.restore_status,
            auto_deduct_enabled=values.get(SETTING_KEYS['auto_deduct_enabled']) != 'false',
        )


class DeductionSettingsProvider:
    """
    Cached, hot-reloadable StockDeductionSettings.

    - load(): read at startup; an unreachable store is fatal
    - get(): cached copy, re-read at most every refresh interval; on a
      read failure the last-known-good copy keeps being served
    - save(): the only write path; the cache is replaced only after the
      store has committed
    """

    def __init__(self, refresh_interval: float | None = None, clock=time.monotonic):
        self._refresh_interval = refresh_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: StockDeductionSettings | None = None
        self._loaded_at = 0.0

    @property
    def refresh_interval(self) -> float:
        if self._refresh_interval is not None:
            return self._refresh_interval
        return stockledger_settings.SETTINGS_REFRESH_SECONDS

    def _read(self) -> StockDeductionSettings:
        rows = dict(
            ApiSetting.objects.filter(setting_key__in=SETTING_KEYS.values())
            .values_list('setting_key', 'setting_value')
        )
        return StockDeductionSettings.from_store(rows)

    def load(self) -> StockDeductionSettings:
        """
        Read settings from the store.

        Raises:
            StockError('SETTINGS_UNAVAILABLE'): If the store can't be read
        """
        try:
            settings = self._read()
        except DatabaseError as e:
            raise StockError('SETTINGS_UNAVAILABLE', error=str(e)) from e
        with self._lock:
            self._cached = settings
            self._loaded_at = self._clock()
        return settings

    def get(self) -> StockDeductionSettings:
        if self._cached is None:
            return self.load()
        if self._clock() - self._loaded_at >= self.refresh_interval:
            return self.reload()
        return self._cached

    def reload(self) -> StockDeductionSettings:
        """Re-read now, keeping the last-known-good copy if the store fails."""
        if self._cached is None:
            return self.load()
        try:
            return self.load()
        except StockError as e:
            with self._lock:
                # Don't hammer a failing store on every read
                self._loaded_at = self._clock()
            logger.warning(
                "settings.reload.failed",
                extra={"error": e.data.get('error'), "using": "last-known-good"},
            )
            return self._cached

    def save(self, **changes) -> StockDeductionSettings:
        """
        Persist changed fields and refresh the cache.

        Usage:
            provider.save(deduction_status='Shipped', auto_deduct_enabled=False)
        """
        known = {f.name for f in fields(StockDeductionSettings)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown stock deduction settings: {sorted(unknown)}")

        with self._lock:
            with transaction.atomic():
                for name, value in changes.items():
                    if name == 'auto_deduct_enabled':
                        value = 'true' if value else 'false'
                    ApiSetting.set_value(SETTING_KEYS[name], value)

            current = self._cached or StockDeductionSettings()
            self._cached = replace(current, **changes)
            self._loaded_at = self._clock()

        logger.info("settings.saved", extra={"changed": sorted(changes)})
        return self._cached


# ══════════════════════════════════════════════════════════════
# STATE MACHINE
# ══════════════════════════════════════════════════════════════


@dataclass
class TransitionResult:
    """What a status change did to stock."""

    order_id: str
    status: str
    action: TransitionAction | None = None
    applied: bool = False
    detail: str = ''
    movements: list = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _movement_reason(action: TransitionAction, order_id: str, status: str) -> str:
    label = {
        TransitionAction.DEDUCT: 'Automatic deduction',
        TransitionAction.RESTORE: 'Automatic restore',
        TransitionAction.RESERVE: 'Reservation',
    }[action]
    return f"{label} for order #{order_id} ({status})"


class StockStateMachine:
    """
    Applies reserve / deduct / restore for order status changes.

    Order processing never blocks on inventory bookkeeping: unknown SKUs
    and over-deep bundles are skipped and logged, not raised.
    """

    def __init__(self, settings_provider: DeductionSettingsProvider,
                 catalog: ProductCatalog | None = None,
                 ledger: LedgerStore | None = None,
                 bundles: BundleResolver | None = None,
                 locks: KeyedLocks | None = None):
        self.settings_provider = settings_provider
        self.catalog = catalog or ProductCatalog()
        self.ledger = ledger or LedgerStore()
        self.bundles = bundles or BundleResolver()
        self._locks = locks or stock_locks

    def on_order_status_changed(self, event: OrderStatusChange) -> TransitionResult:
        """React to an order moving to event.new_status."""
        settings = self.settings_provider.get()
        action = settings.action_for(event.new_status)
        if action is None:
            detail = 'disabled' if not settings.auto_deduct_enabled else 'no stock effect'
            return TransitionResult(event.order_id, event.new_status, detail=detail)

        return self._apply(
            order_id=str(event.order_id),
            status=event.new_status,
            action=action,
            line_items=event.line_items,
            key=event.idempotency_key,
        )

    # Direct API for the order collaborator

    def reserve(self, sku: str, quantity: int, order_id) -> bool:
        return self._direct(TransitionAction.RESERVE, sku, quantity, order_id)

    def deduct(self, sku: str, quantity: int, order_id) -> bool:
        return self._direct(TransitionAction.DEDUCT, sku, quantity, order_id)

    def restore(self, sku: str, quantity: int, order_id) -> bool:
        return self._direct(TransitionAction.RESTORE, sku, quantity, order_id)

    def _direct(self, action: TransitionAction, sku: str, quantity: int, order_id) -> bool:
        settings = self.settings_provider.get()
        if not settings.auto_deduct_enabled:
            return False
        status = {
            TransitionAction.RESERVE: settings.reservation_status,
            TransitionAction.DEDUCT: settings.deduction_status,
            TransitionAction.RESTORE: settings.restore_status,
        }[action]
        result = self._apply(
            order_id=str(order_id),
            status=status,
            action=action,
            line_items=[LineItem(sku=sku, quantity=quantity)],
            key=f"{order_id}:{status}:{sku}",
        )
        return result.applied

    # Internals

    def _resolve(self, line_items, result: TransitionResult) -> dict[int, tuple[Product, int]]:
        """Expand line items into {product_id: (product, quantity)}."""
        resolved: dict[int, tuple[Product, int]] = {}
        for line in line_items:
            if line.quantity is None or line.quantity <= 0:
                logger.warning(
                    "stock.transition.bad_quantity",
                    extra={"order_id": result.order_id, "sku": line.sku, "qty": line.quantity},
                )
                result.skipped.append(line.sku)
                continue

            product = Product.objects.filter(sku=line.sku).first()
            if product is None:
                logger.warning(
                    "stock.transition.product_not_found",
                    extra={"order_id": result.order_id, "sku": line.sku},
                )
                result.skipped.append(line.sku)
                continue

            try:
                components = self.bundles.expand(product, line.quantity)
            except StockError as e:
                logger.error(
                    "stock.transition.bundle_failed",
                    extra={"order_id": result.order_id, "sku": line.sku, "code": e.code},
                )
                result.skipped.append(line.sku)
                continue

            for component in components:
                pk = component.product.pk
                _, qty = resolved.get(pk, (component.product, 0))
                resolved[pk] = (component.product, qty + component.quantity)
        return resolved

    def _restore_mode(self, order_id: str) -> TransitionAction:
        """
        What restoring this order means.

        Deducted orders get their stock returned; orders only reserved get
        their reservation released. Orders with no recorded transition are
        treated as deducted.
        """
        actions = set(
            AppliedTransition.objects.filter(order_id=order_id).values_list('action', flat=True)
        )
        if TransitionAction.DEDUCT in actions or TransitionAction.RESERVE not in actions:
            return TransitionAction.DEDUCT
        return TransitionAction.RESERVE

    def _held_reservations(self, order_id: str) -> dict[int, int]:
        """Quantity per product this order still holds reserved."""
        held: dict[int, int] = {}
        for deltas in AppliedTransition.objects.filter(order_id=order_id).values_list('reserved', flat=True):
            for pk, delta in (deltas or {}).items():
                held[int(pk)] = held.get(int(pk), 0) + delta
        return held

    def _release(self, pk: int, quantity: int, held: dict[int, int]) -> int:
        """Release up to quantity of this order's own reservation on pk."""
        released = min(quantity, max(0, held.get(pk, 0)))
        if released:
            self.catalog.adjust_reserved(pk, -released)
        return released

    def _apply(self, order_id: str, status: str, action: TransitionAction,
               line_items, key: str) -> TransitionResult:
        result = TransitionResult(order_id=order_id, status=status, action=action)

        if AppliedTransition.objects.filter(idempotency_key=key).exists():
            result.detail = 'duplicate'
            logger.info("stock.transition.duplicate", extra={"key": key})
            return result

        resolved = self._resolve(line_items, result)
        if not resolved:
            result.detail = 'nothing to apply'
            return result

        reason = _movement_reason(action, order_id, status)
        keys = [product_key(pk) for pk in resolved]

        with self._locks.hold(*keys), transaction.atomic():
            transition, created = AppliedTransition.objects.get_or_create(
                idempotency_key=key,
                defaults={'order_id': order_id, 'status': status, 'action': action},
            )
            if not created:
                result.detail = 'duplicate'
                return result

            restore_mode = self._restore_mode(order_id) if action == TransitionAction.RESTORE else None
            held = self._held_reservations(order_id) if action != TransitionAction.RESERVE else {}
            reserved: dict[int, int] = {}

            for pk in sorted(resolved):
                product, quantity = resolved[pk]

                if action == TransitionAction.RESERVE:
                    self.catalog.adjust_reserved(pk, quantity)
                    reserved[pk] = quantity

                elif action == TransitionAction.DEDUCT:
                    appended = self.ledger.append(
                        product, MovementType.OUT, quantity,
                        reason=reason, idempotency_key=key,
                    )
                    result.movements.append(appended.movement)
                    released = self._release(pk, quantity, held)
                    if released:
                        reserved[pk] = -released

                elif restore_mode == TransitionAction.RESERVE:
                    released = self._release(pk, quantity, held)
                    if released:
                        reserved[pk] = -released

                else:
                    appended = self.ledger.append(
                        product, MovementType.RETURN, quantity,
                        reason=reason, idempotency_key=key,
                    )
                    result.movements.append(appended.movement)

            if reserved:
                transition.reserved = {str(pk): delta for pk, delta in reserved.items()}
                transition.save(update_fields=['reserved'])

        result.applied = True
        logger.info(
            "stock.transition.applied",
            extra={
                "order_id": order_id,
                "status": status,
                "action": str(action),
                "products": len(resolved),
                "skipped": result.skipped,
            },
        )
        return result


# ══════════════════════════════════════════════════════════════
# DISPATCH
# ══════════════════════════════════════════════════════════════


class OrderEventDispatcher:
    """
    Worker pool for order status events.

    Events of one order always run on the same single-thread lane, in
    arrival order. Different orders run concurrently; writes to a shared
    product are serialized by the product locks.
    """

    def __init__(self, state_machine: StockStateMachine, lanes: int = 4):
        self._state_machine = state_machine
        self._lanes = [
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"stockledger-orders-{i}")
            for i in range(lanes)
        ]

    def lane_for(self, order_id) -> int:
        return zlib.crc32(str(order_id).encode()) % len(self._lanes)

    def submit(self, event: OrderStatusChange) -> Future:
        lane = self._lanes[self.lane_for(event.order_id)]
        return lane.submit(self._run, event)

    def _run(self, event: OrderStatusChange) -> TransitionResult:
        try:
            return self._state_machine.on_order_status_changed(event)
        except Exception:
            logger.exception("stock.transition.failed", extra={"order_id": event.order_id})
            raise
        finally:
            connection.close()

    def shutdown(self, wait: bool = True) -> None:
        for lane in self._lanes:
            lane.shutdown(wait=wait)
