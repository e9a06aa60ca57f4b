"""
Stockledger Models.

Core models for the stock ledger:
- Product: Derived stock counters per item
- StockMovement: Immutable ledger of changes
- Warehouse / StockByWarehouse: Per-location buckets
- BundleComponent: Composite product definitions
- AppliedTransition: Order status idempotency records
- ApiSetting: Key/value settings store
- SyncJob / SyncJobLog: Platform push tracking
- StockAlert: Low stock notifications
"""

from stockledger.models.alert import StockAlert
from stockledger.models.bundle import BundleComponent
from stockledger.models.enums import (
    LogLevel,
    MatchKind,
    MovementType,
    SyncJobStatus,
    SyncJobType,
    TransitionAction,
)
from stockledger.models.movement import StockMovement
from stockledger.models.product import Product
from stockledger.models.settings import ApiSetting
from stockledger.models.sync import SyncJob, SyncJobLog
from stockledger.models.transition import AppliedTransition
from stockledger.models.warehouse import StockByWarehouse, Warehouse

__all__ = [
    'MovementType',
    'TransitionAction',
    'SyncJobStatus',
    'SyncJobType',
    'LogLevel',
    'MatchKind',
    'Product',
    'StockMovement',
    'Warehouse',
    'StockByWarehouse',
    'BundleComponent',
    'AppliedTransition',
    'ApiSetting',
    'SyncJob',
    'SyncJobLog',
    'StockAlert',
]
