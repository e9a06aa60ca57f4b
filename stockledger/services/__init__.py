"""
Stock services — one module per engine component.

    from stockledger.services import LedgerStore, ProductCatalog, BundleResolver
"""

from stockledger.services.bundles import BundleResolver, ResolvedComponent
from stockledger.services.catalog import Availability, ProductCatalog
from stockledger.services.deduction import (
    DeductionSettingsProvider,
    OrderEventDispatcher,
    StockDeductionSettings,
    StockStateMachine,
    TransitionResult,
)
from stockledger.services.ledger import AppendResult, LedgerStore
from stockledger.services.sync import SyncReconciler
from stockledger.services.warehouses import TransferResult, WarehouseAllocator

__all__ = [
    'AppendResult',
    'Availability',
    'BundleResolver',
    'DeductionSettingsProvider',
    'LedgerStore',
    'OrderEventDispatcher',
    'ProductCatalog',
    'ResolvedComponent',
    'StockDeductionSettings',
    'StockStateMachine',
    'SyncReconciler',
    'TransferResult',
    'TransitionResult',
    'WarehouseAllocator',
]
