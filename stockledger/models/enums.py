"""
Enums for Stockledger models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MovementType(models.TextChoices):
    """
    Kind of ledger movement.

    IN, RETURN and INVENTORY add stock, OUT removes it.
    TRANSFER only moves stock between warehouse buckets; at product level
    stock_after == stock_before.
    """
    IN = 'in', _('In')
    OUT = 'out', _('Out')
    RETURN = 'return', _('Return')
    TRANSFER = 'transfer', _('Transfer')
    INVENTORY = 'inventory', _('Inventory count')


class TransitionAction(models.TextChoices):
    """Stock effect applied for an order status change."""
    RESERVE = 'reserve', _('Reserve')
    DEDUCT = 'deduct', _('Deduct')
    RESTORE = 'restore', _('Restore')


class SyncJobStatus(models.TextChoices):
    """Sync job lifecycle status."""
    PENDING = 'pending', _('Pending')
    PROCESSING = 'processing', _('Processing')
    COMPLETED = 'completed', _('Completed')
    FAILED = 'failed', _('Failed')


class SyncJobType(models.TextChoices):
    """What a sync job pushes or pulls."""
    SYNC_STOCK = 'sync_stock', _('Stock sync')
    SYNC_PRODUCTS = 'sync_products', _('Product sync')
    SYNC_PRICES = 'sync_prices', _('Price sync')
    SYNC_CATEGORIES = 'sync_categories', _('Category sync')
    IMPORT = 'import', _('Import')
    EXPORT = 'export', _('Export')


class LogLevel(models.TextChoices):
    """Sync job log line level."""
    INFO = 'info', _('Info')
    WARN = 'warn', _('Warning')
    ERROR = 'error', _('Error')


class MatchKind(models.TextChoices):
    """How an identifier was matched to a product."""
    EXACT_SKU = 'exact_sku', _('Exact SKU')
    FUZZY_NAME = 'fuzzy_name', _('Fuzzy name')
    NONE = 'none', _('No match')


# Sign applied to quantity at product level
MOVEMENT_SIGN = {
    MovementType.IN: 1,
    MovementType.RETURN: 1,
    MovementType.INVENTORY: 1,
    MovementType.OUT: -1,
    MovementType.TRANSFER: 0,
}


def signed_delta(movement_type: str, quantity: int) -> int:
    """Product-level stock change for a movement."""
    return MOVEMENT_SIGN[MovementType(movement_type)] * quantity
