"""
Stockledger Protocols.

Defines interfaces for external system integration.
"""

from stockledger.protocols.orders import LineItem, OrderStatusChange
from stockledger.protocols.platform import PlatformAdapter, ProductLookup, SyncResult

__all__ = [
    "LineItem",
    "OrderStatusChange",
    "PlatformAdapter",
    "ProductLookup",
    "SyncResult",
]
