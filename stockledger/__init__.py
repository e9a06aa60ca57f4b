"""
Django Stockledger — stock ledger and multi-channel reconciliation.

Usage:
    from stockledger import stock, StockError

    stock.receive(mug.pk, 20)
    stock.deduct("MUG-01", 2, order_id=1042)
    stock.get_available(mug.pk)  # Availability(current=18, reserved=0)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'stock':
        from stockledger.service import get_engine
        return get_engine()
    elif name == 'StockEngine':
        from stockledger.service import StockEngine
        return StockEngine
    elif name == 'StockError':
        from stockledger.exceptions import StockError
        return StockError
    elif name == 'Product':
        from stockledger.models.product import Product
        return Product
    elif name == 'Warehouse':
        from stockledger.models.warehouse import Warehouse
        return Warehouse
    elif name == 'StockMovement':
        from stockledger.models.movement import StockMovement
        return StockMovement
    elif name == 'MovementType':
        from stockledger.models.enums import MovementType
        return MovementType
    elif name == 'BundleComponent':
        from stockledger.models.bundle import BundleComponent
        return BundleComponent
    elif name == 'StockAlert':
        from stockledger.models.alert import StockAlert
        return StockAlert
    elif name == 'OrderStatusChange':
        from stockledger.protocols.orders import OrderStatusChange
        return OrderStatusChange
    elif name == 'LineItem':
        from stockledger.protocols.orders import LineItem
        return LineItem
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'stock',
    'StockEngine',
    'StockError',
    'Product',
    'Warehouse',
    'StockMovement',
    'MovementType',
    'BundleComponent',
    'StockAlert',
    'OrderStatusChange',
    'LineItem',
]

__version__ = '0.1.0'
