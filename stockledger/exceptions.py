"""
Exceptions for Stockledger.

Engine errors are StockError with a structured code for programmatic handling.
Platform push failures are SyncError, split into transient (retried) and
permanent (surfaced, not retried).
"""

from typing import Any


class BaseError(Exception):
    """
    Exception carrying a machine-readable code plus context data.

    Subclasses provide ``_default_messages`` so callers can raise with the
    code alone: ``raise StockError('INVALID_QUANTITY', requested=0)``.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.data:
            details = ', '.join(f"{k}={v}" for k, v in self.data.items())
            return f"[{self.code}] {self.message} ({details})"
        return f"[{self.code}] {self.message}"


class StockError(BaseError):
    """
    Structured exception for stock operations.

    Usage:
        try:
            stock.transfer(product.pk, main.pk, shop.pk, 10)
        except StockError as e:
            if e.code == 'INSUFFICIENT_STOCK':
                print(f"Only {e.available} in the source warehouse")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'PRODUCT_NOT_FOUND': 'Product not found',
        'WAREHOUSE_NOT_FOUND': 'Warehouse not found',
        'INSUFFICIENT_STOCK': 'Insufficient stock in source warehouse',
        'INVALID_QUANTITY': 'Invalid quantity (must be positive)',
        'INVALID_MOVEMENT_TYPE': 'Movement type not accepted here',
        'SAME_WAREHOUSE': 'Source and destination warehouse must differ',
        'MULTI_WAREHOUSE_DISABLED': 'Multi-warehouse mode is disabled',
        'BUNDLE_TOO_DEEP': 'Bundle nesting exceeds the depth limit',
        'BUNDLE_CYCLE': 'Bundle component would create a cycle',
        'SETTINGS_UNAVAILABLE': 'Stock deduction settings could not be loaded',
        'IMMUTABLE_MOVEMENT': 'Stock movements are append-only',
        'UNKNOWN_PLATFORM': 'Platform is not registered',
    }

    @property
    def available(self) -> int:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> int:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {k: str(v) for k, v in self.data.items()},
        }


class SyncError(BaseError):
    """Failure pushing stock to an external platform."""

    transient = False

    _default_messages = {
        'TIMEOUT': 'Platform request timed out',
        'NETWORK': 'Platform unreachable',
        'SERVER_ERROR': 'Platform returned a server error',
        'RATE_LIMITED': 'Platform rate limit reached',
        'AUTH': 'Platform rejected the credentials',
        'NOT_FOUND': 'Product not found on platform',
        'BAD_REQUEST': 'Platform rejected the request',
        'MISCONFIGURED': 'Platform adapter is not configured',
    }


class SyncTransient(SyncError):
    """Network, timeout, 5xx or rate limiting. Retried with backoff."""

    transient = True


class SyncPermanent(SyncError):
    """Auth, not-found or malformed request. Logged and surfaced, never retried."""
