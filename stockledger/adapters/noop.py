"""
Noop Platform Adapter — in-memory storefront for development and testing.

This adapter implements the PlatformAdapter protocol without any network:
- set_stock() stores the value in memory and records the call
- find_product() knows every identifier, or only the configured ones

Usage in settings.py:
    STOCKLEDGER = {
        "PLATFORMS": {
            "dev": {"BACKEND": "stockledger.adapters.noop.NoopPlatformAdapter"},
        },
    }

WARNING: Do NOT use in production. Nothing leaves the process.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from stockledger.exceptions import SyncError, SyncPermanent


class NoopPlatformAdapter:
    """
    No-operation storefront.

    Args:
        name: Registry name
        known: Identifiers the storefront has. None means every identifier.
        failures: Errors raised by the next set_stock() calls, in order.
            Lets tests script transient/permanent failures.
    """

    def __init__(self, name: str = 'noop', known: Iterable[str] | None = None,
                 failures: Iterable[SyncError] | None = None):
        self.name = name
        self.known = set(known) if known is not None else None
        self.failures = list(failures or [])
        self.stock: dict[str, int] = {}
        self.calls: list[tuple[str, int]] = []
        self._lock = threading.Lock()

    def find_product(self, identifier: str, by: str = 'sku') -> bool:
        return self.known is None or identifier in self.known

    def set_stock(self, identifier: str, quantity: int) -> None:
        with self._lock:
            self.calls.append((identifier, quantity))
            if self.failures:
                raise self.failures.pop(0)
            if not self.find_product(identifier):
                raise SyncPermanent('NOT_FOUND', platform=self.name, identifier=identifier)
            self.stock[identifier] = quantity

    def __repr__(self) -> str:
        return f"<NoopPlatformAdapter {self.name}>"
