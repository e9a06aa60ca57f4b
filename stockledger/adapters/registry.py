"""
Platform registry — adapters loaded from settings.

Usage:
    from stockledger.adapters import get_platform_registry

    registry = get_platform_registry()
    registry.get("woocommerce").set_stock("SKU-001", 12)

Settings:
    STOCKLEDGER = {
        "PLATFORMS": {
            "woocommerce": {
                "BACKEND": "stockledger.adapters.woocommerce.WooCommerceAdapter",
                "OPTIONS": {...},
                "ENABLED": True,
            },
        },
    }

A platform with a missing or unimportable BACKEND raises ImproperlyConfigured.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from stockledger.conf import stockledger_settings
from stockledger.exceptions import StockError
from stockledger.protocols.platform import PlatformAdapter

logger = logging.getLogger(__name__)


class PlatformRegistry:
    """Enabled adapters keyed by platform name."""

    def __init__(self, adapters: Iterable[PlatformAdapter] | None = None):
        self._adapters: dict[str, PlatformAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    @classmethod
    def from_settings(cls, platforms: dict | None = None) -> PlatformRegistry:
        """Instantiate every enabled entry of STOCKLEDGER['PLATFORMS']."""
        if platforms is None:
            platforms = stockledger_settings.PLATFORMS

        registry = cls()
        for name, config in platforms.items():
            if not config.get("ENABLED", True):
                logger.debug("Platform %s disabled", name)
                continue

            backend_path = config.get("BACKEND")
            if not backend_path:
                raise ImproperlyConfigured(
                    f"STOCKLEDGER['PLATFORMS']['{name}']['BACKEND'] must be configured. "
                    "Example: 'stockledger.adapters.woocommerce.WooCommerceAdapter'"
                )
            try:
                backend_class = import_string(backend_path)
            except ImportError as e:
                raise ImproperlyConfigured(
                    f"Failed to import platform backend '{backend_path}': {e}"
                ) from e

            registry.register(backend_class(name=name, **config.get("OPTIONS", {})))
            logger.debug("Loaded platform %s: %s", name, backend_path)
        return registry

    def register(self, adapter: PlatformAdapter) -> None:
        if not isinstance(adapter, PlatformAdapter):
            raise TypeError(f"{adapter!r} does not implement PlatformAdapter")
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> PlatformAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise StockError('UNKNOWN_PLATFORM', platform=name) from None

    def names(self) -> list[str]:
        return list(self._adapters)

    def __iter__(self) -> Iterator[PlatformAdapter]:
        return iter(self._adapters.values())

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, name: str) -> bool:
        return name in self._adapters


# Cached registry instance
_lock = threading.Lock()
_registry: PlatformRegistry | None = None


def get_platform_registry() -> PlatformRegistry:
    """
    Return the registry built from settings.

    Raises:
        ImproperlyConfigured: If a platform backend is missing or fails to import
    """
    global _registry

    if _registry is None:
        with _lock:
            if _registry is None:  # double-checked
                _registry = PlatformRegistry.from_settings()
    return _registry


def reset_platform_registry() -> None:
    """Reset the cached registry. Useful for testing."""
    global _registry
    _registry = None
