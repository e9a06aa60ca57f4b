"""
Stockledger configuration.

Usage in settings.py:
    STOCKLEDGER = {
        "MULTI_WAREHOUSE": False,
        "BUNDLE_MAX_DEPTH": 5,
        "SYNC_MAX_ATTEMPTS": 3,
        "SYNC_TIMEOUT_SECONDS": 10.0,
        "PLATFORMS": {
            "woocommerce": {
                "BACKEND": "stockledger.adapters.woocommerce.WooCommerceAdapter",
                "OPTIONS": {"store_url": "...", "api_key": "...", "api_secret": "..."},
            },
        },
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


@dataclass
class StockledgerSettings:
    """Stockledger configuration settings."""

    # Per-warehouse buckets (the multi_warehouse_enabled ApiSetting overrides this)
    MULTI_WAREHOUSE: bool = False

    # Maximum nesting when expanding bundles
    BUNDLE_MAX_DEPTH: int = 5

    # Total attempts per platform push (first try included)
    SYNC_MAX_ATTEMPTS: int = 3

    # Backoff base in seconds: base * 2 ** (attempt - 1)
    SYNC_BACKOFF_SECONDS: float = 0.5

    # Timeout for each outbound HTTP call
    SYNC_TIMEOUT_SECONDS: float = 10.0

    # Worker threads per platform
    SYNC_WORKERS_PER_PLATFORM: int = 2

    # Enqueue platform pushes after each committed stock change
    SYNC_ON_COMMIT: bool = True

    # Max staleness of the cached StockDeductionSettings
    SETTINGS_REFRESH_SECONDS: float = 60.0

    # name -> {"BACKEND": dotted path, "OPTIONS": {...}, "ENABLED": bool}
    PLATFORMS: dict[str, dict[str, Any]] = field(default_factory=dict)


def get_stockledger_settings() -> StockledgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKLEDGER", {})
    return StockledgerSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockledgerSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stockledger_settings(), name)


stockledger_settings = _LazySettings()
