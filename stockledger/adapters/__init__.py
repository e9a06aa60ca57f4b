"""
Stockledger Adapters.

Storefront implementations of the PlatformAdapter protocol.
"""

from stockledger.adapters.noop import NoopPlatformAdapter
from stockledger.adapters.registry import (
    PlatformRegistry,
    get_platform_registry,
    reset_platform_registry,
)

__all__ = [
    "NoopPlatformAdapter",
    "PlatformRegistry",
    "get_platform_registry",
    "reset_platform_registry",
]
