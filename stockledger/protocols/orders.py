"""
Order source types — what the order collaborator sends on status changes.

The stock engine only reacts to these events; it never mutates orders.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LineItem:
    """One ordered SKU and its quantity."""

    sku: str
    quantity: int

    @classmethod
    def from_catalog_number(cls, catalog_number: str, quantity: int) -> list[LineItem]:
        """
        Line items from a legacy catalog-number field.

        Multi-item legacy orders keep several SKUs comma-separated in one
        field with a single order quantity; each SKU gets that quantity.
        """
        skus = [s.strip() for s in (catalog_number or '').split(',')]
        return [cls(sku=sku, quantity=quantity) for sku in skus if sku]


@dataclass(frozen=True)
class OrderStatusChange:
    """
    Emitted by the order source on every status change.

    (order_id, new_status) is the idempotency key: redelivering the same
    event must not apply stock effects twice.
    """

    order_id: str
    new_status: str
    line_items: list[LineItem] = field(default_factory=list)

    @property
    def idempotency_key(self) -> str:
        return f"{self.order_id}:{self.new_status}"
