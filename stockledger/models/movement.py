"""
StockMovement model — Immutable ledger of stock changes.
"""

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError
from stockledger.models.enums import MovementType, signed_delta


class StockMovementQuerySet(models.QuerySet):
    """Append-only: bulk update/delete are refused."""

    def update(self, **kwargs):
        raise StockError('IMMUTABLE_MOVEMENT')

    def delete(self):
        raise StockError('IMMUTABLE_MOVEMENT')

    def for_product(self, product):
        return self.filter(product=product)

    def with_key(self, idempotency_key: str):
        return self.filter(idempotency_key=idempotency_key)


class StockMovement(models.Model):
    """
    Immutable record of a stock change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new movements (e.g. an inventory count)
    - stock_after == stock_before + signed(quantity, movement_type)
    - Transfers come in pairs, one per warehouse, with
      stock_after == stock_before at product level

    Rows are written only by LedgerStore and WarehouseAllocator, inside
    the transaction that updates the product counters. They are the
    reconciliation basis for reporting and must be kept verbatim.
    """

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Product'),
    )
    warehouse = models.ForeignKey(
        'stockledger.Warehouse',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Warehouse'),
    )
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        verbose_name=_('Type'),
    )
    quantity = models.PositiveIntegerField(verbose_name=_('Quantity'))
    stock_before = models.IntegerField(verbose_name=_('Stock before'))
    stock_after = models.IntegerField(verbose_name=_('Stock after'))
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Unit price'),
    )
    reason = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_('Reason'),
        help_text=_('Free text. Includes the order id for order-driven movements'),
    )
    idempotency_key = models.CharField(
        max_length=200,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Idempotency key'),
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Created at'))

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock movement')
        verbose_name_plural = _('Stock movements')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['product', 'created_at'], name='movement_product_created_idx'),
            models.Index(fields=['product', 'warehouse'], name='movement_product_wh_idx'),
        ]

    @property
    def delta(self) -> int:
        """Signed product-level change."""
        return signed_delta(self.movement_type, self.quantity)

    def save(self, *args, **kwargs):
        if self.pk:
            raise StockError('IMMUTABLE_MOVEMENT', movement_id=self.pk)

        if self.quantity is None or self.quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=self.quantity)

        expected = self.stock_before + self.delta
        if self.stock_after != expected:
            raise ValueError(
                f"stock_after={self.stock_after} does not match "
                f"stock_before={self.stock_before} {self.movement_type} {self.quantity}"
            )

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise StockError('IMMUTABLE_MOVEMENT', movement_id=self.pk)

    def __str__(self) -> str:
        delta = self.delta
        signal = '+' if delta > 0 else ''
        return f"{self.product_id} {self.movement_type} {signal}{delta} | {self.reason}"
