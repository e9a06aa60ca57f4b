"""
Product model — derived stock state per sellable item.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class ProductQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def low_stock(self):
        """Products at or below their configured minimum."""
        return self.filter(
            min_stock_level__isnull=False,
            current_stock__lte=models.F('min_stock_level'),
        )


class Product(models.Model):
    """
    Sellable item with stock counters maintained by the ledger.

    Rules:
    - current_stock is the net sum of this product's StockMovements
    - reserved_stock is the net sum of reservation deltas, never below 0
    - reserved_stock > current_stock is allowed (oversell awaiting supplier)

    Counters are written only by LedgerStore and ProductCatalog.
    """

    sku = models.CharField(
        max_length=100,
        unique=True,
        verbose_name=_('SKU'),
        help_text=_('Case-sensitive match key for orders and platforms'),
    )
    name = models.CharField(max_length=255, verbose_name=_('Name'))

    current_stock = models.IntegerField(default=0, verbose_name=_('Current stock'))
    reserved_stock = models.PositiveIntegerField(default=0, verbose_name=_('Reserved'))
    min_stock_level = models.IntegerField(
        null=True,
        blank=True,
        verbose_name=_('Minimum stock'),
    )

    purchase_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Purchase price'),
    )
    sale_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Sale price'),
    )

    is_bundle = models.BooleanField(
        default=False,
        verbose_name=_('Bundle'),
        help_text=_('Stock is consumed from components, never from the bundle itself'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['sku']

    @property
    def available_stock(self) -> int:
        """current - reserved. May be negative while oversold."""
        return self.current_stock - self.reserved_stock

    @property
    def is_oversold(self) -> bool:
        return self.reserved_stock > self.current_stock or self.current_stock < 0

    def __str__(self) -> str:
        return f"{self.sku} — {self.name}"
