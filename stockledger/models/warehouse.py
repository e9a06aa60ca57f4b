"""
Warehouse models — where stock is kept in multi-warehouse mode.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Warehouse(models.Model):
    """
    A stock location.

    Warehouses are stable entities created during setup. Exactly one
    should be marked is_default; movements without an explicit warehouse
    land in its bucket when multi-warehouse mode is on.
    """

    code = models.SlugField(
        unique=True,
        max_length=50,
        verbose_name=_('Code'),
    )
    name = models.CharField(max_length=100, verbose_name=_('Name'))
    is_default = models.BooleanField(default=False, verbose_name=_('Default'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Warehouse')
        verbose_name_plural = _('Warehouses')
        ordering = ['code']

    def save(self, *args, **kwargs):
        # Only one default
        if self.is_default:
            Warehouse.objects.filter(is_default=True).exclude(pk=self.pk).update(is_default=False)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.name


class StockByWarehouse(models.Model):
    """
    Per-warehouse stock bucket.

    In multi-warehouse mode the buckets of a product always sum to
    Product.current_stock. Written only by LedgerStore and
    WarehouseAllocator, under the product's lock.
    """

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='warehouse_stock',
        verbose_name=_('Product'),
    )
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='stock',
        verbose_name=_('Warehouse'),
    )
    current_stock = models.IntegerField(default=0, verbose_name=_('Current stock'))

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Warehouse stock')
        verbose_name_plural = _('Warehouse stock')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse'],
                name='unique_stock_per_product_warehouse',
            )
        ]

    def __str__(self) -> str:
        return f"{self.product.sku} @ {self.warehouse.code}: {self.current_stock}"
