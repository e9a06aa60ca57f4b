"""
StockAlert model — low stock notifications.

Usage:
    # Configure the threshold on the product
    product.min_stock_level = 10

    # Check alerts (in a periodic task or after stock changes)
    from stockledger.services.alerts import check_alerts
    created = check_alerts()
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class StockAlertQuerySet(models.QuerySet):

    def unread(self):
        return self.filter(is_read=False)


class StockAlert(models.Model):
    """
    Raised when a product's stock drops to or below min_stock_level.

    At most one unread alert exists per product; it is refreshed instead
    of duplicated while the product stays low.
    """

    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Product'),
    )
    current_stock = models.IntegerField(verbose_name=_('Stock at trigger'))
    min_stock_level = models.IntegerField(verbose_name=_('Minimum stock'))
    is_read = models.BooleanField(default=False, verbose_name=_('Read'))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_('Created at'))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_('Updated at'))

    objects = StockAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Stock alert')
        verbose_name_plural = _('Stock alerts')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'is_read'], name='alert_product_read_idx'),
        ]

    def __str__(self) -> str:
        return f"Alert: {self.product.sku} {self.current_stock} <= {self.min_stock_level}"
