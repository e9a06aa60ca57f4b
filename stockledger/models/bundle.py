"""
BundleComponent model — composition of bundle products.
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError


class BundleComponent(models.Model):
    """
    One component line of a bundle.

    Selling one unit of ``parent`` consumes ``component_quantity`` units of
    ``component``. Components may themselves be bundles; cycles are
    rejected on save.
    """

    parent = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.CASCADE,
        related_name='components',
        verbose_name=_('Bundle'),
    )
    component = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.PROTECT,
        related_name='used_in_bundles',
        verbose_name=_('Component'),
    )
    component_quantity = models.PositiveIntegerField(
        default=1,
        verbose_name=_('Quantity per bundle'),
    )

    class Meta:
        verbose_name = _('Bundle component')
        verbose_name_plural = _('Bundle components')
        constraints = [
            models.UniqueConstraint(
                fields=['parent', 'component'],
                name='unique_bundle_component',
            ),
        ]

    def clean(self):
        from stockledger.services.bundles import BundleResolver

        if not self.component_quantity:
            raise ValidationError({'component_quantity': _('Must be positive.')})
        try:
            BundleResolver.validate_component(self.parent, self.component)
        except StockError as e:
            raise ValidationError(e.message) from e

    def save(self, *args, **kwargs):
        from stockledger.services.bundles import BundleResolver

        if not self.component_quantity or self.component_quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=self.component_quantity)
        BundleResolver.validate_component(self.parent, self.component)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.parent.sku} = {self.component_quantity}x {self.component.sku}"
