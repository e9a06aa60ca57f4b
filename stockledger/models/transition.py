"""
AppliedTransition model — idempotency record for order status changes.
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import TransitionAction


class AppliedTransition(models.Model):
    """
    Marks an (order, status) transition as already applied.

    Created in the same transaction as the stock effects, so a redelivered
    status-change event finds it and does nothing. The reserved deltas of
    an order's transitions sum to what that order still holds reserved.
    """

    idempotency_key = models.CharField(max_length=200, unique=True, verbose_name=_('Key'))
    order_id = models.CharField(max_length=64, db_index=True, verbose_name=_('Order'))
    status = models.CharField(max_length=100, verbose_name=_('Status'))
    action = models.CharField(
        max_length=20,
        choices=TransitionAction.choices,
        verbose_name=_('Action'),
    )
    reserved = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_('Reservation change'),
        help_text=_('Product id -> reserved_stock delta this transition applied'),
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _('Applied transition')
        verbose_name_plural = _('Applied transitions')
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.idempotency_key} ({self.action})"
