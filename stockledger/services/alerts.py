"""
Stock alerts — check and raise min stock alerts.

Usage:
    from stockledger.services.alerts import check_alerts

    # Run periodically (cron, check_stock_alerts command)
    raised = check_alerts()
    # Returns list of (StockAlert, created) tuples
"""

import logging

from django.db import transaction

from stockledger.models.alert import StockAlert
from stockledger.models.product import Product

logger = logging.getLogger('stockledger')


def check_alerts(product=None) -> list[tuple[StockAlert, bool]]:
    """
    Raise alerts for active products at or below min_stock_level.

    A product that already has an unread alert gets it refreshed with the
    current figures instead of a second one.

    Args:
        product: Optional product to check (None = all).

    Returns:
        List of (alert, created) tuples for products that are low.
    """
    qs = Product.objects.active().low_stock()
    if product is not None:
        qs = qs.filter(pk=product.pk)

    raised = []
    for low in qs.order_by('pk'):
        with transaction.atomic():
            alert = StockAlert.objects.unread().filter(product=low).order_by('-created_at').first()
            created = alert is None
            if created:
                alert = StockAlert.objects.create(
                    product=low,
                    current_stock=low.current_stock,
                    min_stock_level=low.min_stock_level,
                )
            elif (alert.current_stock, alert.min_stock_level) != (low.current_stock, low.min_stock_level):
                alert.current_stock = low.current_stock
                alert.min_stock_level = low.min_stock_level
                alert.save(update_fields=['current_stock', 'min_stock_level', 'updated_at'])

        raised.append((alert, created))
        if created:
            logger.warning(
                "stock.alert.triggered",
                extra={
                    "alert_id": alert.pk,
                    "product_id": low.pk,
                    "sku": low.sku,
                    "min_stock_level": low.min_stock_level,
                    "stock": low.current_stock,
                },
            )

    return raised


def mark_read(alerts) -> int:
    """Mark alerts as read. Returns the number updated."""
    return StockAlert.objects.filter(pk__in=[a.pk for a in alerts]).unread().update(is_read=True)
