"""
Management command to raise low stock alerts.

Usage:
    python manage.py check_stock_alerts
"""

from django.core.management.base import BaseCommand

from stockledger.services.alerts import check_alerts


class Command(BaseCommand):

    help = 'Creates alerts for products at or below their minimum stock'

    def handle(self, *args, **options):
        raised = check_alerts()
        created = sum(1 for _, is_new in raised if is_new)
        self.stdout.write(
            self.style.SUCCESS(f'{len(raised)} product(s) low on stock, {created} new alert(s)')
        )
