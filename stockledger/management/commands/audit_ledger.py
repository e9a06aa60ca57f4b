"""
Management command to audit the stock ledger.

Checks, per product:
- movement chain (each stock_before == previous stock_after)
- current_stock == net sum of movements
- warehouse buckets sum to current_stock (multi-warehouse mode)

Usage:
    python manage.py audit_ledger
    python manage.py audit_ledger --fix
"""

from django.core.management.base import BaseCommand

from stockledger.models import Product
from stockledger.services.warehouses import multi_warehouse_enabled


class Command(BaseCommand):
    """Ledger audit command."""

    help = 'Verifies stock movements against product counters'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rebuild current_stock from movements where it drifted'
        )

    def handle(self, *args, **options):
        from stockledger import stock

        ledger = stock.ledger
        check_buckets = multi_warehouse_enabled()
        problems = 0

        for product in Product.objects.order_by('pk').iterator():
            broken = ledger.verify_chain(product)
            if broken:
                problems += 1
                ids = ', '.join(str(m.pk) for m in broken[:10])
                self.stdout.write(self.style.WARNING(
                    f'{product.sku}: {len(broken)} movement(s) break the chain ({ids})'
                ))

            total = ledger.net_movements(product)
            if total != product.current_stock:
                problems += 1
                self.stdout.write(self.style.WARNING(
                    f'{product.sku}: current_stock={product.current_stock}, movements say {total}'
                ))
                if options['fix']:
                    ledger.recalculate(product)
                    self.stdout.write(f'{product.sku}: fixed')

            if check_buckets:
                buckets = stock.warehouses.bucket_total(product)
                product.refresh_from_db(fields=['current_stock'])
                if buckets != product.current_stock:
                    problems += 1
                    self.stdout.write(self.style.WARNING(
                        f'{product.sku}: warehouse buckets sum to {buckets}, '
                        f'current_stock={product.current_stock}'
                    ))

        if problems:
            self.stdout.write(self.style.WARNING(f'{problems} problem(s) found'))
        else:
            self.stdout.write(self.style.SUCCESS('Ledger is consistent'))
