"""
Management command to push stock to the configured platforms.

Usage:
    python manage.py resync_stock
    python manage.py resync_stock --platform woocommerce --sku MUG-01
    python manage.py resync_stock --failed
    python manage.py resync_stock --failed --dry-run
"""

from django.core.management.base import BaseCommand, CommandError

from stockledger.exceptions import StockError
from stockledger.models import Product


class Command(BaseCommand):
    """Re-sync stock command."""

    help = 'Pushes current stock to external platforms'

    def add_arguments(self, parser):
        parser.add_argument(
            '--failed',
            action='store_true',
            help='Only products whose latest push failed'
        )
        parser.add_argument('--sku', action='append', default=[], help='Limit to SKU (repeatable)')
        parser.add_argument('--platform', help='Limit to one platform')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Shows what would be pushed without pushing'
        )

    def handle(self, *args, **options):
        from stockledger import stock

        reconciler = stock.reconciler
        platform = options['platform']

        if platform and platform not in reconciler.registry:
            raise CommandError(f"Unknown platform '{platform}'. Registered: {reconciler.registry.names()}")

        if options['failed']:
            targets = reconciler.failed_targets(platform=platform)
            if options['sku']:
                ids = set(Product.objects.filter(sku__in=options['sku']).values_list('pk', flat=True))
                targets = [t for t in targets if t[1] in ids]

            if options['dry_run']:
                for name, product_id in targets:
                    self.stdout.write(f'{name}: product {product_id}')
                self.stdout.write(f'{len(targets)} push(es) would be retried')
                return

            failed = 0
            for name, product_id in targets:
                try:
                    result = reconciler.push(name, product_id)
                except StockError as e:
                    self.stderr.write(f'{name}: product {product_id}: {e}')
                    failed += 1
                    continue
                if not result.success:
                    failed += 1
            self._report(len(targets), failed)
            return

        products = Product.objects.active().order_by('pk')
        if options['sku']:
            products = products.filter(sku__in=options['sku'])
        platforms = [platform] if platform else reconciler.registry.names()

        if options['dry_run']:
            self.stdout.write(
                f'{products.count()} product(s) would be pushed to {len(platforms)} platform(s): '
                f'{", ".join(platforms)}'
            )
            return

        jobs = reconciler.sync_all(platforms=platforms, products=products)
        total = sum(job.processed_items for job in jobs.values())
        failed = sum(job.failed_items for job in jobs.values())
        self._report(total, failed)

    def _report(self, total, failed):
        message = f'{total - failed} push(es) succeeded, {failed} failed'
        if failed:
            self.stdout.write(self.style.WARNING(message))
        else:
            self.stdout.write(self.style.SUCCESS(message))
