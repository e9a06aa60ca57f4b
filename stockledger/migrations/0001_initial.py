"""
Initial migration for Stockledger models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Stockledger models."""

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(help_text='Case-sensitive match key for orders and platforms', max_length=100, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('current_stock', models.IntegerField(default=0, verbose_name='Current stock')),
                ('reserved_stock', models.PositiveIntegerField(default=0, verbose_name='Reserved')),
                ('min_stock_level', models.IntegerField(blank=True, null=True, verbose_name='Minimum stock')),
                ('purchase_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Purchase price')),
                ('sale_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Sale price')),
                ('is_bundle', models.BooleanField(default=False, help_text='Stock is consumed from components, never from the bundle itself', verbose_name='Bundle')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['sku'],
            },
        ),
        migrations.CreateModel(
            name='Warehouse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.SlugField(unique=True, verbose_name='Code')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('is_default', models.BooleanField(default=False, verbose_name='Default')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Warehouse',
                'verbose_name_plural': 'Warehouses',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='ApiSetting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('setting_key', models.CharField(max_length=100, unique=True, verbose_name='Key')),
                ('setting_value', models.TextField(blank=True, default='', verbose_name='Value')),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Setting',
                'verbose_name_plural': 'Settings',
                'ordering': ['setting_key'],
            },
        ),
        migrations.CreateModel(
            name='AppliedTransition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('idempotency_key', models.CharField(max_length=200, unique=True, verbose_name='Key')),
                ('order_id', models.CharField(db_index=True, max_length=64, verbose_name='Order')),
                ('status', models.CharField(max_length=100, verbose_name='Status')),
                ('action', models.CharField(choices=[('reserve', 'Reserve'), ('deduct', 'Deduct'), ('restore', 'Restore')], max_length=20, verbose_name='Action')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'verbose_name': 'Applied transition',
                'verbose_name_plural': 'Applied transitions',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='SyncJob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('job_type', models.CharField(choices=[('sync_stock', 'Stock sync'), ('sync_products', 'Product sync'), ('sync_prices', 'Price sync'), ('sync_categories', 'Category sync'), ('import', 'Import'), ('export', 'Export')], default='sync_stock', max_length=30, verbose_name='Type')),
                ('platform', models.CharField(db_index=True, max_length=50, verbose_name='Platform')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('total_items', models.PositiveIntegerField(default=0)),
                ('processed_items', models.PositiveIntegerField(default=0)),
                ('failed_items', models.PositiveIntegerField(default=0)),
                ('error_message', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Sync job',
                'verbose_name_plural': 'Sync jobs',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['platform', 'status'], name='syncjob_platform_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='SyncJobLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('level', models.CharField(choices=[('info', 'Info'), ('warn', 'Warning'), ('error', 'Error')], default='info', max_length=10, verbose_name='Level')),
                ('message', models.TextField(verbose_name='Message')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='logs', to='stockledger.syncjob', verbose_name='Job')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='stockledger.product')),
            ],
            options={
                'verbose_name': 'Sync log',
                'verbose_name_plural': 'Sync logs',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_type', models.CharField(choices=[('in', 'In'), ('out', 'Out'), ('return', 'Return'), ('transfer', 'Transfer'), ('inventory', 'Inventory count')], max_length=20, verbose_name='Type')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity')),
                ('stock_before', models.IntegerField(verbose_name='Stock before')),
                ('stock_after', models.IntegerField(verbose_name='Stock after')),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12, verbose_name='Unit price')),
                ('reason', models.CharField(blank=True, help_text='Free text. Includes the order id for order-driven movements', max_length=255, verbose_name='Reason')),
                ('idempotency_key', models.CharField(blank=True, db_index=True, default='', max_length=200, verbose_name='Idempotency key')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Created at')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.product', verbose_name='Product')),
                ('warehouse', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stockledger.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Stock movement',
                'verbose_name_plural': 'Stock movements',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['product', 'created_at'], name='movement_product_created_idx'),
                    models.Index(fields=['product', 'warehouse'], name='movement_product_wh_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockByWarehouse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('current_stock', models.IntegerField(default=0, verbose_name='Current stock')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='warehouse_stock', to='stockledger.product', verbose_name='Product')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock', to='stockledger.warehouse', verbose_name='Warehouse')),
            ],
            options={
                'verbose_name': 'Warehouse stock',
                'verbose_name_plural': 'Warehouse stock',
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'warehouse'), name='unique_stock_per_product_warehouse'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleComponent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('component_quantity', models.PositiveIntegerField(default=1, verbose_name='Quantity per bundle')),
                ('parent', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='components', to='stockledger.product', verbose_name='Bundle')),
                ('component', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='used_in_bundles', to='stockledger.product', verbose_name='Component')),
            ],
            options={
                'verbose_name': 'Bundle component',
                'verbose_name_plural': 'Bundle components',
                'constraints': [
                    models.UniqueConstraint(fields=('parent', 'component'), name='unique_bundle_component'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('current_stock', models.IntegerField(verbose_name='Stock at trigger')),
                ('min_stock_level', models.IntegerField(verbose_name='Minimum stock')),
                ('is_read', models.BooleanField(default=False, verbose_name='Read')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='stockledger.product', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Stock alert',
                'verbose_name_plural': 'Stock alerts',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['product', 'is_read'], name='alert_product_read_idx')],
            },
        ),
    ]
