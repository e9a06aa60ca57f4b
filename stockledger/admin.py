"""
Stockledger Admin.

Provides views for operations and production debugging:
- Product: editable master data, derived stock read-only, bundle lines inline
- Warehouse: list + edit
- StockMovement: read-only audit trail
- SyncJob: read-only with log lines and a "re-sync failed" action
- StockAlert: read-only with "mark as read" action
- ApiSetting: editable key/value settings
"""

import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from stockledger.exceptions import StockError
from stockledger.models import (
    ApiSetting,
    AppliedTransition,
    BundleComponent,
    Product,
    StockAlert,
    StockByWarehouse,
    StockMovement,
    SyncJob,
    SyncJobLog,
    Warehouse,
)

logger = logging.getLogger(__name__)


class ReadOnlyMixin:

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# PRODUCT ADMIN
# =========================================================================

class BundleComponentInline(admin.TabularInline):
    model = BundleComponent
    fk_name = 'parent'
    extra = 0
    autocomplete_fields = ['component']


class StockByWarehouseInline(ReadOnlyMixin, admin.TabularInline):
    model = StockByWarehouse
    extra = 0
    fields = ['warehouse', 'current_stock', 'updated_at']
    readonly_fields = fields


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Product admin. Stock counters only change through movements."""

    list_display = ['sku', 'name', 'current_stock', 'reserved_stock', 'available_display',
                    'min_stock_level', 'is_bundle', 'is_active']
    list_filter = ['is_bundle', 'is_active']
    search_fields = ['sku', 'name']
    readonly_fields = ['current_stock', 'reserved_stock', 'created_at', 'updated_at']
    inlines = [BundleComponentInline, StockByWarehouseInline]
    actions = ['recalculate_stock', 'sync_to_platforms']

    @admin.display(description=_('Available'))
    def available_display(self, obj):
        return obj.available_stock

    @admin.action(description=_('Recalculate stock from movements'))
    def recalculate_stock(self, request, queryset):
        from stockledger import stock

        for product in queryset:
            stock.ledger.recalculate(product)
        self.message_user(request, _('{count} product(s) recalculated.').format(count=queryset.count()))

    @admin.action(description=_('Push stock to platforms'))
    def sync_to_platforms(self, request, queryset):
        from stockledger import stock

        failed = 0
        for product in queryset:
            results = stock.sync_product(product)
            failed += sum(1 for r in results.values() if not r.success)
        self.message_user(request, _('Sync done, {failed} push(es) failed.').format(failed=failed))


# =========================================================================
# WAREHOUSE ADMIN
# =========================================================================

@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_default', 'is_active']
    list_filter = ['is_active']
    search_fields = ['code', 'name']


# =========================================================================
# MOVEMENT ADMIN (read-only audit trail)
# =========================================================================

@admin.register(StockMovement)
class StockMovementAdmin(ReadOnlyMixin, admin.ModelAdmin):
    """Movement admin — read-only. Immutable audit trail."""

    list_display = ['created_at', 'product', 'warehouse', 'movement_type', 'quantity',
                    'stock_before', 'stock_after', 'reason']
    list_filter = ['movement_type', 'warehouse', 'created_at']
    search_fields = ['product__sku', 'product__name', 'reason', 'idempotency_key']
    date_hierarchy = 'created_at'
    list_select_related = ['product', 'warehouse']


@admin.register(AppliedTransition)
class AppliedTransitionAdmin(ReadOnlyMixin, admin.ModelAdmin):
    list_display = ['created_at', 'order_id', 'status', 'action', 'reserved']
    list_filter = ['action']
    search_fields = ['order_id', 'idempotency_key']


# =========================================================================
# SYNC ADMIN
# =========================================================================

class SyncJobLogInline(ReadOnlyMixin, admin.TabularInline):
    model = SyncJobLog
    extra = 0
    fields = ['created_at', 'level', 'product', 'message']
    readonly_fields = fields


@admin.register(SyncJob)
class SyncJobAdmin(ReadOnlyMixin, admin.ModelAdmin):
    list_display = ['created_at', 'job_type', 'platform', 'status', 'total_items',
                    'processed_items', 'failed_items']
    list_filter = ['status', 'job_type', 'platform']
    inlines = [SyncJobLogInline]
    actions = ['resync_failed']

    @admin.action(description=_('Re-sync failed products'))
    def resync_failed(self, request, queryset):
        from stockledger import stock

        count = 0
        for platform in queryset.values_list('platform', flat=True).distinct():
            try:
                count += len(stock.reconciler.resync_failed(platform=platform))
            except StockError as exc:
                logger.warning("resync_failed: %s: %s", platform, exc)
        self.message_user(request, _('{count} push(es) retried.').format(count=count))


# =========================================================================
# STOCK ALERT ADMIN
# =========================================================================

@admin.register(StockAlert)
class StockAlertAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'product', 'current_stock', 'min_stock_level', 'is_read']
    list_filter = ['is_read']
    search_fields = ['product__sku', 'product__name']
    readonly_fields = ['product', 'current_stock', 'min_stock_level', 'created_at', 'updated_at']
    actions = ['mark_as_read']

    def has_add_permission(self, request):
        return False

    @admin.action(description=_('Mark as read'))
    def mark_as_read(self, request, queryset):
        from stockledger.services.alerts import mark_read

        count = mark_read(queryset)
        self.message_user(request, _('{count} alert(s) marked as read.').format(count=count))


# =========================================================================
# SETTINGS ADMIN
# =========================================================================

@admin.register(ApiSetting)
class ApiSettingAdmin(admin.ModelAdmin):
    list_display = ['setting_key', 'setting_value', 'updated_at']
    search_fields = ['setting_key']
