"""
Pytest fixtures for Stockledger tests.
"""

from concurrent.futures import Future
from decimal import Decimal

import pytest

from stockledger.adapters import NoopPlatformAdapter, PlatformRegistry, reset_platform_registry
from stockledger.models import ApiSetting, BundleComponent, Product, Warehouse
from stockledger.service import StockEngine, reset_engine
from stockledger.services import (
    BundleResolver,
    DeductionSettingsProvider,
    LedgerStore,
    ProductCatalog,
    StockStateMachine,
    SyncReconciler,
    WarehouseAllocator,
)
from stockledger.services.locks import KeyedLocks
from stockledger.services.warehouses import MULTI_WAREHOUSE_KEY


class InlineExecutor:
    """Executor running submitted work immediately in the caller's thread."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append((fn, args, kwargs))
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        pass


class DeferredExecutor(InlineExecutor):
    """Executor that queues work until run_all() is called."""

    def submit(self, fn, *args, **kwargs):
        self.submitted.append((fn, args, kwargs))
        return Future()

    def run_all(self):
        queued, self.submitted = self.submitted, []
        return [fn(*args, **kwargs) for fn, args, kwargs in queued]


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Engine and platform registry are rebuilt for every test."""
    reset_engine()
    reset_platform_registry()
    yield
    reset_engine()
    reset_platform_registry()


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def product(db):
    """Create a plain stocked product."""
    return Product.objects.create(
        sku='MUG-01',
        name='Ceramic Mug',
        sale_price=Decimal('12.50'),
    )


@pytest.fixture
def other_product(db):
    return Product.objects.create(sku='TEA-01', name='Green Tea', sale_price=Decimal('6.00'))


@pytest.fixture
def make_product(db):
    """Factory for extra products."""
    def _make(sku, name=None, **kwargs):
        return Product.objects.create(sku=sku, name=name or sku, **kwargs)
    return _make


@pytest.fixture
def bundle(db, make_product):
    """Gift set = 2 mugs + 1 tea."""
    mug = make_product('B-MUG', 'Bundle Mug')
    tea = make_product('B-TEA', 'Bundle Tea')
    gift = make_product('GIFT-SET', 'Gift Set', is_bundle=True)
    BundleComponent.objects.create(parent=gift, component=mug, component_quantity=2)
    BundleComponent.objects.create(parent=gift, component=tea, component_quantity=1)
    return gift


@pytest.fixture
def main_warehouse(db):
    return Warehouse.objects.create(code='main', name='Main Warehouse', is_default=True)


@pytest.fixture
def shop_warehouse(db):
    return Warehouse.objects.create(code='shop', name='Shop Floor')


@pytest.fixture
def multi_warehouse(db, main_warehouse, shop_warehouse):
    """Multi-warehouse mode on, with main as default."""
    ApiSetting.set_value(MULTI_WAREHOUSE_KEY, 'true')
    return main_warehouse, shop_warehouse


@pytest.fixture
def ledger(locks):
    return LedgerStore(locks=locks)


@pytest.fixture
def catalog(locks):
    return ProductCatalog(locks=locks)


@pytest.fixture
def bundles():
    return BundleResolver()


@pytest.fixture
def allocator(locks):
    return WarehouseAllocator(locks=locks)


@pytest.fixture
def settings_provider(db):
    return DeductionSettingsProvider(refresh_interval=0)


@pytest.fixture
def state_machine(settings_provider, catalog, ledger, bundles, locks):
    return StockStateMachine(
        settings_provider,
        catalog=catalog,
        ledger=ledger,
        bundles=bundles,
        locks=locks,
    )


@pytest.fixture
def woo():
    """In-memory storefront named like the WooCommerce platform."""
    return NoopPlatformAdapter(name='woocommerce')


@pytest.fixture
def shop():
    return NoopPlatformAdapter(name='shopify')


@pytest.fixture
def registry(woo, shop):
    return PlatformRegistry([woo, shop])


@pytest.fixture
def sleeps():
    """Backoff delays requested by the reconciler."""
    return []


@pytest.fixture
def executor():
    return InlineExecutor()


@pytest.fixture
def reconciler(registry, executor, sleeps):
    return SyncReconciler(
        registry=registry,
        executor_factory=lambda platform: executor,
        sleep=sleeps.append,
        max_attempts=3,
        backoff=0.5,
    )


@pytest.fixture
def engine(reconciler, settings_provider, locks):
    """Fully wired engine pushing to the in-memory storefronts."""
    return StockEngine(reconciler=reconciler, settings_provider=settings_provider, locks=locks)
