"""
End-to-end scenarios through the StockEngine facade.
"""

import json
import logging

import httpx
import pytest

from stockledger import OrderStatusChange, LineItem
from stockledger.adapters import NoopPlatformAdapter, PlatformRegistry
from stockledger.adapters.woocommerce import WooCommerceAdapter
from stockledger.exceptions import StockError, SyncTransient
from stockledger.models import (
    BundleComponent,
    LogLevel,
    MatchKind,
    MovementType,
    Product,
    StockByWarehouse,
    StockMovement,
    SyncJob,
    SyncJobStatus,
)
from stockledger.service import StockEngine
from stockledger.services import SyncReconciler

from .conftest import InlineExecutor


pytestmark = pytest.mark.django_db

RESERVED = 'В обработка'
SHIPPED = 'Изпратена'



class TestOrderLifecycle:

    def test_reserve_then_ship(self, engine, product):
        engine.receive(product.pk, 10)

        engine.on_order_status_changed(OrderStatusChange('1', RESERVED, [LineItem('MUG-01', 3)]))
        assert engine.get_available(product.pk).as_dict() == {'current': 10, 'reserved': 3, 'available': 7}

        engine.on_order_status_changed(OrderStatusChange('1', SHIPPED, [LineItem('MUG-01', 3)]))
        availability = engine.get_available(product.pk)
        assert (availability.current, availability.reserved) == (7, 0)

    def test_reserve_deduct_keeps_prior_reservations(self, engine, product):
        engine.receive(product.pk, 10)
        engine.reserve('MUG-01', 2, order_id=100)

        engine.reserve('MUG-01', 3, order_id=101)
        engine.deduct('MUG-01', 3, order_id=101)

        product.refresh_from_db()
        assert product.reserved_stock == 2
        assert product.current_stock == 7

    def test_shipping_an_unreserved_order_keeps_other_reservations(self, engine, product):
        engine.receive(product.pk, 10)
        engine.reserve('MUG-01', 2, order_id=100)

        engine.deduct('MUG-01', 3, order_id=101)

        availability = engine.get_available(product.pk)
        assert (availability.current, availability.reserved) == (7, 2)

    def test_transitions_are_idempotent(self, engine, product):
        engine.receive(product.pk, 10)
        events = [
            OrderStatusChange('2', RESERVED, [LineItem('MUG-01', 4)]),
            OrderStatusChange('2', SHIPPED, [LineItem('MUG-01', 4)]),
        ]

        for event in events:
            engine.on_order_status_changed(event)
        once = engine.get_available(product.pk)
        for event in events:
            engine.on_order_status_changed(event)

        assert engine.get_available(product.pk) == once

    def test_unknown_product_never_blocks_order(self, engine, caplog):
        with caplog.at_level(logging.WARNING, logger='stockledger'):
            result = engine.on_order_status_changed(OrderStatusChange('3', SHIPPED, [LineItem('GHOST', 1)]))

        assert not result.applied
        assert result.skipped == ['GHOST']


class TestProductLookup:

    def test_find_by_sku_then_name(self, engine, product, other_product):
        assert engine.find_product('MUG-01') == (product, MatchKind.EXACT_SKU)
        assert engine.find_product('green tea') == (other_product, MatchKind.FUZZY_NAME)
        assert engine.find_product('teapot') == (None, MatchKind.NONE)


class TestBundleSale:

    def test_kit_consumes_components(self, engine, make_product):
        widget_a = make_product('WIDGET-A', 'WidgetA')
        widget_b = make_product('WIDGET-B', 'WidgetB')
        kit = make_product('KIT', 'Kit', is_bundle=True)
        BundleComponent.objects.create(parent=kit, component=widget_a, component_quantity=1)
        BundleComponent.objects.create(parent=kit, component=widget_b, component_quantity=2)
        engine.receive(widget_a.pk, 10)
        engine.receive(widget_b.pk, 10)

        engine.on_order_status_changed(OrderStatusChange('4', SHIPPED, [LineItem('KIT', 3)]))

        outs = StockMovement.objects.filter(movement_type=MovementType.OUT)
        assert {(m.product.sku, m.quantity) for m in outs} == {('WIDGET-A', 3), ('WIDGET-B', 6)}
        assert not StockMovement.objects.filter(product=kit).exists()
        kit.refresh_from_db()
        assert kit.current_stock == 0


class TestFuzzyPush:

    def test_woocommerce_name_match(self, make_product, sleeps, caplog,
                                    django_capture_on_commit_callbacks):
        gadget = make_product('ABC123', 'ABC Gadget')
        pushed = []

        def handler(request):
            if request.method == 'PUT':
                pushed.append((request.url.path, request.read()))
                return httpx.Response(200, json={})
            if request.url.params.get('sku'):
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{'id': 55, 'name': 'ABC Gadget'}])

        woo = WooCommerceAdapter('https://shop.example.com', api_key='ck', api_secret='cs',
                                 transport=httpx.MockTransport(handler))
        executor = InlineExecutor()
        reconciler = SyncReconciler(registry=PlatformRegistry([woo]),
                                    executor_factory=lambda p: executor, sleep=sleeps.append)
        engine = StockEngine(reconciler=reconciler)

        with caplog.at_level(logging.WARNING, logger='stockledger'):
            with django_capture_on_commit_callbacks(execute=True):
                engine.receive(gadget.pk, 8)

        assert [path for path, _ in pushed] == ['/wp-json/wc/v3/products/55']
        assert json.loads(pushed[0][1]) == {'stock_quantity': 8, 'manage_stock': True}
        job = SyncJob.objects.get()
        assert job.status == SyncJobStatus.COMPLETED
        assert 'fuzzy_name' in job.logs.get(level=LogLevel.WARN).message
        assert any(r.getMessage() == 'sync.match.fuzzy' for r in caplog.records)


class TestPlatformIsolation:

    def test_one_platform_times_out_other_succeeds(self, product, sleeps):
        flaky = NoopPlatformAdapter('woocommerce', failures=[SyncTransient('TIMEOUT')] * 3)
        healthy = NoopPlatformAdapter('shopify')
        reconciler = SyncReconciler(registry=PlatformRegistry([flaky, healthy]),
                                    sleep=sleeps.append, max_attempts=3, backoff=0.5)
        engine = StockEngine(reconciler=reconciler)
        engine.receive(product.pk, 5)

        jobs = reconciler.sync_all()

        assert len(flaky.calls) == 3
        assert sleeps == [0.5, 1.0]
        assert jobs['woocommerce'].status == SyncJobStatus.FAILED
        assert jobs['shopify'].status == SyncJobStatus.COMPLETED
        assert healthy.stock == {'MUG-01': 5}
        product.refresh_from_db()
        assert product.current_stock == 5


class TestLedgerProperties:

    def test_every_movement_chains(self, engine, product, bundle):
        engine.receive(product.pk, 10)
        engine.deduct('MUG-01', 4, order_id=1)
        engine.restore('MUG-01', 4, order_id=1)
        engine.adjust_to_count(product.pk, 2, reason='Count')
        engine.deduct('GIFT-SET', 1, order_id=2)

        for movement in StockMovement.objects.all():
            assert movement.stock_after == movement.stock_before + movement.delta

        assert engine.ledger.verify_chain(product) == []

    def test_buckets_sum_to_product_stock(self, engine, product, multi_warehouse):
        main, shop = multi_warehouse
        engine.receive(product.pk, 10)
        engine.receive(product.pk, 4, warehouse_id=shop.pk)
        engine.transfer(product.pk, main.pk, shop.pk, 3)
        engine.deduct('MUG-01', 2, order_id=7)

        product.refresh_from_db()
        total = sum(StockByWarehouse.objects.filter(product=product).values_list('current_stock', flat=True))
        assert total == product.current_stock == 12
        assert engine.stock_by_warehouse(product.pk) == {'main': 5, 'shop': 7}

    def test_failed_transfer_changes_nothing(self, engine, product, multi_warehouse):
        main, shop = multi_warehouse
        engine.receive(product.pk, 2)
        movements = StockMovement.objects.count()

        with pytest.raises(StockError) as exc:
            engine.transfer(product.pk, main.pk, shop.pk, 3)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert StockMovement.objects.count() == movements
        assert engine.stock_by_warehouse(product.pk)['main'] == 2
        assert Product.objects.get(pk=product.pk).current_stock == 2
