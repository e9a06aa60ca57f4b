"""
Tests for the storefront adapters against mocked HTTP endpoints.
"""

import json

import httpx
import pytest
from lxml import etree

from stockledger.adapters.http import HttpPlatformAdapter, classify_response
from stockledger.adapters.prestashop import PrestaShopAdapter, stock_available_xml
from stockledger.adapters.shopify import ShopifyAdapter
from stockledger.adapters.woocommerce import WooCommerceAdapter, name_matches
from stockledger.exceptions import SyncPermanent, SyncTransient
from stockledger.protocols import PlatformAdapter, ProductLookup


class Router:
    """Maps (method, path) to canned responses and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path)
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={'error': 'no route'})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def transport(self):
        return httpx.MockTransport(self)


# ══════════════════════════════════════════════════════════════
# SHARED HTTP HANDLING
# ══════════════════════════════════════════════════════════════


def _response(status):
    return httpx.Response(status, request=httpx.Request('GET', 'https://shop.example.com/x'))


class TestClassifyResponse:

    @pytest.mark.parametrize('status, code', [
        (429, 'RATE_LIMITED'),
        (500, 'SERVER_ERROR'),
        (503, 'SERVER_ERROR'),
    ])
    def test_transient(self, status, code):
        with pytest.raises(SyncTransient) as exc:
            classify_response('woocommerce', _response(status))
        assert exc.value.code == code

    @pytest.mark.parametrize('status, code', [
        (401, 'AUTH'),
        (403, 'AUTH'),
        (404, 'NOT_FOUND'),
        (400, 'BAD_REQUEST'),
        (422, 'BAD_REQUEST'),
    ])
    def test_permanent(self, status, code):
        with pytest.raises(SyncPermanent) as exc:
            classify_response('woocommerce', _response(status))
        assert exc.value.code == code

    def test_success_passes(self):
        classify_response('woocommerce', _response(200))


class TestHttpPlatformAdapter:

    def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout('timed out', request=request)

        adapter = HttpPlatformAdapter('https://shop.example.com', transport=httpx.MockTransport(handler))

        with pytest.raises(SyncTransient) as exc:
            adapter.request('GET', '/ping')
        assert exc.value.code == 'TIMEOUT'

    def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        adapter = HttpPlatformAdapter('https://shop.example.com', transport=httpx.MockTransport(handler))

        with pytest.raises(SyncTransient) as exc:
            adapter.request('GET', '/ping')
        assert exc.value.code == 'NETWORK'

    def test_invalid_json(self):
        adapter = HttpPlatformAdapter(
            'https://shop.example.com',
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text='<html>')),
        )

        with pytest.raises(SyncPermanent) as exc:
            adapter.get_json('/ping')
        assert exc.value.code == 'BAD_REQUEST'

    def test_requires_store_url(self):
        with pytest.raises(SyncPermanent) as exc:
            HttpPlatformAdapter('')
        assert exc.value.code == 'MISCONFIGURED'

    def test_timeout_defaults_to_setting(self, settings):
        settings.STOCKLEDGER = {'SYNC_TIMEOUT_SECONDS': 3.5}

        assert HttpPlatformAdapter('https://shop.example.com').timeout == 3.5


def test_name_matches():
    assert name_matches('Ceramic Mug (blue)', 'ceramic mug')
    assert name_matches('Mug', 'Ceramic MUG')
    assert not name_matches('Teapot', 'Ceramic Mug')
    assert not name_matches('', 'Ceramic Mug')


# ══════════════════════════════════════════════════════════════
# WOOCOMMERCE
# ══════════════════════════════════════════════════════════════


class TestWooCommerceAdapter:

    def _adapter(self, router):
        return WooCommerceAdapter('https://shop.example.com/', api_key='ck_1', api_secret='cs_1',
                                  transport=router.transport())

    def test_implements_protocols(self):
        adapter = self._adapter(Router({}))

        assert isinstance(adapter, PlatformAdapter)
        assert isinstance(adapter, ProductLookup)

    def test_set_stock_by_sku(self):
        def products(request):
            if request.url.params.get('sku') == 'MUG-01':
                return httpx.Response(200, json=[{'id': 31, 'name': 'Ceramic Mug'}])
            return httpx.Response(200, json=[])

        router = Router({
            ('GET', '/wp-json/wc/v3/products'): products,
            ('PUT', '/wp-json/wc/v3/products/31'): (200, {'id': 31}),
        })

        self._adapter(router).set_stock('MUG-01', 12)

        put = router.requests[-1]
        assert json.loads(put.content) == {'stock_quantity': 12, 'manage_stock': True}
        assert put.headers['Authorization'].startswith('Basic ')

    def test_name_search_filters_by_containment(self):
        def products(request):
            if 'search' in request.url.params:
                return httpx.Response(200, json=[
                    {'id': 1, 'name': 'Teapot'},
                    {'id': 2, 'name': 'Ceramic Mug Blue'},
                ])
            return httpx.Response(200, json=[])

        router = Router({
            ('GET', '/wp-json/wc/v3/products'): products,
            ('PUT', '/wp-json/wc/v3/products/2'): (200, {'id': 2}),
        })
        adapter = self._adapter(router)

        assert adapter.find_product('Ceramic Mug', by='name')
        adapter.set_stock('Ceramic Mug', 3)

        assert router.requests[-1].url.path == '/wp-json/wc/v3/products/2'

    def test_sku_lookup_never_searches_names(self):
        def products(request):
            if 'search' in request.url.params:
                return httpx.Response(200, json=[{'id': 9, 'name': 'ABC123 Gadget'}])
            return httpx.Response(200, json=[])

        router = Router({('GET', '/wp-json/wc/v3/products'): products})

        assert not self._adapter(router).find_product('ABC123', by='sku')
        assert [r.url.params.get('sku') for r in router.requests] == ['ABC123']
        assert all('search' not in r.url.params for r in router.requests)

    def test_lookup_is_cached(self):
        router = Router({
            ('GET', '/wp-json/wc/v3/products'): (200, [{'id': 31, 'name': 'Ceramic Mug'}]),
            ('PUT', '/wp-json/wc/v3/products/31'): (200, {}),
        })
        adapter = self._adapter(router)

        adapter.set_stock('MUG-01', 1)
        adapter.set_stock('MUG-01', 2)

        assert [r.method for r in router.requests] == ['GET', 'PUT', 'PUT']

    def test_unknown_product(self):
        router = Router({('GET', '/wp-json/wc/v3/products'): (200, [])})
        adapter = self._adapter(router)

        assert not adapter.find_product('NOPE')
        with pytest.raises(SyncPermanent) as exc:
            adapter.set_stock('NOPE', 1)
        assert exc.value.code == 'NOT_FOUND'

    def test_server_error_is_transient(self):
        router = Router({
            ('GET', '/wp-json/wc/v3/products'): (200, [{'id': 31, 'name': 'Ceramic Mug'}]),
            ('PUT', '/wp-json/wc/v3/products/31'): (502, {}),
        })

        with pytest.raises(SyncTransient):
            self._adapter(router).set_stock('MUG-01', 1)

    def test_requires_credentials(self):
        with pytest.raises(SyncPermanent) as exc:
            WooCommerceAdapter('https://shop.example.com', api_key='ck_1')
        assert exc.value.code == 'MISCONFIGURED'


# ══════════════════════════════════════════════════════════════
# PRESTASHOP
# ══════════════════════════════════════════════════════════════


class TestPrestaShopAdapter:

    def _adapter(self, router):
        return PrestaShopAdapter('https://shop.example.com', api_key='KEY', transport=router.transport())

    def test_stock_available_xml(self):
        root = etree.fromstring(stock_available_xml(8, 5))

        assert root.tag == 'prestashop'
        assert root.findtext('stock_available/id') == '8'
        assert root.findtext('stock_available/quantity') == '5'

    def test_set_stock_by_reference(self):
        router = Router({
            ('GET', '/api/products'): (200, {'products': [{'id': 14}]}),
            ('GET', '/api/stock_availables'): (200, {'stock_availables': [{'id': 8}]}),
            ('PUT', '/api/stock_availables/8'): (200, {}),
        })

        self._adapter(router).set_stock('MUG-01', 5)

        lookup, rows, put = router.requests
        assert lookup.url.params['filter[reference]'] == 'MUG-01'
        assert rows.url.params['filter[id_product]'] == '14'
        assert put.headers['Content-Type'] == 'application/xml'
        assert etree.fromstring(put.content).findtext('stock_available/quantity') == '5'

    def test_name_filter(self):
        def products(request):
            if 'filter[name]' in request.url.params:
                return httpx.Response(200, json={'products': [{'id': 3}]})
            # Empty result sets come back as a bare list
            return httpx.Response(200, json=[])

        router = Router({('GET', '/api/products'): products})
        adapter = self._adapter(router)

        assert not adapter.find_product('Ceramic Mug', by='sku')
        assert adapter.find_product('Ceramic Mug', by='name')
        assert router.requests[-1].url.params['filter[name]'] == '%[Ceramic Mug]%'

    def test_missing_stock_row(self):
        router = Router({
            ('GET', '/api/products'): (200, {'products': [{'id': 14}]}),
            ('GET', '/api/stock_availables'): (200, []),
        })

        with pytest.raises(SyncPermanent) as exc:
            self._adapter(router).set_stock('MUG-01', 5)
        assert exc.value.code == 'NOT_FOUND'

    def test_rejected_key(self):
        router = Router({('GET', '/api/products'): (401, {})})

        with pytest.raises(SyncPermanent) as exc:
            self._adapter(router).find_product('MUG-01')
        assert exc.value.code == 'AUTH'


# ══════════════════════════════════════════════════════════════
# SHOPIFY
# ══════════════════════════════════════════════════════════════


class TestShopifyAdapter:

    base = '/admin/api/2024-01'

    def _adapter(self, router):
        return ShopifyAdapter('https://x.myshopify.com', access_token='shpat_1',
                              transport=router.transport())

    def test_set_stock_by_sku(self):
        router = Router({
            ('GET', f'{self.base}/variants.json'): (200, {'variants': [{'inventory_item_id': 77}]}),
            ('GET', f'{self.base}/locations.json'): (200, {'locations': [{'id': 5}, {'id': 6}]}),
            ('POST', f'{self.base}/inventory_levels/set.json'): (200, {}),
        })

        self._adapter(router).set_stock('MUG-01', 9)

        post = router.requests[-1]
        assert post.headers['X-Shopify-Access-Token'] == 'shpat_1'
        assert json.loads(post.content) == {'location_id': 5, 'inventory_item_id': 77, 'available': 9}

    def test_title_lookup(self):
        router = Router({
            ('GET', f'{self.base}/variants.json'): (200, {'variants': []}),
            ('GET', f'{self.base}/products.json'): (200, {'products': [
                {'title': 'Ceramic Mug', 'variants': [{'inventory_item_id': 78}]},
            ]}),
        })
        adapter = self._adapter(router)

        assert not adapter.find_product('Ceramic Mug', by='sku')
        assert adapter.find_product('Ceramic Mug', by='name')
        assert [r.url.path for r in router.requests] == [
            f'{self.base}/variants.json',
            f'{self.base}/products.json',
        ]

    def test_sku_lookup_never_searches_titles(self):
        router = Router({
            ('GET', f'{self.base}/variants.json'): (200, {'variants': []}),
            ('GET', f'{self.base}/products.json'): (200, {'products': [
                {'title': 'ABC123 Gadget', 'variants': [{'inventory_item_id': 79}]},
            ]}),
        })

        assert not self._adapter(router).find_product('ABC123', by='sku')
        assert [r.url.path for r in router.requests] == [f'{self.base}/variants.json']

    def test_no_location(self):
        router = Router({
            ('GET', f'{self.base}/variants.json'): (200, {'variants': [{'inventory_item_id': 77}]}),
            ('GET', f'{self.base}/locations.json'): (200, {'locations': []}),
        })

        with pytest.raises(SyncPermanent):
            self._adapter(router).set_stock('MUG-01', 9)

    def test_rate_limited(self):
        router = Router({('GET', f'{self.base}/variants.json'): (429, {})})

        with pytest.raises(SyncTransient) as exc:
            self._adapter(router).find_product('MUG-01')
        assert exc.value.code == 'RATE_LIMITED'
