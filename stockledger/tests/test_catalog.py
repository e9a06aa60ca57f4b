"""
Tests for ProductCatalog.
"""

import logging

import pytest

from stockledger.exceptions import StockError
from stockledger.models import MatchKind, Product


pytestmark = pytest.mark.django_db


class TestStockReads:

    def test_get_stock(self, catalog, ledger, product):
        ledger.receive(product, 7)

        assert catalog.get_stock(product.pk) == 7

    def test_get_available(self, catalog, ledger, product):
        ledger.receive(product, 10)
        catalog.adjust_reserved(product.pk, 4)

        availability = catalog.get_available(product.pk)
        assert availability.current == 10
        assert availability.reserved == 4
        assert availability.available == 6
        assert availability.as_dict() == {'current': 10, 'reserved': 4, 'available': 6}

    def test_unknown_product(self, catalog):
        with pytest.raises(StockError) as exc:
            catalog.get_stock(424242)
        assert exc.value.code == 'PRODUCT_NOT_FOUND'

    def test_get_by_sku_is_case_sensitive(self, catalog, product):
        assert catalog.get_by_sku('MUG-01') == product
        with pytest.raises(StockError):
            catalog.get_by_sku('mug-01')


class TestAdjustReserved:
    """Tests for catalog.adjust_reserved()."""

    def test_reserve_and_release(self, catalog, product):
        assert catalog.adjust_reserved(product.pk, 5) == 5
        assert catalog.adjust_reserved(product.pk, -2) == 3

    def test_release_clamps_at_zero(self, catalog, product, caplog):
        catalog.adjust_reserved(product.pk, 2)

        with caplog.at_level(logging.WARNING, logger='stockledger'):
            assert catalog.adjust_reserved(product.pk, -5) == 0

        product.refresh_from_db()
        assert product.reserved_stock == 0
        assert any(r.getMessage() == 'stock.reservation.clamped' for r in caplog.records)

    def test_reservation_may_exceed_stock(self, catalog, ledger, product):
        """Oversold state is accepted."""
        ledger.receive(product, 1)
        catalog.adjust_reserved(product.pk, 3)

        product.refresh_from_db()
        assert product.is_oversold
        assert catalog.get_available(product.pk).available == -2


class TestFindBySkuOrName:
    """Tests for catalog.find_by_sku_or_name()."""

    def test_exact_sku(self, catalog, product):
        assert catalog.find_by_sku_or_name('MUG-01') == (product, MatchKind.EXACT_SKU)

    def test_name_contains_identifier(self, catalog, make_product):
        gadget = make_product('ABC123', 'ABC Gadget')

        found, kind = catalog.find_by_sku_or_name('gadget')
        assert found == gadget
        assert kind == MatchKind.FUZZY_NAME

    def test_identifier_contains_name(self, catalog, make_product):
        gadget = make_product('X1', 'Gadget')

        assert catalog.find_by_sku_or_name('Blue GADGET deluxe') == (gadget, MatchKind.FUZZY_NAME)

    def test_fuzzy_match_is_logged(self, catalog, make_product, caplog):
        make_product('X1', 'Gadget')

        with caplog.at_level(logging.WARNING, logger='stockledger'):
            catalog.find_by_sku_or_name('gadget')

        assert any(r.getMessage() == 'catalog.match.fuzzy' for r in caplog.records)

    def test_closest_name_length_wins(self, catalog, make_product, caplog):
        make_product('A', 'Gadget Pro Max Ultra')
        closest = make_product('B', 'Gadget Pro')

        with caplog.at_level(logging.WARNING, logger='stockledger'):
            found, _ = catalog.find_by_sku_or_name('gadget')

        assert found == closest
        assert any(r.getMessage() == 'catalog.match.ambiguous' for r in caplog.records)

    def test_tie_goes_to_lowest_id(self, catalog, make_product):
        first = make_product('A', 'Red Gadget')
        make_product('B', 'Big Gadget')

        found, _ = catalog.find_by_sku_or_name('gadget')
        assert found == first

    def test_inactive_products_ignored_for_name_match(self, catalog, make_product):
        make_product('X1', 'Gadget', is_active=False)

        assert catalog.find_by_sku_or_name('gadget') == (None, MatchKind.NONE)

    def test_no_match(self, catalog, product):
        assert catalog.find_by_sku_or_name('teapot') == (None, MatchKind.NONE)

    def test_blank_identifier(self, catalog, product):
        assert catalog.find_by_sku_or_name('  ') == (None, MatchKind.NONE)


class TestLowStock:

    def test_low_stock(self, catalog, ledger, make_product):
        low = make_product('LOW', 'Low', min_stock_level=5)
        ok = make_product('OK', 'Ok', min_stock_level=5)
        make_product('NOLIMIT', 'No limit')
        ledger.receive(low, 5)
        ledger.receive(ok, 6)

        assert list(catalog.low_stock()) == [low]
        assert Product.objects.low_stock().count() == 1
