"""
Tests for low stock alerts.
"""

import logging

import pytest

from stockledger.models import StockAlert
from stockledger.services.alerts import check_alerts, mark_read


pytestmark = pytest.mark.django_db


@pytest.fixture
def low_product(make_product):
    return make_product('LOW-01', 'Low Item', current_stock=2, min_stock_level=5)


class TestCheckAlerts:

    def test_alert_for_low_product(self, low_product, caplog):
        with caplog.at_level(logging.WARNING, logger='stockledger'):
            raised = check_alerts()

        [(alert, created)] = raised
        assert created
        assert alert.product == low_product
        assert (alert.current_stock, alert.min_stock_level) == (2, 5)
        assert any(r.getMessage() == 'stock.alert.triggered' for r in caplog.records)

    def test_ignores_products_without_minimum(self, product):
        assert check_alerts() == []

    def test_ignores_inactive_products(self, make_product):
        make_product('OLD-01', current_stock=0, min_stock_level=5, is_active=False)

        assert check_alerts() == []

    def test_at_minimum_counts_as_low(self, make_product):
        make_product('EDGE-01', current_stock=5, min_stock_level=5)

        assert len(check_alerts()) == 1

    def test_unread_alert_is_refreshed(self, low_product, ledger):
        check_alerts()
        ledger.append(low_product, 'out', 1)

        [(alert, created)] = check_alerts(low_product)

        assert not created
        assert alert.current_stock == 1
        assert StockAlert.objects.count() == 1

    def test_read_alert_gets_a_successor(self, low_product):
        [(first, _)] = check_alerts()
        assert mark_read([first]) == 1

        [(second, created)] = check_alerts()

        assert created
        assert second.pk != first.pk
        assert mark_read([first]) == 0
