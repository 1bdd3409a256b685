from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from stock.models import StockAlert
from stock.services import (
    StockAlertService, StockLedgerService, StockItemService, OrderStockService, BusinessRuleError,
)
from stock.tests.helpers import StockFixturesMixin


class AlertDerivationTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.cream = self.make_item("Cream", stock="10", unit="liter", min_level="3")

    def open_alerts(self, item):
        return set(
            StockAlert.objects.filter(stock_item=item, is_resolved=False)
            .values_list("alert_type", flat=True)
        )

    def test_healthy_item_has_no_alert(self):
        self.assertEqual(self.open_alerts(self.cream), set())

    def test_dropping_to_minimum_opens_low_stock(self):
        StockLedgerService.create_movement(self.cream.id, "out", "7", reference_type="usage")

        self.assertEqual(self.open_alerts(self.cream), {"low_stock"})

    def test_empty_item_is_out_of_stock_not_low(self):
        StockLedgerService.create_movement(self.cream.id, "out", "10", reference_type="usage")

        self.assertEqual(self.open_alerts(self.cream), {"out_of_stock"})

    def test_restock_resolves_alert(self):
        StockLedgerService.create_movement(self.cream.id, "out", "8", reference_type="usage")
        StockLedgerService.create_movement(self.cream.id, "in", "20", reference_type="purchase")

        self.assertEqual(self.open_alerts(self.cream), set())
        resolved = StockAlert.objects.get(stock_item=self.cream, alert_type="low_stock")
        self.assertTrue(resolved.is_resolved)
        self.assertIsNotNone(resolved.resolved_at)

    def test_order_deduction_opens_alert(self):
        cake = self.make_product("Cake", price="5.00")
        self.add_recipe(cake, self.cream, "2")

        OrderStockService.deduct_stock_for_order([{"product_id": cake.id, "quantity": 4}], 77)

        self.assertEqual(self.open_alerts(self.cream), {"low_stock"})

    def test_alert_values_follow_stock(self):
        StockLedgerService.create_movement(self.cream.id, "out", "8", reference_type="usage")
        StockLedgerService.create_movement(self.cream.id, "out", "1", reference_type="usage")

        alert = StockAlert.objects.get(stock_item=self.cream, is_resolved=False)
        self.assertEqual(alert.current_value, Decimal("1"))
        self.assertEqual(StockAlert.objects.filter(stock_item=self.cream).count(), 1)

    def test_disabled_low_stock_alerts(self):
        self.set_stock_settings(low_stock_alert_enabled=False)

        StockLedgerService.create_movement(self.cream.id, "out", "9", reference_type="usage")

        self.assertEqual(self.open_alerts(self.cream), set())

    def test_expiry_alerts(self):
        today = timezone.localdate()
        soon = self.make_item("Yogurt", stock="5", expiry_date=today + timedelta(days=3))
        gone = self.make_item("Ham", stock="5", expiry_date=today - timedelta(days=1))
        later = self.make_item("Cheese", stock="5", expiry_date=today + timedelta(days=60))

        StockAlertService.refresh_all()

        self.assertEqual(self.open_alerts(soon), {"expiring_soon"})
        self.assertEqual(self.open_alerts(gone), {"expired"})
        self.assertEqual(self.open_alerts(later), set())


class CriticalItemsTests(StockFixturesMixin, TestCase):

    def test_items_at_or_below_minimum_lowest_first(self):
        self.make_item("Plenty", stock="50", min_level="5")
        low = self.make_item("Low", stock="4", min_level="5")
        empty = self.make_item("Empty", stock="0", min_level="1")

        critical = StockAlertService.get_critical_stock_items()

        self.assertEqual([c["stock_item_id"] for c in critical], [empty.id, low.id])
        self.assertTrue(critical[0]["is_critical"])
        self.assertFalse(critical[1]["is_critical"])


class AlertActionTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.item = self.make_item("Syrup", stock="1", unit="bottle", min_level="2")
        self.alert = StockAlert.objects.get(stock_item=self.item)

    def test_acknowledge_once(self):
        StockAlertService.acknowledge(self.alert.id)

        self.alert.refresh_from_db()
        self.assertTrue(self.alert.is_acknowledged)
        with self.assertRaises(BusinessRuleError):
            StockAlertService.acknowledge(self.alert.id)

    def test_resolve_once(self):
        StockAlertService.resolve(self.alert.id)

        with self.assertRaises(BusinessRuleError):
            StockAlertService.resolve(self.alert.id)


class ActivationAlertTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.item = self.make_item("Vanilla", stock="0", unit="bottle", min_level="1")

    def open_alerts(self):
        return set(
            StockAlert.objects.filter(stock_item=self.item, is_resolved=False)
            .values_list("alert_type", flat=True)
        )

    def test_empty_item_is_flagged_on_creation(self):
        self.assertEqual(self.open_alerts(), {"out_of_stock"})

    def test_reactivation_reopens_alerts(self):
        StockItemService.deactivate(self.item.id)
        self.assertEqual(self.open_alerts(), set())

        StockItemService.activate(self.item.id)

        self.assertEqual(self.open_alerts(), {"out_of_stock"})
