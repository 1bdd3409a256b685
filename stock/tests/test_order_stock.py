from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase

from stock.models import StockMovement
from stock.services import (
    OrderStockService, OrderStatusHandler, StockLedgerService, StockAvailabilityService,
    InsufficientStockError, WriteFailureError,
)
from stock.tests.helpers import StockFixturesMixin

User = get_user_model()


class DepletionTests(StockFixturesMixin, TestCase):
    """
    Deducting an order either writes one out movement per stock item or
    writes nothing at all.
    """

    def setUp(self):
        self.user = User.objects.create_user(username="waiter", password="pass")
        self.milk = self.make_item("Milk", stock="1000", unit="ml")
        self.coffee = self.make_item("Coffee beans", stock="40")
        self.latte = self.make_product("Latte")
        self.add_recipe(self.latte, self.milk, "200")
        self.add_recipe(self.latte, self.coffee, "18")

    def order_movements(self, order_id):
        return StockMovement.objects.filter(
            reference_type=StockMovement.ReferenceType.ORDER,
            reference_id=str(order_id),
        )

    def test_deduction_writes_out_movements_with_before_and_after(self):
        result = OrderStockService.deduct_stock_for_order(
            [{"product_id": self.latte.id, "quantity": 2}], 101, self.user.id
        )

        self.assertTrue(result["success"])
        self.assertEqual(result["total_deductions"], 2)
        self.assertEqual(self.stock_of(self.milk), Decimal("600"))
        self.assertEqual(self.stock_of(self.coffee), Decimal("4"))

        milk_move = self.order_movements(101).get(stock_item=self.milk)
        self.assertEqual(milk_move.movement_type, StockMovement.MovementType.OUT)
        self.assertEqual(milk_move.quantity, Decimal("400"))
        self.assertEqual(milk_move.previous_stock, Decimal("1000"))
        self.assertEqual(milk_move.new_stock, Decimal("600"))
        self.assertEqual(milk_move.user_id, self.user.id)
        self.assertEqual(milk_move.notes, "Order #101")

    def test_overdraft_rejects_whole_order(self):
        # Milk covers three lattes, coffee only two
        with self.assertRaises(InsufficientStockError) as ctx:
            OrderStockService.deduct_stock_for_order(
                [{"product_id": self.latte.id, "quantity": 3}], 102
            )

        short = ctx.exception.items
        self.assertEqual([i["stock_item_id"] for i in short], [self.coffee.id])
        self.assertEqual(short[0]["quantity_needed"], Decimal("54"))
        self.assertEqual(short[0]["current_stock"], Decimal("40"))

        self.assertEqual(self.stock_of(self.milk), Decimal("1000"))
        self.assertEqual(self.stock_of(self.coffee), Decimal("40"))
        self.assertFalse(self.order_movements(102).exists())

    def test_product_without_recipe_deducts_nothing(self):
        water = self.make_product("Water", price="1.00")

        result = OrderStockService.deduct_stock_for_order(
            [{"product_id": water.id, "quantity": 10}], 103
        )

        self.assertEqual(result["total_deductions"], 0)
        self.assertFalse(self.order_movements(103).exists())

    def test_ledger_stays_reconciled_after_deduction(self):
        OrderStockService.deduct_stock_for_order(
            [{"product_id": self.latte.id, "quantity": 1}], 104
        )

        self.assertTrue(StockLedgerService.reconcile()["is_consistent"])

    def test_stock_drained_after_check_rolls_back_earlier_decrements(self):
        real_check = StockAvailabilityService.check_stock_availability

        def check_then_drain(order_lines):
            result = real_check(order_lines)
            # Another till takes most of the coffee before our writes land
            StockLedgerService.create_movement(self.coffee.id, "out", "30", reference_type="usage")
            return result

        with patch.object(StockAvailabilityService, "check_stock_availability", side_effect=check_then_drain):
            with self.assertRaises(InsufficientStockError) as ctx:
                OrderStockService.deduct_stock_for_order(
                    [{"product_id": self.latte.id, "quantity": 2}], 105
                )

        self.assertEqual(ctx.exception.items[0]["stock_item_id"], self.coffee.id)
        self.assertEqual(ctx.exception.items[0]["current_stock"], Decimal("10"))
        self.assertEqual(self.stock_of(self.milk), Decimal("1000"))
        self.assertEqual(self.stock_of(self.coffee), Decimal("10"))
        self.assertFalse(self.order_movements(105).exists())

    def test_failed_movement_write_rolls_back_whole_order(self):
        real_create = StockMovement.objects.create
        calls = []

        def fail_on_second(**kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise DatabaseError("disk I/O error")
            return real_create(**kwargs)

        with patch.object(StockMovement.objects, "create", side_effect=fail_on_second):
            with self.assertRaises(WriteFailureError):
                OrderStockService.deduct_stock_for_order(
                    [{"product_id": self.latte.id, "quantity": 2}], 106
                )

        self.assertEqual(len(calls), 2)
        self.assertEqual(self.stock_of(self.milk), Decimal("1000"))
        self.assertEqual(self.stock_of(self.coffee), Decimal("40"))
        self.assertFalse(self.order_movements(106).exists())
        self.assertTrue(StockLedgerService.reconcile()["is_consistent"])


class RestorationTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.milk = self.make_item("Milk", stock="1000", unit="ml", unit_cost="0.002")
        self.latte = self.make_product("Latte")
        self.add_recipe(self.latte, self.milk, "250")
        OrderStockService.deduct_stock_for_order(
            [{"product_id": self.latte.id, "quantity": 2}], 201
        )

    def test_restore_returns_stock_to_pre_deduction_level(self):
        self.assertEqual(self.stock_of(self.milk), Decimal("500"))

        result = OrderStockService.restore_stock_for_order(201, reason="Customer left")

        self.assertEqual(result["total_reversals"], 1)
        self.assertEqual(self.stock_of(self.milk), Decimal("1000"))

        reversal = StockMovement.objects.get(
            reference_type=StockMovement.ReferenceType.ORDER_CANCEL, reference_id="201"
        )
        self.assertEqual(reversal.movement_type, StockMovement.MovementType.IN)
        self.assertEqual(reversal.quantity, Decimal("500"))
        self.assertEqual(reversal.notes, "Reversal: Customer left")

    def test_restore_applies_on_top_of_interleaved_movements(self):
        StockLedgerService.create_movement(self.milk.id, "in", "300", reference_type="purchase")
        StockLedgerService.create_movement(self.milk.id, "out", "100", reference_type="waste")

        OrderStockService.restore_stock_for_order(201)

        # 500 + 300 - 100 + 500
        self.assertEqual(self.stock_of(self.milk), Decimal("1200"))
        self.assertTrue(StockLedgerService.reconcile()["is_consistent"])

    def test_second_restore_is_a_no_op(self):
        OrderStockService.restore_stock_for_order(201)
        result = OrderStockService.restore_stock_for_order(201)

        self.assertTrue(result["skipped"])
        self.assertEqual(self.stock_of(self.milk), Decimal("1000"))
        self.assertEqual(
            StockMovement.objects.filter(
                reference_type=StockMovement.ReferenceType.ORDER_CANCEL
            ).count(),
            1
        )

    def test_restore_without_deduction_is_skipped(self):
        result = OrderStockService.restore_stock_for_order(999)

        self.assertTrue(result["skipped"])
        self.assertEqual(self.stock_of(self.milk), Decimal("500"))


class StatusHandlerTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.beans = self.make_item("Beans", stock="100")
        self.espresso = self.make_product("Espresso", price="2.00")
        self.add_recipe(self.espresso, self.beans, "10")
        self.lines = [{"product_id": self.espresso.id, "quantity": 1}]

    def test_deducts_on_submission_by_default(self):
        OrderStatusHandler.on_status_change(301, None, "active", self.lines)

        self.assertEqual(self.stock_of(self.beans), Decimal("90"))

    def test_deducts_once_when_configured_for_ready(self):
        self.set_stock_settings(deduct_on_status="ready")

        OrderStatusHandler.on_status_change(302, None, "active", self.lines)
        self.assertEqual(self.stock_of(self.beans), Decimal("100"))

        OrderStatusHandler.on_status_change(302, "active", "ready", self.lines)
        self.assertEqual(self.stock_of(self.beans), Decimal("90"))

        OrderStatusHandler.on_status_change(302, "ready", "completed", self.lines)
        self.assertEqual(self.stock_of(self.beans), Decimal("90"))

    def test_skipping_straight_to_completed_still_deducts(self):
        self.set_stock_settings(deduct_on_status="ready")

        OrderStatusHandler.on_status_change(303, "active", "completed", self.lines)

        self.assertEqual(self.stock_of(self.beans), Decimal("90"))

    def test_disabled_stock_skips_deduction(self):
        self.set_stock_settings(stock_enabled=False)

        result = OrderStatusHandler.on_status_change(304, None, "active", self.lines)

        self.assertTrue(result["skipped"])
        self.assertEqual(self.stock_of(self.beans), Decimal("100"))

    def test_cancel_restores_even_when_stock_disabled(self):
        OrderStatusHandler.on_status_change(305, None, "active", self.lines)
        self.set_stock_settings(stock_enabled=False)

        OrderStatusHandler.on_status_change(305, "active", "cancelled", self.lines)

        self.assertEqual(self.stock_of(self.beans), Decimal("100"))

    def test_new_lines_deducted_only_past_deduction_point(self):
        self.set_stock_settings(deduct_on_status="ready")

        self.assertFalse(OrderStatusHandler.should_deduct_new_lines("active"))
        self.assertTrue(OrderStatusHandler.should_deduct_new_lines("ready"))
