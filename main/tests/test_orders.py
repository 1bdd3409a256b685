import json
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, Client
from django.urls import reverse

from main.models import Order, Table
from main.services.order_service import OrderService
from stock.models import StockMovement
from stock.services import (
    OrderStockService, StockLedgerService, InsufficientStockError, BusinessRuleError, ValidationError,
)
from stock.tests.helpers import StockFixturesMixin


class OrderLifecycleTests(StockFixturesMixin, TestCase):

    def setUp(self):
        cache.clear()
        self.table = Table.objects.create(table_number=4)
        self.beans = self.make_item("Beans", stock="100")
        self.milk = self.make_item("Milk", stock="1000", unit="ml")
        self.latte = self.make_product("Latte", price="4.50")
        self.espresso = self.make_product("Espresso", price="2.00")
        self.add_recipe(self.latte, self.beans, "18")
        self.add_recipe(self.latte, self.milk, "200")
        self.add_recipe(self.espresso, self.beans, "18")

    def create(self, items, table=True):
        result = OrderService.create_order(items, table_id=self.table.id if table else None)
        return Order.objects.get(id=result['order']['id'])

    def test_submission_deducts_stock_and_occupies_table(self):
        order = self.create([
            {'product_id': self.latte.id, 'quantity': 2},
            {'product_id': self.espresso.id, 'quantity': 1},
        ])

        self.assertEqual(order.status, Order.Status.ACTIVE)
        self.assertEqual(order.total_amount, Decimal('11.00'))
        self.assertEqual(self.stock_of(self.beans), Decimal('46'))
        self.assertEqual(self.stock_of(self.milk), Decimal('600'))
        self.assertEqual(Table.objects.get(id=self.table.id).status, Table.Status.OCCUPIED)
        # One movement per stock item, not per line
        self.assertEqual(
            StockMovement.objects.filter(reference_type='order', reference_id=str(order.id)).count(), 2
        )

    def test_shortfall_leaves_no_order_behind(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            self.create([{'product_id': self.espresso.id, 'quantity': 6}])

        self.assertEqual(ctx.exception.items[0]['stock_item_id'], self.beans.id)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(self.stock_of(self.beans), Decimal('100'))
        self.assertEqual(Table.objects.get(id=self.table.id).status, Table.Status.EMPTY)

    def test_cancel_restores_stock_and_frees_table(self):
        order = self.create([{'product_id': self.latte.id, 'quantity': 3}])

        OrderService.cancel_order(order.id)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertIsNotNone(order.cancelled_at)
        self.assertEqual(self.stock_of(self.beans), Decimal('100'))
        self.assertEqual(self.stock_of(self.milk), Decimal('1000'))
        self.assertEqual(Table.objects.get(id=self.table.id).status, Table.Status.EMPTY)

    def test_cancelled_order_cannot_be_cancelled_again(self):
        order = self.create([{'product_id': self.latte.id, 'quantity': 1}])
        OrderService.cancel_order(order.id)

        with self.assertRaises(BusinessRuleError):
            OrderService.cancel_order(order.id)

        self.assertEqual(self.stock_of(self.beans), Decimal('100'))

    def test_cash_payment_records_change(self):
        order = self.create([{'product_id': self.latte.id, 'quantity': 2}])
        OrderService.mark_ready(order.id)

        OrderService.complete_order(order.id, 'cash', received_amount='10.00')

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.COMPLETED)
        self.assertEqual(order.received_amount, Decimal('10.00'))
        self.assertEqual(order.change_amount, Decimal('1.00'))
        self.assertEqual(Table.objects.get(id=self.table.id).status, Table.Status.EMPTY)

    def test_short_cash_is_rejected(self):
        order = self.create([{'product_id': self.latte.id, 'quantity': 2}])

        with self.assertRaises(ValidationError):
            OrderService.complete_order(order.id, 'cash', received_amount='5.00')

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.ACTIVE)

    def test_card_payment_is_exact(self):
        order = self.create([{'product_id': self.espresso.id, 'quantity': 1}], table=False)

        OrderService.complete_order(order.id, 'card')

        order.refresh_from_db()
        self.assertEqual(order.received_amount, Decimal('2.00'))
        self.assertEqual(order.change_amount, Decimal('0.00'))

    def test_completed_order_is_terminal(self):
        order = self.create([{'product_id': self.espresso.id, 'quantity': 1}])
        OrderService.complete_order(order.id, 'card')

        with self.assertRaises(BusinessRuleError):
            OrderService.cancel_order(order.id)
        with self.assertRaises(BusinessRuleError):
            OrderService.add_item(order.id, self.espresso.id, 1)

    def test_added_line_is_deducted_after_submission(self):
        order = self.create([{'product_id': self.espresso.id, 'quantity': 1}])

        OrderService.add_item(order.id, self.latte.id, 1)

        order.refresh_from_db()
        self.assertEqual(order.total_amount, Decimal('6.50'))
        self.assertEqual(self.stock_of(self.beans), Decimal('64'))
        self.assertEqual(self.stock_of(self.milk), Decimal('800'))

        OrderService.cancel_order(order.id)
        self.assertEqual(self.stock_of(self.beans), Decimal('100'))
        self.assertEqual(self.stock_of(self.milk), Decimal('1000'))

    def test_deducted_lines_cannot_be_edited(self):
        order = self.create([
            {'product_id': self.espresso.id, 'quantity': 1},
            {'product_id': self.latte.id, 'quantity': 1},
        ])
        item = order.items.first()

        with self.assertRaises(BusinessRuleError):
            OrderService.update_item(order.id, item.id, 3)
        with self.assertRaises(BusinessRuleError):
            OrderService.remove_item(order.id, item.id)

    def test_numeric_string_product_id_is_accepted(self):
        order = self.create([{'product_id': str(self.espresso.id), 'quantity': '2'}])

        self.assertEqual(order.items.get().product_id, self.espresso.id)
        self.assertEqual(self.stock_of(self.beans), Decimal('64'))

    def test_non_object_line_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.create([self.espresso.id])

        self.assertEqual(Order.objects.count(), 0)


class DeductOnReadyTests(StockFixturesMixin, TestCase):

    def setUp(self):
        cache.clear()
        self.set_stock_settings(deduct_on_status='ready')
        self.beans = self.make_item("Beans", stock="50")
        self.espresso = self.make_product("Espresso", price="2.00")
        self.add_recipe(self.espresso, self.beans, "10")

    def test_stock_moves_when_kitchen_marks_ready(self):
        result = OrderService.create_order([{'product_id': self.espresso.id, 'quantity': 2}])
        order_id = result['order']['id']
        self.assertEqual(self.stock_of(self.beans), Decimal('50'))
        self.assertFalse(OrderStockService.has_deducted(order_id))

        OrderService.mark_ready(order_id)
        self.assertEqual(self.stock_of(self.beans), Decimal('30'))

        OrderService.complete_order(order_id, 'card')
        self.assertEqual(self.stock_of(self.beans), Decimal('30'))

    def test_lines_can_change_before_deduction(self):
        result = OrderService.create_order([
            {'product_id': self.espresso.id, 'quantity': 1},
            {'product_id': self.espresso.id, 'quantity': 1},
        ])
        order = Order.objects.get(id=result['order']['id'])
        first, second = list(order.items.all())

        OrderService.update_item(order.id, first.id, 3)
        OrderService.remove_item(order.id, second.id)
        OrderService.mark_ready(order.id)

        self.assertEqual(self.stock_of(self.beans), Decimal('20'))

    def test_cancel_before_ready_touches_nothing(self):
        result = OrderService.create_order([{'product_id': self.espresso.id, 'quantity': 2}])

        response = OrderService.cancel_order(result['order']['id'])

        self.assertTrue(response['stock']['skipped'])
        self.assertEqual(self.stock_of(self.beans), Decimal('50'))
        self.assertFalse(StockMovement.objects.filter(reference_type='order_cancel').exists())

    def test_shortfall_at_ready_keeps_order_active(self):
        result = OrderService.create_order([{'product_id': self.espresso.id, 'quantity': 4}])
        order_id = result['order']['id']
        StockLedgerService.create_movement(self.beans.id, "out", "20", reference_type="usage")

        with self.assertRaises(InsufficientStockError):
            OrderService.mark_ready(order_id)

        self.assertEqual(Order.objects.get(id=order_id).status, Order.Status.ACTIVE)
        self.assertEqual(self.stock_of(self.beans), Decimal('30'))


class OrderApiTests(StockFixturesMixin, TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.beans = self.make_item("Beans", stock="20")
        self.espresso = self.make_product("Espresso", price="2.00")
        self.add_recipe(self.espresso, self.beans, "10")

    def post_json(self, url, payload=None):
        return self.client.post(url, data=json.dumps(payload or {}), content_type='application/json')

    def test_create_and_cancel_over_http(self):
        response = self.post_json(reverse('main:orders'), {
            'items': [{'product_id': self.espresso.id, 'quantity': 2}],
        })
        self.assertEqual(response.status_code, 201)
        order_id = response.json()['data']['id']
        self.assertEqual(self.stock_of(self.beans), Decimal('0'))

        response = self.post_json(reverse('main:cancel_order', args=[order_id]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.stock_of(self.beans), Decimal('20'))

    def test_shortfall_is_409_with_items(self):
        response = self.post_json(reverse('main:orders'), {
            'items': [{'product_id': self.espresso.id, 'quantity': 3}],
        })

        self.assertEqual(response.status_code, 409)
        error = response.json()['error']
        self.assertEqual(error['code'], 'INSUFFICIENT_STOCK')
        self.assertEqual(error['details']['items'][0]['stock_item_id'], self.beans.id)

    def test_missing_order_is_404(self):
        response = self.client.get(reverse('main:get_order', args=[31337]))

        self.assertEqual(response.status_code, 404)

    def test_product_list_carries_capacity_badge(self):
        response = self.client.get(reverse('main:products'))

        product = response.json()['data']['products'][0]
        self.assertEqual(product['stock_capacity'], 2)
        self.assertEqual(product['stock_status'], 'low')

    def test_stats_follow_order_changes(self):
        stats = self.client.get(reverse('main:order_stats')).json()['data']
        self.assertEqual(stats['total_orders'], 0)

        self.post_json(reverse('main:orders'), {
            'items': [{'product_id': self.espresso.id, 'quantity': 1}],
        })

        stats = self.client.get(reverse('main:order_stats')).json()['data']
        self.assertEqual(stats['total_orders'], 1)
        self.assertEqual(stats['active_orders'], 1)

    def test_malformed_product_id_is_400(self):
        response = self.post_json(reverse('main:orders'), {
            'items': [{'product_id': 'abc', 'quantity': 1}],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(Order.objects.count(), 0)
