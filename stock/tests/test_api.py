import json
from decimal import Decimal

from django.test import TestCase, Client
from django.urls import reverse

from stock.models import StockMovement
from stock.tests.helpers import StockFixturesMixin


class StockApiTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.client = Client()
        self.tea = self.make_item("Tea leaves", stock="30")
        self.cup = self.make_product("Tea", price="2.00")
        self.add_recipe(self.cup, self.tea, "5")

    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_create_item_with_opening_stock(self):
        response = self.post_json(reverse("stock:item-list"), {
            "name": "Lemon", "unit": "piece", "initial_stock": "12", "min_stock_level": "4",
        })

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(Decimal(body["item"]["current_stock"]), Decimal("12"))

    def test_invalid_unit_is_400(self):
        response = self.post_json(reverse("stock:item-list"), {"name": "Ice", "unit": "bucket"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "validation_error")

    def test_unknown_item_is_404(self):
        response = self.client.get(reverse("stock:item-detail", args=[987654]))

        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()["success"])

    def test_manual_movement(self):
        response = self.post_json(reverse("stock:movement-list"), {
            "stock_item_id": self.tea.id, "movement_type": "out",
            "quantity": "10", "reference_type": "waste", "notes": "Spilled",
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.stock_of(self.tea), Decimal("20"))

    def test_invalid_quantity_is_400(self):
        response = self.post_json(reverse("stock:movement-list"), {
            "stock_item_id": self.tea.id, "movement_type": "in", "quantity": "-2",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "invalid_quantity")

    def test_invalid_json_is_400(self):
        response = self.client.post(
            reverse("stock:movement-list"), data="{nope", content_type="application/json"
        )

        self.assertEqual(response.status_code, 400)

    def test_availability_check(self):
        response = self.post_json(reverse("stock:order-availability"), {
            "order_items": [{"product_id": self.cup.id, "quantity": 7}],
        })

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["can_fulfill"])
        self.assertEqual(body["insufficient_items"][0]["stock_item_id"], self.tea.id)
        self.assertEqual(Decimal(body["insufficient_items"][0]["quantity_needed"]), Decimal("35"))

    def test_overdraft_deduction_is_409_with_shortfall(self):
        response = self.post_json(reverse("stock:order-deduct"), {
            "order_id": 55, "order_items": [{"product_id": self.cup.id, "quantity": 7}],
        })

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "insufficient_stock")
        self.assertEqual(error["details"]["items"][0]["stock_item_name"], "Tea leaves")
        self.assertEqual(self.stock_of(self.tea), Decimal("30"))

    def test_deduct_then_restore(self):
        self.post_json(reverse("stock:order-deduct"), {
            "order_id": 56, "order_items": [{"product_id": self.cup.id, "quantity": 2}],
        })
        self.assertEqual(self.stock_of(self.tea), Decimal("20"))

        response = self.post_json(reverse("stock:order-restore"), {"order_id": 56})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.stock_of(self.tea), Decimal("30"))
        self.assertEqual(
            StockMovement.objects.filter(reference_id="56").count(), 2
        )

    def test_capacity_endpoint(self):
        response = self.client.get(reverse("stock:product-capacity", args=[self.cup.id]))

        body = response.json()
        self.assertEqual(body["capacity"], 6)
        self.assertEqual(body["status"], "medium")

    def test_zero_recipe_quantity_is_rejected(self):
        lemon = self.make_item("Lemon", stock="5", unit="piece")

        response = self.post_json(reverse("stock:product-recipe", args=[self.cup.id]), {
            "stock_item_id": lemon.id, "quantity_needed": "0",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "invalid_quantity")

    def test_reconcile_endpoint(self):
        response = self.client.get(reverse("stock:reconcile"))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["is_consistent"])

    def test_non_numeric_quantity_is_400(self):
        response = self.post_json(reverse("stock:order-availability"), {
            "order_items": [{"product_id": self.cup.id, "quantity": "NaN"}],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "invalid_quantity")

    def test_infinite_quantity_cannot_be_deducted(self):
        response = self.post_json(reverse("stock:order-deduct"), {
            "order_id": 57, "order_items": [{"product_id": self.cup.id, "quantity": "Infinity"}],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.stock_of(self.tea), Decimal("30"))

    def test_malformed_product_id_is_404(self):
        response = self.post_json(reverse("stock:order-availability"), {
            "order_items": [{"product_id": "abc", "quantity": 1}],
        })

        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()["success"])

        response = self.post_json(reverse("stock:order-deduct"), {
            "order_id": 58, "order_items": [{"product_id": "abc", "quantity": 1}],
        })

        self.assertEqual(response.status_code, 404)
        self.assertFalse(StockMovement.objects.filter(reference_id="58").exists())
