from decimal import Decimal

from django.test import TestCase

from stock.services import (
    StockAvailabilityService, RecipeService, UNLIMITED,
    InvalidQuantityError, NotFoundError,
)
from stock.tests.helpers import StockFixturesMixin


class RequirementAggregationTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.milk = self.make_item("Milk", stock="1000", unit="ml")
        self.coffee = self.make_item("Coffee beans", stock="500")
        self.latte = self.make_product("Latte")
        self.cappuccino = self.make_product("Cappuccino")

        self.add_recipe(self.latte, self.milk, "200")
        self.add_recipe(self.latte, self.coffee, "18", critical=True)
        self.add_recipe(self.cappuccino, self.milk, "150")

    def test_shared_item_is_summed_across_products(self):
        requirements = StockAvailabilityService.aggregate_requirements([
            {"product_id": self.latte.id, "quantity": 2},
            {"product_id": self.cappuccino.id, "quantity": 1},
        ])

        by_item = {r["stock_item_id"]: r for r in requirements}
        self.assertEqual(len(requirements), 2)
        self.assertEqual(by_item[self.milk.id]["quantity_needed"], Decimal("550"))
        self.assertEqual(by_item[self.coffee.id]["quantity_needed"], Decimal("36"))

    def test_repeated_lines_of_same_product_are_combined(self):
        requirements = StockAvailabilityService.aggregate_requirements([
            {"product_id": self.latte.id, "quantity": 1},
            {"product_id": self.latte.id, "quantity": 3},
        ])

        by_item = {r["stock_item_id"]: r for r in requirements}
        self.assertEqual(by_item[self.milk.id]["quantity_needed"], Decimal("800"))

    def test_critical_flag_is_or_of_contributing_rows(self):
        self.add_recipe(self.cappuccino, self.coffee, "18", critical=False)

        requirements = StockAvailabilityService.aggregate_requirements([
            {"product_id": self.latte.id, "quantity": 1},
            {"product_id": self.cappuccino.id, "quantity": 1},
        ])

        coffee = next(r for r in requirements if r["stock_item_id"] == self.coffee.id)
        milk = next(r for r in requirements if r["stock_item_id"] == self.milk.id)
        self.assertTrue(coffee["is_critical"])
        self.assertFalse(milk["is_critical"])

    def test_check_lists_every_short_item(self):
        result = StockAvailabilityService.check_stock_availability([
            {"product_id": self.latte.id, "quantity": 6},
        ])

        self.assertFalse(result["can_fulfill"])
        short = [r["stock_item_id"] for r in result["insufficient_items"]]
        self.assertEqual(short, [self.milk.id])
        self.assertEqual(len(result["requirements"]), 2)

    def test_exact_stock_is_enough(self):
        result = StockAvailabilityService.check_stock_availability([
            {"product_id": self.latte.id, "quantity": 5},
        ])

        self.assertTrue(result["can_fulfill"])
        self.assertEqual(result["insufficient_items"], [])

    def test_zero_quantity_line_is_rejected(self):
        with self.assertRaises(InvalidQuantityError):
            StockAvailabilityService.aggregate_requirements([
                {"product_id": self.latte.id, "quantity": 0},
            ])

    def test_unknown_product_is_not_found(self):
        with self.assertRaises(NotFoundError):
            StockAvailabilityService.check_stock_availability([
                {"product_id": 999999, "quantity": 1},
            ])

    def test_non_finite_quantity_is_rejected(self):
        for quantity in ("NaN", "sNaN", "Infinity", "-Infinity"):
            with self.subTest(quantity=quantity):
                with self.assertRaises(InvalidQuantityError):
                    StockAvailabilityService.check_stock_availability([
                        {"product_id": self.latte.id, "quantity": quantity},
                    ])

    def test_malformed_product_id_is_not_found(self):
        with self.assertRaises(NotFoundError):
            StockAvailabilityService.check_stock_availability([
                {"product_id": "abc", "quantity": 1},
            ])


class UnconstrainedProductTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.water = self.make_product("Tap water", price="0")

    def test_empty_recipe_needs_nothing(self):
        self.assertEqual(RecipeService.get_recipe(self.water.id), [])

        result = StockAvailabilityService.check_stock_availability([
            {"product_id": self.water.id, "quantity": 50},
        ])
        self.assertTrue(result["can_fulfill"])
        self.assertEqual(result["requirements"], [])

    def test_capacity_is_unlimited(self):
        capacity = StockAvailabilityService.get_production_capacity(self.water.id)

        self.assertEqual(capacity, UNLIMITED)
        self.assertEqual(StockAvailabilityService.capacity_status(capacity), "unlimited")


class ProductionCapacityTests(StockFixturesMixin, TestCase):

    def setUp(self):
        self.bun = self.make_item("Bun", stock="7", unit="piece")
        self.patty = self.make_item("Patty", stock="2.5", unit="piece")
        self.burger = self.make_product("Burger", price="8.00")
        self.add_recipe(self.burger, self.bun, "1")
        self.add_recipe(self.burger, self.patty, "0.5")

    def test_tightest_ingredient_bounds_capacity(self):
        # 7 buns, 2.5 patties at half a patty each: 5 burgers
        self.assertEqual(StockAvailabilityService.get_production_capacity(self.burger.id), 5)

    def test_fractional_remainder_is_floored(self):
        double = self.make_product("Double")
        self.add_recipe(double, self.bun, "3")

        self.assertEqual(StockAvailabilityService.get_production_capacity(double.id), 2)

    def test_empty_stock_gives_zero(self):
        sauce = self.make_item("Mustard", stock="0", unit="ml")
        self.add_recipe(self.burger, sauce, "10")

        capacity = StockAvailabilityService.get_production_capacity(self.burger.id)
        self.assertEqual(capacity, 0)
        self.assertEqual(StockAvailabilityService.capacity_status(capacity), "unavailable")

    def test_batch_capacities_match_single_lookups(self):
        water = self.make_product("Water", price="1.00")

        capacities = StockAvailabilityService.get_capacities([self.burger.id, water.id])

        self.assertEqual(capacities, {self.burger.id: 5, water.id: UNLIMITED})

    def test_capacity_status_thresholds(self):
        status = StockAvailabilityService.capacity_status
        self.assertEqual(status(3), "low")
        self.assertEqual(status(5), "low")
        self.assertEqual(status(8), "medium")
        self.assertEqual(status(40), "available")

    def test_unknown_product_capacity_is_not_found(self):
        with self.assertRaises(NotFoundError):
            StockAvailabilityService.get_production_capacity(424242)

    def test_capacity_reads_recipe_once(self):
        # Product lookup plus one recipe query
        with self.assertNumQueries(2):
            self.assertEqual(StockAvailabilityService.get_production_capacity(self.burger.id), 5)
