"""
Availability Calculator - turns order lines into aggregated stock
requirements and answers "can we make this?" questions. Read only.
"""
from typing import Dict, Any, List, Iterable, Union
from collections import OrderedDict, defaultdict
from decimal import Decimal

from stock.models import ProductRecipe
from stock.services.base_service import (
    ValidationError, InvalidQuantityError, to_decimal
)
from stock.services.recipe_service import RecipeService

UNLIMITED = "unlimited"

# Capacity badge thresholds shown on product cards
LOW_CAPACITY = 5
MEDIUM_CAPACITY = 10


class StockAvailabilityService:

    @staticmethod
    def _line_values(line) -> tuple:
        """Accept order lines as dicts or as objects (e.g. OrderItem)."""
        if isinstance(line, dict):
            product_id = line.get("product_id")
            quantity = line.get("quantity")
        else:
            product_id = getattr(line, "product_id", None)
            quantity = getattr(line, "quantity", None)

        if product_id is None:
            raise ValidationError("Each order line needs a product_id", "product_id")

        quantity = to_decimal(quantity, default=None)
        if quantity is None or not quantity.is_finite() or quantity <= 0:
            raise InvalidQuantityError(
                f"Order line quantity must be greater than zero (product {product_id})",
                "quantity",
                quantity
            )
        return product_id, quantity

    @classmethod
    def aggregate_requirements(cls, order_lines: Iterable) -> List[Dict[str, Any]]:
        """
        Sum recipe requirements across lines, one entry per stock item.
        is_critical is set if any contributing recipe row is critical.
        """
        per_product = OrderedDict()
        for line in order_lines:
            product_id, quantity = cls._line_values(line)
            per_product[product_id] = per_product.get(product_id, Decimal("0")) + quantity

        requirements = OrderedDict()
        for product_id, quantity in per_product.items():
            for row in RecipeService.get_recipe(product_id):
                needed = row["quantity_needed"] * quantity
                existing = requirements.get(row["stock_item_id"])
                if existing is None:
                    requirements[row["stock_item_id"]] = {
                        "stock_item_id": row["stock_item_id"],
                        "stock_item_name": row["stock_item_name"],
                        "quantity_needed": needed,
                        "current_stock": row["current_stock"],
                        "unit": row["unit"],
                        "is_critical": row["is_critical"],
                    }
                else:
                    existing["quantity_needed"] += needed
                    existing["is_critical"] = existing["is_critical"] or row["is_critical"]

        return list(requirements.values())

    @classmethod
    def check_stock_availability(cls, order_lines: Iterable) -> Dict[str, Any]:
        requirements = cls.aggregate_requirements(order_lines)
        insufficient = [
            req for req in requirements
            if req["quantity_needed"] > req["current_stock"]
        ]

        return {
            "can_fulfill": not insufficient,
            "requirements": requirements,
            "insufficient_items": insufficient,
        }

    @staticmethod
    def _capacity_from_rows(product_id, rows) -> Union[int, str]:
        """rows are (stock_item_name, quantity_needed, current_stock) tuples."""
        capacity = None
        for name, quantity_needed, current_stock in rows:
            if quantity_needed <= 0:
                raise InvalidQuantityError(
                    f"Recipe for product {product_id} has a non-positive quantity "
                    f"for {name}",
                    "quantity_needed",
                    quantity_needed
                )
            possible = int(current_stock // quantity_needed)
            capacity = possible if capacity is None else min(capacity, possible)

        return UNLIMITED if capacity is None else max(capacity, 0)

    @classmethod
    def get_production_capacity(cls, product_id: int) -> Union[int, str]:
        """Whole units of the product current stock can produce, or "unlimited"."""
        recipe = RecipeService.get_recipe(product_id)
        return cls._capacity_from_rows(product_id, [
            (row["stock_item_name"], row["quantity_needed"], row["current_stock"])
            for row in recipe
        ])

    @classmethod
    def get_capacities(cls, product_ids: Iterable[int]) -> Dict[int, Union[int, str]]:
        """Capacity for many products with a single recipe query."""
        product_ids = list(product_ids)
        grouped = defaultdict(list)
        rows = ProductRecipe.objects.filter(
            product_id__in=product_ids
        ).select_related("stock_item")
        for row in rows:
            grouped[row.product_id].append(
                (row.stock_item.name, row.quantity_needed, row.stock_item.current_stock)
            )

        return {pid: cls._capacity_from_rows(pid, grouped.get(pid, [])) for pid in product_ids}

    @staticmethod
    def capacity_status(capacity: Union[int, str]) -> str:
        if capacity == UNLIMITED:
            return "unlimited"
        if capacity <= 0:
            return "unavailable"
        if capacity <= LOW_CAPACITY:
            return "low"
        if capacity <= MEDIUM_CAPACITY:
            return "medium"
        return "available"

    @staticmethod
    def serialize_requirement(requirement: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "stock_item_id": requirement["stock_item_id"],
            "stock_item_name": requirement["stock_item_name"],
            "quantity_needed": str(requirement["quantity_needed"]),
            "current_stock": str(requirement["current_stock"]),
            "unit": requirement["unit"],
            "is_critical": requirement["is_critical"],
        }

    @classmethod
    def serialize_availability(cls, result: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "can_fulfill": result["can_fulfill"],
            "requirements": [cls.serialize_requirement(r) for r in result["requirements"]],
            "insufficient_items": [cls.serialize_requirement(r) for r in result["insufficient_items"]],
        }
