from typing import Dict, Any, List
from decimal import Decimal
from django.db import transaction

from main.models import Product
from stock.models import ProductRecipe, StockItem
from stock.services.base_service import (
    BaseService, success_response,
    ValidationError, NotFoundError, InvalidQuantityError,
    parse_decimal, round_decimal
)


class RecipeService(BaseService):
    """Bill of materials for menu products: which stock items one unit consumes."""

    model = ProductRecipe

    @classmethod
    def serialize(cls, recipe: ProductRecipe) -> Dict[str, Any]:
        item = recipe.stock_item
        return {
            "id": recipe.id,
            "uuid": str(recipe.uuid),
            "product_id": recipe.product_id,
            "stock_item_id": recipe.stock_item_id,
            "stock_item": {
                "id": item.id,
                "name": item.name,
                "unit": item.unit,
                "current_stock": str(item.current_stock),
                "unit_cost": str(item.unit_cost),
            },
            "quantity_needed": str(recipe.quantity_needed),
            "unit": recipe.unit,
            "is_critical": recipe.is_critical,
            "cost_percentage": str(recipe.cost_percentage),
            "ingredient_cost": str(round_decimal(recipe.quantity_needed * item.unit_cost, 4)),
        }

    # ==================== RESOLVE ====================

    @classmethod
    def get_recipe(cls, product_id: int) -> List[Dict[str, Any]]:
        """
        Ingredient requirements for one unit of the product.
        An empty list means the product does not consume stock.
        """
        try:
            exists = Product.objects.filter(id=product_id).exists()
        except (ValueError, TypeError):
            exists = False
        if not exists:
            raise NotFoundError("Product", product_id)

        rows = cls.model.objects.filter(
            product_id=product_id
        ).select_related("stock_item").order_by("id")

        return [
            {
                "stock_item_id": row.stock_item_id,
                "stock_item_name": row.stock_item.name,
                "quantity_needed": row.quantity_needed,
                "unit": row.unit,
                "is_critical": row.is_critical,
                "current_stock": row.stock_item.current_stock,
            }
            for row in rows
        ]

    @classmethod
    def list_for_product(cls, product_id: int) -> Dict[str, Any]:
        product = Product.objects.filter(id=product_id).first()
        if not product:
            raise NotFoundError("Product", product_id)

        recipes = cls.model.objects.filter(
            product=product
        ).select_related("stock_item").order_by("id")

        return success_response({
            "product_id": product.id,
            "product_name": product.name,
            "recipes": [cls.serialize(r) for r in recipes],
            "count": len(recipes),
        })

    # ==================== COSTING ====================

    @classmethod
    def calculate_cost(cls, product_id: int) -> Dict[str, Any]:
        product = Product.objects.filter(id=product_id).first()
        if not product:
            raise NotFoundError("Product", product_id)

        total_cost = Decimal("0")
        ingredients = []
        for row in cls.model.objects.filter(product=product).select_related("stock_item"):
            line_cost = row.quantity_needed * row.stock_item.unit_cost
            total_cost += line_cost
            ingredients.append({
                "stock_item_id": row.stock_item_id,
                "stock_item_name": row.stock_item.name,
                "quantity_needed": str(row.quantity_needed),
                "unit_cost": str(row.stock_item.unit_cost),
                "cost": str(round_decimal(line_cost, 2)),
            })

        total_cost = round_decimal(total_cost, 2)
        price = product.price
        cost_ratio = round_decimal(total_cost / price * 100, 2) if price > 0 else None

        return success_response({
            "product_id": product.id,
            "product_name": product.name,
            "price": str(price),
            "total_cost": str(total_cost),
            "gross_margin": str(round_decimal(price - total_cost, 2)),
            "cost_ratio": str(cost_ratio) if cost_ratio is not None else None,
            "ingredients": ingredients,
        })

    # ==================== WRITE ====================

    @classmethod
    def _validate_quantity(cls, value: Any) -> Decimal:
        quantity = parse_decimal(value, "quantity_needed")
        if quantity <= 0:
            raise InvalidQuantityError(
                "quantity_needed must be greater than zero", "quantity_needed", quantity
            )
        return quantity

    @classmethod
    def _validate_cost_percentage(cls, value: Any) -> Decimal:
        percentage = parse_decimal(value, "cost_percentage")
        if percentage < 0 or percentage > 100:
            raise ValidationError("cost_percentage must be between 0 and 100", "cost_percentage")
        return percentage

    @classmethod
    def _validate_unit(cls, unit: str) -> str:
        valid_units = [c[0] for c in StockItem.Unit.choices]
        if unit not in valid_units:
            raise ValidationError(f"Invalid unit. Valid: {valid_units}", "unit")
        return unit

    @classmethod
    @transaction.atomic
    def add_ingredient(cls,
                       product_id: int,
                       stock_item_id: int,
                       quantity_needed: Any,
                       unit: str = None,
                       is_critical: bool = False,
                       cost_percentage: Any = 0) -> Dict[str, Any]:
        try:
            product = Product.objects.get(id=product_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Product", product_id)

        try:
            stock_item = StockItem.objects.get(id=stock_item_id)
        except (StockItem.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Stock item", stock_item_id)

        if not stock_item.is_active:
            raise ValidationError(f"Stock item '{stock_item.name}' is inactive", "stock_item_id")

        quantity = cls._validate_quantity(quantity_needed)
        percentage = cls._validate_cost_percentage(cost_percentage)
        unit = cls._validate_unit(unit or stock_item.unit)

        if cls.model.objects.filter(product=product, stock_item=stock_item).exists():
            raise ValidationError(
                f"'{stock_item.name}' is already in the recipe for '{product.name}'",
                "stock_item_id"
            )

        recipe = cls.model.objects.create(
            product=product,
            stock_item=stock_item,
            quantity_needed=quantity,
            unit=unit,
            is_critical=bool(is_critical),
            cost_percentage=percentage,
        )

        return success_response({
            "id": recipe.id,
            "recipe": cls.serialize(recipe)
        }, "Ingredient added")

    @classmethod
    @transaction.atomic
    def update_ingredient(cls, recipe_id: int, **kwargs) -> Dict[str, Any]:
        try:
            recipe = cls.model.objects.select_related("stock_item").get(id=recipe_id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Recipe ingredient", recipe_id)

        update_fields = ["updated_at"]

        if "quantity_needed" in kwargs:
            recipe.quantity_needed = cls._validate_quantity(kwargs["quantity_needed"])
            update_fields.append("quantity_needed")

        if "cost_percentage" in kwargs:
            recipe.cost_percentage = cls._validate_cost_percentage(kwargs["cost_percentage"])
            update_fields.append("cost_percentage")

        if "unit" in kwargs:
            recipe.unit = cls._validate_unit(kwargs["unit"])
            update_fields.append("unit")

        if "is_critical" in kwargs:
            recipe.is_critical = bool(kwargs["is_critical"])
            update_fields.append("is_critical")

        recipe.save(update_fields=update_fields)

        return success_response({
            "recipe": cls.serialize(recipe)
        }, "Ingredient updated")

    @classmethod
    @transaction.atomic
    def remove_ingredient(cls, recipe_id: int) -> Dict[str, Any]:
        try:
            recipe = cls.model.objects.get(id=recipe_id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Recipe ingredient", recipe_id)

        product_id = recipe.product_id
        recipe.delete()
        return success_response({"product_id": product_id}, "Ingredient removed")
