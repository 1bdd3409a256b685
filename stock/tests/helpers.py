from decimal import Decimal

from main.models import Category, Product
from stock.models import StockItem, ProductRecipe, StockSettings
from stock.services.item_service import StockItemService


class StockFixturesMixin:
    """Builders shared by the stock and order test cases."""

    def make_product(self, name="Latte", price="4.50"):
        category, _ = Category.objects.get_or_create(name="Drinks")
        return Product.objects.create(category=category, name=name, price=Decimal(price))

    def make_item(self, name, stock="0", unit="g", min_level="0", unit_cost="0", **extra):
        result = StockItemService.create(
            name=name,
            unit=unit,
            min_stock_level=min_level,
            unit_cost=unit_cost,
            initial_stock=stock,
            **extra
        )
        return StockItem.objects.get(id=result["id"])

    def add_recipe(self, product, item, quantity, critical=False):
        return ProductRecipe.objects.create(
            product=product,
            stock_item=item,
            quantity_needed=Decimal(quantity),
            unit=item.unit,
            is_critical=critical,
        )

    def set_stock_settings(self, **values):
        settings = StockSettings.load()
        for key, value in values.items():
            setattr(settings, key, value)
        settings.save()
        return settings

    def stock_of(self, item):
        return StockItem.objects.get(id=item.id).current_stock
