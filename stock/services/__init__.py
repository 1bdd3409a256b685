"""
Stock Services - stock, recipe and order-depletion business logic

Usage:
    from stock.services import StockItemService, StockLedgerService, OrderStockService

    # Create item with an opening balance
    result = StockItemService.create(name="Flour", unit="kg", initial_stock=25)

    # Record a purchase
    StockLedgerService.create_movement(stock_item_id=1, movement_type="in",
                                       quantity=10, reference_type="purchase")

    # Deduct stock for an order
    OrderStockService.deduct_stock_for_order(
        [{"product_id": 3, "quantity": 2}], order_id=42, actor_id=1
    )
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    BusinessRuleError,
    InvalidQuantityError,
    InsufficientStockError,
    WriteFailureError,
    success_response,
    error_response,
    paginate_queryset,
    to_decimal,
    parse_decimal,
    parse_date_value,
    round_decimal,
    BaseService,
)
# Settings
from .settings_service import StockSettingsService

# Core entities
from .category_service import StockCategoryService
from .item_service import StockItemService

# Ledger & alerts
from .ledger_service import StockLedgerService
from .alert_service import StockAlertService

# Recipes & availability
from .recipe_service import RecipeService
from .availability_service import StockAvailabilityService, UNLIMITED

# Order Integration
from .order_service import OrderStockService, OrderStatusHandler


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "BusinessRuleError",
    "InvalidQuantityError",
    "InsufficientStockError",
    "WriteFailureError",
    "success_response",
    "error_response",
    "paginate_queryset",
    "to_decimal",
    "parse_decimal",
    "parse_date_value",
    "round_decimal",
    "BaseService",

    # Settings
    "StockSettingsService",

    # Core
    "StockCategoryService",
    "StockItemService",

    # Ledger & alerts
    "StockLedgerService",
    "StockAlertService",

    # Recipes & availability
    "RecipeService",
    "StockAvailabilityService",
    "UNLIMITED",

    # Order Integration
    "OrderStockService",
    "OrderStatusHandler",
]
