import json
import logging

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from stock.services import (
    ServiceError, ValidationError, InsufficientStockError,
    StockSettingsService, StockCategoryService, StockItemService,
    StockLedgerService, StockAlertService, RecipeService,
    StockAvailabilityService, OrderStockService,
    parse_date_value,
)

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message}}
    if details:
        data["error"]["details"] = details
    return JsonResponse(data, status=status)


def handle_service_error(e: ServiceError):
    details = dict(e.details)
    if getattr(e, "field", None):
        details["field"] = e.field
    if isinstance(e, InsufficientStockError):
        logger.info("Request rejected: %s", e.message)
    return error_response(e.message, e.code.lower(), e.status_code, details)


def require(data: dict, *fields):
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}", missing[0])
    return [data[f] for f in fields]


def require_lines(data: dict, field: str = "order_items") -> list:
    lines, = require(data, field)
    if not isinstance(lines, list):
        raise ValidationError(f"{field} must be a list", field)
    return lines


def int_param(request, name: str, default=None):
    value = request.GET.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", name)


def bool_param(request, name: str, default: bool = False) -> bool:
    value = request.GET.get(name)
    if value is None:
        return default
    return value.lower() == "true"


class BaseStockView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except ServiceError as e:
            return handle_service_error(e)

    def get_json_body(self, request):
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def get_user_id(self, request):
        if request.user.is_authenticated:
            return request.user.id
        return None

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== SETTINGS ====================

class StockSettingsView(BaseStockView):
    """GET/PUT /api/stock/settings/"""

    def get(self, request):
        return self.success({"settings": StockSettingsService.get_all()})

    def put(self, request):
        data = self.get_json_body(request)
        return self.success(StockSettingsService.update(**data))


class StockSettingsToggleView(BaseStockView):
    """POST /api/stock/settings/toggle/"""

    def post(self, request):
        data = self.get_json_body(request)
        return self.success(StockSettingsService.toggle_stock(bool(data.get("enabled", True))))


# ==================== CATEGORIES ====================

class CategoryListView(BaseStockView):
    """GET/POST /api/stock/categories/"""

    def get(self, request):
        result = StockCategoryService.list(
            include_inactive=bool_param(request, "include_inactive"),
            search=request.GET.get("search"),
        )
        return self.success(result)

    def post(self, request):
        data = self.get_json_body(request)
        name, = require(data, "name")
        result = StockCategoryService.create(
            name=name,
            description=data.get("description", ""),
            color=data.get("color", "blue"),
            icon=data.get("icon", "package"),
        )
        return self.success(result, 201)


class CategoryDetailView(BaseStockView):
    """GET/PUT/DELETE /api/stock/categories/<id>/"""

    def get(self, request, category_id):
        return self.success(StockCategoryService.get(category_id))

    def put(self, request, category_id):
        data = self.get_json_body(request)
        return self.success(StockCategoryService.update(category_id, **data))

    def delete(self, request, category_id):
        cascade = bool_param(request, "cascade")
        return self.success(StockCategoryService.deactivate(category_id, cascade=cascade))


# ==================== STOCK ITEMS ====================

ITEM_FIELDS = [
    "name", "unit", "category_id", "min_stock_level", "max_stock_level",
    "unit_cost", "supplier", "barcode", "expiry_date", "location",
    "description", "initial_stock",
]


class StockItemListView(BaseStockView):
    """GET/POST /api/stock/items/"""

    def get(self, request):
        result = StockItemService.list(
            page=int_param(request, "page", 1),
            per_page=int_param(request, "per_page", 20),
            search=request.GET.get("search"),
            category_id=int_param(request, "category_id"),
            active_only=not bool_param(request, "include_inactive"),
            low_stock=bool_param(request, "low_stock"),
        )
        return self.success(result)

    def post(self, request):
        data = self.get_json_body(request)
        require(data, "name", "unit")
        result = StockItemService.create(
            user_id=self.get_user_id(request),
            **{k: v for k, v in data.items() if k in ITEM_FIELDS}
        )
        return self.success(result, 201)


class StockItemDetailView(BaseStockView):
    """GET/PUT/DELETE /api/stock/items/<id>/"""

    def get(self, request, item_id):
        return self.success(StockItemService.get(item_id))

    def put(self, request, item_id):
        data = self.get_json_body(request)
        return self.success(StockItemService.update(item_id, **data))

    def delete(self, request, item_id):
        force = bool_param(request, "force")
        return self.success(StockItemService.deactivate(item_id, force=force))


class StockItemStatsView(BaseStockView):
    """GET /api/stock/items/stats/"""

    def get(self, request):
        return self.success(StockItemService.get_stats())


class StockItemHistoryView(BaseStockView):
    """GET /api/stock/items/<id>/movements/"""

    def get(self, request, item_id):
        days = int_param(request, "days", 30)
        return self.success(StockLedgerService.get_item_history(item_id, days))


# ==================== MOVEMENTS ====================

class MovementListView(BaseStockView):
    """GET/POST /api/stock/movements/"""

    def get(self, request):
        result = StockLedgerService.list(
            stock_item_id=int_param(request, "stock_item_id"),
            movement_type=request.GET.get("movement_type"),
            reference_type=request.GET.get("reference_type"),
            reference_id=request.GET.get("reference_id"),
            date_from=parse_date_value(request.GET.get("date_from"), "date_from"),
            date_to=parse_date_value(request.GET.get("date_to"), "date_to"),
            page=int_param(request, "page", 1),
            per_page=int_param(request, "per_page", 50),
        )
        return self.success(result)

    def post(self, request):
        data = self.get_json_body(request)
        stock_item_id, movement_type = require(data, "stock_item_id", "movement_type")
        if data.get("quantity") is None:
            raise ValidationError("Missing required field(s): quantity", "quantity")

        result = StockLedgerService.create_movement(
            stock_item_id=stock_item_id,
            movement_type=movement_type,
            quantity=data["quantity"],
            reference_type=data.get("reference_type") or "manual",
            reference_id=data.get("reference_id"),
            user_id=self.get_user_id(request),
            unit_cost=data.get("unit_cost"),
            notes=data.get("notes", ""),
        )
        return self.success(result, 201)


class ReconcileView(BaseStockView):
    """GET /api/stock/reconcile/"""

    def get(self, request):
        return self.success(StockLedgerService.reconcile(int_param(request, "stock_item_id")))


# ==================== RECIPES ====================

class ProductRecipeView(BaseStockView):
    """GET/POST /api/stock/products/<product_id>/recipe/"""

    def get(self, request, product_id):
        return self.success(RecipeService.list_for_product(product_id))

    def post(self, request, product_id):
        data = self.get_json_body(request)
        stock_item_id, = require(data, "stock_item_id")
        if data.get("quantity_needed") is None:
            raise ValidationError("Missing required field(s): quantity_needed", "quantity_needed")

        result = RecipeService.add_ingredient(
            product_id=product_id,
            stock_item_id=stock_item_id,
            quantity_needed=data["quantity_needed"],
            unit=data.get("unit"),
            is_critical=data.get("is_critical", False),
            cost_percentage=data.get("cost_percentage", 0),
        )
        return self.success(result, 201)


class RecipeIngredientDetailView(BaseStockView):
    """PUT/DELETE /api/stock/recipes/<id>/"""

    def put(self, request, recipe_id):
        data = self.get_json_body(request)
        return self.success(RecipeService.update_ingredient(recipe_id, **data))

    def delete(self, request, recipe_id):
        return self.success(RecipeService.remove_ingredient(recipe_id))


class ProductRecipeCostView(BaseStockView):
    """GET /api/stock/products/<product_id>/cost/"""

    def get(self, request, product_id):
        return self.success(RecipeService.calculate_cost(product_id))


class ProductCapacityView(BaseStockView):
    """GET /api/stock/products/<product_id>/capacity/"""

    def get(self, request, product_id):
        capacity = StockAvailabilityService.get_production_capacity(product_id)
        return self.success({
            "product_id": product_id,
            "capacity": capacity,
            "status": StockAvailabilityService.capacity_status(capacity),
        })


# ==================== ORDER INTEGRATION ====================

class OrderStockAvailabilityView(BaseStockView):
    """POST /api/stock/orders/check-availability/"""

    def post(self, request):
        data = self.get_json_body(request)
        order_lines = require_lines(data)
        return self.success(OrderStockService.check_availability(order_lines))


class OrderStockDeductView(BaseStockView):
    """POST /api/stock/orders/deduct/"""

    def post(self, request):
        data = self.get_json_body(request)
        order_id, = require(data, "order_id")
        order_lines = require_lines(data)
        result = OrderStockService.deduct_stock_for_order(
            order_lines, order_id, self.get_user_id(request)
        )
        return self.success(result)


class OrderStockRestoreView(BaseStockView):
    """POST /api/stock/orders/restore/"""

    def post(self, request):
        data = self.get_json_body(request)
        order_id, = require(data, "order_id")
        result = OrderStockService.restore_stock_for_order(
            order_id,
            self.get_user_id(request),
            reason=data.get("reason", "Order cancelled"),
        )
        return self.success(result)


# ==================== ALERTS ====================

class CriticalItemsView(BaseStockView):
    """GET /api/stock/critical/"""

    def get(self, request):
        items = [
            StockAvailabilityService.serialize_requirement(item)
            for item in StockAlertService.get_critical_stock_items()
        ]
        return self.success({"items": items, "count": len(items)})


class AlertListView(BaseStockView):
    """GET /api/stock/alerts/"""

    def get(self, request):
        result = StockAlertService.list_alerts(
            include_resolved=bool_param(request, "include_resolved"),
            alert_type=request.GET.get("type"),
            stock_item_id=int_param(request, "stock_item_id"),
            unacknowledged_only=bool_param(request, "unacknowledged"),
            page=int_param(request, "page", 1),
            per_page=int_param(request, "per_page", 50),
        )
        return self.success(result)


class AlertRefreshView(BaseStockView):
    """POST /api/stock/alerts/refresh/"""

    def post(self, request):
        return self.success(StockAlertService.refresh_all())


class AlertActionView(BaseStockView):
    """POST /api/stock/alerts/<id>/<acknowledge|resolve>/"""

    def post(self, request, alert_id, action):
        if action == "acknowledge":
            return self.success(StockAlertService.acknowledge(alert_id, self.get_user_id(request)))
        if action == "resolve":
            return self.success(StockAlertService.resolve(alert_id))
        return error_response(f"Unknown action '{action}'", "not_found", 404)
