from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date
from django.db.models import Model
from django.utils.dateparse import parse_date


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule})


class InvalidQuantityError(ServiceError):
    def __init__(self, message: str, field: str = "quantity", value: Any = None):
        super().__init__(
            message,
            "INVALID_QUANTITY",
            {"field": field, "value": None if value is None else str(value)}
        )
        self.field = field


class InsufficientStockError(ServiceError):
    """
    Raised when one or more stock items cannot cover a requirement.
    `items` is the list of shortfall requirements, each a dict with
    stock_item_id, stock_item_name, quantity_needed and current_stock.
    """
    status_code = 409

    def __init__(self, items: List[Dict]):
        self.items = items
        names = ", ".join(str(item.get("stock_item_name")) for item in items)
        super().__init__(
            f"Insufficient stock for: {names}",
            "INSUFFICIENT_STOCK",
            {"items": [_jsonable_requirement(item) for item in items]}
        )


class WriteFailureError(ServiceError):
    status_code = 500

    def __init__(self, message: str, operation: str = None):
        super().__init__(message, "WRITE_FAILURE", {"operation": operation})


def _jsonable_requirement(item: Dict) -> Dict:
    return {
        key: str(value) if isinstance(value, Decimal) else value
        for key, value in item.items()
    }


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def error_response(message: str, code: str = "ERROR", details: Dict = None) -> Dict:
    return {
        "success": False,
        "message": message,
        "error_code": code,
        "details": details or {}
    }


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 100)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def parse_decimal(value: Any, field: str) -> Decimal:
    """Like to_decimal, but a malformed value is an error instead of a default."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    return result


def parse_date_value(value: Any, field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)", field=field)
    return parsed


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls.model.__name__, id)
        return obj

    @classmethod
    def exists(cls, id: int) -> bool:
        return cls.model.objects.filter(id=id).exists()

    @classmethod
    def get_active(cls):
        if hasattr(cls.model, 'is_active'):
            return cls.model.objects.filter(is_active=True)
        return cls.model.objects.all()
