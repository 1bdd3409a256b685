from typing import Dict, Any
from decimal import Decimal
from django.db import transaction
from django.db.models import Q, Sum, F, Count, DecimalField, ExpressionWrapper

from stock.models import StockItem, StockCategory, StockMovement
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError, InvalidQuantityError,
    parse_decimal, parse_date_value
)


class StockItemService(BaseService):
    model = StockItem

    DECIMAL_FIELDS = ["min_stock_level", "max_stock_level", "unit_cost"]

    @classmethod
    def serialize(cls, item: StockItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "uuid": str(item.uuid),
            "name": item.name,
            "category_id": item.category_id,
            "category": {
                "id": item.category.id,
                "name": item.category.name,
                "color": item.category.color,
            } if item.category else None,
            "unit": item.unit,
            "unit_display": item.get_unit_display(),

            "current_stock": str(item.current_stock),
            "min_stock_level": str(item.min_stock_level),
            "max_stock_level": str(item.max_stock_level),
            "is_low_stock": item.is_low_stock,

            "unit_cost": str(item.unit_cost),
            "stock_value": str(item.stock_value),

            "supplier": item.supplier,
            "barcode": item.barcode,
            "expiry_date": item.expiry_date.isoformat() if item.expiry_date else None,
            "location": item.location,
            "description": item.description,

            "is_active": item.is_active,
            "created_at": item.created_at.isoformat(),
            "updated_at": item.updated_at.isoformat(),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             category_id: int = None,
             active_only: bool = True,
             low_stock: bool = False) -> Dict[str, Any]:

        queryset = cls.model.objects.select_related("category")

        if active_only:
            queryset = queryset.filter(is_active=True)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(barcode__icontains=search) |
                Q(supplier__icontains=search)
            )

        if category_id:
            queryset = queryset.filter(category_id=category_id)

        if low_stock:
            queryset = queryset.filter(current_stock__lte=F("min_stock_level"))

        queryset = queryset.order_by("name")

        items, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "items": [cls.serialize(item) for item in items],
            "pagination": pagination,
            "filters": {
                "units": [{"value": c[0], "label": c[1]} for c in StockItem.Unit.choices]
            }
        })

    @classmethod
    def get(cls, item_id: int) -> Dict[str, Any]:
        item = cls.model.objects.select_related("category").filter(id=item_id).first()
        if not item:
            raise NotFoundError("Stock item", item_id)

        return success_response({
            "item": cls.serialize(item)
        })

    @classmethod
    def _clean_decimals(cls, data: Dict[str, Any]) -> Dict[str, Decimal]:
        cleaned = {}
        for field in cls.DECIMAL_FIELDS:
            if field in data and data[field] is not None and data[field] != "":
                value = parse_decimal(data[field], field)
                if value < 0:
                    raise ValidationError(f"{field} cannot be negative", field)
                cleaned[field] = value
        return cleaned

    @classmethod
    def _check_levels(cls, min_level: Decimal, max_level: Decimal):
        if max_level > 0 and max_level < min_level:
            raise ValidationError(
                "max_stock_level must be greater than or equal to min_stock_level",
                "max_stock_level"
            )

    @classmethod
    def _get_category(cls, category_id) -> StockCategory:
        try:
            return StockCategory.objects.get(id=category_id, is_active=True)
        except (StockCategory.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Category", category_id)

    @classmethod
    @transaction.atomic
    def create(cls,
               name: str,
               unit: str,
               category_id: int = None,
               min_stock_level: Any = 0,
               max_stock_level: Any = 0,
               unit_cost: Any = 0,
               supplier: str = None,
               barcode: str = None,
               expiry_date=None,
               location: str = None,
               description: str = "",
               initial_stock: Any = None,
               user_id: int = None) -> Dict[str, Any]:

        name = (name or "").strip()
        if not name:
            raise ValidationError("Stock item name is required", "name")

        valid_units = [c[0] for c in StockItem.Unit.choices]
        if unit not in valid_units:
            raise ValidationError(f"Invalid unit. Valid: {valid_units}", "unit")

        category = cls._get_category(category_id) if category_id else None

        if barcode and cls.model.objects.filter(barcode=barcode).exists():
            raise ValidationError(f"Barcode '{barcode}' already exists", "barcode")

        levels = cls._clean_decimals({
            "min_stock_level": min_stock_level,
            "max_stock_level": max_stock_level,
            "unit_cost": unit_cost,
        })
        cls._check_levels(
            levels.get("min_stock_level", Decimal("0")),
            levels.get("max_stock_level", Decimal("0"))
        )

        opening = None
        if initial_stock is not None and initial_stock != "":
            opening = parse_decimal(initial_stock, "initial_stock")
            if opening < 0:
                raise InvalidQuantityError("Initial stock cannot be negative", "initial_stock", opening)

        item = cls.model.objects.create(
            name=name,
            unit=unit,
            category=category,
            supplier=supplier or None,
            barcode=barcode or None,
            expiry_date=parse_date_value(expiry_date, "expiry_date"),
            location=location or None,
            description=description or "",
            **levels,
        )

        # Opening balance goes through the ledger so stock always equals its movements
        if opening:
            from .ledger_service import StockLedgerService
            StockLedgerService.create_movement(
                stock_item_id=item.id,
                movement_type=StockMovement.MovementType.IN,
                quantity=opening,
                reference_type=StockMovement.ReferenceType.MANUAL,
                user_id=user_id,
                notes="Opening balance",
            )
            item.refresh_from_db()
        else:
            from .alert_service import StockAlertService
            StockAlertService.refresh_for_item(item)

        return success_response({
            "id": item.id,
            "uuid": str(item.uuid),
            "item": cls.serialize(item)
        }, f"Stock item '{name}' created")

    @classmethod
    @transaction.atomic
    def update(cls, item_id: int, **kwargs) -> Dict[str, Any]:
        item = cls.get_by_id(item_id)
        if not item:
            raise NotFoundError("Stock item", item_id)

        if "current_stock" in kwargs:
            raise BusinessRuleError(
                "current_stock is changed through stock movements only",
                "ledger_only"
            )

        if "unit" in kwargs and kwargs["unit"] != item.unit:
            valid_units = [c[0] for c in StockItem.Unit.choices]
            if kwargs["unit"] not in valid_units:
                raise ValidationError(f"Invalid unit. Valid: {valid_units}", "unit")
            if item.movements.exists():
                raise BusinessRuleError("Cannot change unit for item with movements")

        if "name" in kwargs:
            kwargs["name"] = (kwargs["name"] or "").strip()
            if not kwargs["name"]:
                raise ValidationError("Stock item name is required", "name")

        if "category_id" in kwargs:
            item.category = cls._get_category(kwargs["category_id"]) if kwargs["category_id"] else None

        if "barcode" in kwargs and kwargs["barcode"] != item.barcode:
            if kwargs["barcode"] and cls.model.objects.filter(barcode=kwargs["barcode"]).exclude(id=item.id).exists():
                raise ValidationError(f"Barcode '{kwargs['barcode']}' already exists", "barcode")

        levels = cls._clean_decimals(kwargs)
        cls._check_levels(
            levels.get("min_stock_level", item.min_stock_level),
            levels.get("max_stock_level", item.max_stock_level)
        )

        update_fields = ["updated_at"]
        for field, value in levels.items():
            setattr(item, field, value)
            update_fields.append(field)

        for field in ["name", "unit", "supplier", "barcode", "expiry_date", "location", "description"]:
            if field in kwargs:
                value = kwargs[field]
                if field == "expiry_date":
                    value = parse_date_value(value, "expiry_date")
                elif field in ["supplier", "barcode", "location"]:
                    value = value or None
                setattr(item, field, value)
                update_fields.append(field)

        if "category_id" in kwargs:
            update_fields.append("category")

        item.save(update_fields=update_fields)

        from .alert_service import StockAlertService
        StockAlertService.refresh_for_item(item)

        return success_response({
            "item": cls.serialize(item)
        }, "Stock item updated")

    @classmethod
    @transaction.atomic
    def deactivate(cls, item_id: int, force: bool = False) -> Dict[str, Any]:
        item = cls.get_by_id(item_id)
        if not item:
            raise NotFoundError("Stock item", item_id)

        if not force and item.current_stock > 0:
            raise BusinessRuleError(
                f"Cannot deactivate item with {item.current_stock} {item.unit} in stock. "
                "Adjust stock to zero first or use force=True."
            )

        item.is_active = False
        item.save(update_fields=["is_active", "updated_at"])

        from .alert_service import StockAlertService
        StockAlertService.refresh_for_item(item)

        return success_response({
            "id": item.id
        }, "Stock item deactivated")

    @classmethod
    @transaction.atomic
    def activate(cls, item_id: int) -> Dict[str, Any]:
        item = cls.get_by_id(item_id)
        if not item:
            raise NotFoundError("Stock item", item_id)

        item.is_active = True
        item.save(update_fields=["is_active", "updated_at"])

        from .alert_service import StockAlertService
        StockAlertService.refresh_for_item(item)

        return success_response({
            "item": cls.serialize(item)
        }, "Stock item activated")

    @classmethod
    def get_stats(cls) -> Dict[str, Any]:
        active = cls.model.objects.filter(is_active=True)

        totals = active.aggregate(
            total_items=Count("id"),
            total_value=Sum(
                ExpressionWrapper(
                    F("current_stock") * F("unit_cost"),
                    output_field=DecimalField(max_digits=30, decimal_places=7)
                )
            ),
            low_stock=Count("id", filter=Q(current_stock__lte=F("min_stock_level"), current_stock__gt=0)),
            out_of_stock=Count("id", filter=Q(current_stock__lte=0)),
            no_category=Count("id", filter=Q(category__isnull=True)),
        )

        return success_response({
            "total_items": totals["total_items"],
            "total_value": str(totals["total_value"] or 0),
            "low_stock_count": totals["low_stock"],
            "out_of_stock_count": totals["out_of_stock"],
            "no_category_count": totals["no_category"],
        })
