"""
Stock Ledger Service - append-only movement log and manual stock movements.

Every change to StockItem.current_stock goes through here (or through the
order engine, which records through `record`), so the item's cached stock
always equals the sum of its movement deltas.
"""
import logging
from typing import Dict, Any, List, Optional
from decimal import Decimal
from datetime import date, timedelta
from django.db import transaction, DatabaseError
from django.db.models import Sum, F, Count, Value, DecimalField
from django.db.models.functions import Coalesce
from django.utils import timezone

from stock.models import StockItem, StockMovement
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, InsufficientStockError,
    InvalidQuantityError, WriteFailureError,
    parse_decimal, to_decimal, round_decimal
)

logger = logging.getLogger(__name__)

# Reference types a user may pick for a manual movement; order and
# order_cancel are written by the order engine only.
MANUAL_REFERENCE_TYPES = [
    StockMovement.ReferenceType.PURCHASE,
    StockMovement.ReferenceType.MANUAL,
    StockMovement.ReferenceType.USAGE,
    StockMovement.ReferenceType.WASTE,
    StockMovement.ReferenceType.EXPIRED,
    StockMovement.ReferenceType.RETURN,
    StockMovement.ReferenceType.TRANSFER,
]


class StockLedgerService(BaseService):
    model = StockMovement

    @classmethod
    def serialize(cls, movement: StockMovement) -> Dict[str, Any]:
        return {
            "id": movement.id,
            "uuid": str(movement.uuid),
            "stock_item_id": movement.stock_item_id,
            "stock_item_name": movement.stock_item.name,
            "unit": movement.stock_item.unit,
            "movement_type": movement.movement_type,
            "movement_type_display": movement.get_movement_type_display(),
            "quantity": str(movement.quantity),
            "previous_stock": str(movement.previous_stock),
            "new_stock": str(movement.new_stock),
            "delta": str(movement.delta),
            "unit_cost": str(movement.unit_cost),
            "total_cost": str(movement.total_cost),
            "reference_type": movement.reference_type,
            "reference_id": movement.reference_id,
            "user_id": movement.user_id,
            "notes": movement.notes,
            "created_at": movement.created_at.isoformat(),
        }

    # ==================== WRITE ====================

    @classmethod
    def record(cls,
               stock_item: StockItem,
               movement_type: str,
               quantity: Decimal,
               previous_stock: Decimal,
               new_stock: Decimal,
               reference_type: str,
               reference_id: Any = None,
               user_id: int = None,
               notes: str = "",
               unit_cost: Decimal = None) -> StockMovement:
        """
        Append one movement row. The caller has already changed
        current_stock and must be inside the same transaction.
        """
        if unit_cost is None:
            unit_cost = stock_item.unit_cost
        unit_cost = to_decimal(unit_cost)

        try:
            return StockMovement.objects.create(
                stock_item=stock_item,
                movement_type=movement_type,
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=new_stock,
                unit_cost=unit_cost,
                total_cost=round_decimal(quantity * unit_cost, 4),
                reference_type=reference_type,
                reference_id=None if reference_id is None else str(reference_id),
                user_id=user_id,
                notes=notes or "",
            )
        except DatabaseError as e:
            logger.error("Failed to record %s movement for item %s: %s",
                         movement_type, stock_item.id, e)
            raise WriteFailureError(f"Could not record stock movement: {e}", "record_movement")

    @classmethod
    @transaction.atomic
    def create_movement(cls,
                        stock_item_id: int,
                        movement_type: str,
                        quantity: Any,
                        reference_type: str = StockMovement.ReferenceType.MANUAL,
                        reference_id: Any = None,
                        user_id: int = None,
                        unit_cost: Any = None,
                        notes: str = "") -> Dict[str, Any]:
        """
        Manual stock movement.

        in          current + quantity
        out         current - quantity, rejected if more than in stock
        adjustment  quantity is the counted stock; the movement stores
                    the magnitude of the correction
        """
        valid_types = [c[0] for c in StockMovement.MovementType.choices]
        if movement_type not in valid_types:
            raise ValidationError(f"Invalid movement type. Valid: {valid_types}", "movement_type")

        if reference_type not in MANUAL_REFERENCE_TYPES:
            raise ValidationError(
                f"Invalid reference type. Valid: {[str(r) for r in MANUAL_REFERENCE_TYPES]}",
                "reference_type"
            )

        quantity = parse_decimal(quantity, "quantity")
        if movement_type == StockMovement.MovementType.ADJUSTMENT:
            if quantity < 0:
                raise InvalidQuantityError("Counted stock cannot be negative", value=quantity)
        elif quantity <= 0:
            raise InvalidQuantityError("Quantity must be greater than zero", value=quantity)

        if unit_cost is not None and unit_cost != "":
            unit_cost = parse_decimal(unit_cost, "unit_cost")
            if unit_cost < 0:
                raise ValidationError("unit_cost cannot be negative", "unit_cost")
        else:
            unit_cost = None

        try:
            item = StockItem.objects.select_for_update().get(id=stock_item_id)
        except (StockItem.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Stock item", stock_item_id)

        previous = item.current_stock

        if movement_type == StockMovement.MovementType.IN:
            new_stock = previous + quantity
            magnitude = quantity
        elif movement_type == StockMovement.MovementType.OUT:
            if quantity > previous:
                logger.warning("Manual out of %s %s rejected for %s (in stock %s)",
                               quantity, item.unit, item.name, previous)
                raise InsufficientStockError([{
                    "stock_item_id": item.id,
                    "stock_item_name": item.name,
                    "quantity_needed": quantity,
                    "current_stock": previous,
                    "unit": item.unit,
                    "is_critical": False,
                }])
            new_stock = previous - quantity
            magnitude = quantity
        else:
            new_stock = quantity
            magnitude = abs(quantity - previous)

        item.current_stock = new_stock
        try:
            item.save(update_fields=["current_stock", "updated_at"])
        except DatabaseError as e:
            raise WriteFailureError(f"Could not update stock for {item.name}: {e}", "update_stock")

        movement = cls.record(
            stock_item=item,
            movement_type=movement_type,
            quantity=magnitude,
            previous_stock=previous,
            new_stock=new_stock,
            reference_type=reference_type,
            reference_id=reference_id,
            user_id=user_id,
            notes=notes,
            unit_cost=unit_cost,
        )

        from .alert_service import StockAlertService
        StockAlertService.refresh_for_item(item)

        logger.info("Stock %s for %s: %s -> %s %s (%s)",
                    movement_type, item.name, previous, new_stock, item.unit, reference_type)

        return success_response({
            "movement": cls.serialize(movement),
            "stock_item": {
                "id": item.id,
                "name": item.name,
                "current_stock": str(item.current_stock),
                "unit": item.unit,
            }
        }, f"Stock {movement.get_movement_type_display().lower()}: {item.name} now {new_stock} {item.unit}")

    # ==================== READ ====================

    @classmethod
    def get_by_reference(cls, reference_type: str, reference_id: Any):
        return cls.model.objects.filter(
            reference_type=reference_type,
            reference_id=str(reference_id)
        ).select_related("stock_item")

    @classmethod
    def list(cls,
             stock_item_id: int = None,
             movement_type: str = None,
             reference_type: str = None,
             reference_id: Any = None,
             date_from: date = None,
             date_to: date = None,
             page: int = 1,
             per_page: int = 50) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("stock_item")

        if stock_item_id:
            queryset = queryset.filter(stock_item_id=stock_item_id)

        if movement_type:
            queryset = queryset.filter(movement_type=movement_type)

        if reference_type:
            queryset = queryset.filter(reference_type=reference_type)

        if reference_id is not None and reference_id != "":
            queryset = queryset.filter(reference_id=str(reference_id))

        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)

        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        queryset = queryset.order_by("-created_at", "-id")

        movements, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "movements": [cls.serialize(m) for m in movements],
            "pagination": pagination,
            "movement_types": [
                {"value": c[0], "label": c[1]}
                for c in StockMovement.MovementType.choices
            ],
            "reference_types": [
                {"value": c[0], "label": c[1]}
                for c in StockMovement.ReferenceType.choices
            ]
        })

    @classmethod
    def get_item_history(cls, stock_item_id: int, days: int = 30) -> Dict[str, Any]:
        if not StockItem.objects.filter(id=stock_item_id).exists():
            raise NotFoundError("Stock item", stock_item_id)

        since = timezone.now() - timedelta(days=days)

        movements = cls.model.objects.filter(
            stock_item_id=stock_item_id,
            created_at__gte=since
        ).select_related("stock_item").order_by("-created_at", "-id")

        summary = movements.order_by().values("movement_type").annotate(
            count=Count("id"),
            total_qty=Sum("quantity")
        )

        return success_response({
            "movements": [cls.serialize(m) for m in movements[:100]],
            "summary": [
                {
                    "movement_type": row["movement_type"],
                    "count": row["count"],
                    "total_quantity": str(row["total_qty"] or 0),
                }
                for row in summary
            ],
            "total_movements": movements.count(),
            "period_days": days
        })

    # ==================== RECONCILIATION ====================

    @classmethod
    def reconcile(cls, stock_item_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Compare each item's cached current_stock with the sum of its
        movement deltas. Report only; nothing is corrected.
        """
        queryset = StockItem.objects.annotate(
            ledger_total=Coalesce(
                Sum(F("movements__new_stock") - F("movements__previous_stock")),
                Value(Decimal("0")),
                output_field=DecimalField(max_digits=15, decimal_places=3),
            )
        ).order_by("name")

        if stock_item_id:
            queryset = queryset.filter(id=stock_item_id)
            if not queryset.exists():
                raise NotFoundError("Stock item", stock_item_id)

        mismatches: List[Dict[str, Any]] = []
        checked = 0
        for item in queryset:
            checked += 1
            ledger_total = to_decimal(item.ledger_total)
            if ledger_total != item.current_stock:
                mismatches.append({
                    "stock_item_id": item.id,
                    "stock_item_name": item.name,
                    "current_stock": str(item.current_stock),
                    "ledger_total": str(ledger_total),
                    "difference": str(item.current_stock - ledger_total),
                })

        if mismatches:
            logger.warning("Stock reconciliation found %d mismatched item(s)", len(mismatches))

        return success_response({
            "checked": checked,
            "is_consistent": not mismatches,
            "mismatches": mismatches,
        }, "Ledger consistent" if not mismatches else f"{len(mismatches)} item(s) out of balance")
