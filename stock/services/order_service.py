"""
Order Integration Service - stock depletion and restoration driven by POS orders
"""
import logging
from typing import Dict, Any, List, Iterable
from django.db import transaction, DatabaseError
from django.db.models import F
from django.utils import timezone

from stock.models import StockItem, StockMovement, StockSettings
from stock.services.base_service import (
    success_response, InsufficientStockError, WriteFailureError
)
from .availability_service import StockAvailabilityService
from .ledger_service import StockLedgerService
from .alert_service import StockAlertService

logger = logging.getLogger(__name__)


class OrderStockService:
    """
    Handle stock operations triggered by POS orders.
    This is the main integration point between POS and Stock systems.
    """

    @classmethod
    def has_deducted(cls, order_id: Any) -> bool:
        return StockLedgerService.get_by_reference(
            StockMovement.ReferenceType.ORDER, order_id
        ).filter(movement_type=StockMovement.MovementType.OUT).exists()

    @classmethod
    def is_restored(cls, order_id: Any) -> bool:
        return StockLedgerService.get_by_reference(
            StockMovement.ReferenceType.ORDER_CANCEL, order_id
        ).exists()

    @classmethod
    def check_availability(cls, order_lines: Iterable) -> Dict[str, Any]:
        result = StockAvailabilityService.check_stock_availability(order_lines)
        return success_response(StockAvailabilityService.serialize_availability(result))

    @classmethod
    def deduct_stock_for_order(cls,
                               order_lines: Iterable,
                               order_id: Any,
                               actor_id: int = None) -> Dict[str, Any]:
        """
        Deduct stock for an order.

        Args:
            order_lines: dicts or objects with product_id and quantity
            order_id: POS order ID, stored as the movements' reference_id
            actor_id: User performing the action

        Raises InsufficientStockError (nothing written) when any aggregated
        requirement exceeds stock, and WriteFailureError when the database
        refuses a write. Either way no partial decrement survives.
        """
        availability = StockAvailabilityService.check_stock_availability(order_lines)
        if not availability["can_fulfill"]:
            logger.warning(
                "Order %s rejected: insufficient stock for %s",
                order_id,
                ", ".join(i["stock_item_name"] for i in availability["insufficient_items"])
            )
            raise InsufficientStockError(availability["insufficient_items"])

        deductions = []
        try:
            with transaction.atomic():
                for req in availability["requirements"]:
                    movement = cls._decrement(req, order_id, actor_id)
                    deductions.append({
                        "stock_item_id": req["stock_item_id"],
                        "stock_item_name": req["stock_item_name"],
                        "quantity": str(movement.quantity),
                        "previous_stock": str(movement.previous_stock),
                        "new_stock": str(movement.new_stock),
                        "movement_id": movement.id,
                    })
        except DatabaseError as e:
            logger.error("Stock deduction for order %s failed: %s", order_id, e)
            raise WriteFailureError(f"Stock deduction failed for order {order_id}: {e}", "deduct")

        if deductions:
            logger.info("Deducted %d stock item(s) for order %s", len(deductions), order_id)

        return success_response({
            "order_id": order_id,
            "deductions": deductions,
            "total_deductions": len(deductions)
        }, f"Processed {len(deductions)} stock deduction(s)")

    @classmethod
    def _decrement(cls, req: Dict[str, Any], order_id: Any, actor_id: int) -> StockMovement:
        quantity = req["quantity_needed"]

        # The pre-check is advisory; this conditional update is what guarantees
        # stock never goes below zero when orders race.
        updated = StockItem.objects.filter(
            id=req["stock_item_id"],
            current_stock__gte=quantity
        ).update(
            current_stock=F("current_stock") - quantity,
            updated_at=timezone.now()
        )

        item = StockItem.objects.get(id=req["stock_item_id"])
        if not updated:
            logger.warning("Order %s lost the race for %s (needed %s, left %s)",
                           order_id, item.name, quantity, item.current_stock)
            raise InsufficientStockError([{**req, "current_stock": item.current_stock}])

        movement = StockLedgerService.record(
            stock_item=item,
            movement_type=StockMovement.MovementType.OUT,
            quantity=quantity,
            previous_stock=item.current_stock + quantity,
            new_stock=item.current_stock,
            reference_type=StockMovement.ReferenceType.ORDER,
            reference_id=order_id,
            user_id=actor_id,
            notes=f"Order #{order_id}",
        )
        StockAlertService.refresh_for_item(item)
        return movement

    @classmethod
    def restore_stock_for_order(cls,
                                order_id: Any,
                                actor_id: int = None,
                                reason: str = "Order cancelled") -> Dict[str, Any]:
        """
        Reverse stock deductions for a cancelled order.
        Replays every out movement of the order as a compensating in
        movement. Runs at most once per order.
        """
        if cls.is_restored(order_id):
            return success_response({
                "order_id": order_id,
                "skipped": True,
                "reason": "Stock already restored for order"
            }, "Stock already restored")

        reversals = []
        try:
            with transaction.atomic():
                outs = list(
                    StockLedgerService.get_by_reference(
                        StockMovement.ReferenceType.ORDER, order_id
                    ).filter(
                        movement_type=StockMovement.MovementType.OUT
                    ).select_for_update().order_by("id")
                )

                # Re-check under the lock so two concurrent cancels restore once
                if not outs or cls.is_restored(order_id):
                    return success_response({
                        "order_id": order_id,
                        "skipped": True,
                        "reason": "No stock deductions to restore" if not outs
                                  else "Stock already restored for order"
                    }, "Nothing to restore")

                for original in outs:
                    reversal = cls._increment(original, order_id, actor_id, reason)
                    reversals.append({
                        "original_movement_id": original.id,
                        "reversal_movement_id": reversal.id,
                        "stock_item_id": original.stock_item_id,
                        "quantity": str(original.quantity),
                        "new_stock": str(reversal.new_stock),
                    })
        except DatabaseError as e:
            logger.error("Stock restoration for order %s failed: %s", order_id, e)
            raise WriteFailureError(f"Stock restoration failed for order {order_id}: {e}", "restore")

        logger.info("Restored %d stock movement(s) for order %s", len(reversals), order_id)

        return success_response({
            "order_id": order_id,
            "reversals": reversals,
            "total_reversals": len(reversals)
        }, f"Reversed {len(reversals)} stock deduction(s)")

    @classmethod
    def _increment(cls, original: StockMovement, order_id: Any,
                   actor_id: int, reason: str) -> StockMovement:
        quantity = original.quantity

        # Applied on top of whatever the stock is now, never a stale absolute
        StockItem.objects.filter(id=original.stock_item_id).update(
            current_stock=F("current_stock") + quantity,
            updated_at=timezone.now()
        )
        item = StockItem.objects.get(id=original.stock_item_id)

        movement = StockLedgerService.record(
            stock_item=item,
            movement_type=StockMovement.MovementType.IN,
            quantity=quantity,
            previous_stock=item.current_stock - quantity,
            new_stock=item.current_stock,
            reference_type=StockMovement.ReferenceType.ORDER_CANCEL,
            reference_id=order_id,
            user_id=actor_id,
            notes=f"Reversal: {reason}",
            unit_cost=original.unit_cost,
        )
        StockAlertService.refresh_for_item(item)
        return movement


class OrderStatusHandler:
    """
    Handler to integrate with Order status changes.
    Call this from the order service inside the transaction that changes the status.
    """

    # Lifecycle order of the statuses stock can be deducted at
    STATUS_RANK = {"active": 0, "ready": 1, "completed": 2}

    @classmethod
    def has_reached_deduction_point(cls, status: str, settings: StockSettings = None) -> bool:
        if status not in cls.STATUS_RANK:
            return False
        settings = settings or StockSettings.load()
        return cls.STATUS_RANK[status] >= cls.STATUS_RANK[settings.deduct_on_status]

    @classmethod
    def should_deduct_new_lines(cls, order_status: str) -> bool:
        """True when lines added to an order in this status must be deducted right away."""
        settings = StockSettings.load()
        return settings.stock_enabled and cls.has_reached_deduction_point(order_status, settings)

    @classmethod
    def on_status_change(cls,
                         order_id: Any,
                         old_status: str,
                         new_status: str,
                         order_lines: List,
                         actor_id: int = None) -> Dict[str, Any]:
        """
        Handle stock operations based on order status change.

        Args:
            order_id: The order ID
            old_status: Previous status, None for a newly submitted order
            new_status: New status
            order_lines: The order's lines (product_id, quantity)
            actor_id: User making the change
        """
        settings = StockSettings.load()
        result = {"order_id": order_id, "actions": []}

        # Restoration runs even with stock disabled so earlier deductions are not lost
        if new_status == "cancelled":
            res = OrderStockService.restore_stock_for_order(order_id, actor_id)
            result["actions"].append({"action": "restore", "result": res})
            return success_response(result)

        if not settings.stock_enabled:
            return success_response({**result, "skipped": True, "reason": "Stock disabled"})

        crossed = (
            cls.has_reached_deduction_point(new_status, settings)
            and not (old_status and cls.has_reached_deduction_point(old_status, settings))
        )
        if crossed and not OrderStockService.has_deducted(order_id):
            res = OrderStockService.deduct_stock_for_order(order_lines, order_id, actor_id)
            result["actions"].append({"action": "deduct", "result": res})

        return success_response(result)
