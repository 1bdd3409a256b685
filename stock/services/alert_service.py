import logging
from typing import Dict, Any, List
from datetime import timedelta
from django.db import transaction
from django.db.models import F, Count
from django.utils import timezone

from stock.models import StockItem, StockAlert, StockSettings
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    NotFoundError, BusinessRuleError
)

logger = logging.getLogger(__name__)


class StockAlertService(BaseService):
    model = StockAlert

    @classmethod
    def serialize(cls, alert: StockAlert) -> Dict[str, Any]:
        return {
            "id": alert.id,
            "uuid": str(alert.uuid),
            "stock_item_id": alert.stock_item_id,
            "stock_item_name": alert.stock_item.name,
            "unit": alert.stock_item.unit,
            "alert_type": alert.alert_type,
            "alert_type_display": alert.get_alert_type_display(),
            "threshold_value": str(alert.threshold_value) if alert.threshold_value is not None else None,
            "current_value": str(alert.current_value) if alert.current_value is not None else None,
            "message": alert.message,
            "is_acknowledged": alert.is_acknowledged,
            "acknowledged_by_id": alert.acknowledged_by_id,
            "acknowledged_at": alert.acknowledged_at.isoformat() if alert.acknowledged_at else None,
            "is_resolved": alert.is_resolved,
            "resolved_at": alert.resolved_at.isoformat() if alert.resolved_at else None,
            "created_at": alert.created_at.isoformat(),
        }

    # ==================== CRITICAL ITEMS ====================

    @classmethod
    def get_critical_stock_items(cls) -> List[Dict[str, Any]]:
        """
        Active items at or below their minimum level, lowest stock first.
        quantity_needed carries the minimum level; is_critical marks items
        that are fully out.
        """
        items = StockItem.objects.filter(
            is_active=True,
            current_stock__lte=F("min_stock_level")
        ).order_by("current_stock", "name")

        return [
            {
                "stock_item_id": item.id,
                "stock_item_name": item.name,
                "quantity_needed": item.min_stock_level,
                "current_stock": item.current_stock,
                "unit": item.unit,
                "is_critical": item.current_stock <= 0,
            }
            for item in items
        ]

    # ==================== PERSISTED ALERTS ====================

    @classmethod
    def _wanted_alerts(cls, item: StockItem, settings: StockSettings) -> Dict[str, Dict[str, Any]]:
        wanted = {}

        if settings.low_stock_alert_enabled and item.is_active:
            if item.current_stock <= 0:
                wanted[StockAlert.AlertType.OUT_OF_STOCK] = {
                    "threshold_value": item.min_stock_level,
                    "current_value": item.current_stock,
                    "message": f"{item.name} is out of stock",
                }
            elif item.current_stock <= item.min_stock_level:
                wanted[StockAlert.AlertType.LOW_STOCK] = {
                    "threshold_value": item.min_stock_level,
                    "current_value": item.current_stock,
                    "message": f"{item.name} is low: {item.current_stock} {item.unit} left "
                               f"(minimum {item.min_stock_level})",
                }

        if settings.expiry_alert_enabled and item.is_active and item.expiry_date:
            today = timezone.localdate()
            if item.expiry_date < today:
                wanted[StockAlert.AlertType.EXPIRED] = {
                    "threshold_value": None,
                    "current_value": item.current_stock,
                    "message": f"{item.name} expired on {item.expiry_date.isoformat()}",
                }
            elif item.expiry_date <= today + timedelta(days=settings.expiry_alert_days):
                wanted[StockAlert.AlertType.EXPIRING_SOON] = {
                    "threshold_value": settings.expiry_alert_days,
                    "current_value": item.current_stock,
                    "message": f"{item.name} expires on {item.expiry_date.isoformat()}",
                }

        return wanted

    @classmethod
    def refresh_for_item(cls, item: StockItem, settings: StockSettings = None) -> List[StockAlert]:
        """
        Bring the item's open alerts in line with its current state:
        open what applies, update values on alerts already open, resolve
        the rest. Returns the open alerts.
        """
        settings = settings or StockSettings.load()
        wanted = cls._wanted_alerts(item, settings)
        now = timezone.now()

        open_alerts = {
            alert.alert_type: alert
            for alert in cls.model.objects.filter(stock_item=item, is_resolved=False)
        }

        result = []
        for alert_type, values in wanted.items():
            alert = open_alerts.pop(alert_type, None)
            if alert is None:
                alert = cls.model.objects.create(stock_item=item, alert_type=alert_type, **values)
                logger.info("Opened %s alert for %s", alert_type, item.name)
            elif alert.current_value != values["current_value"] or alert.message != values["message"]:
                alert.current_value = values["current_value"]
                alert.threshold_value = values["threshold_value"]
                alert.message = values["message"]
                alert.save(update_fields=["current_value", "threshold_value", "message"])
            result.append(alert)

        for alert in open_alerts.values():
            alert.is_resolved = True
            alert.resolved_at = now
            alert.save(update_fields=["is_resolved", "resolved_at"])

        return result

    @classmethod
    @transaction.atomic
    def refresh_all(cls) -> Dict[str, Any]:
        settings = StockSettings.load()
        opened = 0
        checked = 0

        for item in StockItem.objects.all():
            checked += 1
            opened += len(cls.refresh_for_item(item, settings))

        return success_response({
            "checked_items": checked,
            "open_alerts": opened,
        }, f"Alerts refreshed for {checked} item(s)")

    @classmethod
    def list_alerts(cls,
                    include_resolved: bool = False,
                    alert_type: str = None,
                    stock_item_id: int = None,
                    unacknowledged_only: bool = False,
                    page: int = 1,
                    per_page: int = 50) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("stock_item")

        if not include_resolved:
            queryset = queryset.filter(is_resolved=False)

        if alert_type:
            queryset = queryset.filter(alert_type=alert_type)

        if stock_item_id:
            queryset = queryset.filter(stock_item_id=stock_item_id)

        if unacknowledged_only:
            queryset = queryset.filter(is_acknowledged=False)

        queryset = queryset.order_by("-created_at", "-id")
        counts = {
            row["alert_type"]: row["total"]
            for row in queryset.order_by().values("alert_type").annotate(total=Count("id"))
        }

        alerts, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "alerts": [cls.serialize(a) for a in alerts],
            "pagination": pagination,
            "counts": counts,
        })

    @classmethod
    @transaction.atomic
    def acknowledge(cls, alert_id: int, user_id: int = None) -> Dict[str, Any]:
        alert = cls.get_by_id(alert_id)
        if not alert:
            raise NotFoundError("Alert", alert_id)

        if alert.is_acknowledged:
            raise BusinessRuleError("Alert already acknowledged", "already_acknowledged")

        alert.is_acknowledged = True
        alert.acknowledged_by_id = user_id
        alert.acknowledged_at = timezone.now()
        alert.save(update_fields=["is_acknowledged", "acknowledged_by", "acknowledged_at"])

        return success_response({"alert": cls.serialize(alert)}, "Alert acknowledged")

    @classmethod
    @transaction.atomic
    def resolve(cls, alert_id: int) -> Dict[str, Any]:
        alert = cls.get_by_id(alert_id)
        if not alert:
            raise NotFoundError("Alert", alert_id)

        if alert.is_resolved:
            raise BusinessRuleError("Alert already resolved", "already_resolved")

        alert.is_resolved = True
        alert.resolved_at = timezone.now()
        alert.save(update_fields=["is_resolved", "resolved_at"])

        return success_response({"alert": cls.serialize(alert)}, "Alert resolved")
