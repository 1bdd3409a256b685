from typing import Dict, Any
from django.db import transaction

from stock.models import StockSettings
from stock.services.base_service import (
    BaseService, success_response, ValidationError
)


class StockSettingsService(BaseService):
    model = StockSettings

    @classmethod
    def load(cls) -> StockSettings:
        return StockSettings.load()

    @classmethod
    def is_enabled(cls) -> bool:
        """Check if stock system is enabled"""
        return cls.load().stock_enabled

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        settings = cls.load()

        return {
            "stock_enabled": settings.stock_enabled,
            "deduct_on_status": settings.deduct_on_status,
            "low_stock_alert_enabled": settings.low_stock_alert_enabled,
            "expiry_alert_enabled": settings.expiry_alert_enabled,
            "expiry_alert_days": settings.expiry_alert_days,
        }

    @classmethod
    @transaction.atomic
    def update(cls, **kwargs) -> Dict[str, Any]:
        settings = cls.load()
        valid_fields = {
            "stock_enabled", "deduct_on_status",
            "low_stock_alert_enabled", "expiry_alert_enabled", "expiry_alert_days",
        }

        if "deduct_on_status" in kwargs:
            valid_statuses = [c[0] for c in StockSettings.DeductOn.choices]
            if kwargs["deduct_on_status"] not in valid_statuses:
                raise ValidationError(f"Invalid status. Valid: {valid_statuses}", "deduct_on_status")

        if "expiry_alert_days" in kwargs:
            try:
                days = int(kwargs["expiry_alert_days"])
            except (TypeError, ValueError):
                raise ValidationError("expiry_alert_days must be an integer", "expiry_alert_days")
            if days < 0:
                raise ValidationError("expiry_alert_days cannot be negative", "expiry_alert_days")
            kwargs["expiry_alert_days"] = days

        updated = []
        for field, value in kwargs.items():
            if field in valid_fields:
                setattr(settings, field, value)
                updated.append(field)

        if updated:
            settings.save()

        return success_response({
            "updated_fields": updated,
            "settings": cls.get_all()
        }, f"Updated {len(updated)} setting(s)")

    @classmethod
    @transaction.atomic
    def toggle_stock(cls, enabled: bool) -> Dict[str, Any]:
        settings = cls.load()
        settings.stock_enabled = enabled
        settings.save(update_fields=["stock_enabled", "updated_at"])

        return success_response({
            "stock_enabled": enabled
        }, f"Stock system {'enabled' if enabled else 'disabled'}")
