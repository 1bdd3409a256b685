"""
Stock Category Service - Manage stock categories
"""
from typing import Dict, Any
from django.db import transaction
from django.db.models import Q, Count

from stock.models import StockCategory, StockItem
from stock.services.base_service import (
    BaseService, success_response,
    ValidationError, NotFoundError, BusinessRuleError
)


class StockCategoryService(BaseService):
    """Manage stock categories"""

    model = StockCategory

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize(cls, category: StockCategory, item_count: int = None) -> Dict[str, Any]:
        """Convert category to dictionary"""
        data = {
            "id": category.id,
            "uuid": str(category.uuid),
            "name": category.name,
            "description": category.description,
            "color": category.color,
            "icon": category.icon,
            "is_active": category.is_active,
            "created_at": category.created_at.isoformat(),
        }

        if item_count is not None:
            data["item_count"] = item_count

        return data

    # ==================== LIST & SEARCH ====================

    @classmethod
    def list(cls, include_inactive: bool = False, search: str = None) -> Dict[str, Any]:
        """List categories with their active item counts"""
        queryset = cls.model.objects.annotate(
            active_items=Count("items", filter=Q(items__is_active=True))
        )

        if not include_inactive:
            queryset = queryset.filter(is_active=True)

        if search:
            queryset = queryset.filter(name__icontains=search)

        categories = [
            cls.serialize(cat, item_count=cat.active_items)
            for cat in queryset.order_by("name")
        ]

        return success_response({
            "categories": categories,
            "count": len(categories),
        })

    # ==================== GET SINGLE ====================

    @classmethod
    def get(cls, category_id: int) -> Dict[str, Any]:
        """Get single category"""
        category = cls.get_by_id(category_id)
        if not category:
            raise NotFoundError("Category", category_id)

        item_count = StockItem.objects.filter(category=category, is_active=True).count()

        return success_response({
            "category": cls.serialize(category, item_count=item_count)
        })

    # ==================== CREATE ====================

    @classmethod
    @transaction.atomic
    def create(cls,
               name: str,
               description: str = "",
               color: str = "blue",
               icon: str = "package") -> Dict[str, Any]:
        """Create new category"""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required", "name")

        if cls.model.objects.filter(name__iexact=name).exists():
            raise ValidationError(f"Category '{name}' already exists", "name")

        category = cls.model.objects.create(
            name=name,
            description=description or "",
            color=color or "blue",
            icon=icon or "package",
        )

        return success_response({
            "id": category.id,
            "uuid": str(category.uuid),
            "category": cls.serialize(category)
        }, f"Category '{name}' created")

    # ==================== UPDATE ====================

    @classmethod
    @transaction.atomic
    def update(cls, category_id: int, **kwargs) -> Dict[str, Any]:
        """Update category"""
        category = cls.get_by_id(category_id)
        if not category:
            raise NotFoundError("Category", category_id)

        if "name" in kwargs:
            kwargs["name"] = (kwargs["name"] or "").strip()
            if not kwargs["name"]:
                raise ValidationError("Category name is required", "name")
            duplicate = cls.model.objects.filter(
                name__iexact=kwargs["name"]
            ).exclude(id=category.id)
            if duplicate.exists():
                raise ValidationError(f"Category '{kwargs['name']}' already exists", "name")

        update_fields = ["updated_at"]
        for field in ["name", "description", "color", "icon"]:
            if field in kwargs:
                setattr(category, field, kwargs[field])
                update_fields.append(field)

        category.save(update_fields=update_fields)

        return success_response({
            "category": cls.serialize(category)
        }, "Category updated")

    # ==================== DELETE / DEACTIVATE ====================

    @classmethod
    @transaction.atomic
    def deactivate(cls, category_id: int, cascade: bool = False) -> Dict[str, Any]:
        """Deactivate category"""
        category = cls.get_by_id(category_id)
        if not category:
            raise NotFoundError("Category", category_id)

        if StockItem.objects.filter(category=category, is_active=True).exists():
            if not cascade:
                raise BusinessRuleError(
                    "Cannot deactivate category with active items. Use cascade=True or reassign items first."
                )
            # Cascade: Set items to no category
            StockItem.objects.filter(category=category).update(category=None)

        category.is_active = False
        category.save(update_fields=["is_active", "updated_at"])

        return success_response({
            "id": category.id
        }, "Category deactivated")

    @classmethod
    @transaction.atomic
    def activate(cls, category_id: int) -> Dict[str, Any]:
        """Reactivate category"""
        category = cls.get_by_id(category_id)
        if not category:
            raise NotFoundError("Category", category_id)

        category.is_active = True
        category.save(update_fields=["is_active", "updated_at"])

        return success_response({
            "category": cls.serialize(category)
        }, "Category activated")
