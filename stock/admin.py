from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter

from .models import (
    StockCategory, StockItem, StockMovement, ProductRecipe, StockAlert, StockSettings
)


@admin.register(StockCategory)
class StockCategoryAdmin(ModelAdmin):
    list_display = ['name', 'color', 'icon', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name']


@admin.register(StockItem)
class StockItemAdmin(ModelAdmin):
    list_display = ['name', 'category', 'stock_display', 'min_stock_level', 'unit_cost', 'stock_status', 'is_active']
    list_filter = ['category', 'unit', 'is_active']
    search_fields = ['name', 'barcode', 'supplier']
    list_filter_submit = True
    # Stock only changes through movements
    readonly_fields = ['current_stock', 'uuid', 'created_at', 'updated_at']

    fieldsets = (
        (_('Item'), {
            'fields': ('name', 'category', 'unit', 'description', 'is_active'),
            'classes': ['tab'],
        }),
        (_('Stock'), {
            'fields': ('current_stock', 'min_stock_level', 'max_stock_level', 'unit_cost'),
            'classes': ['tab'],
        }),
        (_('Details'), {
            'fields': ('supplier', 'barcode', 'expiry_date', 'location'),
            'classes': ['tab'],
        }),
        (_('System'), {
            'fields': ('uuid', 'created_at', 'updated_at'),
            'classes': ['tab'],
        }),
    )

    @display(description=_("Stock"), ordering='current_stock')
    def stock_display(self, obj):
        return f"{obj.current_stock} {obj.unit}"

    @display(description=_("Status"), label={
        "OUT": "danger",
        "LOW": "warning",
        "OK": "success",
    })
    def stock_status(self, obj):
        if obj.current_stock <= 0:
            return "OUT"
        if obj.is_low_stock:
            return "LOW"
        return "OK"


@admin.register(StockMovement)
class StockMovementAdmin(ModelAdmin):
    list_display = ['created_at', 'stock_item', 'movement_badge', 'quantity', 'previous_stock',
                    'new_stock', 'reference_type', 'reference_id', 'user']
    list_filter = [
        'movement_type',
        'reference_type',
        ('created_at', RangeDateTimeFilter),
    ]
    search_fields = ['stock_item__name', 'reference_id', 'notes']
    list_filter_submit = True
    list_select_related = ['stock_item', 'user']

    @display(description=_("Type"), label={
        "in": "success",
        "out": "danger",
        "adjustment": "info",
    })
    def movement_badge(self, obj):
        return obj.movement_type

    # The ledger is append-only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ProductRecipe)
class ProductRecipeAdmin(ModelAdmin):
    list_display = ['product', 'stock_item', 'quantity_needed', 'unit', 'is_critical', 'cost_percentage']
    list_filter = ['is_critical']
    search_fields = ['product__name', 'stock_item__name']
    list_select_related = ['product', 'stock_item']


@admin.register(StockAlert)
class StockAlertAdmin(ModelAdmin):
    list_display = ['created_at', 'stock_item', 'alert_badge', 'current_value', 'threshold_value',
                    'is_acknowledged', 'is_resolved']
    list_filter = ['alert_type', 'is_acknowledged', 'is_resolved']
    search_fields = ['stock_item__name', 'message']
    readonly_fields = ['created_at', 'acknowledged_at', 'resolved_at']

    @display(description=_("Alert"), label={
        "out_of_stock": "danger",
        "expired": "danger",
        "low_stock": "warning",
        "expiring_soon": "warning",
    })
    def alert_badge(self, obj):
        return obj.alert_type


@admin.register(StockSettings)
class StockSettingsAdmin(ModelAdmin):
    list_display = ['__str__', 'stock_enabled', 'deduct_on_status', 'expiry_alert_days']

    def has_add_permission(self, request):
        return not StockSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
