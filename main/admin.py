from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter

from .models import Category, Product, Table, Order, OrderItem
from stock.models import ProductRecipe
from stock.services.availability_service import StockAvailabilityService


class OrderItemInline(TabularInline):
    model = OrderItem
    extra = 0
    fields = ('product', 'quantity', 'unit_price', 'total_price', 'status')
    readonly_fields = ('product', 'quantity', 'unit_price', 'total_price')
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class ProductRecipeInline(TabularInline):
    model = ProductRecipe
    extra = 0
    fields = ('stock_item', 'quantity_needed', 'unit', 'is_critical', 'cost_percentage')
    autocomplete_fields = ('stock_item',)


@admin.register(Category)
class CategoryAdmin(ModelAdmin):
    list_display = ['name', 'display_order', 'color', 'is_active']
    list_filter = ['is_active']
    list_editable = ['display_order']
    search_fields = ['name']


@admin.register(Product)
class ProductAdmin(ModelAdmin):
    list_display = ['name', 'category', 'price', 'is_available', 'capacity_badge']
    list_filter = ['category', 'is_available']
    search_fields = ['name', 'description']
    list_select_related = ['category']
    inlines = [ProductRecipeInline]

    @display(description=_("Stock"), label={
        "unavailable": "danger",
        "low": "warning",
        "medium": "info",
        "available": "success",
        "unlimited": "info",
    })
    def capacity_badge(self, obj):
        capacity = StockAvailabilityService.get_production_capacity(obj.id)
        return StockAvailabilityService.capacity_status(capacity)


@admin.register(Table)
class TableAdmin(ModelAdmin):
    list_display = ['table_number', 'capacity', 'status_badge']
    list_filter = ['status']

    @display(description=_("Status"), label={
        "empty": "success",
        "occupied": "danger",
        "reserved": "warning",
    })
    def status_badge(self, obj):
        return obj.status


@admin.register(Order)
class OrderAdmin(ModelAdmin):
    list_display = ['id', 'table', 'waiter', 'status_badge', 'total_amount', 'payment_method', 'created_at']
    list_filter = [
        'status',
        'payment_method',
        ('created_at', RangeDateTimeFilter),
    ]
    list_filter_submit = True
    search_fields = ['id', 'notes']
    list_select_related = ['table', 'waiter']
    # Status changes go through the order service so stock follows them
    readonly_fields = ['uuid', 'status', 'total_amount', 'received_amount', 'change_amount',
                       'created_at', 'ready_at', 'completed_at', 'cancelled_at']
    inlines = [OrderItemInline]

    @display(description=_("Status"), label={
        "active": "info",
        "ready": "warning",
        "completed": "success",
        "cancelled": "danger",
    })
    def status_badge(self, obj):
        return obj.status
