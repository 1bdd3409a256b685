from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("settings/", views.StockSettingsView.as_view(), name="settings"),
    path("settings/toggle/", views.StockSettingsToggleView.as_view(), name="settings-toggle"),

    path("categories/", views.CategoryListView.as_view(), name="category-list"),
    path("categories/<int:category_id>/", views.CategoryDetailView.as_view(), name="category-detail"),

    path("items/", views.StockItemListView.as_view(), name="item-list"),
    path("items/stats/", views.StockItemStatsView.as_view(), name="item-stats"),
    path("items/<int:item_id>/", views.StockItemDetailView.as_view(), name="item-detail"),
    path("items/<int:item_id>/movements/", views.StockItemHistoryView.as_view(), name="item-movements"),

    path("movements/", views.MovementListView.as_view(), name="movement-list"),
    path("reconcile/", views.ReconcileView.as_view(), name="reconcile"),

    path("products/<int:product_id>/recipe/", views.ProductRecipeView.as_view(), name="product-recipe"),
    path("products/<int:product_id>/cost/", views.ProductRecipeCostView.as_view(), name="product-cost"),
    path("products/<int:product_id>/capacity/", views.ProductCapacityView.as_view(), name="product-capacity"),
    path("recipes/<int:recipe_id>/", views.RecipeIngredientDetailView.as_view(), name="recipe-detail"),

    path("orders/check-availability/", views.OrderStockAvailabilityView.as_view(), name="order-availability"),
    path("orders/deduct/", views.OrderStockDeductView.as_view(), name="order-deduct"),
    path("orders/restore/", views.OrderStockRestoreView.as_view(), name="order-restore"),

    path("critical/", views.CriticalItemsView.as_view(), name="critical-items"),
    path("alerts/", views.AlertListView.as_view(), name="alert-list"),
    path("alerts/refresh/", views.AlertRefreshView.as_view(), name="alert-refresh"),
    path("alerts/<int:alert_id>/<str:action>/", views.AlertActionView.as_view(), name="alert-action"),
]
