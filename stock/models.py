import uuid as uuid_lib

from django.conf import settings
from django.db import models


class StockCategory(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, default="")
    color = models.CharField(max_length=20, default="blue")
    icon = models.CharField(max_length=50, default="package")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "stock categories"
        ordering = ["name"]

    def __str__(self):
        return self.name


class StockItem(models.Model):
    class Unit(models.TextChoices):
        KG = "kg", "Kilogram"
        G = "g", "Gram"
        LITER = "liter", "Liter"
        ML = "ml", "Milliliter"
        PIECE = "piece", "Piece"
        PACK = "pack", "Pack"
        BOTTLE = "bottle", "Bottle"
        BOX = "box", "Box"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    category = models.ForeignKey(
        StockCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    unit = models.CharField(max_length=10, choices=Unit.choices)

    # Materialized running total of the item's movements
    current_stock = models.DecimalField(max_digits=15, decimal_places=3, default=0)

    # Stock thresholds
    min_stock_level = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    max_stock_level = models.DecimalField(max_digits=15, decimal_places=3, default=0)

    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    supplier = models.CharField(max_length=200, blank=True, null=True)
    barcode = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    expiry_date = models.DateField(null=True, blank=True, db_index=True)
    location = models.CharField(max_length=100, blank=True, null=True)
    description = models.TextField(blank=True, default="")

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_stock__gte=0),
                name="stock_item_current_stock_non_negative",
            ),
        ]

    @property
    def is_low_stock(self):
        return self.current_stock <= self.min_stock_level

    @property
    def stock_value(self):
        return self.current_stock * self.unit_cost

    def __str__(self):
        return self.name


class StockMovementQuerySet(models.QuerySet):
    """Ledger rows are append-only: bulk update/delete are refused."""

    def update(self, **kwargs):
        raise TypeError("Stock movements are immutable")

    def delete(self):
        raise TypeError("Stock movements are immutable")


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        IN = "in", "Stock In"
        OUT = "out", "Stock Out"
        ADJUSTMENT = "adjustment", "Adjustment"

    class ReferenceType(models.TextChoices):
        ORDER = "order", "Order"
        PURCHASE = "purchase", "Purchase"
        MANUAL = "manual", "Manual"
        USAGE = "usage", "Usage"
        WASTE = "waste", "Waste"
        EXPIRED = "expired", "Expired"
        RETURN = "return", "Return"
        TRANSFER = "transfer", "Transfer"
        ORDER_CANCEL = "order_cancel", "Order Cancel"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    stock_item = models.ForeignKey(
        StockItem, on_delete=models.PROTECT, related_name="movements"
    )
    movement_type = models.CharField(
        max_length=20, choices=MovementType.choices, db_index=True
    )

    quantity = models.DecimalField(max_digits=15, decimal_places=3)
    previous_stock = models.DecimalField(max_digits=15, decimal_places=3)
    new_stock = models.DecimalField(max_digits=15, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    reference_type = models.CharField(
        max_length=20, choices=ReferenceType.choices, default=ReferenceType.MANUAL
    )
    reference_id = models.CharField(max_length=64, blank=True, null=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["stock_item", "created_at"], name="stock_mov_item_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="stock_mov_reference_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name="stock_movement_quantity_non_negative",
            ),
        ]

    @property
    def delta(self):
        return self.new_stock - self.previous_stock

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("Stock movements are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Stock movements are immutable")

    def __str__(self):
        return f"{self.get_movement_type_display()} {self.quantity} × {self.stock_item_id}"


class ProductRecipe(models.Model):
    """
    One ingredient row of a menu product's bill of materials.
    quantity_needed is per one unit of product.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    product = models.ForeignKey(
        "main.Product",
        on_delete=models.CASCADE,
        related_name="recipes",
    )
    stock_item = models.ForeignKey(
        StockItem, on_delete=models.PROTECT, related_name="used_in_recipes"
    )
    quantity_needed = models.DecimalField(max_digits=15, decimal_places=3)
    unit = models.CharField(max_length=10, choices=StockItem.Unit.choices)
    is_critical = models.BooleanField(default=False)
    cost_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        unique_together = [("product", "stock_item")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_needed__gt=0),
                name="product_recipe_quantity_positive",
            ),
        ]

    def __str__(self):
        return f"{self.stock_item.name} × {self.quantity_needed}"


class StockAlert(models.Model):
    class AlertType(models.TextChoices):
        LOW_STOCK = "low_stock", "Low Stock"
        OUT_OF_STOCK = "out_of_stock", "Out of Stock"
        EXPIRING_SOON = "expiring_soon", "Expiring Soon"
        EXPIRED = "expired", "Expired"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    stock_item = models.ForeignKey(
        StockItem, on_delete=models.CASCADE, related_name="alerts"
    )
    alert_type = models.CharField(max_length=20, choices=AlertType.choices)
    threshold_value = models.DecimalField(
        max_digits=15, decimal_places=3, null=True, blank=True
    )
    current_value = models.DecimalField(
        max_digits=15, decimal_places=3, null=True, blank=True
    )
    message = models.CharField(max_length=255, blank=True, default="")

    is_acknowledged = models.BooleanField(default=False)
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    is_resolved = models.BooleanField(default=False, db_index=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.get_alert_type_display()}: {self.stock_item.name}"


class StockSettings(models.Model):
    """
    Singleton settings table. Use StockSettings.load() to get the instance.
    """

    class DeductOn(models.TextChoices):
        ACTIVE = "active", "Order Submitted"
        READY = "ready", "Order Ready"
        COMPLETED = "completed", "Order Completed"

    # Master control
    stock_enabled = models.BooleanField(default=True)

    # Behavior
    deduct_on_status = models.CharField(
        max_length=20, choices=DeductOn.choices, default=DeductOn.ACTIVE
    )

    # Alerts
    low_stock_alert_enabled = models.BooleanField(default=True)
    expiry_alert_enabled = models.BooleanField(default=True)
    expiry_alert_days = models.PositiveIntegerField(default=7)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "stock settings"
        verbose_name_plural = "stock settings"

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def __str__(self):
        return "Stock Settings"
