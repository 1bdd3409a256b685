import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('main', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockCategory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('name', models.CharField(max_length=100, unique=True)),
                ('description', models.TextField(blank=True, default='')),
                ('color', models.CharField(default='blue', max_length=20)),
                ('icon', models.CharField(default='package', max_length=50)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name_plural': 'stock categories',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='StockSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stock_enabled', models.BooleanField(default=True)),
                ('deduct_on_status', models.CharField(choices=[('active', 'Order Submitted'), ('ready', 'Order Ready'), ('completed', 'Order Completed')], default='active', max_length=20)),
                ('low_stock_alert_enabled', models.BooleanField(default=True)),
                ('expiry_alert_enabled', models.BooleanField(default=True)),
                ('expiry_alert_days', models.PositiveIntegerField(default=7)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'stock settings',
                'verbose_name_plural': 'stock settings',
            },
        ),
        migrations.CreateModel(
            name='StockItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('unit', models.CharField(choices=[('kg', 'Kilogram'), ('g', 'Gram'), ('liter', 'Liter'), ('ml', 'Milliliter'), ('piece', 'Piece'), ('pack', 'Pack'), ('bottle', 'Bottle'), ('box', 'Box')], max_length=10)),
                ('current_stock', models.DecimalField(decimal_places=3, default=0, max_digits=15)),
                ('min_stock_level', models.DecimalField(decimal_places=3, default=0, max_digits=15)),
                ('max_stock_level', models.DecimalField(decimal_places=3, default=0, max_digits=15)),
                ('unit_cost', models.DecimalField(decimal_places=4, default=0, max_digits=15)),
                ('supplier', models.CharField(blank=True, max_length=200, null=True)),
                ('barcode', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True)),
                ('location', models.CharField(blank=True, max_length=100, null=True)),
                ('description', models.TextField(blank=True, default='')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='items', to='stock.stockcategory')),
            ],
            options={
                'ordering': ['name'],
                'constraints': [models.CheckConstraint(condition=models.Q(('current_stock__gte', 0)), name='stock_item_current_stock_non_negative')],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('movement_type', models.CharField(choices=[('in', 'Stock In'), ('out', 'Stock Out'), ('adjustment', 'Adjustment')], db_index=True, max_length=20)),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=15)),
                ('previous_stock', models.DecimalField(decimal_places=3, max_digits=15)),
                ('new_stock', models.DecimalField(decimal_places=3, max_digits=15)),
                ('unit_cost', models.DecimalField(decimal_places=4, default=0, max_digits=15)),
                ('total_cost', models.DecimalField(decimal_places=4, default=0, max_digits=15)),
                ('reference_type', models.CharField(choices=[('order', 'Order'), ('purchase', 'Purchase'), ('manual', 'Manual'), ('usage', 'Usage'), ('waste', 'Waste'), ('expired', 'Expired'), ('return', 'Return'), ('transfer', 'Transfer'), ('order_cancel', 'Order Cancel')], default='manual', max_length=20)),
                ('reference_id', models.CharField(blank=True, max_length=64, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('stock_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='stock.stockitem')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='stock_movements', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['stock_item', 'created_at'], name='stock_mov_item_created_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='stock_mov_reference_idx'),
                ],
                'constraints': [models.CheckConstraint(condition=models.Q(('quantity__gte', 0)), name='stock_movement_quantity_non_negative')],
            },
        ),
        migrations.CreateModel(
            name='ProductRecipe',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('quantity_needed', models.DecimalField(decimal_places=3, max_digits=15)),
                ('unit', models.CharField(choices=[('kg', 'Kilogram'), ('g', 'Gram'), ('liter', 'Liter'), ('ml', 'Milliliter'), ('piece', 'Piece'), ('pack', 'Pack'), ('bottle', 'Bottle'), ('box', 'Box')], max_length=10)),
                ('is_critical', models.BooleanField(default=False)),
                ('cost_percentage', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recipes', to='main.product')),
                ('stock_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='used_in_recipes', to='stock.stockitem')),
            ],
            options={
                'ordering': ['id'],
                'unique_together': {('product', 'stock_item')},
                'constraints': [models.CheckConstraint(condition=models.Q(('quantity_needed__gt', 0)), name='product_recipe_quantity_positive')],
            },
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('alert_type', models.CharField(choices=[('low_stock', 'Low Stock'), ('out_of_stock', 'Out of Stock'), ('expiring_soon', 'Expiring Soon'), ('expired', 'Expired')], max_length=20)),
                ('threshold_value', models.DecimalField(blank=True, decimal_places=3, max_digits=15, null=True)),
                ('current_value', models.DecimalField(blank=True, decimal_places=3, max_digits=15, null=True)),
                ('message', models.CharField(blank=True, default='', max_length=255)),
                ('is_acknowledged', models.BooleanField(default=False)),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True)),
                ('is_resolved', models.BooleanField(db_index=True, default=False)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('stock_item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='stock.stockitem')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
