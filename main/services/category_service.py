from django.db.models import Q, Count
from django.db.models.deletion import ProtectedError

from main.models import Category
from stock.services.base_service import ValidationError, NotFoundError, BusinessRuleError


class CategoryService:

    @staticmethod
    def serialize(category, product_count=None):
        data = {
            'id': category.id,
            'name': category.name,
            'description': category.description,
            'color': category.color,
            'display_order': category.display_order,
            'is_active': category.is_active,
            'created_at': category.created_at.isoformat(),
            'updated_at': category.updated_at.isoformat()
        }
        if product_count is not None:
            data['product_count'] = product_count
        return data

    @staticmethod
    def get_all_categories(search=None, include_inactive=False):
        queryset = Category.objects.annotate(
            available_products=Count('products', filter=Q(products__is_available=True))
        )

        if not include_inactive:
            queryset = queryset.filter(is_active=True)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(description__icontains=search)
            )

        categories = [
            CategoryService.serialize(category, product_count=category.available_products)
            for category in queryset
        ]

        return {'success': True, 'categories': categories, 'total': len(categories)}

    @staticmethod
    def _get(category_id):
        try:
            return Category.objects.get(id=category_id)
        except Category.DoesNotExist:
            raise NotFoundError('Category', category_id)

    @staticmethod
    def get_category_by_id(category_id):
        category = CategoryService._get(category_id)
        return {'success': True, 'category': CategoryService.serialize(category)}

    @staticmethod
    def create_category(name, description=None, color=None, display_order=0):
        name = (name or '').strip()
        if not name:
            raise ValidationError('Category name is required', 'name')

        if Category.objects.filter(name__iexact=name).exists():
            raise ValidationError(f"Category '{name}' already exists", 'name')

        category = Category.objects.create(
            name=name,
            description=description,
            color=color or '#3498db',
            display_order=display_order or 0
        )

        return {
            'success': True,
            'message': 'Category created successfully',
            'category': CategoryService.serialize(category)
        }

    @staticmethod
    def update_category(category_id, **kwargs):
        category = CategoryService._get(category_id)

        if 'name' in kwargs:
            name = (kwargs['name'] or '').strip()
            if not name:
                raise ValidationError('Category name is required', 'name')
            if Category.objects.filter(name__iexact=name).exclude(id=category.id).exists():
                raise ValidationError(f"Category '{name}' already exists", 'name')
            category.name = name

        for field in ('description', 'color', 'display_order', 'is_active'):
            if field in kwargs:
                setattr(category, field, kwargs[field])

        category.save()

        return {
            'success': True,
            'message': 'Category updated successfully',
            'category': CategoryService.serialize(category)
        }

    @staticmethod
    def delete_category(category_id):
        category = CategoryService._get(category_id)
        try:
            category.delete()
        except ProtectedError:
            raise BusinessRuleError(
                'Cannot delete a category that still has products',
                'category_has_products'
            )

        return {'success': True, 'message': 'Category deleted successfully'}
