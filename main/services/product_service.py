from django.db.models import Q
from django.db.models.deletion import ProtectedError
from django.core.paginator import Paginator

from main.models import Product, Category
from stock.services.availability_service import StockAvailabilityService
from stock.services.base_service import (
    ValidationError, NotFoundError, BusinessRuleError, parse_decimal
)


class ProductService:

    @staticmethod
    def serialize(product, capacity=None):
        data = {
            'id': product.id,
            'name': product.name,
            'description': product.description,
            'price': str(product.price),
            'is_available': product.is_available,
            'image_url': product.image_url,
            'category': {
                'id': product.category.id,
                'name': product.category.name,
                'color': product.category.color,
            },
            'created_at': product.created_at.isoformat(),
            'updated_at': product.updated_at.isoformat()
        }
        if capacity is not None:
            data['stock_capacity'] = capacity
            data['stock_status'] = StockAvailabilityService.capacity_status(capacity)
        return data

    @staticmethod
    def get_all_products(page=1, per_page=20, search=None, category_id=None,
                         available_only=False, with_stock=True):
        """
        List menu products. With with_stock, each product carries its
        production capacity and the badge derived from it.
        """
        queryset = Product.objects.select_related('category').all()

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(description__icontains=search)
            )

        if category_id:
            queryset = queryset.filter(category_id=category_id)

        if available_only:
            queryset = queryset.filter(is_available=True)

        paginator = Paginator(queryset, per_page)
        page_obj = paginator.get_page(page)
        page_products = list(page_obj.object_list)

        capacities = {}
        if with_stock:
            capacities = StockAvailabilityService.get_capacities([p.id for p in page_products])

        products = [
            ProductService.serialize(product, capacities.get(product.id))
            for product in page_products
        ]

        return {
            'products': products,
            'pagination': {
                'current_page': page_obj.number,
                'total_pages': paginator.num_pages,
                'total_products': paginator.count,
                'per_page': per_page,
                'has_next': page_obj.has_next(),
                'has_previous': page_obj.has_previous()
            }
        }

    @staticmethod
    def _get(product_id):
        try:
            return Product.objects.select_related('category').get(id=product_id)
        except Product.DoesNotExist:
            raise NotFoundError('Product', product_id)

    @staticmethod
    def get_product_by_id(product_id):
        product = ProductService._get(product_id)
        capacity = StockAvailabilityService.get_production_capacity(product.id)
        return {'success': True, 'product': ProductService.serialize(product, capacity)}

    @staticmethod
    def _check_price(price):
        price = parse_decimal(price, 'price')
        if price < 0:
            raise ValidationError('Price cannot be negative', 'price')
        return price

    @staticmethod
    def create_product(name, price, category_id, description=None, image_url=None, is_available=True):
        name = (name or '').strip()
        if not name:
            raise ValidationError('Product name is required', 'name')

        if not Category.objects.filter(id=category_id).exists():
            raise NotFoundError('Category', category_id)

        if Product.objects.filter(name__iexact=name, category_id=category_id).exists():
            raise ValidationError('Product with this name already exists in this category', 'name')

        product = Product.objects.create(
            name=name,
            description=description,
            price=ProductService._check_price(price),
            category_id=category_id,
            image_url=image_url,
            is_available=is_available
        )

        return {
            'success': True,
            'message': 'Product created successfully',
            'product': ProductService.serialize(product)
        }

    @staticmethod
    def update_product(product_id, **kwargs):
        product = ProductService._get(product_id)

        if 'category_id' in kwargs:
            if not Category.objects.filter(id=kwargs['category_id']).exists():
                raise NotFoundError('Category', kwargs['category_id'])
            product.category_id = kwargs['category_id']

        if 'name' in kwargs:
            name = (kwargs['name'] or '').strip()
            if not name:
                raise ValidationError('Product name is required', 'name')
            product.name = name

        if 'price' in kwargs:
            product.price = ProductService._check_price(kwargs['price'])

        for field in ('description', 'image_url', 'is_available'):
            if field in kwargs:
                setattr(product, field, kwargs[field])

        product.save()
        product.refresh_from_db()

        return {
            'success': True,
            'message': 'Product updated successfully',
            'product': ProductService.serialize(product)
        }

    @staticmethod
    def delete_product(product_id):
        product = ProductService._get(product_id)
        try:
            product.delete()
        except ProtectedError:
            raise BusinessRuleError(
                'Product has orders; mark it unavailable instead',
                'product_has_orders'
            )

        return {'success': True, 'message': 'Product deleted successfully'}
