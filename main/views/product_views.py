from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view

from ..services.product_service import ProductService
from main.helpers.response import APIResponse
from main.helpers.request import parse_json_body, get_int, get_bool
from main.helpers.decorators import service_errors


@csrf_exempt
@api_view(["GET", "POST"])
@service_errors
def products(request):
    if request.method == "GET":
        result = ProductService.get_all_products(
            page=get_int(request, 'page', 1),
            per_page=get_int(request, 'per_page', 20),
            search=request.GET.get('search'),
            category_id=get_int(request, 'category_id'),
            available_only=get_bool(request, 'available_only'),
            with_stock=get_bool(request, 'with_stock', True)
        )
        return APIResponse.success(data=result)

    data, error = parse_json_body(request)
    if error:
        return error

    required = ['name', 'price', 'category_id']
    missing = [field for field in required if data.get(field) in (None, '')]
    if missing:
        return APIResponse.validation_error(
            errors={field: f'{field} is required' for field in missing},
            message=f'Missing required fields: {", ".join(missing)}'
        )

    result = ProductService.create_product(
        name=data['name'],
        price=data['price'],
        category_id=data['category_id'],
        description=data.get('description'),
        image_url=data.get('image_url'),
        is_available=data.get('is_available', True)
    )
    return APIResponse.created(data=result['product'], message=result['message'])


@csrf_exempt
@api_view(["GET", "PATCH", "DELETE"])
@service_errors
def product_detail(request, product_id):
    if request.method == "GET":
        result = ProductService.get_product_by_id(product_id)
        return APIResponse.success(data=result['product'])

    if request.method == "DELETE":
        result = ProductService.delete_product(product_id)
        return APIResponse.success(message=result['message'])

    data, error = parse_json_body(request)
    if error:
        return error

    allowed = ('name', 'price', 'category_id', 'description', 'image_url', 'is_available')
    result = ProductService.update_product(
        product_id, **{k: v for k, v in data.items() if k in allowed}
    )
    return APIResponse.success(data=result['product'], message=result['message'])
