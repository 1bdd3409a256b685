from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view

from ..services.category_service import CategoryService
from main.helpers.response import APIResponse
from main.helpers.request import parse_json_body, get_bool
from main.helpers.decorators import service_errors


@csrf_exempt
@api_view(["GET", "POST"])
@service_errors
def categories(request):
    if request.method == "GET":
        result = CategoryService.get_all_categories(
            search=request.GET.get('search'),
            include_inactive=get_bool(request, 'include_inactive')
        )
        return APIResponse.success(data=result['categories'])

    data, error = parse_json_body(request)
    if error:
        return error

    if not data.get('name'):
        return APIResponse.validation_error(
            errors={'name': 'name is required'},
            message='Missing required fields: name'
        )

    result = CategoryService.create_category(
        name=data['name'],
        description=data.get('description'),
        color=data.get('color'),
        display_order=data.get('display_order', 0)
    )
    return APIResponse.created(data=result['category'], message=result['message'])


@csrf_exempt
@api_view(["GET", "PATCH", "DELETE"])
@service_errors
def category_detail(request, category_id):
    if request.method == "GET":
        result = CategoryService.get_category_by_id(category_id)
        return APIResponse.success(data=result['category'])

    if request.method == "DELETE":
        result = CategoryService.delete_category(category_id)
        return APIResponse.success(message=result['message'])

    data, error = parse_json_body(request)
    if error:
        return error

    allowed = ('name', 'description', 'color', 'display_order', 'is_active')
    result = CategoryService.update_category(
        category_id, **{k: v for k, v in data.items() if k in allowed}
    )
    return APIResponse.success(data=result['category'], message=result['message'])
