from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view

from ..services.order_service import OrderService
from main.helpers.response import APIResponse
from main.helpers.request import parse_json_body, get_int
from main.helpers.decorators import service_errors, actor_id


@csrf_exempt
@api_view(["GET", "POST"])
@service_errors
def orders(request):
    if request.method == "GET":
        result = OrderService.get_all_orders(
            page=get_int(request, 'page', 1),
            per_page=get_int(request, 'per_page', 20),
            status=request.GET.get('status'),
            table_id=get_int(request, 'table_id')
        )
        return APIResponse.success(data=result)

    data, error = parse_json_body(request)
    if error:
        return error

    items = data.get('items', [])
    if not items:
        return APIResponse.validation_error(
            errors={'items': 'At least one item is required'},
            message='Order must contain items'
        )

    result = OrderService.create_order(
        items=items,
        table_id=data.get('table_id'),
        waiter_id=actor_id(request),
        notes=data.get('notes')
    )
    return APIResponse.created(data=result['order'], message=result['message'])


@csrf_exempt
@api_view(["GET"])
@service_errors
def get_order(request, order_id):
    result = OrderService.get_order_by_id(order_id)
    return APIResponse.success(data=result['order'])


@csrf_exempt
@api_view(["POST"])
@service_errors
def add_item(request, order_id):
    data, error = parse_json_body(request)
    if error:
        return error

    if not data.get('product_id'):
        return APIResponse.validation_error(
            errors={'product_id': 'product_id is required'},
            message='Missing product_id field'
        )

    result = OrderService.add_item(
        order_id,
        data['product_id'],
        data.get('quantity', 1),
        notes=data.get('notes'),
        actor_id=actor_id(request)
    )
    return APIResponse.success(data=result['item'], message=result['message'])


@csrf_exempt
@api_view(["PATCH", "DELETE"])
@service_errors
def order_item(request, order_id, item_id):
    if request.method == "DELETE":
        result = OrderService.remove_item(order_id, item_id)
        return APIResponse.success(message=result['message'])

    data, error = parse_json_body(request)
    if error:
        return error

    result = OrderService.update_item(order_id, item_id, data.get('quantity'))
    return APIResponse.success(data=result['item'], message=result['message'])


@csrf_exempt
@api_view(["POST"])
@service_errors
def mark_ready(request, order_id):
    result = OrderService.mark_ready(order_id, actor_id=actor_id(request))
    return APIResponse.success(message=result['message'])


@csrf_exempt
@api_view(["POST"])
@service_errors
def complete_order(request, order_id):
    data, error = parse_json_body(request)
    if error:
        return error

    result = OrderService.complete_order(
        order_id,
        payment_method=data.get('payment_method'),
        received_amount=data.get('received_amount'),
        actor_id=actor_id(request)
    )
    return APIResponse.success(data=result['order'], message=result['message'])


@csrf_exempt
@api_view(["POST"])
@service_errors
def cancel_order(request, order_id):
    result = OrderService.cancel_order(order_id, actor_id=actor_id(request))
    return APIResponse.success(data=result['stock'], message=result['message'])


@csrf_exempt
@api_view(["GET"])
@service_errors
def get_stats(request):
    result = OrderService.get_order_stats()
    return APIResponse.success(data=result['stats'])
