from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view

from ..services.table_service import TableService
from main.helpers.response import APIResponse
from main.helpers.request import parse_json_body
from main.helpers.decorators import service_errors


@csrf_exempt
@api_view(["GET", "POST"])
@service_errors
def tables(request):
    if request.method == "GET":
        result = TableService.get_all_tables(status=request.GET.get('status'))
        return APIResponse.success(data=result['tables'])

    data, error = parse_json_body(request)
    if error:
        return error

    result = TableService.create_table(
        table_number=data.get('table_number'),
        capacity=data.get('capacity', 4)
    )
    return APIResponse.created(data=result['table'], message=result['message'])


@csrf_exempt
@api_view(["PATCH"])
@service_errors
def update_table_status(request, table_id):
    data, error = parse_json_body(request)
    if error:
        return error

    if not data.get('status'):
        return APIResponse.validation_error(
            errors={'status': 'status is required'},
            message='Missing status field'
        )

    result = TableService.update_table_status(table_id, data['status'])
    return APIResponse.success(data=result['table'], message=result['message'])


@csrf_exempt
@api_view(["DELETE"])
@service_errors
def delete_table(request, table_id):
    result = TableService.delete_table(table_id)
    return APIResponse.success(message=result['message'])
