from rest_framework.exceptions import ParseError

from main.helpers.response import APIResponse


def parse_json_body(request):
    """Return (data, None) or (None, error_response) for a DRF request."""
    try:
        data = request.data
    except ParseError:
        return None, APIResponse.error(message='Invalid JSON body', code='INVALID_JSON')

    if not isinstance(data, dict):
        return None, APIResponse.error(message='Request body must be a JSON object', code='INVALID_JSON')

    return data, None


def get_int(request, name, default=None):
    value = request.GET.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_bool(request, name, default=False):
    value = request.GET.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes')
