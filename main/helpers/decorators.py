import functools
import logging

from stock.services.base_service import ServiceError
from main.helpers.response import APIResponse

logger = logging.getLogger(__name__)


def service_errors(view_func):
    """Turn a ServiceError raised by a service call into its JSON error response."""

    @functools.wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except ServiceError as e:
            if e.status_code >= 500:
                logger.error('%s %s failed: %s', request.method, request.path, e.message)
            return APIResponse.from_service_error(e)

    return wrapper


def actor_id(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user.id
    return None
