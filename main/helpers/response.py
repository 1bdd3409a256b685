from rest_framework import status
from rest_framework.response import Response


class APIResponse:

    @staticmethod
    def success(data=None, message='Success', status_code=status.HTTP_200_OK):
        return Response({
            'success': True,
            'message': message,
            'data': data
        }, status=status_code)

    @staticmethod
    def created(data=None, message='Created successfully'):
        return APIResponse.success(data=data, message=message, status_code=status.HTTP_201_CREATED)

    @staticmethod
    def error(message='Something went wrong', code='ERROR', details=None,
              status_code=status.HTTP_400_BAD_REQUEST):
        return Response({
            'success': False,
            'error': {
                'code': code,
                'message': message,
                'details': details or {}
            }
        }, status=status_code)

    @staticmethod
    def not_found(message='Not found'):
        return APIResponse.error(message=message, code='NOT_FOUND', status_code=status.HTTP_404_NOT_FOUND)

    @staticmethod
    def validation_error(errors=None, message='Validation failed'):
        return APIResponse.error(
            message=message,
            code='VALIDATION_ERROR',
            details={'errors': errors or {}}
        )

    @staticmethod
    def from_service_error(exc):
        """Render a stock ServiceError with the status code it carries."""
        return APIResponse.error(
            message=exc.message,
            code=exc.code,
            details=exc.details,
            status_code=exc.status_code
        )
