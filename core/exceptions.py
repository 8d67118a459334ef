"""
Domain error taxonomy and the DRF exception handler that renders it.

Services raise these errors from inside ``transaction.atomic()`` blocks so a
rule violation always rolls back the whole mutation. Views never catch them;
``api_exception_handler`` turns them into the JSON error envelope:

    {"success": false, "message": "...", "errors": {...}}
"""
import logging

from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for business-rule violations raised by service modules."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed or out-of-range input, e.g. over-receiving a PO line."""
    default_message = 'Validation failed'


class InsufficientStockError(ServiceError):
    """Raised when a movement would drive on-hand, reserved or available stock negative."""
    default_message = 'Insufficient stock'

    def __init__(self, product_id: int, warehouse_id: int, requested: int, available: int,
                 on_hand=None, message=None):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.requested = requested
        self.available = available
        self.on_hand = on_hand
        errors = {
            'product_id': product_id,
            'warehouse_id': warehouse_id,
            'requested': requested,
            'available': available,
        }
        if on_hand is not None:
            errors['quantity_on_hand'] = on_hand
        super().__init__(
            message or (
                f"Insufficient stock for product {product_id} in warehouse {warehouse_id}: "
                f"requested {requested}, available {available}"
            ),
            errors=errors,
        )


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class AuthorizationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You do not have permission to perform this action'


class ConflictError(ServiceError):
    """The request conflicts with current state (e.g. transfer source == destination)."""
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Conflict'


def _error_response(message, status_code, errors=None):
    body = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    return Response(body, status=status_code)


def api_exception_handler(exc, context):
    """
    Render every error raised inside a DRF view as the standard envelope.

    Unknown exceptions are logged with traceback and reported as a generic
    500 so database or driver details never reach the client.
    """
    if isinstance(exc, ServiceError):
        view = context.get('view')
        logger.warning(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'view'}: {exc.message}"
        )
        return _error_response(exc.message, exc.status_code, exc.errors)

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    response = exception_handler(exc, context)
    if response is None:
        logger.exception(f"Unexpected error: {exc}", exc_info=exc)
        return _error_response(
            'An unexpected error occurred',
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, drf_exceptions.ValidationError):
        return _error_response('Validation errors', response.status_code, response.data)

    detail = response.data.get('detail') if isinstance(response.data, dict) else None
    response.data = {'success': False, 'message': str(detail or exc)}
    return response
