"""
Error taxonomy and the DRF exception handler that renders it.

Every error leaves the API as::

    {"apiVersion": "0.1.0",
     "data": {"success": false, "title": ..., "message": ...,
              "errors": [{"field": ..., "message": ..., "code": ...}]}}
"""

import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from rest_framework.fields import get_error_detail

from .responses import envelope

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'CONFLICT'


class Forbidden(PermissionDenied):
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'FORBIDDEN'


class InvalidTransition(APIException):
    """
    Raised when a room is asked to move to a status its current status
    does not allow.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'INVALID_TRANSITION'

    def __init__(self, current, attempted):
        self.current = current
        self.attempted = attempted
        super().__init__(
            detail=f'Cannot transition room from {current} to {attempted}.',
            code=self.default_code,
        )


class CodeGenerationExhausted(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Could not generate a unique room code. Please try again.'
    default_code = 'CODE_GENERATION_EXHAUSTED'


class ServerError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'An unexpected error occurred.'
    default_code = 'SERVER_ERROR'


class TokenRejected(AuthenticationFailed):
    """
    Base class for token verification failures.

    Subclasses let callers branch on the reason (for example to attempt a
    refresh on expiry) while clients only ever see the generic detail.
    """
    default_detail = 'Invalid or expired token'
    default_code = 'AUTHENTICATION_FAILED'


class TokenInvalid(TokenRejected):
    pass


class TokenExpired(TokenRejected):
    pass


class TokenTypeMismatch(TokenRejected):
    pass


ERROR_TITLES = {
    status.HTTP_400_BAD_REQUEST: 'Validation Error',
    status.HTTP_401_UNAUTHORIZED: 'Unauthorized',
    status.HTTP_403_FORBIDDEN: 'Forbidden',
    status.HTTP_404_NOT_FOUND: 'Not Found',
    status.HTTP_405_METHOD_NOT_ALLOWED: 'Method Not Allowed',
    status.HTTP_409_CONFLICT: 'Conflict',
    status.HTTP_429_TOO_MANY_REQUESTS: 'Too Many Requests',
    status.HTTP_500_INTERNAL_SERVER_ERROR: 'Server Error',
    status.HTTP_503_SERVICE_UNAVAILABLE: 'Service Unavailable',
}


def flatten_errors(detail, field=None):
    """
    Flatten a DRF error detail structure into ``{field, message, code}`` dicts.
    """
    if isinstance(detail, dict):
        for key, value in detail.items():
            if key in ('detail', 'non_field_errors', '__all__'):
                name = field
            elif field is None:
                name = str(key)
            else:
                name = f'{field}.{key}'
            yield from flatten_errors(value, name)
    elif isinstance(detail, (list, tuple)):
        for item in detail:
            yield from flatten_errors(item, field)
    else:
        yield {
            'field': field,
            'message': str(detail),
            'code': str(getattr(detail, 'code', None) or 'error').upper(),
        }


def envelope_exception_handler(exc, context):
    """
    DRF exception handler producing the error envelope.

    Model-level Django validation errors become field-level 400 responses.
    Anything DRF does not recognise is logged and returned as a generic 500.
    """
    # core.models imports this module while apps are loading
    from rest_framework.views import exception_handler

    if isinstance(exc, DjangoValidationError):
        exc = ValidationError(detail=get_error_detail(exc))
    elif isinstance(exc, Http404):
        exc = NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = Forbidden()
    elif isinstance(exc, PermissionDenied) and not isinstance(exc, Forbidden):
        # Permission class denials arrive as DRF PermissionDenied
        exc = Forbidden(detail=str(exc.detail))

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(
            f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}"
        )
        exc = ServerError(detail=str(exc) if settings.DEBUG else None)
        response = exception_handler(exc, context)

    errors = list(flatten_errors(exc.detail))

    if isinstance(exc, ValidationError):
        message = 'Invalid input data'
    else:
        message = errors[0]['message'] if errors else str(exc)

    response.data = envelope(
        False,
        ERROR_TITLES.get(response.status_code, 'Error'),
        message,
        errors=errors,
    )
    return response
