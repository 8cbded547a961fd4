# core/exceptions.py
import logging
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Unauthorized(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication required.'
    default_code = 'unauthorized'


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state.'
    default_code = 'conflict'


class AlreadyProcessed(Conflict):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request has already been processed.'
    default_code = 'already_processed'


class AlreadyJoined(Conflict):
    default_detail = 'You have already joined this event.'
    default_code = 'already_joined'


class EventFull(Conflict):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Event has reached maximum capacity.'
    default_code = 'event_full'


class EventNotOpen(Conflict):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'You can only join upcoming events.'
    default_code = 'event_not_open'


class ValidationFailed(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_failed'


class OutOfStock(ValidationFailed):
    default_detail = 'Item is out of stock.'
    default_code = 'out_of_stock'


class InsufficientBalance(ValidationFailed):
    default_detail = 'Not enough points.'
    default_code = 'insufficient_balance'


class NoTutorAssigned(ValidationFailed):
    default_detail = 'Student does not have an assigned tutor.'
    default_code = 'no_tutor_assigned'


def _first_message(detail):
    """Pull the first human readable message out of a nested DRF error payload."""
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return ValidationFailed.default_detail
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ValidationFailed.default_detail
    return str(detail)


def custom_exception_handler(exc, context):
    error_id = uuid.uuid4()

    # Model-level clean() errors surface as validation failures
    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        exc = DRFValidationError(detail)

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Error ID: {error_id}\n"
            f"Error: {str(exc)}\n"
            f"Context: {context.get('view').__class__.__name__ if context.get('view') else None}",
            exc_info=exc
        )
        data = {
            'error': 'An unexpected error occurred',
            'code': 'server_error',
            'error_id': str(error_id),
        }
        if settings.DEBUG:
            data['detail'] = str(exc)
        return Response(data, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.warning(f"Error ID: {error_id} ({response.status_code}): {exc}")

    codes = exc.get_codes() if isinstance(exc, APIException) else None
    data = {
        'error': _first_message(response.data),
        'code': codes if isinstance(codes, str) else 'validation_failed',
        'error_id': str(error_id),
    }
    if isinstance(exc, DRFValidationError) and isinstance(response.data, dict):
        data['details'] = response.data

    response.data = data
    return response
