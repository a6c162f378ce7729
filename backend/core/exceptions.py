"""
Typed service errors and the DRF exception handler that renders them.

Services raise these instead of returning error strings; the handler maps
each kind to its HTTP status at the API boundary.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'An unexpected error occurred.'

    def __init__(self, message=None, entity=None, identifier=None):
        self.message = message or self.default_message
        self.entity = entity
        self.identifier = identifier
        super().__init__(self.message)


class NotFound(ServiceError):
    """Referenced entity does not exist"""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found.'


class InvalidFormat(ServiceError):
    """Malformed input that passed schema validation (e.g. a QR payload)"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid format.'


class InsufficientStock(ServiceError):
    """Requested quantity exceeds the available stock pool"""
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Not enough stock.'

    def __init__(self, available, requested=None, entity='Product', identifier=None):
        self.available = available
        self.requested = requested
        super().__init__(
            f'Not enough stock. Only {available} units available.',
            entity=entity,
            identifier=identifier,
        )


class CartError(ServiceError):
    """Cart mutation rejected; wraps unexpected failures with their original message"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Could not add to cart'

    def __init__(self, message=None, entity='CartItem', identifier=None, unexpected=False):
        super().__init__(message, entity=entity, identifier=identifier)
        self.unexpected = unexpected
        if unexpected:
            self.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def api_exception_handler(exc, context):
    """
    Render service errors as {"error": message} with the mapped status.

    DRF's own exceptions (validation, auth, permission) keep the default
    rendering. Anything else is logged and answered with a generic 500 so
    internal details never reach the client.
    """
    if isinstance(exc, ServiceError):
        if exc.status_code >= 500:
            logger.error(f"Service failure in {context.get('view')}: {exc.message}", exc_info=exc)
            return Response({'error': exc.default_message}, status=exc.status_code)
        return Response({'error': exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    logger.error(f"Unhandled error in {context.get('view')}: {exc}", exc_info=exc)
    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
