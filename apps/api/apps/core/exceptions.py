"""
Domain error taxonomy shared by every service layer.

Services raise these; the DRF exception handler below renders them as
{"error": <message>, "error_type": <kind>} with a matching HTTP status.

- NotFoundError: referenced entity absent (appointment, patient, session, item)
- ConflictError: capacity exhausted, duplicate booking, overlapping assignment
- ValidationError: value outside configured bounds, malformed enum
- StateError: operation invoked against an entity in an incompatible lifecycle state
- StorageError: transaction/commit failure from the database
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .observability import get_sanitized_logger, metrics

logger = get_sanitized_logger(__name__)


class DomainError(Exception):
    """Base class for errors raised by the domain services."""
    kind = 'error'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message=''):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class NotFoundError(DomainError):
    kind = 'not_found'
    http_status = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    kind = 'conflict'
    http_status = status.HTTP_409_CONFLICT


class ValidationError(DomainError):
    kind = 'validation'
    http_status = status.HTTP_400_BAD_REQUEST


class StateError(DomainError):
    kind = 'state'
    http_status = status.HTTP_409_CONFLICT


class StorageError(DomainError):
    kind = 'storage'
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


def get_or_not_found(queryset, label, **lookup):
    """
    Fetch a single row or raise NotFoundError (ValidationError for a malformed key).

    Usage:
        session = get_or_not_found(DialysisSession.objects, 'Session', pk=session_id)
    """
    try:
        return queryset.get(**lookup)
    except queryset.model.DoesNotExist:
        raise NotFoundError(f'{label} not found')
    except (ValueError, TypeError, DjangoValidationError):
        # Malformed key (e.g. ?center=abc) never reaches the database
        raise ValidationError(f'Invalid {label.lower()} id')


def domain_exception_handler(exc, context):
    """
    DRF exception handler.

    Renders DomainError subclasses and raw database failures as a
    structured error; everything else falls through to DRF's default.
    """
    view = context.get('view')
    location = view.__class__.__name__ if view else 'unknown'

    if isinstance(exc, DatabaseError):
        logger.error(
            'Database failure while handling request',
            exc_info=exc,
            extra={
                'event': 'storage_error',
                'location': location,
                'exception_type': exc.__class__.__name__,
            }
        )
        exc = StorageError(f'Storage failure: {exc.__class__.__name__}')

    if isinstance(exc, DomainError):
        metrics.exceptions_total.labels(
            exception_type=exc.__class__.__name__,
            location=location
        ).inc()
        return Response(
            {'error': exc.message, 'error_type': exc.kind},
            status=exc.http_status
        )

    return exception_handler(exc, context)
