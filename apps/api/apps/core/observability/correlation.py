"""
Request correlation middleware.

Every request gets an X-Request-ID (propagated when the caller sends one)
and the acting staff member's center/company, so that log lines from a
booking or a session step can be tied back to the desk that issued it.
"""
import logging
import re
import time
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

from .metrics import metrics

logger = logging.getLogger(__name__)

_request_context = local()

CONTEXT_FIELDS = ('request_id', 'trace_id', 'user_id', 'user_roles', 'center_id', 'company_id')

# /api/v1/dialysis/sessions/12/start/ -> /api/v1/dialysis/sessions/{id}/start/
_ID_SEGMENT = re.compile(r'/\d+(?=/|$)')


def get_request_context():
    """Snapshot of the correlation fields for the current thread."""
    return {field: getattr(_request_context, field, None) for field in CONTEXT_FIELDS}


def get_request_id():
    return getattr(_request_context, 'request_id', None)


def clear_request_context():
    for field in CONTEXT_FIELDS:
        if hasattr(_request_context, field):
            delattr(_request_context, field)


def metric_path(path):
    """Collapse numeric ids so the path label stays bounded."""
    return _ID_SEGMENT.sub('/{id}', path)


def _bind_user(user):
    if user is not None and user.is_authenticated:
        _request_context.user_id = str(user.id)
        _request_context.user_roles = sorted(user.user_roles.values_list('role__name', flat=True))
        _request_context.center_id = user.center_id
        _request_context.company_id = user.company_id
    else:
        _request_context.user_id = None
        _request_context.user_roles = []
        _request_context.center_id = None
        _request_context.company_id = None


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    Binds request/trace ids and the staff context, echoes the ids back as
    response headers and counts the request.

    Only session-authenticated users are visible here; JWT users are
    resolved later by DRF, so API log lines carry the request id only.
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    TRACE_ID_HEADER = 'HTTP_X_TRACE_ID'

    def process_request(self, request):
        request.request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.trace_id = request.META.get(self.TRACE_ID_HEADER)
        request.start_time = time.monotonic()

        _request_context.request_id = request.request_id
        _request_context.trace_id = request.trace_id
        _bind_user(getattr(request, 'user', None))

    def process_response(self, request, response):
        request_id = getattr(request, 'request_id', None)
        if request_id:
            response['X-Request-ID'] = request_id
        if getattr(request, 'trace_id', None):
            response['X-Trace-ID'] = request.trace_id

        started = getattr(request, 'start_time', None)
        if started is None:
            return response

        path = metric_path(request.path)
        metrics.http_requests_total.labels(
            path=path,
            method=request.method,
            status=str(response.status_code)
        ).inc()

        logger.info(
            'Request completed',
            extra={
                'event': 'http_request_completed',
                'path': path,
                'method': request.method,
                'status_code': response.status_code,
                'duration_ms': round((time.monotonic() - started) * 1000, 2),
            }
        )
        return response

    def process_exception(self, request, exception):
        started = getattr(request, 'start_time', None)
        logger.error(
            'Unhandled %s on %s %s', exception.__class__.__name__, request.method, request.path,
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'path': metric_path(request.path),
                'exception_type': exception.__class__.__name__,
                'duration_ms': round((time.monotonic() - started) * 1000, 2) if started else 0,
            }
        )
