"""
Liveness (/healthz) and readiness (/readyz) checks.
"""
import logging

import redis
from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


def check_database():
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')


def check_broker():
    """Ping the Celery broker; the expired-cycle sweep runs through it."""
    broker_url = getattr(settings, 'CELERY_BROKER_URL', '')
    # memory:// (tests, local runs) has nothing to ping
    if broker_url.startswith('redis'):
        redis.Redis.from_url(broker_url, socket_connect_timeout=2).ping()


READINESS_CHECKS = (
    ('database', check_database, DatabaseError),
    ('broker', check_broker, redis.RedisError),
)


class HealthzView(View):
    """Process is up. Never touches dependencies."""

    def get(self, request):
        payload = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }
        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            payload['commit'] = commit_hash
        return JsonResponse(payload)


class ReadyzView(View):
    """
    Ready to take bookings: database and broker reachable.

    Responds 503 with the per-dependency result when any check fails.
    """

    def get(self, request):
        checks = {}
        for name, check, failure in READINESS_CHECKS:
            try:
                check()
            except failure as exc:
                logger.error(
                    '%s readiness check failed', name,
                    extra={'event': 'health_check_failed', 'check': name, 'error': str(exc)}
                )
                checks[name] = False
            else:
                checks[name] = True

        ready = all(checks.values())
        return JsonResponse(
            {'status': 'ready' if ready else 'not_ready', 'checks': checks},
            status=200 if ready else 503
        )
