"""
Celery tasks for treatment cycle maintenance.
"""
from celery import shared_task

from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)


@shared_task(name='apps.patients.tasks.process_expired_cycles_task')
def process_expired_cycles_task():
    """
    Daily sweep closing treatment cycles whose 42-day window has passed.

    Scheduled by CELERY_BEAT_SCHEDULE['process-expired-treatment-cycles'].

    Returns:
        int: Number of patients whose cycle was rolled over
    """
    from .services import process_expired_cycles

    processed = process_expired_cycles()
    logger.info(
        'Expired cycle sweep finished',
        extra={'event': 'cycle_sweep_task', 'processed': processed}
    )
    return processed
