"""
Observability module for the dialysis operations core.

Provides structured logging, metrics, tracing, and health checks
with PHI/PII protection.
"""
from .metrics import metrics
from .events import log_domain_event
from .logging import get_sanitized_logger
from .tracing import trace_span

__all__ = ['metrics', 'log_domain_event', 'get_sanitized_logger', 'trace_span']
