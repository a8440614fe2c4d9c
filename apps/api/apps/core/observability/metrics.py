"""
Metrics instrumentation (Prometheus).

All counters/histograms are registered once at import time on the
default prometheus_client registry.
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram, Gauge


class MetricsRegistry:
    """
    Central metrics registry for the dialysis operations core.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        """Create a counter metric."""
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        """Create a histogram metric."""
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _create_gauge(self, name, description, labels=None):
        """Create a gauge metric."""
        return Gauge(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['path', 'method', 'status']
        )

        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Scheduling Metrics
        # ===================================================================
        self.appointments_booked_total = self._create_counter(
            'appointments_booked_total',
            'Appointment booking attempts',
            ['result']  # success, duplicate, no_capacity
        )

        self.appointment_transitions_total = self._create_counter(
            'appointment_transitions_total',
            'Appointment status transitions',
            ['from_status', 'to_status']
        )

        self.slot_capacity_check_duration_seconds = self._create_histogram(
            'slot_capacity_check_duration_seconds',
            'Duration of slot capacity checks',
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5]
        )

        # ===================================================================
        # Asset Metrics
        # ===================================================================
        self.asset_assignments_total = self._create_counter(
            'asset_assignments_total',
            'Machine assignment attempts',
            ['result']  # success, overlap
        )

        # ===================================================================
        # Treatment Cycle Metrics
        # ===================================================================
        self.cycles_started_total = self._create_counter(
            'cycles_started_total',
            'Treatment cycles opened'
        )

        self.cycle_rollovers_total = self._create_counter(
            'cycle_rollovers_total',
            'Treatment cycles closed',
            ['outcome']  # completed, incomplete
        )

        # ===================================================================
        # Dialysis Session Metrics
        # ===================================================================
        self.dialysis_session_transitions_total = self._create_counter(
            'dialysis_session_transitions_total',
            'Dialysis session status transitions',
            ['from_status', 'to_status']
        )

        self.dialysis_session_duration_minutes = self._create_histogram(
            'dialysis_session_duration_minutes',
            'Duration of finished dialysis sessions in minutes',
            ['outcome'],
            buckets=[30, 60, 120, 180, 240, 300, 360]
        )

        self.session_complications_total = self._create_counter(
            'session_complications_total',
            'Complications reported during sessions',
            ['severity']
        )

        self.session_notes_abnormal_total = self._create_counter(
            'session_notes_abnormal_total',
            'Session notes recorded outside configured bounds'
        )

        # ===================================================================
        # Inventory Metrics
        # ===================================================================
        self.inventory_consumed_total = self._create_counter(
            'inventory_consumed_total',
            'Inventory consumed by sessions',
            ['tracking']  # individual, bulk
        )

        self.individual_items_exhausted_total = self._create_counter(
            'individual_items_exhausted_total',
            'Individual items that reached their maximum usage count'
        )

        self.discard_requests_total = self._create_counter(
            'discard_requests_total',
            'Discard request lifecycle events',
            ['result']  # requested, approved, rejected
        )

        self.stock_deduction_rejected_total = self._create_counter(
            'stock_deduction_rejected_total',
            'Bulk stock deductions rejected for insufficient quantity'
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.slot_capacity_check_duration_seconds)
            def is_slot_available(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    duration = time.time() - start_time
                    histogram_metric.observe(duration)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
