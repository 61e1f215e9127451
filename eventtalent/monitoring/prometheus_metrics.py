"""
Prometheus metrics module for EventTalent.

Exposes service-operation timings recorded by @measure_operation plus a
handful of escrow-specific counters (payments, payouts, disputes, locks).
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "eventtalent_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

service_operations_total = Counter(
    "eventtalent_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "eventtalent_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "eventtalent_booking_lock_total",
    "Booking mutex outcomes",
    ["action", "outcome"],  # acquire|release x success|blocked|error|redis_unavailable|not_found
    registry=REGISTRY,
)

payment_confirmations_total = Counter(
    "eventtalent_payment_confirmations_total",
    "Payment confirmation attempts by inbound channel and outcome",
    ["source", "outcome"],  # outcome: confirmed | already_processed | rejected
    registry=REGISTRY,
)

payouts_total = Counter(
    "eventtalent_payouts_total",
    "Payout settlement attempts by outcome",
    ["outcome"],  # success | pending | failed | skipped
    registry=REGISTRY,
)

disputes_total = Counter(
    "eventtalent_disputes_total",
    "Dispute lifecycle events",
    ["event"],  # filed | resolved_<resolution> | resolution_failed
    registry=REGISTRY,
)

reviews_revealed_total = Counter(
    "eventtalent_reviews_revealed_total",
    "Reviews made visible, by reveal path",
    ["path"],  # pair | grace_period
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'EscrowService')
            operation: Operation/method name (e.g., 'confirm_payment')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_total.labels(action=action, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_payment_confirmation(source: str, outcome: str) -> None:
        payment_confirmations_total.labels(source=source, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_payout(outcome: str) -> None:
        payouts_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_dispute_event(event: str) -> None:
        disputes_total.labels(event=event).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_reviews_revealed(path: str, count: int = 1) -> None:
        if count <= 0:
            return
        reviews_revealed_total.labels(path=path).inc(count)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        if payload is not None and ts is not None and (now - ts) <= PrometheusMetrics._cache_ttl_seconds:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
