"""
Prometheus metrics for reservation, payment and dispatch operations.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from lodging_booking.metrics import reservations_created
    >>> reservations_created.labels(outcome="created").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Reservation Metrics
# =============================================================================

reservations_created = Counter(
    "lodging_reservations_created_total",
    "Reservation creation attempts by outcome",
    ["outcome"],
)
"""
Labels:
    outcome: created, conflict, invalid, busy, not_found
"""

reservation_transitions = Counter(
    "lodging_reservation_transitions_total",
    "Applied reservation status transitions",
    ["from_status", "to_status"],
)

availability_search_duration = Histogram(
    "lodging_availability_search_seconds",
    "Duration of availability searches in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, float("inf")),
)

# =============================================================================
# Payment Metrics
# =============================================================================

payment_intents = Counter(
    "lodging_payment_intents_total",
    "Payment intent creation attempts by outcome",
    ["outcome"],
)
"""
Labels:
    outcome: created, duplicate, reused, rejected, timeout, error
"""

payment_events = Counter(
    "lodging_payment_events_total",
    "Processor events received by kind and outcome",
    ["kind", "outcome"],
)
"""
Labels:
    kind: payment-succeeded, payment-failed, unknown
    outcome: applied, duplicate, dropped, ignored
"""

processor_latency = Histogram(
    "lodging_processor_latency_seconds",
    "Payment processor request latency in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

# =============================================================================
# Dispatch Metrics
# =============================================================================

dispatch_attempts = Counter(
    "lodging_dispatch_attempts_total",
    "Dispatch ledger action attempts by kind and outcome",
    ["kind", "outcome"],
)
"""
Labels:
    kind: booking-confirmed, booking-cancelled, payment-notification
    outcome: sent, failed, suppressed, in_flight
"""
