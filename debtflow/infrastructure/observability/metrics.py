"""Prometheus metrics for reminder delivery, quota usage and debt lifecycle"""

from prometheus_client import Counter, Histogram

# Reminder metrics
reminder_counter = Counter(
    "debtflow_reminders_total",
    "Reminder dispatch attempts",
    ["channel", "outcome", "trigger"],  # outcome: sent | failed; trigger: manual | scheduled
)

quota_denials_counter = Counter(
    "debtflow_quota_denials_total",
    "Dispatches refused by the quota tracker",
    ["reason"],  # quota_exceeded | plan_not_eligible
)

# Channel sender metrics
sender_latency_histogram = Histogram(
    "channel_sender_latency_seconds",
    "Channel provider response time",
    ["channel"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

sender_failure_counter = Counter(
    "channel_sender_failures_total",
    "Failed or timed-out provider calls",
    ["channel"],
)

# Debt lifecycle
status_transition_counter = Counter(
    "debtflow_debt_status_transitions_total",
    "Debt status changes",
    ["from_status", "to_status"],
)

claim_resolution_counter = Counter(
    "debtflow_claim_resolutions_total",
    "Customer payment claims resolved by staff",
    ["resolution"],  # verified | rejected
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_dispatch(channel: str, sent: bool, scheduled: bool) -> None:
    """Record one dispatch outcome"""
    reminder_counter.labels(
        channel=channel,
        outcome="sent" if sent else "failed",
        trigger="scheduled" if scheduled else "manual",
    ).inc()


def record_status_change(before: str, after: str) -> None:
    if before != after:
        status_transition_counter.labels(from_status=before, to_status=after).inc()
