"""Prometheus metrics for the dialtune IVR.

Provides metrics for monitoring call outcomes, AI availability and the
media pipeline.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

CALL_TOTAL = Counter(
    "dialtune_call_total",
    "Call starts by outcome (accepted, rejected)",
    ["outcome"],
)

AI_REQUESTS = Counter(
    "dialtune_ai_requests_total",
    "Conversational AI requests by outcome",
    ["outcome"],
)

MEDIA_JOBS = Counter(
    "dialtune_media_jobs_total",
    "Media acquisition jobs by terminal status",
    ["status"],
)

RESLICES = Counter(
    "dialtune_reslice_total",
    "Resume-time media re-slices by outcome",
    ["outcome"],
)

FLOW_ERRORS = Counter(
    "dialtune_flow_errors_total",
    "Errors converted to a spoken reply at the call-flow boundary",
    ["error"],
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_SESSIONS = Gauge(
    "dialtune_active_sessions",
    "Call sessions currently held in memory",
)

# =============================================================================
# Histograms
# =============================================================================

MEDIA_JOB_DURATION = Histogram(
    "dialtune_media_job_seconds",
    "Time from job start to terminal status",
    buckets=[2, 5, 10, 15, 20, 30, 45, 60, 90],
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_call_start(outcome: str) -> None:
    CALL_TOTAL.labels(outcome=outcome).inc()


def record_ai_request(outcome: str) -> None:
    AI_REQUESTS.labels(outcome=outcome).inc()


def record_media_job(status: str, duration_seconds: float) -> None:
    """Record a media job reaching a terminal status.

    Args:
        status: Terminal status (done, error, cancelled)
        duration_seconds: Time since the job was started
    """
    MEDIA_JOBS.labels(status=status).inc()
    if duration_seconds >= 0:
        MEDIA_JOB_DURATION.observe(duration_seconds)


def record_reslice(outcome: str) -> None:
    RESLICES.labels(outcome=outcome).inc()


def record_flow_error(error: str) -> None:
    FLOW_ERRORS.labels(error=error).inc()


def set_active_sessions(count: int) -> None:
    ACTIVE_SESSIONS.set(count)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics.

    Returns:
        Content-Type header value for Prometheus metrics.
    """
    return CONTENT_TYPE_LATEST
