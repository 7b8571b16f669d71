"""Observability module for metrics."""

from dialtune.observability.metrics import (
    ACTIVE_SESSIONS,
    AI_REQUESTS,
    CALL_TOTAL,
    FLOW_ERRORS,
    MEDIA_JOB_DURATION,
    MEDIA_JOBS,
    RESLICES,
    record_ai_request,
    record_call_start,
    record_flow_error,
    record_media_job,
    record_reslice,
    set_active_sessions,
)

__all__ = [
    "CALL_TOTAL",
    "AI_REQUESTS",
    "MEDIA_JOBS",
    "MEDIA_JOB_DURATION",
    "RESLICES",
    "FLOW_ERRORS",
    "ACTIVE_SESSIONS",
    "record_call_start",
    "record_ai_request",
    "record_media_job",
    "record_reslice",
    "record_flow_error",
    "set_active_sessions",
]
