"""
Optical-Assist Observability Module

Prometheus metrics for question and ingestion outcomes.
"""

from optiassist.observability.metrics import (
    get_metrics_text,
    record_ask,
    record_ingestion,
    record_query_log_failure,
)

__all__ = [
    "get_metrics_text",
    "record_ask",
    "record_ingestion",
    "record_query_log_failure",
]
