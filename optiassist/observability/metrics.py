"""
Prometheus Metrics for Optical-Assist

Tracks:
- asks_total / asks_answered / asks_refused / asks_failed: question outcomes
- ask_latency_seconds: answer latency (embedding through completion)
- documents_ingested / documents_rejected: upload outcomes
- query_log_failures: best-effort query log writes that were dropped
"""

import logging
import threading

logger = logging.getLogger(__name__)

# Thread-safe metrics storage
_lock = threading.Lock()

_COUNTERS = (
    "asks_total",
    "asks_answered",
    "asks_refused",
    "asks_failed",
    "documents_ingested",
    "documents_rejected",
    "query_log_failures",
)

_metrics: dict[str, int] = {name: 0 for name in _COUNTERS}

_latencies: list[float] = []

ASK_OUTCOMES = ("answered", "refused", "failed")


def record_ask(outcome: str, latency_ms: float | None = None) -> None:
    """Record the outcome of one /ask request."""
    if outcome not in ASK_OUTCOMES:
        raise ValueError(f"Unknown ask outcome: {outcome}")
    with _lock:
        _metrics["asks_total"] += 1
        _metrics[f"asks_{outcome}"] += 1
        if latency_ms is not None:
            _latencies.append(latency_ms)


def record_ingestion(success: bool) -> None:
    """Record the outcome of one document upload."""
    with _lock:
        if success:
            _metrics["documents_ingested"] += 1
        else:
            _metrics["documents_rejected"] += 1


def record_query_log_failure() -> None:
    with _lock:
        _metrics["query_log_failures"] += 1


def get_metrics_text() -> str:
    """Generate Prometheus-compatible metrics text."""
    with _lock:
        sorted_latencies = sorted(_latencies) if _latencies else [0]
        p50 = _percentile(sorted_latencies, 50)
        p95 = _percentile(sorted_latencies, 95)
        p99 = _percentile(sorted_latencies, 99)

        lines = []
        for name in _COUNTERS:
            lines.extend(
                [
                    f"# TYPE {name} counter",
                    f"{name} {_metrics[name]}",
                    "",
                ]
            )

        lines.extend(
            [
                "# HELP ask_latency_seconds Answer latency histogram",
                "# TYPE ask_latency_seconds histogram",
                f'ask_latency_seconds{{le="0.5"}} {_count_below(sorted_latencies, 500)}',
                f'ask_latency_seconds{{le="1.0"}} {_count_below(sorted_latencies, 1000)}',
                f'ask_latency_seconds{{le="2.0"}} {_count_below(sorted_latencies, 2000)}',
                f'ask_latency_seconds{{le="5.0"}} {_count_below(sorted_latencies, 5000)}',
                f"ask_latency_seconds_p50 {p50 / 1000:.4f}",
                f"ask_latency_seconds_p95 {p95 / 1000:.4f}",
                f"ask_latency_seconds_p99 {p99 / 1000:.4f}",
            ]
        )

        return "\n".join(lines) + "\n"


def get_counter(name: str) -> int:
    with _lock:
        return _metrics[name]


def reset_metrics() -> None:
    """Reset all metrics to zero."""
    with _lock:
        for key in _metrics:
            _metrics[key] = 0
        _latencies.clear()


def _percentile(sorted_data: list[float], percentile: int) -> float:
    """Compute the given percentile from sorted data."""
    if not sorted_data:
        return 0.0
    idx = int(len(sorted_data) * percentile / 100)
    idx = min(idx, len(sorted_data) - 1)
    return sorted_data[idx]


def _count_below(sorted_data: list[float], threshold_ms: float) -> int:
    """Count values at or below threshold in sorted data."""
    count = 0
    for v in sorted_data:
        if v <= threshold_ms:
            count += 1
        else:
            break
    return count
