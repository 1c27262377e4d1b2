"""Prometheus metrics for quiz scheduling and submission consolidation."""

from __future__ import annotations

from threading import Lock

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class QuizScheduleMetrics:
    """Counters for failures that are logged and swallowed instead of raised."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.registry = registry

        self.submissions_cached = Counter(
            "quiz_submissions_cached_total",
            "Live submissions stored in the submission cache",
            registry=registry,
        )

        self.submissions_rejected = Counter(
            "quiz_submissions_rejected_total",
            "Submissions rejected by the gateway",
            ["reason"],
            registry=registry,
        )

        self.submissions_consolidated = Counter(
            "quiz_submissions_consolidated_total",
            "Cached submissions turned into participations with results",
            registry=registry,
        )

        self.consolidation_failures = Counter(
            "quiz_consolidation_failures_total",
            "Per-participant consolidation failures",
            registry=registry,
        )

        self.schedule_failures = Counter(
            "quiz_schedule_failures_total",
            "Timer callbacks that failed for a whole quiz",
            ["phase"],
            registry=registry,
        )

        self.consolidation_duration = Histogram(
            "quiz_consolidation_duration_seconds",
            "Time spent draining one quiz's submission cache",
            registry=registry,
        )


_default_metrics: QuizScheduleMetrics | None = None
_default_metrics_lock = Lock()


def default_metrics() -> QuizScheduleMetrics:
    """Return the process-wide metrics bound to the default registry."""
    global _default_metrics
    with _default_metrics_lock:
        if _default_metrics is None:
            _default_metrics = QuizScheduleMetrics()
        return _default_metrics
