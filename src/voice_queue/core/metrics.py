"""
Prometheus Metrics for the Speech Queue.

Metrics Exposed:
    voice_queue_tasks_enqueued_total        - Counter of accepted tasks
    voice_queue_tasks_executed_total        - Counter of executed tasks by status
    voice_queue_synthesis_total             - Counter of synthesis calls by phase/status
    voice_queue_registry_lock_failures_total - Counter of lock acquisitions that gave up
    voice_queue_pending_tasks               - Gauge of tasks waiting to play
    voice_queue_play_duration_seconds       - Histogram of playback time

Usage:
    from voice_queue.core.metrics import metrics

    metrics.record_synthesis("prefetch", "success")
    metrics.record_execution("success", duration=1.8)
    metrics.set_pending(3)

    content, content_type = metrics.get_metrics_response()

Scrape Config Example:
    scrape_configs:
      - job_name: 'voice-queue'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class QueueMetrics:
    """
    Metric collection for the pipeline and registry.

    Uses a private CollectorRegistry so several instances (tests, embedded
    use) never collide with each other or with the default registry.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._enqueued = Counter(
            "voice_queue_tasks_enqueued_total",
            "Total tasks accepted by the pipeline",
            registry=self._registry,
        )
        self._executed = Counter(
            "voice_queue_tasks_executed_total",
            "Total tasks taken off the queue, by outcome",
            ["status"],
            registry=self._registry,
        )
        self._synthesis = Counter(
            "voice_queue_synthesis_total",
            "Synthesis calls by phase (prefetch/inline) and outcome",
            ["phase", "status"],
            registry=self._registry,
        )
        self._lock_failures = Counter(
            "voice_queue_registry_lock_failures_total",
            "Registry operations that could not acquire the lock",
            registry=self._registry,
        )
        self._pending = Gauge(
            "voice_queue_pending_tasks",
            "Tasks waiting to be played",
            registry=self._registry,
        )
        self._play_duration = Histogram(
            "voice_queue_play_duration_seconds",
            "Time spent executing one task",
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

    def record_enqueued(self) -> None:
        self._enqueued.inc()

    def record_execution(self, status: str, duration: float) -> None:
        """
        Record a finished task.

        Args:
            status: "success" or "error"
            duration: Seconds spent in synthesis fallback plus playback
        """
        self._executed.labels(status=status).inc()
        self._play_duration.observe(duration)

    def record_synthesis(self, phase: str, status: str) -> None:
        self._synthesis.labels(phase=phase, status=status).inc()

    def record_lock_failure(self) -> None:
        self._lock_failures.inc()

    def set_pending(self, depth: int) -> None:
        self._pending.set(depth)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (content, content_type) for the /metrics endpoint."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance: from voice_queue.core.metrics import metrics
metrics = QueueMetrics()
