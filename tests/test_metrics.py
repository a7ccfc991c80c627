"""Tests for Prometheus metrics."""
from __future__ import annotations

from prometheus_client.parser import text_string_to_metric_families

from voice_queue.core.metrics import QueueMetrics, metrics


def _samples(m: QueueMetrics) -> dict:
    content, _ = m.get_metrics_response()
    out = {}
    for family in text_string_to_metric_families(content.decode()):
        for sample in family.samples:
            out[(sample.name, tuple(sorted(sample.labels.items())))] = sample.value
    return out


def test_global_instance_exists():
    assert isinstance(metrics, QueueMetrics)


def test_instances_are_isolated():
    """Separate instances use separate collector registries."""
    a, b = QueueMetrics(), QueueMetrics()
    a.record_enqueued()
    assert _samples(a)[("voice_queue_tasks_enqueued_total", ())] == 1.0
    assert _samples(b)[("voice_queue_tasks_enqueued_total", ())] == 0.0


def test_execution_and_synthesis_labels():
    m = QueueMetrics()
    m.record_execution("success", duration=1.2)
    m.record_execution("error", duration=0.1)
    m.record_synthesis("prefetch", "error")
    m.record_synthesis("inline", "success")

    samples = _samples(m)
    assert samples[("voice_queue_tasks_executed_total", (("status", "success"),))] == 1.0
    assert samples[("voice_queue_tasks_executed_total", (("status", "error"),))] == 1.0
    assert samples[("voice_queue_synthesis_total", (("phase", "prefetch"), ("status", "error")))] == 1.0
    assert samples[("voice_queue_synthesis_total", (("phase", "inline"), ("status", "success")))] == 1.0
    assert samples[("voice_queue_play_duration_seconds_count", ())] == 2.0


def test_gauge_and_lock_failures():
    m = QueueMetrics()
    m.set_pending(4)
    m.record_lock_failure()
    m.record_lock_failure()

    samples = _samples(m)
    assert samples[("voice_queue_pending_tasks", ())] == 4.0
    assert samples[("voice_queue_registry_lock_failures_total", ())] == 2.0


def test_response_content_type():
    content, content_type = QueueMetrics().get_metrics_response()
    assert content_type.startswith("text/plain")
    assert b"voice_queue_pending_tasks" in content
