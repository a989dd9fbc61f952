from perf_metrics import PerfMetrics


def test_toggle_applies_at_next_frame():
    metrics = PerfMetrics(None)
    metrics.begin_frame()
    metrics.begin("expand")
    # Ticked in the panel partway through a frame
    metrics.request_enabled(True)
    metrics.end("expand")
    metrics.end_frame()
    assert not metrics.enabled
    assert metrics.frame_avg_ms == 0.0
    assert metrics.get_cpu_sections() == []

    metrics.begin_frame()
    metrics.begin("expand")
    metrics.end("expand")
    metrics.end_frame()
    assert metrics.enabled
    assert 0.0 <= metrics.frame_avg_ms < 1000.0
    assert [name for name, _ in metrics.get_cpu_sections()] == ["expand"]


def test_disable_keeps_history_frozen():
    metrics = PerfMetrics(None)
    metrics.request_enabled(True)
    metrics.begin_frame()
    metrics.end_frame()
    recorded = metrics.frame_avg_ms

    metrics.request_enabled(False)
    metrics.begin_frame()
    metrics.end_frame()
    assert not metrics.enabled
    assert metrics.frame_avg_ms == recorded
