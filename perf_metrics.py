# =============================
# PerfMetrics — frame profiler
# =============================
"""
CPU and GPU timings per named frame section, as rolling averages for the
settings panel.

Usage::

    metrics = PerfMetrics(ctx)
    metrics.begin_frame()
    metrics.begin("expand"); metrics.begin_gpu("expand")
    gpu.dispatch_expander(uniforms)
    metrics.end_gpu("expand"); metrics.end("expand")
    metrics.end_frame()

GPU sections use moderngl time-elapsed queries, read back one frame late
from a small ring so the readback never waits on the GPU.
"""

import time

import numpy as np
import moderngl

_HISTORY = 120
_GPU_QUERY_POOL = 3


class _Section:
    __slots__ = ('history', 'count', 'start', 'avg_ms')

    def __init__(self):
        self.history = np.zeros(_HISTORY, dtype=np.float64)
        self.count = 0
        self.start = 0.0
        self.avg_ms = 0.0

    def push(self, ms):
        self.history[self.count % _HISTORY] = ms
        self.count += 1
        self.avg_ms = float(np.mean(self.history[:min(self.count, _HISTORY)]))


class PerfMetrics:
    """CPU + GPU section timer with rolling averages."""

    def __init__(self, ctx: moderngl.Context):
        self.ctx = ctx
        self.enabled = False
        # Set from the UI; takes effect at the next begin_frame
        self.requested = False

        self._cpu: dict[str, _Section] = {}
        self._gpu: dict[str, _Section] = {}
        self._queries: dict[str, list] = {}
        self._ring: dict[str, int] = {}
        self._frame = _Section()

    @property
    def frame_avg_ms(self):
        return self._frame.avg_ms

    # ────────────── Frame boundary ──────────────

    def request_enabled(self, flag):
        self.requested = bool(flag)

    def begin_frame(self):
        self.enabled = self.requested
        if self.enabled:
            self._frame.start = time.perf_counter()

    def end_frame(self):
        if not self.enabled:
            return
        self._frame.push((time.perf_counter() - self._frame.start) * 1000.0)
        self._collect_gpu_results()

    # ────────────── CPU sections ──────────────

    def begin(self, name: str):
        if not self.enabled:
            return
        self._cpu.setdefault(name, _Section()).start = time.perf_counter()

    def end(self, name: str):
        if not self.enabled:
            return
        sec = self._cpu.get(name)
        if sec is not None:
            sec.push((time.perf_counter() - sec.start) * 1000.0)

    # ────────────── GPU sections ──────────────

    def begin_gpu(self, name: str):
        if not self.enabled:
            return
        if name not in self._gpu:
            self._gpu[name] = _Section()
            self._queries[name] = [self.ctx.query(time=True)
                                   for _ in range(_GPU_QUERY_POOL)]
            self._ring[name] = 0
        q = self._queries[name][self._ring[name] % _GPU_QUERY_POOL]
        q.__enter__()

    def end_gpu(self, name: str):
        if not self.enabled or name not in self._gpu:
            return
        q = self._queries[name][self._ring[name] % _GPU_QUERY_POOL]
        q.__exit__(None, None, None)
        self._ring[name] += 1

    def _collect_gpu_results(self):
        """Read GPU timer results from queries that are ≥1 frame old."""
        for name, sec in self._gpu.items():
            ring = self._ring[name]
            if ring < 2:
                continue
            q = self._queries[name][(ring - 1) % _GPU_QUERY_POOL]
            sec.push(q.elapsed / 1_000_000.0)

    # ────────────── Data access for UI ──────────────

    def get_cpu_sections(self):
        """Returns list of (name, avg_ms)."""
        return [(name, sec.avg_ms) for name, sec in self._cpu.items()]

    def get_gpu_sections(self):
        """Returns list of (name, avg_ms)."""
        return [(name, sec.avg_ms) for name, sec in self._gpu.items()]

    def reset(self):
        """Clear all history (GPU queries are kept)."""
        for sec in list(self._cpu.values()) + list(self._gpu.values()):
            sec.history[:] = 0
            sec.count = 0
            sec.avg_ms = 0.0
        self._frame = _Section()
