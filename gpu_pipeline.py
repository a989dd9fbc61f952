# =============================
# GPUPipeline — point expander compute shader, SSBOs, uniforms
# =============================
"""
Owns the OpenGL 4.3+ compute pipeline that turns the point cloud into
screen-facing triangles entirely on the GPU:

    source SSBO → expander compute shader → sink SSBO → triangle draw

The sink SSBO doubles as the rasterizer's vertex buffer, so the expanded
geometry never leaves the GPU.  A memory barrier after the dispatch makes
the compute writes visible to vertex fetch before the draw.
"""

import logging

import numpy as np
import moderngl

from config import VERTEX_STRIDE, UNIFORM_BLOCK_SIZE
from shaders import POINT_EXPANDER_COMPUTE_SHADER
from pointcloud import VERTEX_DTYPE, empty_vertices
from expander import workgroup_count, check_sink_length

log = logging.getLogger(__name__)

# Binding points (match the layout qualifiers in the compute shader)
UNIFORM_BINDING = 0
SOURCE_BINDING = 0
SINK_BINDING = 1

# Compute writes → SSBO reads and vertex attribute fetch
_EXPAND_BARRIER = (
    0x00002000    # GL_SHADER_STORAGE_BARRIER_BIT
    | 0x00000001  # GL_VERTEX_ATTRIB_ARRAY_BARRIER_BIT
)


class GPUPipeline:
    """GPU compute pipeline for point → triangle expansion."""

    def __init__(self, ctx: moderngl.Context):
        self.ctx = ctx

        # ── Expander compute shader ──
        try:
            self._expander = ctx.compute_shader(
                POINT_EXPANDER_COMPUTE_SHADER)
        except Exception as e:
            log.critical("GPU pipeline requires OpenGL 4.3+: %s", e)
            raise SystemExit(1)

        # ── Uniform block (projection + pixel_size, std140) ──
        self.uniform_buf = ctx.buffer(reserve=UNIFORM_BLOCK_SIZE)

        # ── Source / sink SSBOs (one-vertex placeholders until import) ──
        self.num_points = 0
        self._capacity = 1
        self.source_ssbo = ctx.buffer(empty_vertices(1).tobytes())
        self.sink_ssbo = ctx.buffer(empty_vertices(3).tobytes())

        # Bumped on every reallocation so VAOs over sink_ssbo get rebuilt
        self.generation = 0

        log.info("GPU pipeline: OK (OpenGL 4.3+)")

    # ────────────────── Point upload ──────────────────

    def import_points(self, vertices):
        """Upload point vertices, reusing buffer capacity when it fits."""
        if vertices.dtype != VERTEX_DTYPE:
            raise ValueError(
                f"expected VERTEX_DTYPE vertices, got {vertices.dtype}")
        n = len(vertices)
        self.num_points = n
        if n == 0:
            log.info("GPU pipeline: no points to expand")
            return

        if n > self._capacity:
            self.source_ssbo.release()
            self.sink_ssbo.release()
            self.source_ssbo = self.ctx.buffer(reserve=n * VERTEX_STRIDE)
            self.sink_ssbo = self.ctx.buffer(reserve=3 * n * VERTEX_STRIDE)
            self._capacity = n
            self.generation += 1
            log.info("GPU pipeline: allocated %d points / %d triangle "
                     "vertices", n, 3 * n)

        self.source_ssbo.write(np.ascontiguousarray(vertices).tobytes())

    # ────────────────── Uniforms ──────────────────

    def write_uniforms(self, uniforms):
        """Validate and upload this frame's uniform block."""
        uniforms.validate()
        self.uniform_buf.write(uniforms.pack())

    # ────────────────── Dispatch ──────────────────

    def dispatch_expander(self, uniforms):
        """Run the expander over all imported points.

        Returns True if anything was dispatched.  The caller must not
        draw from ``sink_ssbo`` before this returns; the memory barrier
        issued here orders the compute writes before vertex fetch.
        """
        n = self.num_points
        if n == 0:
            return False

        self.write_uniforms(uniforms)
        # Sink capacity must mirror source capacity 3:1 and cover N
        check_sink_length(self.source_ssbo.size // VERTEX_STRIDE,
                          self.sink_ssbo.size // VERTEX_STRIDE)
        if n > self._capacity:
            raise ValueError(
                f"{n} points exceed buffer capacity {self._capacity}")

        self.uniform_buf.bind_to_uniform_block(UNIFORM_BINDING)
        self.source_ssbo.bind_to_storage_buffer(SOURCE_BINDING)
        self.sink_ssbo.bind_to_storage_buffer(SINK_BINDING)

        self._expander['num_points'].value = n
        self._expander.run(workgroup_count(n))
        self.ctx.memory_barrier(barriers=_EXPAND_BARRIER)
        return True

    # ────────────────── Readback ──────────────────

    def read_sink(self):
        """Read the expanded triangle vertices back (full stall)."""
        n = 3 * self.num_points
        if n == 0:
            return empty_vertices(0)
        self.ctx.finish()
        raw = self.sink_ssbo.read(n * VERTEX_STRIDE)
        return np.frombuffer(raw, dtype=VERTEX_DTYPE).copy()

    # ────────────────── Cleanup ──────────────────

    def release(self):
        """Release all GPU resources."""
        for obj in (self.source_ssbo, self.sink_ssbo, self.uniform_buf,
                    self._expander):
            if obj is not None:
                obj.release()
