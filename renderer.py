# =============================
# Renderer — sprite triangles and face wireframe
# =============================
"""
Owns the vertex/fragment programs and VAOs that draw what the
``GPUPipeline`` has produced.

The sprite pass reads ``gpu.sink_ssbo`` directly as a vertex buffer:
every three consecutive vertices form one triangle, positions are already
in NDC.  The face pass draws the PLY's faces as a wireframe and applies
the projection from the shared uniform block itself.

The ``Renderer`` never dispatches compute work; the caller runs
``gpu.dispatch_expander`` first.
"""

import logging

import numpy as np
import moderngl

from config import settings
from shaders import (
    TRIANGLE_VERTEX_SHADER, TRIANGLE_FRAGMENT_SHADER,
    FACE_VERTEX_SHADER, FACE_FRAGMENT_SHADER,
)
from pointcloud import VERTEX_DTYPE
from gpu_pipeline import UNIFORM_BINDING

log = logging.getLogger(__name__)

# Matches VERTEX_DTYPE: vec3 position, 4 pad bytes, vec3 color, 4 pad bytes
VERTEX_FORMAT = '3f 4x 3f 4x'


class Renderer:
    """OpenGL rendering — programs, VAOs, sprite + face passes."""

    def __init__(self, ctx: moderngl.Context, gpu):
        """
        Parameters
        ----------
        ctx : moderngl.Context
        gpu : GPUPipeline
            Provides ``sink_ssbo`` (sprite vertices) and ``uniform_buf``.
        """
        self.ctx = ctx

        # ── Sprite program (pass-through) ──
        self.prog = ctx.program(
            vertex_shader=TRIANGLE_VERTEX_SHADER,
            fragment_shader=TRIANGLE_FRAGMENT_SHADER)

        # ── Face program (projects with the shared uniform block) ──
        self.face_prog = ctx.program(
            vertex_shader=FACE_VERTEX_SHADER,
            fragment_shader=FACE_FRAGMENT_SHADER)
        self.face_prog['Uniforms'].binding = UNIFORM_BINDING

        # ── Sprite VAO over the sink SSBO (rebuilt on reallocation) ──
        self.sprite_vao = None
        self._sprite_generation = -1
        self._ensure_sprite_vao(gpu)

        # ── Face buffers ──
        self._face_vbo = None
        self._face_ibo = None
        self.face_vao = None
        self.num_face_indices = 0

    # ────────────────── VAOs ──────────────────

    def _ensure_sprite_vao(self, gpu):
        if (self.sprite_vao is not None
                and self._sprite_generation == gpu.generation):
            return
        if self.sprite_vao is not None:
            self.sprite_vao.release()
        self.sprite_vao = self.ctx.vertex_array(
            self.prog,
            [(gpu.sink_ssbo, VERTEX_FORMAT, 'in_position', 'in_color')])
        self._sprite_generation = gpu.generation

    def import_faces(self, face_vertices, face_indices):
        """Upload an indexed triangle list for the wireframe pass."""
        self._release_faces()
        n = len(face_indices)
        if n == 0 or len(face_vertices) == 0:
            return
        if face_vertices.dtype != VERTEX_DTYPE:
            raise ValueError(
                f"expected VERTEX_DTYPE vertices, got {face_vertices.dtype}")

        self._face_vbo = self.ctx.buffer(
            np.ascontiguousarray(face_vertices).tobytes())
        self._face_ibo = self.ctx.buffer(
            np.ascontiguousarray(face_indices, dtype=np.uint32).tobytes())
        self.face_vao = self.ctx.vertex_array(
            self.face_prog,
            [(self._face_vbo, VERTEX_FORMAT, 'in_position', 'in_color')],
            index_buffer=self._face_ibo,
            index_element_size=4)
        self.num_face_indices = n
        log.info("Face mesh uploaded: %d triangles", n // 3)

    # ────────────────── Scene rendering ──────────────────

    def render(self, w, h, gpu, uniforms, fbo=None):
        """Draw this frame's sprites (and faces) to ``fbo`` or the screen.

        ``uniforms`` must be the value the expander was dispatched with;
        the face pass reads the same uniform buffer.
        """
        (fbo if fbo is not None else self.ctx.screen).use()
        self.ctx.viewport = (0, 0, w, h)
        bg = settings["bg_color"]
        self.ctx.clear(bg[0], bg[1], bg[2])
        self.ctx.disable(moderngl.DEPTH_TEST | moderngl.CULL_FACE)

        # ── Sprites: 3 vertices per point ──
        if gpu.num_points > 0:
            self._ensure_sprite_vao(gpu)
            self.sprite_vao.render(
                moderngl.TRIANGLES, vertices=3 * gpu.num_points)

        # ── Faces (wireframe) ──
        if settings["show_faces"] and self.face_vao is not None:
            gpu.write_uniforms(uniforms)
            gpu.uniform_buf.bind_to_uniform_block(UNIFORM_BINDING)
            self.ctx.wireframe = True
            self.face_vao.render(
                moderngl.TRIANGLES, vertices=self.num_face_indices)
            self.ctx.wireframe = False

    # ────────────────── Cleanup ──────────────────

    def _release_faces(self):
        for obj in (self.face_vao, self._face_vbo, self._face_ibo):
            if obj is not None:
                obj.release()
        self.face_vao = None
        self._face_vbo = None
        self._face_ibo = None
        self.num_face_indices = 0

    def release(self):
        """Release all GPU resources."""
        self._release_faces()
        if self.sprite_vao is not None:
            self.sprite_vao.release()
        self.prog.release()
        self.face_prog.release()
