# =============================
# Point cloud data model — vertex records and per-frame uniforms
# =============================
"""
Host-side mirror of the buffer layouts shared by the expander compute
shader and the triangle rasterizer.

``VERTEX_DTYPE`` is the single record type used for both the source
(point) and sink (triangle) buffers; read-only vs. read-write access is
expressed by the shader bindings, not by separate record types.

``Uniforms`` is an immutable per-frame value.  It is built once per frame
by the host and handed explicitly to every stage that needs it.
"""

import struct
from dataclasses import dataclass

import numpy as np

from config import VERTEX_STRIDE, VERTEX_COLOR_OFFSET

VERTEX_DTYPE = np.dtype({
    'names': ['position', 'color'],
    'formats': [('<f4', 3), ('<f4', 3)],
    'offsets': [0, VERTEX_COLOR_OFFSET],
    'itemsize': VERTEX_STRIDE,
})

# std140: mat4 (64 bytes) + float + 3 floats of padding
_UNIFORM_TAIL = struct.Struct('<f12x')


def empty_vertices(n):
    """Zeroed vertex array of length ``n`` (padding bytes included)."""
    return np.zeros(n, dtype=VERTEX_DTYPE)


def allocate_sink(n_points):
    """Sink array sized for ``n_points`` source points (3 per point)."""
    return empty_vertices(3 * n_points)


def pack_vertices(positions, colors=None):
    """Interleave ``(N, 3)`` positions and colours into ``VERTEX_DTYPE``.

    Colours default to white.  Padding is always zero, so equal inputs
    pack to equal bytes.
    """
    positions = np.asarray(positions, dtype=np.float32)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise ValueError(
            f"positions must have shape (N, 3), got {positions.shape}")
    n = positions.shape[0]
    if colors is None:
        colors = np.ones((n, 3), dtype=np.float32)
    colors = np.asarray(colors, dtype=np.float32)
    if colors.shape != positions.shape:
        raise ValueError(
            f"colors shape {colors.shape} != positions shape "
            f"{positions.shape}")

    vertices = empty_vertices(n)
    vertices['position'] = positions
    vertices['color'] = colors
    return vertices


@dataclass(frozen=True)
class Uniforms:
    """Per-frame uniform block: ``{projection, pixel_size}``.

    ``projection`` is row-major (``clip = projection @ [x, y, z, 1]``);
    ``pack()`` transposes it into the column-major std140 layout GLSL
    expects.
    """
    projection: np.ndarray
    pixel_size: float

    @classmethod
    def for_viewport(cls, projection, height, sprite_px=1.0):
        """Uniforms whose sprites are ``sprite_px`` pixels in radius.

        One pixel spans ``2 / height`` in NDC along y.
        """
        pixel_size = float(sprite_px) * 2.0 / max(int(height), 1)
        return cls(np.asarray(projection, dtype=np.float32), pixel_size)

    def validate(self):
        """Host-side precondition check before a dispatch."""
        proj = np.asarray(self.projection)
        if proj.shape != (4, 4):
            raise ValueError(
                f"projection must be 4x4, got shape {proj.shape}")
        if not np.all(np.isfinite(proj)):
            raise ValueError("projection contains non-finite values")
        if not np.isfinite(self.pixel_size) or self.pixel_size <= 0.0:
            raise ValueError(
                f"pixel_size must be finite and > 0, got {self.pixel_size}")

    def pack(self):
        """80-byte std140 image of the uniform block."""
        proj = np.asarray(self.projection, dtype='<f4')
        return proj.T.tobytes() + _UNIFORM_TAIL.pack(self.pixel_size)


def avg_vertex_position(vertices):
    """Mean vertex position, accumulated in float64."""
    if len(vertices) == 0:
        raise ValueError("cannot average an empty vertex set")
    pos = vertices['position'].astype(np.float64)
    return pos.mean(axis=0).astype(np.float32)


def avg_vertex_distance(center, vertices):
    """Mean distance of all vertices to ``center``."""
    if len(vertices) == 0:
        raise ValueError("cannot average an empty vertex set")
    d = vertices['position'] - np.asarray(center, dtype=np.float32)
    return float(np.linalg.norm(d, axis=1).mean())
