# =============================
# Point expander — CPU rendition of the compute stage
# =============================
"""
numpy implementation of ``POINT_EXPANDER_COMPUTE_SHADER``.

Each source point ``i`` is projected, divided by ``w`` and written as
three sink vertices ``3i, 3i+1, 3i+2`` forming an equilateral triangle of
circumradius ``pixel_size`` around the projected centre.

The dispatch is emulated the way the GPU runs it: ``workgroup_count(n)``
groups of ``WORKGROUP_SIZE`` invocations, each with global index
``group_id * WORKGROUP_SIZE + local_id``.  Invocations whose index is
``>= n`` do nothing.  Every invocation owns the disjoint sink slice
``[3i, 3i + 3)``, so groups can be processed in any order.

All arithmetic is float32, as on the GPU.
"""

import logging

import numpy as np

from config import WORKGROUP_SIZE, SPRITE_OFFSETS
from pointcloud import allocate_sink

log = logging.getLogger(__name__)

_OFFSETS = np.array(SPRITE_OFFSETS, dtype=np.float32)


def workgroup_count(n_points, group_size=WORKGROUP_SIZE):
    """Number of workgroups needed to cover ``n_points`` invocations."""
    return (n_points + group_size - 1) // group_size


def global_indices(group_id, group_size=WORKGROUP_SIZE):
    """Global invocation indices of every lane in workgroup ``group_id``."""
    return group_id * group_size + np.arange(group_size, dtype=np.int64)


def active_invocations(group_id, n_points, group_size=WORKGROUP_SIZE):
    """Indices in workgroup ``group_id`` that pass the bounds check."""
    idx = global_indices(group_id, group_size)
    return idx[idx < n_points]


def check_sink_length(n_source, n_sink):
    """Reject a dispatch whose sink is not exactly 3x the source."""
    if n_sink != 3 * n_source:
        raise ValueError(
            f"sink holds {n_sink} vertices, expected 3 * {n_source} = "
            f"{3 * n_source}")


def _run_invocations(projection, pixel_size, source, sink, idx):
    # Each row of idx is one invocation; they never touch each other's slice
    pos = source['position'][idx]
    col = source['color'][idx]

    homo = np.empty((len(idx), 4), dtype=np.float32)
    homo[:, :3] = pos
    homo[:, 3] = 1.0
    clip = homo @ projection.T

    # Degenerate w yields inf/NaN geometry, not an error
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        center = clip[:, :3] / clip[:, 3:4]
        for k in range(3):
            out = 3 * idx + k
            xy = center[:, :2] + _OFFSETS[k] * pixel_size
            sink['position'][out, 0] = xy[:, 0]
            sink['position'][out, 1] = xy[:, 1]
            sink['position'][out, 2] = center[:, 2]
            sink['color'][out] = col


def expand_points(uniforms, source, sink=None, group_size=WORKGROUP_SIZE):
    """Expand ``source`` points into screen-facing triangles.

    Parameters
    ----------
    uniforms : pointcloud.Uniforms
        Projection and sprite size for this frame.  Not validated here;
        degenerate values give degenerate geometry.
    source : ndarray of ``VERTEX_DTYPE``
        N point vertices (read only).
    sink : ndarray of ``VERTEX_DTYPE``, optional
        Destination of length exactly ``3N``.  Allocated when omitted.

    Returns the sink.  With N = 0 nothing is dispatched and the sink is
    left untouched.
    """
    n = len(source)
    if sink is None:
        sink = allocate_sink(n)
    else:
        check_sink_length(n, len(sink))

    groups = workgroup_count(n, group_size)
    if groups == 0:
        return sink

    projection = np.asarray(uniforms.projection, dtype=np.float32)
    pixel_size = np.float32(uniforms.pixel_size)
    for group_id in range(groups):
        idx = active_invocations(group_id, n, group_size)
        _run_invocations(projection, pixel_size, source, sink, idx)

    log.debug("Expanded %d points in %d workgroups", n, groups)
    return sink
