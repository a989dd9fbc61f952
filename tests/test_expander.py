import numpy as np
import pytest

from config import WORKGROUP_SIZE
from pointcloud import Uniforms, pack_vertices, allocate_sink, empty_vertices
from expander import (
    expand_points, workgroup_count, global_indices, active_invocations,
    check_sink_length,
)

SQRT3_2 = 0.86602540378


def _perspective():
    f = 1.0 / np.tan(np.radians(60.0) / 2.0)
    near, far = 0.1, 10.0
    return np.array([
        [f / 1.5, 0.0, 0.0, 0.0],
        [0.0, f, 0.0, 0.0],
        [0.0, 0.0, (far + near) / (near - far), 2 * far * near / (near - far)],
        [0.0, 0.0, -1.0, 0.0],
    ], dtype=np.float32)


def _projected(uniforms, source):
    pos = source['position'].astype(np.float64)
    homo = np.hstack([pos, np.ones((len(pos), 1))])
    clip = homo @ uniforms.projection.astype(np.float64).T
    return clip[:, :3] / clip[:, 3:4]


def test_single_point_identity():
    source = pack_vertices([[0.0, 0.0, 0.0]], [[0.2, 0.4, 0.6]])
    u = Uniforms(np.eye(4, dtype=np.float32), 1.0)
    sink = expand_points(u, source)

    assert len(sink) == 3
    np.testing.assert_allclose(sink['position'], [
        [0.0, -1.0, 0.0],
        [-SQRT3_2, 0.5, 0.0],
        [SQRT3_2, 0.5, 0.0],
    ], atol=1e-6)
    for k in range(3):
        np.testing.assert_array_equal(sink['color'][k], source['color'][0])


@pytest.mark.parametrize("n", [0, 1, 63, 64, 65, 200])
def test_output_length(random_cloud, n):
    u = Uniforms(_perspective(), 0.01)
    source = random_cloud(n)
    source['position'][:, 2] -= 3.0
    assert len(expand_points(u, source)) == 3 * n


def test_colors_shared_per_triangle(random_cloud):
    source = random_cloud(130)
    sink = expand_points(Uniforms(np.eye(4, dtype=np.float32), 0.05), source)
    tri_colors = sink['color'].reshape(-1, 3, 3)
    for k in range(3):
        np.testing.assert_array_equal(tri_colors[:, k], source['color'])


def test_centroid_and_circumradius(random_cloud):
    source = random_cloud(150)
    source['position'][:, 2] -= 3.0
    u = Uniforms(_perspective(), 0.02)
    sink = expand_points(u, source)

    tris = sink['position'].reshape(-1, 3, 3).astype(np.float64)
    expected = _projected(u, source)

    centroid = tris[:, :, :2].mean(axis=1)
    np.testing.assert_allclose(centroid, expected[:, :2], atol=1e-5)

    dist = np.linalg.norm(tris[:, :, :2] - centroid[:, None, :], axis=2)
    np.testing.assert_allclose(dist, 0.02, atol=1e-5)

    # All three corners stay in the centre's depth plane
    for k in range(3):
        np.testing.assert_allclose(tris[:, k, 2], expected[:, 2], atol=1e-5)


def test_perspective_divide_applied():
    proj = np.diag([2.0, 2.0, 2.0, 2.0]).astype(np.float32)
    source = pack_vertices([[0.5, -0.25, 0.75]])
    sink = expand_points(Uniforms(proj, 0.0), source)
    # w = 2 cancels the scale; without the divide positions would double
    np.testing.assert_allclose(sink['position'],
                               [[0.5, -0.25, 0.75]] * 3, atol=1e-7)


def test_index_preserving(random_cloud):
    source = random_cloud(70)
    u = Uniforms(np.eye(4, dtype=np.float32), 0.1)
    sink = expand_points(u, source)
    for i in (0, 63, 64, 69):
        single = expand_points(u, source[i:i + 1])
        np.testing.assert_array_equal(
            sink[3 * i:3 * i + 3].tobytes(), single.tobytes())


def test_idempotent(random_cloud):
    source = random_cloud(97)
    source['position'][:, 2] -= 3.0
    u = Uniforms(_perspective(), 0.003)
    first = expand_points(u, source)
    second = expand_points(u, source, allocate_sink(len(source)))
    assert first.tobytes() == second.tobytes()


def test_empty_source_leaves_sink_untouched():
    sink = empty_vertices(0)
    out = expand_points(Uniforms(np.eye(4, dtype=np.float32), 1.0),
                        empty_vertices(0), sink)
    assert out is sink
    assert len(out) == 0
    assert workgroup_count(0) == 0


def test_sink_length_mismatch_rejected(random_cloud):
    source = random_cloud(4)
    sink = allocate_sink(4)
    sentinel = sink.tobytes()
    with pytest.raises(ValueError):
        expand_points(Uniforms(np.eye(4, dtype=np.float32), 1.0),
                      source, empty_vertices(11))
    with pytest.raises(ValueError):
        check_sink_length(4, 13)
    check_sink_length(4, 12)
    assert sink.tobytes() == sentinel


def test_workgroup_grid_bounds_check():
    assert WORKGROUP_SIZE == 64
    assert workgroup_count(64) == 1
    assert workgroup_count(65) == 2

    second = global_indices(1)
    assert second[0] == 64 and second[-1] == 127
    np.testing.assert_array_equal(active_invocations(1, 65), [64])
    assert len(active_invocations(0, 65)) == 64


def test_partial_last_group_writes_only_valid_slices(random_cloud):
    source = random_cloud(65)
    sink = expand_points(Uniforms(np.eye(4, dtype=np.float32), 0.1), source)
    np.testing.assert_array_equal(sink['color'][192:195],
                                  np.repeat(source['color'][64:65], 3, 0))


def test_degenerate_uniforms_do_not_raise():
    source = pack_vertices([[0.1, 0.2, 0.3], [1.0, 1.0, 1.0]])

    flat = expand_points(Uniforms(np.eye(4, dtype=np.float32), 0.0), source)
    tris = flat['position'].reshape(-1, 3, 3)
    np.testing.assert_array_equal(tris[:, 0], tris[:, 1])
    np.testing.assert_array_equal(tris[:, 1], tris[:, 2])

    zero_w = expand_points(
        Uniforms(np.zeros((4, 4), dtype=np.float32), 1.0), source)
    assert not np.all(np.isfinite(zero_w['position']))
