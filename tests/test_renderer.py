import numpy as np
import pytest

from pointcloud import Uniforms, pack_vertices

SIZE = 64


@pytest.fixture
def renderer(gl_ctx, gpu):
    from renderer import Renderer
    r = Renderer(gl_ctx, gpu)
    yield r
    r.release()


@pytest.fixture
def fbo(gl_ctx):
    target = gl_ctx.simple_framebuffer((SIZE, SIZE), components=4)
    yield target
    target.release()


def _pixels(fbo):
    raw = fbo.read(components=3)
    return np.frombuffer(raw, dtype=np.uint8).reshape(SIZE, SIZE, 3)


def test_sprite_drawn_from_sink(gpu, renderer, fbo, restore_settings):
    restore_settings["bg_color"] = [0.0, 0.0, 0.0]
    gpu.import_points(pack_vertices([[0.0, 0.0, 0.0]], [[0.0, 1.0, 0.0]]))
    u = Uniforms.for_viewport(np.eye(4, dtype=np.float32), SIZE,
                              sprite_px=8.0)
    assert gpu.dispatch_expander(u)

    renderer.render(SIZE, SIZE, gpu, u, fbo=fbo)
    img = _pixels(fbo)

    np.testing.assert_array_equal(img[SIZE // 2, SIZE // 2], [0, 255, 0])
    np.testing.assert_array_equal(img[0, 0], [0, 0, 0])
    np.testing.assert_array_equal(img[SIZE - 1, SIZE - 1], [0, 0, 0])


def test_no_points_clears_to_background(gpu, renderer, fbo, restore_settings):
    restore_settings["bg_color"] = [1.0, 0.0, 0.0]
    gpu.import_points(pack_vertices(np.zeros((0, 3))))
    u = Uniforms.for_viewport(np.eye(4, dtype=np.float32), SIZE)
    assert not gpu.dispatch_expander(u)

    renderer.render(SIZE, SIZE, gpu, u, fbo=fbo)
    img = _pixels(fbo)
    assert (img == [255, 0, 0]).all()
