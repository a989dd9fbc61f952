import numpy as np
import pytest

from pointcloud import pack_vertices


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def random_cloud(rng):
    def make(n):
        positions = rng.uniform(-1.0, 1.0, size=(n, 3))
        colors = rng.uniform(0.0, 1.0, size=(n, 3))
        return pack_vertices(positions, colors)
    return make


@pytest.fixture(scope="session")
def gl_ctx():
    moderngl = pytest.importorskip("moderngl")
    try:
        ctx = moderngl.create_standalone_context(require=430)
    except Exception:
        # Headless machines: no X display, try EGL
        try:
            ctx = moderngl.create_standalone_context(require=430,
                                                     backend="egl")
        except Exception as e:
            pytest.skip(f"no OpenGL 4.3 context available: {e}")
    yield ctx
    ctx.release()


@pytest.fixture
def gpu(gl_ctx):
    from gpu_pipeline import GPUPipeline
    pipeline = GPUPipeline(gl_ctx)
    yield pipeline
    pipeline.release()


@pytest.fixture(autouse=True)
def restore_settings():
    from config import settings
    saved = {k: (list(v) if isinstance(v, list) else v)
             for k, v in settings.items()}
    yield settings
    settings.clear()
    settings.update(saved)
