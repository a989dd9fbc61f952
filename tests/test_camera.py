import numpy as np
import pytest

from config import CAMERA_DISTANCE_SCALE, CAMERA_SPEED_SCALE
from camera import OrbitCamera


def _to_ndc(mvp, point):
    clip = mvp @ np.append(np.asarray(point, dtype=np.float64), 1.0)
    return clip[:3] / clip[3]


def test_target_projects_to_screen_centre():
    cam = OrbitCamera(target=[1.0, -2.0, 0.5], distance=3.0,
                      yaw=0.4, pitch=-0.3)
    ndc = _to_ndc(cam.get_view_projection(800, 600), cam.target)
    np.testing.assert_allclose(ndc[:2], [0.0, 0.0], atol=1e-5)
    assert -1.0 < ndc[2] < 1.0


def test_frame_points_sets_distance_and_speed(restore_settings):
    cam = OrbitCamera()
    cam.frame_points([1.0, 2.0, 3.0], 4.0)
    np.testing.assert_allclose(cam.target, [1.0, 2.0, 3.0])
    assert cam.distance == pytest.approx(CAMERA_DISTANCE_SCALE * 4.0)
    assert restore_settings["camera_speed"] == pytest.approx(
        CAMERA_SPEED_SCALE * 4.0)


def test_reset_returns_home():
    cam = OrbitCamera()
    cam.frame_points([0.0, 0.0, 0.0], 1.0)
    cam.rotate(120, -40, sensitivity=0.01)
    cam.pan(10, 10)
    cam.zoom(3)
    cam.reset()
    np.testing.assert_allclose(cam.target, [0.0, 0.0, 0.0])
    assert cam.distance == pytest.approx(CAMERA_DISTANCE_SCALE)
    assert cam.yaw == 0.0 and cam.pitch == 0.0


def test_pitch_is_clamped():
    cam = OrbitCamera()
    cam.rotate(0, 1e6, sensitivity=1.0)
    assert cam.pitch < np.pi / 2


def test_zoom_never_reaches_target():
    cam = OrbitCamera(distance=1.0)
    for _ in range(100):
        cam.zoom(20)
    assert cam.distance > 0.0


def test_move_forward_approaches_target_direction(restore_settings):
    restore_settings["camera_speed"] = 2.0
    cam = OrbitCamera(distance=5.0)
    eye_before = cam.get_eye_position().copy()
    cam.move(1.0, 0.0, 0.0, 0.5)
    # yaw = pitch = 0 looks down -z, one unit of travel
    np.testing.assert_allclose(cam.target, [0.0, 0.0, -1.0], atol=1e-6)
    np.testing.assert_allclose(cam.get_eye_position() - eye_before,
                               [0.0, 0.0, -1.0], atol=1e-6)
