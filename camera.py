# =============================
# Orbit camera
# =============================
import numpy as np

from config import (
    CAMERA_FOV, CAMERA_NEAR, CAMERA_FAR, CAMERA_MIN_DISTANCE,
    CAMERA_DISTANCE_SCALE, CAMERA_SPEED_SCALE, settings,
)


class OrbitCamera:
    def __init__(self, target=None, distance=4.0, yaw=0.0, pitch=0.0):
        self.target = (np.array(target, dtype='f4') if target is not None
                       else np.zeros(3, dtype='f4'))
        self.distance = distance
        self.yaw = yaw
        self.pitch = pitch
        # Cloud scale: clip planes and movement speed follow it
        self.scale = 1.0
        self._home = (self.target.copy(), distance)

    def reset(self):
        """Back to the position chosen by ``frame_points``."""
        target, distance = self._home
        self.target = target.copy()
        self.distance = distance
        self.yaw = 0.0
        self.pitch = 0.0

    def frame_points(self, center, avg_distance):
        """Centre the orbit on a cloud and back off to see all of it."""
        scale = max(float(avg_distance), CAMERA_MIN_DISTANCE)
        self.scale = scale
        self._home = (np.array(center, dtype='f4'),
                      CAMERA_DISTANCE_SCALE * scale)
        settings["camera_speed"] = CAMERA_SPEED_SCALE * scale
        self.reset()

    def rotate(self, dx, dy, sensitivity=None):
        """Вращение камеры (LMB drag)"""
        if sensitivity is None:
            sensitivity = settings["camera_sensitivity"] * 6.0
        self.yaw -= dx * sensitivity
        self.pitch += dy * sensitivity
        self.pitch = np.clip(self.pitch, -np.pi / 2 + 0.01, np.pi / 2 - 0.01)

    def pan(self, dx, dy, sensitivity=0.005):
        """Панорамирование камеры (RMB drag)"""
        right, up, _ = self._basis()
        step = sensitivity * self.distance * 0.25
        self.target += right * dx * step
        self.target -= up * dy * step

    def zoom(self, delta, sensitivity=0.1):
        """Зум камеры (scroll)"""
        self.distance = max(CAMERA_MIN_DISTANCE * self.scale,
                            self.distance * (1.0 - delta * sensitivity))

    def move(self, forward, right, up, dt):
        """Keyboard translation of the orbit target (units per second)."""
        r, u, f = self._basis()
        step = settings["camera_speed"] * dt
        self.target += (f * forward + r * right + u * up) * step

    def _basis(self):
        """Camera right / up / forward vectors in world space."""
        eye = self.get_eye_position()
        f = self.target - eye
        f = f / max(np.linalg.norm(f), 1e-8)
        right = np.array([np.cos(self.yaw), 0.0, -np.sin(self.yaw)],
                         dtype='f4')
        up = np.cross(right, f).astype('f4')
        return right, up, f.astype('f4')

    def get_eye_position(self):
        """Позиция камеры в мировых координатах"""
        return self.target + self.distance * np.array([
            np.cos(self.pitch) * np.sin(self.yaw),
            np.sin(self.pitch),
            np.cos(self.pitch) * np.cos(self.yaw),
        ], dtype='f4')

    def get_view_projection(self, width, height, fov=CAMERA_FOV):
        """Row-major view-projection matrix (``clip = M @ [x, y, z, 1]``)."""
        aspect = max(width, 1) / max(height, 1)
        near = CAMERA_NEAR * self.scale
        far = max(CAMERA_FAR * self.scale, self.distance * 4.0)
        proj = self._perspective(np.radians(fov), aspect, near, far)
        view = self._look_at(self.get_eye_position(), self.target)
        return (proj @ view).astype('f4')

    @staticmethod
    def _perspective(fov, aspect, near, far):
        f = 1.0 / np.tan(fov / 2.0)
        nf = near - far
        return np.array([
            [f / aspect, 0.0, 0.0,                        0.0],
            [0.0,        f,   0.0,                        0.0],
            [0.0,        0.0, (far + near) / nf, 2.0 * far * near / nf],
            [0.0,        0.0, -1.0,                       0.0],
        ], dtype='f4')

    @staticmethod
    def _look_at(eye, target, up=None):
        if up is None:
            up = np.array([0, 1, 0], dtype='f4')
        f = np.float32(target - eye)
        f = f / np.linalg.norm(f)
        s = np.cross(f, up)
        sn = np.linalg.norm(s)
        if sn < 1e-6:
            up = np.array([1, 0, 0], dtype='f4')
            s = np.cross(f, up)
            sn = np.linalg.norm(s)
        s = s / sn
        u = np.cross(s, f)
        m = np.eye(4, dtype='f4')
        m[0, :3] = s
        m[1, :3] = u
        m[2, :3] = -f
        m[0, 3] = -np.dot(s, eye)
        m[1, 3] = -np.dot(u, eye)
        m[2, 3] = np.dot(f, eye)
        return m
