# =============================
# spritecloud configuration
# =============================
import json
import logging
import math
from typing import List, TypedDict

log = logging.getLogger(__name__)

# Window
WINDOW_W, WINDOW_H = 800, 600
WINDOW_TITLE = "spritecloud"

# Expander dispatch: one invocation per point, 64 per workgroup
WORKGROUP_SIZE = 64

# Vertex record: vec3 position @0, vec3 color @16 (std430 vec3 alignment)
VERTEX_STRIDE = 32
VERTEX_COLOR_OFFSET = 16

# Uniform block (std140): mat4 projection + float pixel_size, padded to 16
UNIFORM_BLOCK_SIZE = 80

# Equilateral triangle of circumradius 1 around the sprite centre
SPRITE_OFFSETS = (
    (0.0, -1.0),
    (-0.86602540378, 0.5),
    (0.86602540378, 0.5),
)

# Camera
CAMERA_FOV = 60.0
CAMERA_NEAR = 0.01
CAMERA_FAR = 100.0
CAMERA_MIN_DISTANCE = 1e-3
CAMERA_DISTANCE_SCALE = 2.0   # start distance = scale * avg vertex distance
CAMERA_SPEED_SCALE = 5.0      # start speed = scale * avg vertex distance
CAMERA_SPEED_RANGE = (1.0, 25.0)              # multiples of the cloud scale
CAMERA_SENSITIVITY_RANGE = (0.0001, 0.003)

TARGET_FPS = 144

# Settings that must be finite and strictly positive
POSITIVE_SETTINGS = ("sprite_px", "camera_speed", "camera_sensitivity")

# =============================
# Runtime settings
# =============================


class Settings(TypedDict):
    """Typed schema for the runtime settings dict.

    Using ``int`` for boolean toggles (0/1) to match ImGui checkbox
    conventions.
    """
    sprite_px: float          # sprite circumradius in framebuffer pixels
    show_faces: int
    show_metrics: int
    bg_color: List[float]     # [r, g, b] 0‒1
    camera_speed: float
    camera_sensitivity: float
    vsync: int


settings: Settings = {
    "sprite_px": 1.0,
    "show_faces": 1,
    "show_metrics": 0,
    "bg_color": [0.0, 0.0, 0.0],
    "camera_speed": 0.5,
    "camera_sensitivity": 0.000818123,
    "vsync": 1,
}


def load_settings(path):
    """Merge JSON overrides from ``path`` into ``settings``.

    Unknown keys are skipped with a warning.  A value whose type does not
    match the default raises ``ValueError`` (ints are accepted for floats),
    as does a non-positive or non-finite ``POSITIVE_SETTINGS`` value.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must hold a JSON object: {path}")

    for key, value in data.items():
        if key not in settings:
            log.warning("Unknown setting ignored: %s", key)
            continue
        default = settings[key]
        if isinstance(default, float) and isinstance(value, int):
            value = float(value)
        if isinstance(default, list):
            if (not isinstance(value, list) or len(value) != len(default)):
                raise ValueError(
                    f"Setting {key!r} expects a list of {len(default)}")
            value = [float(v) for v in value]
        elif type(value) is not type(default):
            raise ValueError(
                f"Setting {key!r} expects {type(default).__name__}, "
                f"got {type(value).__name__}")
        if key in POSITIVE_SETTINGS and not (math.isfinite(value)
                                             and value > 0):
            raise ValueError(
                f"Setting {key!r} must be a finite number > 0, got {value}")
        settings[key] = value
    log.info("Settings loaded: %s", path)
    return settings
