# =============================
# Centralized viewer state
# =============================
"""
One ``ViewerState`` instance is created in ``Application.__init__`` and
passed by reference to the subsystems that read or change input/UI state.
Per-frame rendering values (``Uniforms``) are not kept here; they are built
fresh each frame and handed to the GPU stages explicitly.
"""

import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ViewerState:
    """All mutable runtime state, grouped logically."""

    # ── Loaded data ──
    file_names: list = field(default_factory=list)
    num_points: int = 0
    num_face_triangles: int = 0
    import_errors: list = field(default_factory=list)

    # ── Images (moderngl textures, shown in the settings panel) ──
    image_textures: list = field(default_factory=list)
    displayed_image_idx: int = 0

    # ── FPS tracking ──
    fps_counter: int = 0
    fps_timer: float = field(default_factory=time.perf_counter)
    current_fps: int = 0

    # ── Window ──
    fb_width: int = 0
    fb_height: int = 0
    windowed_pos: list = field(default_factory=lambda: [100, 100])
    windowed_size: list = field(default_factory=lambda: [800, 600])
    is_fullscreen: bool = False
    f11_was_pressed: bool = False
    home_was_pressed: bool = False

    # ── Camera / mouse ──
    last_mx: float = 0.0
    last_my: float = 0.0
    mouse_initialized: bool = False
    scroll_accum: float = 0.0

    # ── Timing ──
    start_time: float = field(default_factory=time.perf_counter)
    prev_frame_time: float = field(default_factory=time.perf_counter)

    # ── Status line ──
    status_msg: str = ""
    status_time: Optional[float] = None

    def set_status(self, msg):
        self.status_msg = msg
        self.status_time = time.perf_counter()
