# =============================
# UIManager — ImGui settings panel
# =============================
"""
All ImGui drawing code lives here: sprite/camera settings, scene
statistics, the imported image viewer and the performance readout.

Keeps ``main.py`` free of draw-call clutter.
"""

import logging

import imgui

from config import CAMERA_SPEED_RANGE, CAMERA_SENSITIVITY_RANGE, settings

log = logging.getLogger(__name__)

_PANEL_WIDTH_FRAC = 0.20
_IMAGE_WIDTH = 360.0


class UIManager:
    """Draws the settings panel."""

    # ────────────────── Settings helpers ──────────────────

    @staticmethod
    def _checkbox(label, key):
        """imgui checkbox bound to settings[key]. Returns True if changed."""
        changed, val = imgui.checkbox(label, bool(settings[key]))
        if changed:
            settings[key] = int(val)
        return changed

    @staticmethod
    def _slider_float(label, key, v_min, v_max, fmt="%.1f", log_scale=False):
        """imgui slider_float bound to settings[key]."""
        flags = imgui.SLIDER_FLAGS_LOGARITHMIC if log_scale else 0
        changed, val = imgui.slider_float(
            label, settings[key], v_min, v_max, fmt, flags)
        if changed:
            settings[key] = min(max(val, v_min), v_max)
        return changed

    # ────────────────── Main draw ──────────────────

    def draw(self, state, camera, metrics=None):
        """Draw the settings window."""
        w = max(state.fb_width, 1)
        imgui.set_next_window_position(8, 8, imgui.FIRST_USE_EVER)
        imgui.set_next_window_size(
            max(w * _PANEL_WIDTH_FRAC, 260), 0, imgui.FIRST_USE_EVER)
        imgui.begin("spritecloud")

        expanded, _ = imgui.collapsing_header("Settings")
        if expanded:
            self._draw_settings_section(camera)
            self._draw_scene_section(state)
            self._draw_images_section(state)
        if metrics is not None:
            self._draw_metrics_section(metrics)

        if state.status_msg:
            imgui.separator()
            imgui.text_wrapped(state.status_msg)

        imgui.separator()
        imgui.text("ESC - quit | F11 - fullscreen | Home - reset cam")
        imgui.text("WASD/arrows - move | Space/Shift - up/down")
        imgui.text("LMB - orbit | RMB - pan | Scroll - zoom")
        imgui.end()

    # ────────────────── Section: sprites & camera ──────────────────

    def _draw_settings_section(self, camera):
        self._slider_float("Sprite Size (px)", "sprite_px", 0.5, 16.0)

        s = camera.scale
        self._slider_float(
            "Speed", "camera_speed",
            CAMERA_SPEED_RANGE[0] * s, CAMERA_SPEED_RANGE[1] * s,
            "%.3f", log_scale=True)
        self._slider_float(
            "Sensitivity", "camera_sensitivity",
            *CAMERA_SENSITIVITY_RANGE, "%.5f", log_scale=True)

        changed, color = imgui.color_edit3(
            "Background", *settings["bg_color"])
        if changed:
            settings["bg_color"] = list(color)

        self._checkbox("Show Faces", "show_faces")
        self._checkbox("Perf Metrics", "show_metrics")
        imgui.separator()

    # ────────────────── Section: scene statistics ──────────────────

    @staticmethod
    def _draw_scene_section(state):
        for name in state.file_names:
            imgui.text(name)
        imgui.text(f"Points: {state.num_points:,}")
        imgui.text(f"Sprite triangles: {state.num_points:,}")
        imgui.text(f"Face triangles: {state.num_face_triangles:,}")
        imgui.text(f"Window width: {state.fb_width}")
        imgui.text(f"Window height: {state.fb_height}")
        imgui.text(f"FPS: {state.current_fps}")
        for err in state.import_errors:
            imgui.push_style_color(imgui.COLOR_TEXT, 0.95, 0.30, 0.20, 1.0)
            imgui.text_wrapped(err)
            imgui.pop_style_color()
        imgui.separator()

    # ────────────────── Section: imported images ──────────────────

    @staticmethod
    def _draw_images_section(state):
        n = len(state.image_textures)
        if n == 0:
            return
        if n > 1:
            changed, idx = imgui.slider_int(
                "image", state.displayed_image_idx, 0, n - 1, "#%d")
            if changed:
                state.displayed_image_idx = min(max(idx, 0), n - 1)
        tex = state.image_textures[state.displayed_image_idx]
        tw, th = tex.size
        imgui.image(tex.glo, _IMAGE_WIDTH, th * (_IMAGE_WIDTH / tw))
        imgui.separator()

    # ────────────────── Section: performance ──────────────────

    @staticmethod
    def _draw_metrics_section(metrics):
        metrics.request_enabled(settings["show_metrics"])
        if not settings["show_metrics"]:
            return
        expanded, _ = imgui.collapsing_header("Performance")
        if not expanded:
            return
        if imgui.button("Reset##perf"):
            metrics.reset()
        imgui.text(f"Frame: {metrics.frame_avg_ms:.2f} ms avg")

        for title, sections in (("CPU", metrics.get_cpu_sections()),
                                ("GPU", metrics.get_gpu_sections())):
            if not sections:
                continue
            imgui.separator()
            imgui.text(f"{title} Sections:")
            for name, avg_ms in sections:
                frac = min(avg_ms / 16.6, 1.0)
                imgui.progress_bar(frac, (140, 14), f"{avg_ms:.2f} ms")
                imgui.same_line()
                imgui.text(name)
