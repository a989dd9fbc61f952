# =============================
# spritecloud — Application
# =============================
"""
Entry point and the thin ``Application`` class: window creation, event
loop, and delegation to the subsystems:

  ``importer.py``     — PLY / image import
  ``gpu_pipeline.py`` — ``GPUPipeline`` (expander compute shader, SSBOs)
  ``renderer.py``     — ``Renderer``    (sprite + face passes)
  ``ui_manager.py``   — ``UIManager``   (ImGui settings panel)

Every frame builds one ``Uniforms`` value and hands it to both the
expander dispatch and the renderer, in that order.
"""

import argparse
import logging
import time

import numpy as np
import glfw
import moderngl
import imgui
from imgui.integrations.glfw import GlfwRenderer

import config
from config import WINDOW_W, WINDOW_H, WINDOW_TITLE, TARGET_FPS, settings
from camera import OrbitCamera
from app_state import ViewerState
from importer import load_file, PlyImport
from pointcloud import (
    Uniforms, avg_vertex_position, avg_vertex_distance, empty_vertices,
)
from gpu_pipeline import GPUPipeline
from renderer import Renderer
from ui_manager import UIManager
from perf_metrics import PerfMetrics

log = logging.getLogger(__name__)

FRAME_TIME = 1.0 / TARGET_FPS

# (key(s), forward, right, up)
_MOVE_KEYS = (
    ((glfw.KEY_W, glfw.KEY_UP), 1.0, 0.0, 0.0),
    ((glfw.KEY_S, glfw.KEY_DOWN), -1.0, 0.0, 0.0),
    ((glfw.KEY_D, glfw.KEY_RIGHT), 0.0, 1.0, 0.0),
    ((glfw.KEY_A, glfw.KEY_LEFT), 0.0, -1.0, 0.0),
    ((glfw.KEY_SPACE,), 0.0, 0.0, 1.0),
    ((glfw.KEY_LEFT_SHIFT,), 0.0, 0.0, -1.0),
)


class Application:
    """Top-level application object.  Owns all subsystems."""

    def __init__(self, files):
        self.state = ViewerState()

        # ── GLFW + OpenGL ──
        if not glfw.init():
            log.critical("GLFW init failed")
            raise SystemExit(1)

        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 4)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, True)

        self.window = glfw.create_window(
            WINDOW_W, WINDOW_H, WINDOW_TITLE, None, None)
        if not self.window:
            log.critical("Could not create an OpenGL 4.3 window")
            glfw.terminate()
            raise SystemExit(1)

        glfw.make_context_current(self.window)
        glfw.swap_interval(settings["vsync"])

        self.ctx = moderngl.create_context()

        # ── ImGui ──
        imgui.create_context()
        self.impl = GlfwRenderer(self.window)

        # From this point, failures must clean up GL resources.
        try:
            self.camera = OrbitCamera()
            self.gpu = GPUPipeline(self.ctx)
            self.renderer = Renderer(self.ctx, self.gpu)
            self.ui = UIManager()
            self.metrics = PerfMetrics(self.ctx)

            # ── Scroll callback chain ──
            self._imgui_scroll_cb = self.impl.scroll_callback

            def _scroll(w, xoff, yoff):
                self.state.scroll_accum += yoff
                self._imgui_scroll_cb(w, xoff, yoff)

            glfw.set_scroll_callback(self.window, _scroll)

            self._import_files(files)
        except (Exception, SystemExit):
            log.exception("Error during Application init — cleaning up")
            self._cleanup()
            raise

    # ────────────────────── Import ──────────────────────

    def _import_files(self, files):
        s = self.state
        points = []
        for path in files:
            try:
                result = load_file(path)
            except (OSError, ValueError) as e:
                log.error("Import failed: %s", e)
                s.import_errors.append(str(e))
                continue

            s.file_names.append(str(path))
            if isinstance(result, PlyImport):
                points.append(result.point_vertices)
                if len(result.face_indices):
                    # Last mesh wins; the face pass holds a single mesh
                    self.renderer.import_faces(
                        result.face_vertices, result.face_indices)
                    s.num_face_triangles = len(result.face_indices) // 3
            else:
                img = np.ascontiguousarray(result.image)
                h, w = img.shape[:2]
                tex = self.ctx.texture((w, h), 3, img.tobytes())
                tex.filter = (moderngl.LINEAR, moderngl.LINEAR)
                s.image_textures.append(tex)

        vertices = np.concatenate(points) if points else empty_vertices(0)
        self.gpu.import_points(vertices)
        s.num_points = len(vertices)

        if len(vertices):
            center = avg_vertex_position(vertices)
            self.camera.frame_points(
                center, avg_vertex_distance(center, vertices))
        if s.import_errors and not s.file_names:
            s.set_status("Nothing imported")
        log.info("Scene: %d points, %d face triangles",
                 s.num_points, s.num_face_triangles)

    # ────────────────────── Main loop ──────────────────────

    def run(self):
        s = self.state
        try:
            while not glfw.window_should_close(self.window):
                now = time.perf_counter()
                dt = now - s.prev_frame_time
                s.prev_frame_time = now
                self.metrics.begin_frame()

                # FPS
                s.fps_counter += 1
                if now - s.fps_timer >= 1.0:
                    s.current_fps = s.fps_counter
                    s.fps_counter = 0
                    s.fps_timer = now

                # Events
                self.metrics.begin("events")
                glfw.poll_events()
                self.impl.process_inputs()
                if glfw.get_key(self.window, glfw.KEY_ESCAPE) == glfw.PRESS:
                    break
                self._handle_hotkeys()
                self._handle_mouse()
                self._handle_keyboard(dt)
                self.metrics.end("events")

                w, h = glfw.get_framebuffer_size(self.window)
                s.fb_width, s.fb_height = w, h
                if w < 1 or h < 1:
                    continue

                # ── Per-frame uniforms, shared by both stages ──
                uniforms = Uniforms.for_viewport(
                    self.camera.get_view_projection(w, h), h,
                    settings["sprite_px"])

                # ── Expander compute pass ──
                self.metrics.begin("expand")
                self.metrics.begin_gpu("expand")
                self.gpu.dispatch_expander(uniforms)
                self.metrics.end_gpu("expand")
                self.metrics.end("expand")

                # ── Rasterization pass ──
                self.metrics.begin("render")
                self.metrics.begin_gpu("render")
                self.renderer.render(w, h, self.gpu, uniforms)
                self.metrics.end_gpu("render")
                self.metrics.end("render")

                # ── ImGui ──
                self.metrics.begin("imgui")
                imgui.new_frame()
                self.ui.draw(s, self.camera, self.metrics)
                imgui.render()
                self.impl.render(imgui.get_draw_data())
                self.metrics.end("imgui")

                self.metrics.begin("swap")
                glfw.swap_buffers(self.window)
                self.metrics.end("swap")

                # ── Frame limiter (when vsync is off) ──
                if not settings["vsync"]:
                    sleep_time = now + FRAME_TIME - time.perf_counter()
                    if sleep_time > 0:
                        time.sleep(sleep_time)

                self.metrics.end_frame()
        finally:
            self._cleanup()

    # ────────────────────── Input ──────────────────────

    def _handle_hotkeys(self):
        s = self.state
        w = self.window

        # F11 — fullscreen
        f11 = glfw.get_key(w, glfw.KEY_F11) == glfw.PRESS
        if f11 and not s.f11_was_pressed:
            self._toggle_fullscreen()
        s.f11_was_pressed = f11

        # Home — camera reset
        home = glfw.get_key(w, glfw.KEY_HOME) == glfw.PRESS
        if home and not s.home_was_pressed:
            self.camera.reset()
        s.home_was_pressed = home

    def _handle_mouse(self):
        s = self.state
        io = imgui.get_io()
        mx, my = glfw.get_cursor_pos(self.window)

        if not io.want_capture_mouse:
            if s.mouse_initialized:
                dx = mx - s.last_mx
                dy = my - s.last_my
                if glfw.get_mouse_button(
                        self.window, glfw.MOUSE_BUTTON_LEFT) == glfw.PRESS:
                    self.camera.rotate(dx, dy)
                if glfw.get_mouse_button(
                        self.window, glfw.MOUSE_BUTTON_RIGHT) == glfw.PRESS:
                    self.camera.pan(dx, dy)
            if s.scroll_accum != 0.0:
                self.camera.zoom(s.scroll_accum)

        s.scroll_accum = 0.0
        s.last_mx, s.last_my = mx, my
        s.mouse_initialized = True

    def _handle_keyboard(self, dt):
        if imgui.get_io().want_capture_keyboard:
            return
        forward = right = up = 0.0
        for keys, f, r, u in _MOVE_KEYS:
            if any(glfw.get_key(self.window, k) == glfw.PRESS for k in keys):
                forward += f
                right += r
                up += u
        if forward or right or up:
            self.camera.move(forward, right, up, dt)

    def _toggle_fullscreen(self):
        s = self.state
        if s.is_fullscreen:
            glfw.set_window_monitor(
                self.window, None,
                s.windowed_pos[0], s.windowed_pos[1],
                s.windowed_size[0], s.windowed_size[1], 0)
            s.is_fullscreen = False
        else:
            s.windowed_pos = list(glfw.get_window_pos(self.window))
            s.windowed_size = list(glfw.get_window_size(self.window))
            monitor = glfw.get_primary_monitor()
            mode = glfw.get_video_mode(monitor)
            glfw.set_window_monitor(
                self.window, monitor, 0, 0,
                mode.size.width, mode.size.height,
                mode.refresh_rate)
            s.is_fullscreen = True

    # ────────────────────── Cleanup ──────────────────────

    def _cleanup(self):
        # Release in reverse init order; guard each in case init failed partway.
        if hasattr(self, 'impl'):
            self.impl.shutdown()
        for tex in self.state.image_textures:
            tex.release()
        self.state.image_textures.clear()
        if hasattr(self, 'renderer'):
            self.renderer.release()
        if hasattr(self, 'gpu'):
            self.gpu.release()
        if hasattr(self, 'ctx'):
            self.ctx.release()
        glfw.terminate()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="spritecloud",
        description="Point cloud viewer drawing every point as a "
                    "screen-facing triangle.")
    parser.add_argument("files", nargs="+",
                        help="input files (.ply, .png, .jpg)")
    parser.add_argument("-d", "--debug", action="store_true",
                        help="verbose logging")
    parser.add_argument("--config", metavar="PATH",
                        help="JSON file with settings overrides")
    parser.add_argument("--sprite-px", type=float,
                        help="sprite radius in pixels")
    args = parser.parse_args(argv)
    if args.sprite_px is not None and not args.sprite_px > 0:
        parser.error("--sprite-px must be > 0")
    return args


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format="%(asctime)s [%(levelname)s] %(message)s")

    if args.config:
        try:
            config.load_settings(args.config)
        except (OSError, ValueError) as e:
            log.error("Settings file rejected: %s", e)
            raise SystemExit(2)
    if args.sprite_px is not None:
        settings["sprite_px"] = args.sprite_px

    app = Application(args.files)
    app.run()


# ── Entry point ──
if __name__ == "__main__":
    main()
