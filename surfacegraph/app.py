# --- Imports ---
import ctypes
import logging
import math
import os

import imgui
import numpy as np
import pygame
from imgui.integrations.pygame import PygameRenderer
from OpenGL.GL import *
from OpenGL.error import GLError

from .config import EXAMPLE_EXPRESSIONS, MAX_ZOOM, MIN_ZOOM, GraphSettings, ViewState
from .logging_config import setup_logging
from .pipeline import GraphSession

logger = logging.getLogger(__name__)

# --- GLSL Shaders ---
# Primitives arrive already projected and sorted, so the shader only places and colors them
VERTEX_SHADER_SOURCE = """
#version 330 core
layout (location = 0) in vec2 aPos;
layout (location = 1) in vec4 aColor;
uniform mat4 projection;
out vec4 vColor;
void main()
{
    vColor = aColor;
    gl_Position = projection * vec4(aPos, 0.0, 1.0);
}
"""

FRAGMENT_SHADER_SOURCE = """
#version 330 core
in vec4 vColor;
out vec4 FragColor;
void main()
{
    FragColor = vColor;
}
"""
# --- End GLSL Shaders ---

VERTEX_LAYOUT = [(0, 2, 0), (1, 4, 8)]  # (location, components, byte offset) for x, y, r, g, b, a


# --- OpenGL Helper Functions ---
def create_opengl_mesh(vertex_data, attribute_layout, usage=GL_DYNAMIC_DRAW):
    """Upload interleaved float32 vertex data. Returns (vao, vbo, vertex_count)."""
    if vertex_data is None or vertex_data.size == 0: return None, None, 0
    vao_id, vbo_id = None, None
    try:
        vertex_data = np.ascontiguousarray(vertex_data, dtype=np.float32)
        itemsize = vertex_data.itemsize
        _, last_size, last_offset = attribute_layout[-1]
        stride = last_offset + last_size * itemsize
        components_per_vertex = stride // itemsize
        if vertex_data.size % components_per_vertex != 0: raise ValueError("Vertex data size mismatch.")
        vao_id = glGenVertexArrays(1); glBindVertexArray(vao_id)
        vbo_id = glGenBuffers(1); glBindBuffer(GL_ARRAY_BUFFER, vbo_id)
        glBufferData(GL_ARRAY_BUFFER, vertex_data.nbytes, vertex_data, usage)
        for loc, size, offset_bytes in attribute_layout:
            glEnableVertexAttribArray(loc)
            glVertexAttribPointer(loc, size, GL_FLOAT, GL_FALSE, stride, ctypes.c_void_p(offset_bytes))
        glBindVertexArray(0); glBindBuffer(GL_ARRAY_BUFFER, 0)
        return vao_id, vbo_id, vertex_data.size // components_per_vertex
    except (GLError, ValueError) as e:
        logger.error("Failed to create OpenGL mesh: %s", e)
        if vao_id: glDeleteVertexArrays(1, [vao_id])
        if vbo_id: glDeleteBuffers(1, [vbo_id])
        return None, None, 0


def delete_opengl_mesh(mesh):
    vao_id, vbo_id, _ = mesh
    if vao_id: glDeleteVertexArrays(1, [vao_id])
    if vbo_id: glDeleteBuffers(1, [vbo_id])


def compile_shader(source, shader_type):
    shader = glCreateShader(shader_type)
    glShaderSource(shader, source)
    glCompileShader(shader)
    if not glGetShaderiv(shader, GL_COMPILE_STATUS):
        info_log = glGetShaderInfoLog(shader).decode()
        shader_type_str = "Vertex" if shader_type == GL_VERTEX_SHADER else "Fragment"
        logger.error("%s shader compilation failed:\n%s", shader_type_str, info_log)
        glDeleteShader(shader); return None
    return shader


def create_shader_program(vertex_source, fragment_source):
    vertex_shader = compile_shader(vertex_source, GL_VERTEX_SHADER)
    fragment_shader = compile_shader(fragment_source, GL_FRAGMENT_SHADER)
    if vertex_shader is None or fragment_shader is None: return None
    program = glCreateProgram()
    glAttachShader(program, vertex_shader); glAttachShader(program, fragment_shader)
    glLinkProgram(program)
    glDeleteShader(vertex_shader); glDeleteShader(fragment_shader)
    if not glGetProgramiv(program, GL_LINK_STATUS):
        logger.error("Shader program linking failed:\n%s", glGetProgramInfoLog(program).decode())
        glDeleteProgram(program); return None
    logger.info("Shader program created successfully.")
    return program


def create_orthographic_matrix_gl(half_width, half_height):
    proj = np.array([
        [1.0 / half_width, 0, 0, 0], [0, 1.0 / half_height, 0, 0],
        [0, 0, -1.0, 0], [0, 0, 0, 1.0]
    ], dtype=np.float32)
    return proj.T


# --- Primitive Packing ---
def pack_lines(polylines):
    """Polylines to GL_LINES vertex rows (x, y, r, g, b, a)."""
    rows = []
    for points, color in polylines:
        segments = np.repeat(points, 2, axis=0)[1:-1]
        rows.append(np.hstack((segments, np.tile(color, (len(segments), 1)))))
    return np.vstack(rows).astype(np.float32) if rows else None


def pack_points(points):
    if points is None or len(points.positions) == 0: return None
    return np.hstack((points.positions, points.colors)).astype(np.float32)


# --- App Class ---
class App:
    def __init__(self, settings=None):
        self.running = False
        pygame.init()
        os.environ["SDL_VIDEO_CENTERED"] = "1"
        self.width, self.height = 1024, 768
        pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MAJOR_VERSION, 3)
        pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MINOR_VERSION, 3)
        pygame.display.gl_set_attribute(pygame.GL_CONTEXT_PROFILE_MASK, pygame.GL_CONTEXT_PROFILE_COMPATIBILITY)
        display_flags = pygame.OPENGL | pygame.DOUBLEBUF | pygame.RESIZABLE
        try: self.screen = pygame.display.set_mode((self.width, self.height), display_flags)
        except pygame.error as e: logger.error("Error setting display mode: %s", e); return
        pygame.display.set_caption("3D Surface Grapher - OpenGL + ImGui")
        self.clock = pygame.time.Clock(); self.fps = 60
        self.bg_color = (1.0, 1.0, 1.0, 1.0)
        glDisable(GL_DEPTH_TEST); glEnable(GL_BLEND); glBlendFunc(GL_SRC_ALPHA, GL_ONE_MINUS_SRC_ALPHA)
        logger.info("OpenGL Version: %s", glGetString(GL_VERSION))

        self.shader_program = create_shader_program(VERTEX_SHADER_SOURCE, FRAGMENT_SHADER_SOURCE)
        if self.shader_program is None: return
        self.loc_projection = glGetUniformLocation(self.shader_program, "projection")

        self.session = GraphSession(settings or GraphSettings(), background=True)
        self.view = ViewState()
        self.auto_rotate_speed = 0.5  # rad/s
        self.surface_mesh = self.line_mesh = self.point_mesh = (None, None, 0)
        self.last_summary = None

        imgui.create_context()
        glPixelStorei(GL_UNPACK_ALIGNMENT, 1)
        self.imgui_renderer = PygameRenderer(); self.io = imgui.get_io(); self.io.display_size = (self.width, self.height)
        logger.info("ImGui Initialized Successfully.")
        self.imgui_function_input_text = self.session.settings.expression
        self.example_index = 0
        self.dragging = False; self.mouse_sensitivity = 0.01  # rad per pixel
        self.running = True

    # --- UI Update Handler ---
    def _update_graph_from_input(self):
        if not self.imgui_function_input_text.strip(): logger.info("Input field is empty."); return
        self.session.submit_expression(self.imgui_function_input_text)

    # --- Event Loop ---
    def _handle_events(self):
        for event in pygame.event.get():
            self.imgui_renderer.process_event(event)
            if event.type == pygame.QUIT: self.running = False; break
            elif event.type == pygame.VIDEORESIZE:
                self.width, self.height = event.w, max(1, event.h)
                self.io.display_size = (self.width, self.height)
                glViewport(0, 0, self.width, self.height)
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and not self.io.want_capture_mouse:
                self.dragging = True
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                self.dragging = False
            elif event.type == pygame.MOUSEMOTION and self.dragging:
                dx, dy = event.rel
                self.view.rotate(dy * self.mouse_sensitivity, dx * self.mouse_sensitivity)
            elif event.type == pygame.MOUSEWHEEL and not self.io.want_capture_mouse:
                self.view.set_zoom(min(MAX_ZOOM, max(MIN_ZOOM, self.view.zoom * 1.1 ** event.y)))
            elif event.type == pygame.KEYDOWN and not self.io.want_capture_keyboard:
                if event.key in (pygame.K_q, pygame.K_ESCAPE): logger.info("Quit key pressed."); self.running = False; break

    # --- Geometry Upload ---
    def _upload_frame(self, frame):
        for mesh in (self.surface_mesh, self.line_mesh, self.point_mesh): delete_opengl_mesh(mesh)
        self.surface_mesh = create_opengl_mesh(frame.triangles.interleaved(), VERTEX_LAYOUT)
        self.line_mesh = create_opengl_mesh(pack_lines(frame.wireframe), VERTEX_LAYOUT)
        self.point_mesh = create_opengl_mesh(pack_points(frame.points), VERTEX_LAYOUT)

    # --- Controls ---
    def _draw_controls(self):
        settings = self.session.settings
        imgui.set_next_window_position(10, 10, imgui.ONCE)
        expanded, _ = imgui.begin("Controls", flags=imgui.WINDOW_ALWAYS_AUTO_RESIZE | imgui.WINDOW_NO_COLLAPSE)
        if expanded:
            imgui.text("f(x,y) ="); imgui.same_line(); imgui.push_item_width(300)
            enter_pressed, self.imgui_function_input_text = imgui.input_text(
                "##func_input", self.imgui_function_input_text, 256, imgui.INPUT_TEXT_ENTER_RETURNS_TRUE)
            imgui.pop_item_width(); imgui.same_line()
            if imgui.button("Graph") or enter_pressed: self._update_graph_from_input()
            clicked, self.example_index = imgui.combo("Examples", self.example_index, list(EXAMPLE_EXPRESSIONS))
            if clicked:
                self.imgui_function_input_text = EXAMPLE_EXPRESSIONS[self.example_index]
                self._update_graph_from_input()
            if self.session.error is not None: imgui.text_colored(str(self.session.error), 0.9, 0.1, 0.1)
            imgui.separator()

            changed, deg = imgui.slider_float("Rotation X", math.degrees(self.view.theta_x), 0.0, 360.0)
            if changed: self.view.theta_x = math.radians(deg)
            changed, deg = imgui.slider_float("Rotation Y", math.degrees(self.view.theta_y), 0.0, 360.0)
            if changed: self.view.theta_y = math.radians(deg)
            changed, zoom = imgui.slider_float("Zoom", self.view.zoom, MIN_ZOOM, MAX_ZOOM)
            if changed: self.view.set_zoom(zoom)
            _, settings.auto_rotate = imgui.checkbox("Auto Rotate", settings.auto_rotate)
            imgui.separator()

            changed, res = imgui.slider_int("Resolution", settings.resolution[0], 5, 150)
            if changed: self.session.set_resolution((res, res))
            changed, half_range = imgui.slider_float("Range", settings.domain.x_max, 0.5, 10.0)
            if changed: self.session.set_range(half_range)
            _, settings.show_surface = imgui.checkbox("Show Surface", settings.show_surface)
            _, settings.show_wireframe = imgui.checkbox("Show Wireframe", settings.show_wireframe)
            _, settings.show_points = imgui.checkbox("Show Points", settings.show_points)
            perspective_changed, perspective = imgui.checkbox("Perspective", settings.projection == "perspective")
            if perspective_changed: settings.projection = "perspective" if perspective else "orthographic"
            if self.last_summary is not None:
                imgui.text(f"Invalid cells: {self.last_summary['invalid']} / {self.last_summary['points']}")
        imgui.end()
        if self.session.busy:
            imgui.set_next_window_bg_alpha(0.35); imgui.set_next_window_position(10, self.height - 30, condition=imgui.ALWAYS)
            imgui.begin("StatusOverlay", flags=imgui.WINDOW_NO_DECORATION | imgui.WINDOW_ALWAYS_AUTO_RESIZE | imgui.WINDOW_NO_SAVED_SETTINGS | imgui.WINDOW_NO_FOCUS_ON_APPEARING | imgui.WINDOW_NO_NAV | imgui.WINDOW_NO_MOVE)
            imgui.text("Calculating Surface...")
            imgui.end()

    # --- Rendering ---
    def _render(self, dt):
        if self.session.settings.auto_rotate: self.view.rotate(0.0, self.auto_rotate_speed * dt)
        frame = self.session.frame(self.view)
        if frame is not None:
            self._upload_frame(frame); self.last_summary = frame.summary

        glViewport(0, 0, self.width, self.height); glClearColor(*self.bg_color); glClear(GL_COLOR_BUFFER_BIT)
        half_height = 0.75 * self.session.settings.domain.span
        proj_matrix = create_orthographic_matrix_gl(half_height * self.width / self.height, half_height)
        glUseProgram(self.shader_program); glUniformMatrix4fv(self.loc_projection, 1, GL_FALSE, proj_matrix)
        # Painter's order: triangles arrive back-to-front, wireframe and points go on top
        for (vao, _, count), mode in ((self.surface_mesh, GL_TRIANGLES), (self.line_mesh, GL_LINES), (self.point_mesh, GL_POINTS)):
            if vao and count > 0:
                if mode == GL_POINTS: glPointSize(3.0)
                glBindVertexArray(vao); glDrawArrays(mode, 0, count)
        glBindVertexArray(0); glUseProgram(0)

        self.imgui_renderer.process_inputs(); imgui.new_frame()
        self._draw_controls()
        imgui.render(); self.imgui_renderer.render(imgui.get_draw_data())
        pygame.display.flip()

    # --- Cleanup ---
    def _cleanup(self):
        if not self.session.join(timeout=0.5): logger.warning("Sampling thread did not finish quickly.")
        logger.info("Cleaning up OpenGL resources...")
        for mesh in (self.surface_mesh, self.line_mesh, self.point_mesh): delete_opengl_mesh(mesh)
        if self.shader_program: glDeleteProgram(self.shader_program)
        self.imgui_renderer.shutdown()
        pygame.quit(); logger.info("Application closed.")

    # --- Run Loop ---
    def run(self):
        while self.running:
            dt = min(self.clock.tick(self.fps) / 1000.0, 0.1)
            self._handle_events()
            if not self.running: break
            self._render(dt)
        self._cleanup()


def main():
    setup_logging()
    app = App()
    if app.running: app.run()
    else: pygame.quit()
