"""
Rotation, zoom and projection of world-space vertices to screen space.

Vertices are rotated about the X axis, then about the Y axis, then scaled by
zoom and projected. The viewer looks down -z, so a larger depth is closer to
the viewer. Zoom must be strictly positive; the UI is expected to check it with
config.is_valid_zoom before building a transform.
"""
import math
from collections import namedtuple

import numpy as np

from .config import DEFAULT_CAMERA_DISTANCE, PROJECTIONS, is_valid_zoom
from .errors import ConfigError

Vertex3D = namedtuple("Vertex3D", "x y z")
Vertex2D = namedtuple("Vertex2D", "screen_x screen_y depth")

TWO_PI = 2.0 * math.pi


def rotation_matrix(theta_x, theta_y):
    cx, sx = math.cos(theta_x), math.sin(theta_x)
    cy, sy = math.cos(theta_y), math.sin(theta_y)
    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    rot_y = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    return rot_y @ rot_x


class ViewTransform:
    def __init__(self, theta_x=0.0, theta_y=0.0, zoom=1.0, projection="orthographic",
                 camera_distance=DEFAULT_CAMERA_DISTANCE):
        if not is_valid_zoom(zoom):
            raise ConfigError(f"Zoom must be a positive number, got {zoom!r}")
        if projection not in PROJECTIONS:
            raise ConfigError(f"Unknown projection {projection!r}; expected one of {PROJECTIONS}")
        if projection == "perspective" and not camera_distance > 0:
            raise ConfigError(f"Camera distance must be positive, got {camera_distance!r}")
        self.theta_x = float(theta_x) % TWO_PI
        self.theta_y = float(theta_y) % TWO_PI
        self.zoom = float(zoom)
        self.projection = projection
        self.camera_distance = float(camera_distance)
        self.matrix = rotation_matrix(self.theta_x, self.theta_y) * self.zoom

    @classmethod
    def from_degrees(cls, x_deg, y_deg, zoom=1.0, **kwargs):
        return cls(math.radians(x_deg), math.radians(y_deg), zoom, **kwargs)

    @classmethod
    def from_view(cls, view, settings):
        return cls(view.theta_x, view.theta_y, view.zoom, settings.projection, settings.camera_distance)

    def project_points(self, points):
        """(N, 3) world points to (N, 3) rows of screen_x, screen_y, depth.

        Under perspective, points at or behind the camera come back as NaN.
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        world = points @ self.matrix.T
        depth = world[:, 2]
        if self.projection == "perspective":
            distance = self.camera_distance - depth
            with np.errstate(divide="ignore", invalid="ignore"):
                factor = np.where(distance > 0, self.camera_distance / distance, np.nan)
            screen = world[:, :2] * factor[:, np.newaxis]
        else:
            screen = world[:, :2]
        return np.column_stack((screen, depth))

    def project(self, vertex):
        sx, sy, depth = self.project_points([vertex])[0]
        return Vertex2D(float(sx), float(sy), float(depth))

    def __repr__(self):
        return (f"ViewTransform(theta_x={self.theta_x:.4f}, theta_y={self.theta_y:.4f}, "
                f"zoom={self.zoom:g}, projection={self.projection!r})")


def project(vertex, rotation, zoom, projection="orthographic", camera_distance=DEFAULT_CAMERA_DISTANCE):
    theta_x, theta_y = rotation
    return ViewTransform(theta_x, theta_y, zoom, projection, camera_distance).project(vertex)
