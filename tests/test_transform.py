import math

import numpy as np
import pytest

from surfacegraph.errors import ConfigError
from surfacegraph.transform import Vertex3D, ViewTransform, project, rotation_matrix


def test_identity_on_xy_plane():
    assert project(Vertex3D(1.5, -2.0, 0.7), (0.0, 0.0), 1.0) == pytest.approx((1.5, -2.0, 0.7))


def test_zoom_scales_all_axes():
    assert project((1.0, 2.0, 3.0), (0.0, 0.0), 2.0) == pytest.approx((2.0, 4.0, 6.0))


def test_rotation_about_x_moves_y_into_depth():
    # +y tips toward the viewer
    v = project((0.0, 1.0, 0.0), (math.pi / 2, 0.0), 1.0)
    assert v == pytest.approx((0.0, 0.0, 1.0), abs=1e-12)


def test_rotation_about_y_moves_x_into_depth():
    v = project((1.0, 0.0, 0.0), (0.0, math.pi / 2), 1.0)
    assert v == pytest.approx((0.0, 0.0, -1.0), abs=1e-12)


def test_x_rotation_is_applied_before_y():
    matrix = rotation_matrix(0.3, 1.1)
    expected = rotation_matrix(0.0, 1.1) @ rotation_matrix(0.3, 0.0)
    np.testing.assert_allclose(matrix, expected)
    assert not np.allclose(matrix, rotation_matrix(0.3, 0.0) @ rotation_matrix(0.0, 1.1))


def test_rotation_preserves_length():
    transform = ViewTransform(0.7, -2.3, 1.0)
    points = np.array([[1.0, 2.0, 3.0], [-4.0, 0.5, 2.0]])
    projected = transform.project_points(points)
    np.testing.assert_allclose(np.linalg.norm(projected, axis=1), np.linalg.norm(points, axis=1))


def test_angles_are_wrapped():
    transform = ViewTransform(4 * math.pi + 0.5, -0.5, 1.0)
    assert transform.theta_x == pytest.approx(0.5)
    assert transform.theta_y == pytest.approx(2 * math.pi - 0.5)
    reference = ViewTransform(0.5, -0.5, 1.0)
    np.testing.assert_allclose(transform.matrix, reference.matrix, atol=1e-12)


def test_from_degrees():
    transform = ViewTransform.from_degrees(90.0, 0.0)
    assert transform.theta_x == pytest.approx(math.pi / 2)


@pytest.mark.parametrize("zoom", [0.0, -1.0, float("nan"), float("inf")])
def test_zoom_must_be_positive(zoom):
    with pytest.raises(ConfigError):
        ViewTransform(0.0, 0.0, zoom)


def test_unknown_projection():
    with pytest.raises(ConfigError):
        ViewTransform(projection="fisheye")


def test_perspective_scales_by_distance():
    transform = ViewTransform(zoom=1.0, projection="perspective", camera_distance=10.0)
    near = transform.project((1.0, 1.0, 5.0))
    far = transform.project((1.0, 1.0, -10.0))
    assert near == pytest.approx((2.0, 2.0, 5.0))
    assert far == pytest.approx((0.5, 0.5, -10.0))


def test_perspective_drops_points_behind_camera():
    transform = ViewTransform(projection="perspective", camera_distance=10.0)
    projected = transform.project_points([[0.0, 0.0, 10.0], [1.0, 1.0, 20.0], [1.0, 1.0, 0.0]])
    assert np.isnan(projected[:2, :2]).all()
    np.testing.assert_allclose(projected[2], [1.0, 1.0, 0.0])
