import math

import numpy as np
import pytest

from surfacegraph.config import (
    EXAMPLE_EXPRESSIONS,
    Domain,
    GraphSettings,
    ViewState,
    is_valid_clamp,
    is_valid_domain,
    is_valid_resolution,
    is_valid_zoom,
    validate_settings,
)
from surfacegraph.errors import ConfigError
from surfacegraph.expression import try_parse


def test_defaults_validate():
    settings = validate_settings(GraphSettings())
    assert settings.domain == Domain(-3.0, 3.0, -3.0, 3.0)


def test_examples_parse():
    for text in EXAMPLE_EXPRESSIONS:
        compiled, error = try_parse(text)
        assert error is None, text


@pytest.mark.parametrize("resolution, ok", [
    ((2, 2), True), ((100, 100), True), ((1, 2), False), ((2, 1000), False),
    ((2.0, 2), False), ((True, 2), False), (None, False), ((3, 3, 3), False),
    ((np.int64(4), np.int32(3)), True), ((np.int64(1), 3), False), ((np.float64(4.0), 3), False),
])
def test_is_valid_resolution(resolution, ok):
    assert is_valid_resolution(resolution) is ok


@pytest.mark.parametrize("zoom, ok", [(0.5, True), (3, True), (0, False), (-1.0, False), (math.nan, False), ("2", False)])
def test_is_valid_zoom(zoom, ok):
    assert is_valid_zoom(zoom) is ok


def test_is_valid_domain():
    assert is_valid_domain(Domain(-1, 1, 0, 2))
    assert not is_valid_domain(Domain(1, 1, 0, 2))
    assert not is_valid_domain(Domain(-1, 1, 3, 2))
    assert not is_valid_domain(Domain(-math.inf, 1, 0, 2))


def test_is_valid_clamp():
    assert is_valid_clamp(1e3)
    assert not is_valid_clamp(0)


@pytest.mark.parametrize("changes", [
    {"resolution": (1, 1)},
    {"domain": Domain(0, 0, 0, 1)},
    {"clamp": -5.0},
    {"projection": "isometric"},
    {"camera_distance": 0.0},
])
def test_validate_settings_rejects(changes):
    with pytest.raises(ConfigError):
        validate_settings(GraphSettings(**changes))


def test_view_state_rotation_wraps():
    view = ViewState(0.0, 0.0, 1.0)
    for _ in range(1000):
        view.rotate(0.1, -0.1)
    assert 0.0 <= view.theta_x < 2 * math.pi
    assert 0.0 <= view.theta_y < 2 * math.pi
    assert view.theta_x == pytest.approx(100.0 % (2 * math.pi), abs=1e-9)


def test_view_state_zoom_guard():
    view = ViewState()
    assert not view.set_zoom(0.0)
    assert view.set_zoom(2.0)
    assert view.zoom == 2.0
