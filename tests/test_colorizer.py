import numpy as np
import pytest

from surfacegraph.colorizer import DEFAULT_RAMP, ColorRamp, DepthColorizer, color_for, normalize
from surfacegraph.config import Domain
from surfacegraph.errors import ConfigError
from surfacegraph.expression import parse
from surfacegraph.sampler import sample

BLUE = (0.0, 0.0, 1.0, 1.0)
YELLOW = (1.0, 1.0, 0.0, 1.0)
RED = (1.0, 0.0, 0.0, 1.0)


def test_endpoints_and_midpoint():
    colorizer = DepthColorizer()
    assert colorizer.color_for(-2.0, (-2.0, 2.0)) == pytest.approx(BLUE)
    assert colorizer.color_for(0.0, (-2.0, 2.0)) == pytest.approx(YELLOW)
    assert colorizer.color_for(2.0, (-2.0, 2.0)) == pytest.approx(RED)


def test_linear_interpolation_between_control_points():
    assert color_for(0.25, (0.0, 1.0)) == pytest.approx((0.5, 0.5, 0.5, 1.0))
    assert color_for(0.75, (0.0, 1.0)) == pytest.approx((1.0, 0.5, 0.0, 1.0))


def test_out_of_range_clamps_to_end_colors():
    assert color_for(-10.0, (0.0, 1.0)) == pytest.approx(BLUE)
    assert color_for(10.0, (0.0, 1.0)) == pytest.approx(RED)


def test_flat_range_gives_midpoint():
    assert color_for(3.0, (3.0, 3.0)) == pytest.approx(DEFAULT_RAMP.midpoint + (1.0,))
    assert color_for(3.0, None) == pytest.approx(YELLOW)


def test_flat_grid_is_midpoint_everywhere():
    grid = sample(parse("4"), Domain(-1.0, 1.0, -1.0, 1.0), (5, 5))
    colors = DepthColorizer().colors_for(grid.display_heights, grid.height_range)
    assert grid.height_range == (4.0, 4.0)
    assert colors.shape == (5, 5, 4)
    np.testing.assert_allclose(colors.reshape(-1, 4), np.tile(YELLOW, (25, 1)))


def test_color_scale_is_relative_to_valid_cells():
    grid = sample(parse("ln(x)"), Domain(-1.0, 1.0, 0.0, 1.0), (5, 2), clamp=100.0)
    lo, hi = grid.height_range
    assert np.isfinite(lo) and np.isfinite(hi)
    t = normalize(grid.display_heights[grid.valid], grid.height_range)
    assert t.min() == 0.0 and t.max() == 1.0


def test_custom_ramp_and_alpha():
    ramp = ColorRamp([(1.0, (255, 255, 255)), (0.0, (0, 0, 0))])
    colorizer = DepthColorizer(ramp, alpha=0.5)
    assert colorizer.color_for(5.0, (0.0, 10.0)) == pytest.approx((0.5, 0.5, 0.5, 0.5))
    assert ramp.midpoint == pytest.approx((0.5, 0.5, 0.5))


@pytest.mark.parametrize("points", [
    [(0.0, (0, 0, 0))],
    [(0.0, (0, 0, 0)), (0.0, (1, 1, 1))],
    [(-0.5, (0, 0, 0)), (1.0, (1, 1, 1))],
    [(0.0, (0, 0, 0)), (1.0, (300, 0, 0))],
])
def test_invalid_ramps(points):
    with pytest.raises(ConfigError):
        ColorRamp(points)
