from collections import Counter

import numpy as np
import pytest

from surfacegraph import sampler as sampler_module
from surfacegraph.config import Domain
from surfacegraph.errors import ConfigError
from surfacegraph.expression import parse
from surfacegraph.sampler import BackgroundSampler, sample

UNIT = Domain(-1.0, 1.0, -1.0, 1.0)


def test_three_by_three_sum():
    grid = sample(parse("x+y"), UNIT, (3, 3))
    heights = [z for _, _, z in grid.points()]
    assert len(heights) == 9
    assert Counter(heights) == Counter([-2.0, -1.0, 0.0, -1.0, 0.0, 1.0, 0.0, 1.0, 2.0])
    assert grid.valid.all()
    assert grid.invalid_count == 0


def test_bounds_are_inclusive_and_evenly_spaced():
    grid = sample(parse("x"), Domain(0.0, 1.0, -2.0, 2.0), (5, 3))
    np.testing.assert_allclose(grid.xs, [0.0, 0.25, 0.5, 0.75, 1.0])
    np.testing.assert_allclose(grid.ys, [-2.0, 0.0, 2.0])
    assert grid.shape == (3, 5)


def test_nan_cell_is_invalid():
    grid = sample(parse("sqrt(-1)"), UNIT, (2, 2))
    assert not grid.valid.any()
    assert grid.invalid_count == 4
    assert grid.height_range is None


def test_domain_restriction_marks_only_bad_cells():
    grid = sample(parse("sqrt(x)"), UNIT, (3, 3))
    assert grid.valid.tolist() == [[False, True, True]] * 3


def test_infinity_is_invalid():
    grid = sample(parse("1/x"), UNIT, (3, 2))
    assert grid.valid.tolist() == [[True, False, True]] * 2


def test_large_values_are_clamped_but_valid():
    grid = sample(parse("1000 * x"), UNIT, (3, 2), clamp=50.0)
    assert grid.valid.all()
    assert grid.heights[0, 0] == -1000.0
    assert grid.display_heights[0, 0] == -50.0
    assert grid.display_heights[0, 1] == 0.0
    assert grid.clamped.tolist() == [[True, False, True]] * 2
    assert grid.height_range == (-50.0, 50.0)


def test_summary():
    grid = sample(parse("ln(x)"), UNIT, (3, 3), clamp=10.0)
    summary = grid.summary()
    assert summary["points"] == 9
    assert summary["invalid"] == 6
    assert summary["clamped"] == 0
    assert summary["height_range"] == (0.0, 0.0)


def test_resolution_does_not_change_validity_without_domain_restriction():
    for n in (2, 5, 17, 64):
        grid = sample(parse("x+y"), UNIT, (n, n))
        assert grid.invalid_count == 0


@pytest.mark.parametrize("resolution", [(1, 5), (5, 1), (0, 0), (2.5, 3), "ab", (3,)])
def test_bad_resolution(resolution):
    with pytest.raises(ConfigError):
        sample(parse("x"), UNIT, resolution)


@pytest.mark.parametrize("domain", [
    Domain(1.0, 1.0, -1.0, 1.0),
    Domain(1.0, -1.0, -1.0, 1.0),
    Domain(-1.0, 1.0, 2.0, 2.0),
    Domain(-1.0, float("inf"), -1.0, 1.0),
])
def test_degenerate_domain(domain):
    with pytest.raises(ConfigError):
        sample(parse("x"), domain, (3, 3))


@pytest.mark.parametrize("clamp", [0.0, -1.0, float("nan")])
def test_bad_clamp(clamp):
    with pytest.raises(ConfigError):
        sample(parse("x"), UNIT, (3, 3), clamp=clamp)


def test_numpy_integer_resolution_is_accepted():
    grid = sample(parse("x"), UNIT, (np.int64(4), np.int32(3)))
    assert grid.shape == (3, 4)


def test_vertices_carry_display_heights():
    grid = sample(parse("x*y"), UNIT, (2, 2))
    assert grid.vertices.shape == (2, 2, 3)
    np.testing.assert_allclose(grid.vertices[0, 0], [-1.0, -1.0, 1.0])
    np.testing.assert_allclose(grid.vertices[1, 0], [-1.0, 1.0, -1.0])


def test_background_sampler_returns_newest_grid():
    sampler = BackgroundSampler()
    sampler.submit(parse("x"), UNIT, (3, 3))
    latest = sampler.submit(parse("y"), UNIT, (4, 4))
    assert sampler.join(timeout=10.0)
    grid = sampler.poll()
    assert latest == sampler.generation == 2
    assert grid is not None
    assert grid.shape == (4, 4)
    np.testing.assert_allclose(grid.heights[:, 0], grid.ys)
    assert sampler.poll() is None


def test_background_sampler_discards_stale_result():
    sampler = BackgroundSampler()
    sampler.submit(parse("x"), UNIT, (3, 3))
    assert sampler.join(timeout=10.0)
    # A newer request supersedes the finished one before it was collected
    sampler._generation += 1
    assert sampler.poll() is None


def test_background_sampler_validates_on_submit():
    sampler = BackgroundSampler()
    with pytest.raises(ConfigError):
        sampler.submit(parse("x"), UNIT, (1, 1))
    assert sampler.generation == 0


def test_background_sampler_recovers_after_a_failed_job(monkeypatch):
    real_sample = sampler_module.sample

    def flaky(expr, **params):
        if expr.text == "y":
            raise RuntimeError("boom")
        return real_sample(expr, **params)

    monkeypatch.setattr(sampler_module, "sample", flaky)
    sampler = BackgroundSampler()
    sampler.submit(parse("y"), UNIT, (3, 3))
    assert sampler.join(timeout=10.0)
    assert not sampler.busy
    assert sampler.poll() is None

    sampler.submit(parse("x"), UNIT, (3, 3))
    assert sampler.join(timeout=10.0)
    grid = sampler.poll()
    assert grid is not None
    np.testing.assert_allclose(grid.heights[0], grid.xs)
