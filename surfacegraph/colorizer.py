"""Height to color mapping through a piecewise-linear color ramp."""
import numpy as np

from .errors import ConfigError


class ColorRamp:
    """Ordered (fraction, (r, g, b)) control points; fractions in [0, 1], channels in 0..255."""

    def __init__(self, points):
        points = sorted((float(fraction), tuple(rgb)) for fraction, rgb in points)
        if len(points) < 2: raise ConfigError("A color ramp needs at least two control points.")
        fractions = np.array([fraction for fraction, _ in points])
        colors = np.array([rgb for _, rgb in points], dtype=np.float64)
        if fractions[0] < 0.0 or fractions[-1] > 1.0:
            raise ConfigError("Color ramp fractions must lie in [0, 1].")
        if np.any(np.diff(fractions) <= 0):
            raise ConfigError("Color ramp fractions must be distinct.")
        if colors.shape[1] != 3 or colors.min() < 0 or colors.max() > 255:
            raise ConfigError("Color ramp colors must be (r, g, b) with channels in 0..255.")
        self.fractions = fractions
        self.colors = colors / 255.0

    def __call__(self, t):
        """RGB floats in [0, 1]; t outside the control points clamps to the end colors."""
        t = np.asarray(t, dtype=np.float64)
        return np.stack([np.interp(t, self.fractions, self.colors[:, c]) for c in range(3)], axis=-1)

    @property
    def midpoint(self):
        return tuple(float(c) for c in self(0.5))

    def __repr__(self):
        pairs = ", ".join(f"({f:g}, {tuple(int(round(v * 255)) for v in rgb)})" for f, rgb in zip(self.fractions, self.colors))
        return f"ColorRamp([{pairs}])"


# Blue at the bottom, yellow in the middle, red at the top
DEFAULT_RAMP = ColorRamp([
    (0.0, (0, 0, 255)),
    (0.5, (255, 255, 0)),
    (1.0, (255, 0, 0)),
])


def normalize(heights, height_range):
    """Map heights into [0, 1] by the given range; flat or missing ranges map to 0.5."""
    heights = np.asarray(heights, dtype=np.float64)
    if height_range is None:
        return np.full(heights.shape, 0.5)
    lo, hi = height_range
    if not hi > lo:
        return np.full(heights.shape, 0.5)
    with np.errstate(invalid="ignore"):
        return np.clip((heights - lo) / (hi - lo), 0.0, 1.0)


class DepthColorizer:
    def __init__(self, ramp=None, alpha=1.0):
        self.ramp = ramp if ramp is not None else DEFAULT_RAMP
        self.alpha = float(alpha)

    def colors_for(self, heights, height_range):
        """RGBA array of shape heights.shape + (4,)."""
        rgb = self.ramp(normalize(heights, height_range))
        alpha = np.full(rgb.shape[:-1] + (1,), self.alpha)
        return np.concatenate((rgb, alpha), axis=-1)

    def color_for(self, height, height_range):
        return tuple(float(c) for c in self.colors_for(height, height_range))


def color_for(height, height_range, ramp=None):
    return DepthColorizer(ramp).color_for(height, height_range)
