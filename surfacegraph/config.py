"""
Defaults and validation for the values the UI feeds into the pipeline.

The UI is expected to call the ``is_valid_*`` predicates before committing a
slider or text field, so a bad value never reaches a recompute.
"""
import math
import operator
from dataclasses import dataclass, field

from .errors import ConfigError

# --- Defaults ---
DEFAULT_EXPRESSION = "sin(x) * cos(y)"
DEFAULT_RANGE = 3.0
DEFAULT_RESOLUTION = (21, 21)
DEFAULT_CLAMP = 100.0
DEFAULT_ROTATION_DEG = (30.0, 30.0)
DEFAULT_ZOOM = 0.8
DEFAULT_CAMERA_DISTANCE = 10.0
PROJECTIONS = ("orthographic", "perspective")

MIN_RESOLUTION, MAX_RESOLUTION = 2, 250
MIN_ZOOM, MAX_ZOOM = 0.1, 5.0

EXAMPLE_EXPRESSIONS = (
    "sin(x) * cos(y)",
    "x^2 + y^2",
    "sin(sqrt(x^2 + y^2))",
    "exp(-(x^2 + y^2))",
    "sin(x*y)",
    "ln(x^2 + y^2)",
    "atan2(y, x)",
)


@dataclass(frozen=True)
class Domain:
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @classmethod
    def symmetric(cls, half_range=DEFAULT_RANGE):
        return cls(-half_range, half_range, -half_range, half_range)

    @property
    def span(self):
        return max(self.x_max - self.x_min, self.y_max - self.y_min)


@dataclass
class ViewState:
    """Rotation (radians) and zoom as held by the UI between frames."""
    theta_x: float = math.radians(DEFAULT_ROTATION_DEG[0])
    theta_y: float = math.radians(DEFAULT_ROTATION_DEG[1])
    zoom: float = DEFAULT_ZOOM

    def rotate(self, d_theta_x, d_theta_y):
        # Wrap so long drag sessions do not accumulate float drift
        self.theta_x = (self.theta_x + d_theta_x) % (2 * math.pi)
        self.theta_y = (self.theta_y + d_theta_y) % (2 * math.pi)

    def set_zoom(self, zoom):
        if not is_valid_zoom(zoom): return False
        self.zoom = float(zoom)
        return True


@dataclass
class GraphSettings:
    expression: str = DEFAULT_EXPRESSION
    domain: Domain = field(default_factory=Domain.symmetric)
    resolution: tuple = DEFAULT_RESOLUTION
    clamp: float = DEFAULT_CLAMP
    projection: str = "orthographic"
    camera_distance: float = DEFAULT_CAMERA_DISTANCE
    ramp: object = None  # ColorRamp; None selects the default ramp
    show_surface: bool = True
    show_wireframe: bool = True
    show_points: bool = False
    auto_rotate: bool = False
    workers: int = 1


# --- Validation Predicates ---
def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def is_valid_resolution(resolution):
    try:
        nx, ny = resolution
        counts = [operator.index(n) for n in (nx, ny) if not isinstance(n, bool)]
    except (TypeError, ValueError):
        return False
    return len(counts) == 2 and all(MIN_RESOLUTION <= n <= MAX_RESOLUTION for n in counts)


def is_valid_zoom(zoom):
    return _is_number(zoom) and zoom > 0


def is_valid_domain(domain):
    values = (domain.x_min, domain.x_max, domain.y_min, domain.y_max)
    if not all(_is_number(v) for v in values): return False
    return domain.x_min < domain.x_max and domain.y_min < domain.y_max


def is_valid_clamp(clamp):
    return _is_number(clamp) and clamp > 0


def validate_settings(settings):
    """Raise ConfigError for the first value the pipeline cannot use."""
    if not is_valid_resolution(settings.resolution):
        raise ConfigError(f"Resolution must be two integers in [{MIN_RESOLUTION}, {MAX_RESOLUTION}], got {settings.resolution!r}")
    if not is_valid_domain(settings.domain):
        raise ConfigError(f"Domain bounds must be finite with min < max, got {settings.domain!r}")
    if not is_valid_clamp(settings.clamp):
        raise ConfigError(f"Clamp threshold must be positive, got {settings.clamp!r}")
    if settings.projection not in PROJECTIONS:
        raise ConfigError(f"Unknown projection {settings.projection!r}; expected one of {PROJECTIONS}")
    if not (_is_number(settings.camera_distance) and settings.camera_distance > 0):
        raise ConfigError(f"Camera distance must be positive, got {settings.camera_distance!r}")
    return settings
