"""
Text -> grid -> primitives, per frame.

render_frame is a pure function of its inputs. GraphSession adds the state
the UI needs between frames: the last expression that parsed, and a grid that
is only recomputed when the expression, domain, resolution or clamp changes.
"""
import logging
import operator
from dataclasses import dataclass

from .colorizer import DepthColorizer
from .config import Domain, GraphSettings, is_valid_clamp, is_valid_domain, is_valid_resolution, validate_settings
from .expression import try_parse
from .mesh import TriangleList, assemble, assemble_points, assemble_wireframe
from .sampler import BackgroundSampler, sample
from .transform import ViewTransform

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    triangles: TriangleList
    wireframe: list
    points: object
    summary: dict


def render_frame(expr, settings, view, grid=None, colorizer=None):
    """Build every primitive for one frame. A precomputed grid skips sampling."""
    validate_settings(settings)
    if grid is None:
        grid = sample(expr, settings.domain, settings.resolution, settings.clamp, settings.workers)
    transform = ViewTransform.from_view(view, settings)
    colorizer = colorizer or DepthColorizer(settings.ramp)
    triangles = assemble(grid, transform, colorizer) if settings.show_surface else TriangleList.empty()
    wireframe = assemble_wireframe(grid, transform) if settings.show_wireframe else []
    points = assemble_points(grid, transform, colorizer) if settings.show_points else None
    return Frame(triangles, wireframe, points, grid.summary())


class GraphSession:
    def __init__(self, settings=None, background=False):
        self.settings = settings or GraphSettings()
        validate_settings(self.settings)
        self.compiled = None
        self.error = None
        self._grid = None
        self._grid_key = None
        self._sampler = BackgroundSampler() if background else None
        self.submit_expression(self.settings.expression)

    # --- Inputs ---
    def submit_expression(self, text):
        """Parse text; on failure keep the previous expression and return the error."""
        compiled, error = try_parse(text)
        if error is not None:
            logger.info("Rejected expression %r: %s", text, error)
            self.error = error
            return error
        if compiled != self.compiled:
            logger.info("Expression updated to '%s'", compiled)
        self.compiled = compiled
        self.settings.expression = text
        self.error = None
        return None

    def set_domain(self, domain):
        if not is_valid_domain(domain): return False
        self.settings.domain = domain
        return True

    def set_range(self, half_range):
        return self.set_domain(Domain.symmetric(half_range))

    def set_resolution(self, resolution):
        if not is_valid_resolution(resolution): return False
        self.settings.resolution = tuple(operator.index(n) for n in resolution)
        return True

    def set_clamp(self, clamp):
        if not is_valid_clamp(clamp): return False
        self.settings.clamp = float(clamp)
        return True

    # --- Grid ---
    @property
    def busy(self):
        return self._sampler is not None and self._sampler.busy

    def _refresh(self):
        if self.compiled is None: return
        key = (self.compiled, self.settings.domain, self.settings.resolution, self.settings.clamp)
        if key == self._grid_key: return
        self._grid_key = key
        s = self.settings
        if self._sampler is None:
            self._grid = sample(self.compiled, s.domain, s.resolution, s.clamp, s.workers)
        else:
            self._sampler.submit(self.compiled, s.domain, s.resolution, s.clamp, s.workers)

    @property
    def grid(self):
        """Current grid; in background mode, the last finished one until a newer arrives."""
        self._refresh()
        if self._sampler is not None:
            grid = self._sampler.poll()
            if grid is not None: self._grid = grid
        return self._grid

    def join(self, timeout=None):
        return self._sampler.join(timeout) if self._sampler is not None else True

    def frame(self, view):
        grid = self.grid
        if grid is None: return None
        return render_frame(self.compiled, self.settings, view, grid=grid)
