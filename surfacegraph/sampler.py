"""
Sampling f(x, y) over a rectangular domain.

A Grid keeps the raw heights, a validity mask (False only for NaN/inf), and
display heights clipped to +/- clamp so near-singularities stay drawable.
"""
import logging
import operator
import queue
import threading
import time
from dataclasses import dataclass
from functools import cached_property

import numpy as np

from .config import DEFAULT_CLAMP, is_valid_clamp, is_valid_domain
from .errors import ConfigError
from .evaluator import evaluate_grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Grid:
    xs: np.ndarray
    ys: np.ndarray
    heights: np.ndarray
    valid: np.ndarray
    display_heights: np.ndarray
    clamp: float

    @property
    def shape(self):
        return self.heights.shape

    @property
    def size(self):
        return self.heights.size

    @property
    def invalid_count(self):
        return int(np.count_nonzero(~self.valid))

    @property
    def clamped(self):
        with np.errstate(invalid="ignore"):
            return self.valid & (np.abs(self.heights) > self.clamp)

    @cached_property
    def height_range(self):
        """(min, max) of the valid display heights, or None if nothing is valid."""
        if not self.valid.any(): return None
        values = self.display_heights[self.valid]
        return float(values.min()), float(values.max())

    @cached_property
    def vertices(self):
        """World-space (x, y, display height) per grid point, shape (ny, nx, 3)."""
        x_grid, y_grid = np.meshgrid(self.xs, self.ys)
        return np.stack((x_grid, y_grid, self.display_heights), axis=-1)

    def points(self):
        for (i, j), z in np.ndenumerate(self.heights):
            yield float(self.xs[j]), float(self.ys[i]), float(z)

    def summary(self):
        return {
            "points": self.size,
            "invalid": self.invalid_count,
            "clamped": int(np.count_nonzero(self.clamped)),
            "height_range": self.height_range,
        }


def _check_resolution(resolution):
    try:
        nx, ny = (operator.index(n) for n in resolution)
    except (TypeError, ValueError):
        raise ConfigError(f"Resolution must be a pair of integers, got {resolution!r}") from None
    if nx < 2 or ny < 2:
        raise ConfigError(f"Resolution must be at least 2 samples per axis, got {(nx, ny)}")
    return nx, ny


def check_inputs(domain, resolution, clamp):
    if not is_valid_domain(domain):
        raise ConfigError(f"Domain bounds must be finite with min < max, got {domain!r}")
    if not is_valid_clamp(clamp):
        raise ConfigError(f"Clamp threshold must be positive, got {clamp!r}")
    return _check_resolution(resolution)


def sample(expr, domain, resolution, clamp=DEFAULT_CLAMP, workers=None):
    """Evaluate expr on an nx × ny grid spanning domain, both bounds included."""
    nx, ny = check_inputs(domain, resolution, clamp)
    xs = np.linspace(domain.x_min, domain.x_max, nx)
    ys = np.linspace(domain.y_min, domain.y_max, ny)
    heights = evaluate_grid(expr, xs, ys, workers=workers)
    valid = np.isfinite(heights)
    with np.errstate(invalid="ignore"):
        display = np.where(valid, np.clip(heights, -clamp, clamp), np.nan)
    return Grid(xs, ys, heights, valid, display, float(clamp))


# --- Background Sampling ---
class BackgroundSampler:
    """Runs sample() off the UI thread.

    Each submit() gets a new generation number. Submissions made while a pass
    is running collapse into a single pending job; poll() only ever hands back
    the grid for the newest generation and drops anything older.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._results = queue.Queue(maxsize=1)
        self._generation = 0
        self._pending = None
        self._busy = False
        self._thread = None

    @property
    def generation(self):
        return self._generation

    @property
    def busy(self):
        return self._busy

    def submit(self, expr, domain, resolution, clamp=DEFAULT_CLAMP, workers=None):
        check_inputs(domain, resolution, clamp)
        with self._lock:
            self._generation += 1
            job = (self._generation, dict(expr=expr, domain=domain, resolution=resolution, clamp=clamp, workers=workers))
            if self._busy:
                logger.debug("Sampling already in progress. Queuing generation %d.", job[0])
                self._pending = job
                return job[0]
            self._busy = True
            self._thread = threading.Thread(target=self._worker, args=(job,), daemon=True)
            self._thread.start()
            return job[0]

    def _worker(self, job):
        while job is not None:
            generation, params = job
            start = time.perf_counter()
            try:
                grid = sample(**params)
            except Exception:
                logger.exception("Sampling generation %d failed.", generation)
            else:
                logger.debug("Sampled generation %d (%dx%d) in %.1f ms, %d invalid cells.",
                             generation, grid.shape[1], grid.shape[0], (time.perf_counter() - start) * 1000.0, grid.invalid_count)
                self._publish(generation, grid)
            finally:
                with self._lock:
                    job, self._pending = self._pending, None
                    self._busy = job is not None

    def _publish(self, generation, grid):
        while not self._results.empty():
            try: self._results.get_nowait()
            except queue.Empty: break
        self._results.put((generation, grid))

    def poll(self):
        """Newest finished grid, or None if nothing new (or only stale results) arrived."""
        try:
            generation, grid = self._results.get_nowait()
        except queue.Empty:
            return None
        if generation != self._generation:
            logger.debug("Discarding stale grid from generation %d (latest %d).", generation, self._generation)
            return None
        return grid

    def join(self, timeout=None):
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)
        return not self._busy
