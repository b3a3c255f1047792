"""
Assembly of the projected grid into drawable primitives.

Triangles come out sorted back-to-front (painter's algorithm); the renderer
draws them in order with depth testing off.
"""
from collections import namedtuple

import numpy as np

from .transform import Vertex2D

Triangle = namedtuple("Triangle", "vertices color cell")
Polyline = namedtuple("Polyline", "points color")
PointList = namedtuple("PointList", "positions depths colors")

WIREFRAME_COLOR = (180 / 255.0, 180 / 255.0, 180 / 255.0, 1.0)


class TriangleList:
    """Sorted triangles held as arrays.

    positions (T, 3, 2), depths (T, 3), per-vertex colors (T, 3, 4) and the
    grid cell (row, col) each triangle came from, (T, 2).
    """

    def __init__(self, positions, depths, colors, cells):
        self.positions = positions
        self.depths = depths
        self.colors = colors
        self.cells = cells

    @classmethod
    def empty(cls):
        return cls(np.empty((0, 3, 2)), np.empty((0, 3)), np.empty((0, 3, 4)), np.empty((0, 2), dtype=int))

    def __len__(self):
        return len(self.positions)

    def __iter__(self):
        flat = self.flat_colors
        for t in range(len(self)):
            vertices = tuple(Vertex2D(float(x), float(y), float(d)) for (x, y), d in zip(self.positions[t], self.depths[t]))
            yield Triangle(vertices, tuple(float(c) for c in flat[t]), (int(self.cells[t, 0]), int(self.cells[t, 1])))

    @property
    def mean_depths(self):
        return self.depths.mean(axis=1)

    @property
    def flat_colors(self):
        return self.colors.mean(axis=1)

    def interleaved(self):
        """float32 rows of x, y, r, g, b, a; three rows per triangle."""
        data = np.concatenate((self.positions, self.colors), axis=-1)
        return data.reshape(-1, 6).astype(np.float32)


def _project_grid(grid, transform):
    ny, nx = grid.shape
    return transform.project_points(grid.vertices.reshape(-1, 3)).reshape(ny, nx, 3)


def assemble(grid, transform, colorizer):
    """Two triangles per 2x2 cell whose four corners are all valid."""
    projected = _project_grid(grid, transform)
    colors = colorizer.colors_for(grid.display_heights, grid.height_range)

    v = grid.valid
    cell_ok = v[:-1, :-1] & v[:-1, 1:] & v[1:, :-1] & v[1:, 1:]
    r0, c0 = np.nonzero(cell_ok)
    r1, c1 = r0 + 1, c0 + 1
    # Per cell: (r0,c0)-(r0,c1)-(r1,c1) and (r0,c0)-(r1,c1)-(r1,c0)
    rows = np.stack((np.stack((r0, r0, r1), axis=1), np.stack((r0, r1, r1), axis=1)), axis=1).reshape(-1, 3)
    cols = np.stack((np.stack((c0, c1, c1), axis=1), np.stack((c0, c1, c0), axis=1)), axis=1).reshape(-1, 3)
    cells = np.repeat(np.stack((r0, c0), axis=1), 2, axis=0)

    tri_points = projected[rows, cols]
    tri_colors = colors[rows, cols]
    # Perspective can push corners behind the camera
    keep = np.isfinite(tri_points).all(axis=(1, 2))
    tri_points, tri_colors, cells = tri_points[keep], tri_colors[keep], cells[keep]

    order = np.argsort(tri_points[:, :, 2].mean(axis=1), kind="stable")
    return TriangleList(tri_points[order, :, :2], tri_points[order, :, 2], tri_colors[order], cells[order])


def _valid_runs(points, mask):
    runs, start = [], None
    for k, ok in enumerate(mask):
        if ok and start is None:
            start = k
        elif not ok and start is not None:
            if k - start >= 2: runs.append(points[start:k])
            start = None
    if start is not None and len(mask) - start >= 2:
        runs.append(points[start:])
    return runs


def assemble_wireframe(grid, transform, color=WIREFRAME_COLOR):
    """Grid lines along every row and column, broken wherever a vertex is invalid."""
    projected = _project_grid(grid, transform)
    mask = grid.valid & np.isfinite(projected).all(axis=-1)
    lines = []
    for i in range(projected.shape[0]):
        lines.extend(Polyline(run[:, :2], color) for run in _valid_runs(projected[i], mask[i]))
    for j in range(projected.shape[1]):
        lines.extend(Polyline(run[:, :2], color) for run in _valid_runs(projected[:, j], mask[:, j]))
    return lines


def assemble_points(grid, transform, colorizer):
    """Valid vertices as colored points, back-to-front."""
    projected = _project_grid(grid, transform).reshape(-1, 3)
    colors = colorizer.colors_for(grid.display_heights, grid.height_range).reshape(-1, 4)
    keep = grid.valid.ravel() & np.isfinite(projected).all(axis=-1)
    projected, colors = projected[keep], colors[keep]
    order = np.argsort(projected[:, 2], kind="stable")
    return PointList(projected[order, :2], projected[order, 2], colors[order])
