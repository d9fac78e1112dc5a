"""Reusable pixel offset templates for repeated queries with congruent shapes.

Testing which pixels lie inside a shape is the expensive part of aggregating over it. A
:class:`PixelOffsetTemplate` runs that test once, in a single batched call, and keeps the
integer displacements of the inside pixels relative to an anchor. Sampling the same shape at
another position is then a matter of adding the new anchor to the displacements.
"""

import math

import numpy as np

from pixelcache.shapes import Point, Rectangle, Shape


class PixelOffsetTemplate:
    """Integer local-space offsets, relative to an anchor pixel, that lie inside a shape.

    A template is tied to the scale and rotation of the transform it was built with; it can be
    reused on any cache whose canvas-to-local transform differs only by translation.

    Args:
        offsets: an (N, 2) integer array of (dx, dy) displacements
        anchor: the canvas point the offsets were measured from
    """

    __slots__ = ['offsets', 'anchor']

    def __init__(self, offsets: np.ndarray, anchor: Point):
        offsets = np.array(offsets, dtype=np.intp).reshape(-1, 2)
        offsets.flags.writeable = False
        self.offsets = offsets
        self.anchor = Point(*anchor)

    def __len__(self):
        return len(self.offsets)

    def __repr__(self):
        return f'PixelOffsetTemplate({len(self)} offsets, anchor={tuple(self.anchor)})'

    @staticmethod
    def from_local_shape(
        local_shape: Shape, anchor: Point, local_anchor: Point, skip: int = 0
    ) -> "PixelOffsetTemplate":
        """Build a template from a shape already converted to local coordinates.

        Args:
            local_shape: the shape in local coordinates
            anchor: the canvas point that corresponds to ``local_anchor``
            local_anchor: the anchor in local coordinates
            skip: number of pixels to skip between samples along each axis
        """
        step = skip + 1
        xs, ys = _grid_axes(local_shape.bounds(), step)
        gx, gy = np.meshgrid(xs, ys)
        inside = np.asarray(local_shape.contains(gx, gy), dtype=bool)
        base_x = math.floor(local_anchor[0])
        base_y = math.floor(local_anchor[1])
        offsets = np.stack([gx[inside] - base_x, gy[inside] - base_y], axis=1)
        return PixelOffsetTemplate(offsets, anchor)

    def local_points(self, local_x: float, local_y: float) -> np.ndarray:
        """The (N, 2) local pixel coordinates covered when anchored at a local point."""
        base = np.array([math.floor(local_x), math.floor(local_y)], dtype=np.intp)
        return self.offsets + base

    def sample(self, cache, x: float, y: float) -> np.ndarray:
        """Values of a :class:`~pixelcache.cache.PixelCache` with the anchor moved to canvas (x, y)."""
        return cache.pixels_for_template(self, x, y)


def pixel_offset_grid(shape: Shape, skip: float) -> np.ndarray:
    """Canvas-space offsets from the shape center, on a regular grid, that lie in the shape.

    The grid runs outward from the center in steps of ``skip`` canvas units, so the center
    itself is always the first offset.

    Args:
        shape: the shape, in canvas coordinates
        skip: spacing between grid points; if not positive, only the center is returned

    Returns:
        An (N, 2) float array of (dx, dy) offsets.
    """
    if not skip or skip <= 0:
        return np.zeros((1, 2), dtype=np.float64)

    bounds = shape.bounds()
    cx, cy = shape.center
    half_w = bounds.width * 0.5
    half_h = bounds.height * 0.5
    dxs = _centered_steps(half_w, skip)
    dys = _centered_steps(half_h, skip)
    gx, gy = np.meshgrid(dxs, dys)
    inside = np.asarray(shape.contains(cx + gx, cy + gy), dtype=bool)

    # The center goes first, whether or not the shape contains it.
    offsets = np.stack([gx[inside], gy[inside]], axis=1)
    not_center = np.any(offsets != 0, axis=1)
    return np.vstack([np.zeros((1, 2)), offsets[not_center]])


def _centered_steps(half_extent: float, step: float) -> np.ndarray:
    n = int(half_extent // step)
    positive = np.arange(1, n + 1) * step
    return np.concatenate([[0.0], positive, -positive])


def _grid_axes(bounds: Rectangle, step: int) -> tuple[np.ndarray, np.ndarray]:
    x0 = math.floor(bounds.left)
    y0 = math.floor(bounds.top)
    x1 = math.ceil(bounds.right) + 1
    y1 = math.ceil(bounds.bottom) + 1
    return np.arange(x0, x1, step), np.arange(y0, y1, step)


def sample_template(
    grid: np.ndarray, template: PixelOffsetTemplate, local_anchor: Point
) -> np.ndarray:
    """Values of ``grid`` under the template anchored at a local point (outside -> nan)."""
    points = template.local_points(*local_anchor)
    return gather(grid, points[:, 0], points[:, 1])


def gather(grid: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Read integer local coordinates from a 2D grid as floats, with nan outside the grid."""
    xs = np.asarray(xs, dtype=np.intp)
    ys = np.asarray(ys, dtype=np.intp)
    height, width = grid.shape
    inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
    values = np.full(xs.shape, np.nan, dtype=np.float64)
    values[inside] = grid[ys[inside], xs[inside]]
    return values
