"""Planar shapes used to query a pixel cache.

All shapes share a small protocol: ``bounds()`` returns the axis-aligned :class:`Rectangle`
around the shape, ``center`` is the center of those bounds, and ``contains(x, y)`` tests
points. ``contains`` accepts scalars or numpy arrays of coordinates; with arrays it returns a
boolean array of the broadcast shape, which is what the batched containment tests of the
cache rely on.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence, Union

import numpy as np

_EPSILON = 1e-9


class Point(NamedTuple):
    """A 2D point."""

    x: float
    y: float


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned rectangle, in the format [x_start, y_start, width, height].

    Containment is half-open: the left and top edges are inside, the right and bottom edges
    are not. A rectangle with non-positive width or height contains nothing.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width * 0.5, self.y + self.height * 0.5)

    @property
    def area(self) -> float:
        return self.width * self.height

    @staticmethod
    def from_corners(x0: float, y0: float, x1: float, y1: float) -> "Rectangle":
        """Rectangle spanning two opposite corners, in any order."""
        return Rectangle(min(x0, x1), min(y0, y1), abs(x1 - x0), abs(y1 - y0))

    def normalize(self) -> "Rectangle":
        """Flip negative widths or heights so that the rectangle extends right and down."""
        return Rectangle.from_corners(self.left, self.top, self.right, self.bottom)

    def bounds(self) -> "Rectangle":
        return self

    def corners(self) -> np.ndarray:
        """The four corners, clockwise from the top left, as a (4, 2) array."""
        return np.array(
            [
                [self.left, self.top],
                [self.right, self.top],
                [self.right, self.bottom],
                [self.left, self.bottom],
            ],
            dtype=np.float64,
        )

    def contains(self, x, y):
        if self.width <= 0 or self.height <= 0:
            return _as_result(np.zeros(np.broadcast(x, y).shape, dtype=bool))
        x = np.asarray(x)
        y = np.asarray(y)
        result = (x >= self.left) & (x < self.right) & (y >= self.top) & (y < self.bottom)
        return _as_result(result)

    def intersect(self, other: "Rectangle") -> "Rectangle":
        """The overlap of two rectangles. Disjoint rectangles give a zero-area rectangle."""
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return Rectangle(0, 0, 0, 0)
        return Rectangle(left, top, right - left, bottom - top)

    def contains_rectangle(self, other: "Rectangle") -> bool:
        return (
            other.left >= self.left
            and other.right <= self.right
            and other.top >= self.top
            and other.bottom <= self.bottom
        )

    def clip_segment(self, a: Sequence[float], b: Sequence[float]) -> Optional[tuple[float, float]]:
        """Clip the segment a -> b to this rectangle (edges included).

        Uses the Liang-Barsky algorithm.

        Args:
            a: start point of the segment
            b: end point of the segment

        Returns:
            The parameters (t0, t1), 0 <= t0 <= t1 <= 1, of the part of the segment inside the
            rectangle, or None if the segment misses the rectangle or the rectangle is empty.
        """
        if self.width <= 0 or self.height <= 0:
            return None

        dx = b[0] - a[0]
        dy = b[1] - a[1]
        t0, t1 = 0.0, 1.0
        for p, q in (
            (-dx, a[0] - self.left),
            (dx, self.right - a[0]),
            (-dy, a[1] - self.top),
            (dy, self.bottom - a[1]),
        ):
            if abs(p) < _EPSILON:
                if q < 0:
                    return None
                continue
            r = q / p
            if p < 0:
                if r > t1:
                    return None
                t0 = max(t0, r)
            else:
                if r < t0:
                    return None
                t1 = min(t1, r)
        return t0, t1


@dataclass(frozen=True)
class Circle:
    x: float
    y: float
    radius: float

    @property
    def center(self) -> Point:
        return Point(self.x, self.y)

    def bounds(self) -> Rectangle:
        r = abs(self.radius)
        return Rectangle(self.x - r, self.y - r, 2 * r, 2 * r)

    def contains(self, x, y):
        dx = np.asarray(x) - self.x
        dy = np.asarray(y) - self.y
        return _as_result(dx * dx + dy * dy <= self.radius * self.radius)


@dataclass(frozen=True)
class Ellipse:
    x: float
    y: float
    half_width: float
    half_height: float

    @property
    def center(self) -> Point:
        return Point(self.x, self.y)

    def bounds(self) -> Rectangle:
        hw = abs(self.half_width)
        hh = abs(self.half_height)
        return Rectangle(self.x - hw, self.y - hh, 2 * hw, 2 * hh)

    def contains(self, x, y):
        if self.half_width == 0 or self.half_height == 0:
            return _as_result(np.zeros(np.broadcast(x, y).shape, dtype=bool))
        nx = (np.asarray(x) - self.x) / self.half_width
        ny = (np.asarray(y) - self.y) / self.half_height
        return _as_result(nx * nx + ny * ny <= 1)

    def to_polygon(self, num_vertices: int = 64) -> "Polygon":
        angles = np.linspace(0, 2 * math.pi, num_vertices, endpoint=False)
        return Polygon(
            np.stack(
                [
                    self.x + self.half_width * np.cos(angles),
                    self.y + self.half_height * np.sin(angles),
                ],
                axis=1,
            )
        )


class Polygon:
    """Simple polygon given by its vertices.

    Args:
        points: the vertices, either as a flat sequence [x0, y0, x1, y1, ...] or as an (N, 2)
            array. The polygon is implicitly closed.
    """

    __slots__ = ['points']

    def __init__(self, points):
        points = np.array(points, dtype=np.float64)
        if points.ndim == 1:
            if len(points) % 2:
                raise ValueError("A flat list of polygon coordinates must have an even length")
            points = points.reshape(-1, 2)
        if points.ndim != 2 or points.shape[1] != 2:
            raise ValueError("Polygon points must be a flat list or an (N, 2) array")
        points.flags.writeable = False
        self.points = points

    def __len__(self):
        return len(self.points)

    def __eq__(self, other):
        if not isinstance(other, Polygon):
            return NotImplemented
        return self.points.shape == other.points.shape and np.allclose(self.points, other.points)

    def __repr__(self):
        return f'Polygon({self.points.tolist()!r})'

    @property
    def center(self) -> Point:
        return self.bounds().center

    def bounds(self) -> Rectangle:
        if len(self.points) == 0:
            return Rectangle(0, 0, 0, 0)
        x0, y0 = self.points.min(axis=0)
        x1, y1 = self.points.max(axis=0)
        return Rectangle(float(x0), float(y0), float(x1 - x0), float(y1 - y0))

    def edges(self):
        """Iterate over the edges as pairs of (2,) arrays."""
        n = len(self.points)
        for i in range(n):
            yield self.points[i], self.points[(i + 1) % n]

    def contains(self, x, y):
        # Even-odd rule, vectorized over the query points.
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        inside = np.zeros(np.broadcast(x, y).shape, dtype=bool)
        with np.errstate(divide='ignore', invalid='ignore'):
            for (xi, yi), (xj, yj) in self.edges():
                crosses = (yi > y) != (yj > y)
                x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
                inside ^= crosses & (x < x_cross)
        return _as_result(inside)

    def segment_intersections(
        self, a: Sequence[float], b: Sequence[float]
    ) -> list[tuple[Point, float]]:
        """Points where the segment a -> b crosses the polygon outline.

        Returns:
            A list of (point, t) pairs sorted by t, where t in [0, 1] is the position along the
            segment. Hits on a shared vertex are reported once.
        """
        ax, ay = a[0], a[1]
        rx = b[0] - ax
        ry = b[1] - ay
        hits = []
        for (px, py), (qx, qy) in self.edges():
            sx = qx - px
            sy = qy - py
            denom = rx * sy - ry * sx
            if abs(denom) < _EPSILON:
                continue
            wx = px - ax
            wy = py - ay
            t = (wx * sy - wy * sx) / denom
            u = (wx * ry - wy * rx) / denom
            if -_EPSILON <= t <= 1 + _EPSILON and -_EPSILON <= u <= 1 + _EPSILON:
                t = min(max(t, 0.0), 1.0)
                hits.append(t)

        hits.sort()
        result = []
        for t in hits:
            if result and t - result[-1][1] < 1e-8:
                continue
            result.append((Point(ax + rx * t, ay + ry * t), t))
        return result


Shape = Union[Rectangle, Circle, Ellipse, Polygon]
"""Any shape the cache can be queried with."""


def _as_result(arr):
    arr = np.asarray(arr)
    if arr.ndim == 0:
        return bool(arr)
    return arr
