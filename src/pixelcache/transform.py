"""Affine transforms between canvas space and the local pixel space of a cache.

A :class:`CoordinateTransform` holds a pair of mutually inverse 3x3 matrices. The forward
matrix maps canvas coordinates to local (pixel array) coordinates; the inverse maps back.
Both are computed once, when the transform is constructed, and transforms are immutable:
to change the geometry of a cache, assign it a new transform.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from pixelcache.shapes import Circle, Ellipse, Point, Polygon, Rectangle, Shape

logger = logging.getLogger(__name__)

COORDINATE_DECIMALS = 8
"""Results of coordinate conversions are rounded to this many decimals, so that values like
19.999999999998 come out as 20."""

_AXIS_EPSILON = 1e-9


class AffineTransform:
    """A 2D affine transformation stored as a 3x3 matrix acting on column vectors.

    The transformed location of a point is ``matrix @ [x, y, 1]``.

    Args:
        matrix: a 3x3 or 2x3 matrix. Defaults to the identity.
    """

    __slots__ = ['matrix']

    def __init__(self, matrix: Optional[np.ndarray] = None):
        if matrix is None:
            matrix = np.eye(3)
        matrix = np.array(matrix, dtype=np.float64)
        if matrix.shape == (2, 3):
            matrix = np.vstack([matrix, [0, 0, 1]])
        if matrix.shape != (3, 3):
            raise ValueError("An affine matrix must be 2x3 or 3x3")
        matrix.flags.writeable = False
        self.matrix = matrix

    @staticmethod
    def translation(dx: float, dy: float) -> "AffineTransform":
        return AffineTransform([[1, 0, dx], [0, 1, dy], [0, 0, 1]])

    @staticmethod
    def scaling(sx: float, sy: Optional[float] = None) -> "AffineTransform":
        if sy is None:
            sy = sx
        return AffineTransform([[sx, 0, 0], [0, sy, 0], [0, 0, 1]])

    @staticmethod
    def rotation(radians: float) -> "AffineTransform":
        """Rotation about the origin. With y pointing down, positive angles turn clockwise."""
        c = math.cos(radians)
        s = math.sin(radians)
        return AffineTransform([[c, -s, 0], [s, c, 0], [0, 0, 1]])

    def __matmul__(self, other: "AffineTransform") -> "AffineTransform":
        return AffineTransform(self.matrix @ other.matrix)

    def then(self, other: "AffineTransform") -> "AffineTransform":
        """The transform that applies this one first and ``other`` second."""
        return other @ self

    def inverse(self) -> "AffineTransform":
        return AffineTransform(np.linalg.inv(self.matrix))

    @property
    def linear(self) -> np.ndarray:
        """The 2x2 linear part (no translation)."""
        return self.matrix[:2, :2]

    def apply(self, x, y):
        """Transform a point or arrays of coordinates.

        Returns:
            A :class:`Point` for scalar input, otherwise a tuple of two arrays.
        """
        m = self.matrix
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        tx = np.round(m[0, 0] * x + m[0, 1] * y + m[0, 2], COORDINATE_DECIMALS)
        ty = np.round(m[1, 0] * x + m[1, 1] * y + m[1, 2], COORDINATE_DECIMALS)
        if tx.ndim == 0:
            return Point(float(tx), float(ty))
        return tx, ty

    def apply_points(self, points: np.ndarray) -> np.ndarray:
        """Transform an (N, 2) array of points."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        result = points @ self.matrix[:2, :2].T + self.matrix[:2, 2]
        return np.round(result, COORDINATE_DECIMALS)

    def apply_vectors(self, vectors: np.ndarray) -> np.ndarray:
        """Transform an (N, 2) array of displacement vectors (translation is ignored)."""
        vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 2)
        return np.round(vectors @ self.linear.T, COORDINATE_DECIMALS)

    def __repr__(self):
        return f'AffineTransform({self.matrix[:2].tolist()!r})'


class CoordinateTransform(ABC):
    """Conversion between canvas coordinates and the local coordinates of a pixel buffer.

    Subclasses only decide how the canvas-to-local matrix is built; every conversion goes
    through the same two matrices.

    Args:
        to_local: the canvas-to-local affine transform
        resolution: ratio of local pixels to canvas units along the texture axes
    """

    __slots__ = ['to_local', 'to_canvas', 'resolution']

    def __init__(self, to_local: AffineTransform, resolution: float):
        self.to_local = to_local
        self.to_canvas = to_local.inverse()
        self.resolution = resolution

    def from_canvas_coordinates(self, x, y):
        """Convert canvas coordinates to local coordinates."""
        return self.to_local.apply(x, y)

    def to_canvas_coordinates(self, x, y):
        """Convert local coordinates to canvas coordinates."""
        return self.to_canvas.apply(x, y)

    def shape_to_local(self, shape: Shape) -> Optional[Shape]:
        """Convert a canvas-space shape to local space.

        Rectangles that stay axis-aligned remain rectangles, rotated ones become polygons.
        Returns None, and logs an error, for objects that are not shapes.
        """
        return map_shape(shape, self.to_local)

    def shape_to_canvas(self, shape: Shape) -> Optional[Shape]:
        """Convert a local-space shape to canvas space."""
        return map_shape(shape, self.to_canvas)

    @abstractmethod
    def moved_to(self, x: float, y: float) -> "CoordinateTransform":
        """The same transform with the buffer moved to canvas (x, y)."""


class CanvasTransform(CoordinateTransform):
    """Translate by the canvas origin of the buffer, then scale by the resolution.

    Args:
        x: canvas x coordinate of the top-left corner of the buffer
        y: canvas y coordinate of the top-left corner of the buffer
        resolution: local pixels per canvas unit
    """

    __slots__ = ['x', 'y']

    def __init__(self, x: float = 0.0, y: float = 0.0, resolution: float = 1.0):
        if not resolution > 0:
            raise ValueError("Resolution must be positive")
        self.x = float(x)
        self.y = float(y)
        to_local = AffineTransform.translation(-self.x, -self.y).then(
            AffineTransform.scaling(resolution)
        )
        super().__init__(to_local, float(resolution))

    def moved_to(self, x: float, y: float) -> "CanvasTransform":
        return CanvasTransform(x, y, self.resolution)

    def __repr__(self):
        return f'CanvasTransform(x={self.x}, y={self.y}, resolution={self.resolution})'


def map_shape(shape: Shape, affine: AffineTransform) -> Optional[Shape]:
    """Map every vertex or parameter of a shape through an affine transform."""
    if isinstance(shape, Rectangle):
        return rectangle_or_polygon(affine.apply_points(shape.corners()))
    if isinstance(shape, Polygon):
        return Polygon(affine.apply_points(shape.points))
    if isinstance(shape, Circle):
        mapped = _map_ellipse(shape.x, shape.y, shape.radius, shape.radius, affine)
        if isinstance(mapped, Ellipse) and math.isclose(
            mapped.half_width, mapped.half_height, abs_tol=_AXIS_EPSILON
        ):
            return Circle(mapped.x, mapped.y, mapped.half_width)
        return mapped
    if isinstance(shape, Ellipse):
        return _map_ellipse(shape.x, shape.y, shape.half_width, shape.half_height, affine)

    logger.error("Cannot convert unrecognized shape type %s", type(shape).__name__)
    return None


def rectangle_or_polygon(corners: np.ndarray):
    """Build a rectangle from four mapped corners if they are axis-aligned, else a polygon."""
    xs = np.unique(np.round(corners[:, 0], COORDINATE_DECIMALS - 2))
    ys = np.unique(np.round(corners[:, 1], COORDINATE_DECIMALS - 2))
    if len(xs) <= 2 and len(ys) <= 2:
        x0, y0 = corners.min(axis=0)
        x1, y1 = corners.max(axis=0)
        return Rectangle(float(x0), float(y0), float(x1 - x0), float(y1 - y0))
    return Polygon(corners)


def _map_ellipse(cx, cy, half_width, half_height, affine: AffineTransform):
    center = affine.apply(cx, cy)
    ex = affine.linear @ np.array([half_width, 0.0])
    ey = affine.linear @ np.array([0.0, half_height])

    if abs(ex[1]) < _AXIS_EPSILON and abs(ey[0]) < _AXIS_EPSILON:
        return Ellipse(center.x, center.y, abs(float(ex[0])), abs(float(ey[1])))
    if abs(ex[0]) < _AXIS_EPSILON and abs(ey[1]) < _AXIS_EPSILON:
        # Quarter turn: the axes swap.
        return Ellipse(center.x, center.y, abs(float(ey[0])), abs(float(ex[1])))
    rx = float(np.hypot(*ex))
    ry = float(np.hypot(*ey))
    if abs(float(ex @ ey)) < _AXIS_EPSILON and math.isclose(rx, ry, abs_tol=_AXIS_EPSILON):
        # A circle under rotation stays a circle.
        return Ellipse(center.x, center.y, rx, ry)

    # Any other rotation cannot be expressed as an axis-aligned ellipse.
    angles = np.linspace(0, 2 * math.pi, 64, endpoint=False)
    points = (
        np.array(center)
        + np.cos(angles)[:, np.newaxis] * ex
        + np.sin(angles)[:, np.newaxis] * ey
    )
    return Polygon(np.round(points, COORDINATE_DECIMALS))
