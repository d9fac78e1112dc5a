"""Rasterizing line segments over a pixel buffer and marking events along them."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Optional, Sequence

import numpy as np

from pixelcache.shapes import Point


def bresenham_line(x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
    """Integer pixel coordinates of the line from (x0, y0) to (x1, y1).

    Both endpoints are included and the points are ordered from the first endpoint to the
    second.

    Returns:
        An (N, 2) integer array of (x, y) coordinates.

    Examples:
        >>> bresenham_line(0, 0, 3, 1).tolist()
        [[0, 0], [1, 0], [2, 1], [3, 1]]
    """
    x0, y0, x1, y1 = int(x0), int(y0), int(x1), int(y1)
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    points = []
    while True:
        points.append((x0, y0))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy
    return np.array(points, dtype=np.intp)


class Marker:
    """A position along a canvas segment where something of interest happens.

    Markers are read-only records of a parameter ``t`` in [0, 1] along the segment from
    ``start`` to ``end``, plus arbitrary options (a walk over a pixel cache sets at least
    ``curr_pixel`` and ``prev_pixel``). Options are also readable as attributes. Markers link
    to the next marker in increasing ``t`` order, and iterating over a marker yields it and all
    markers after it.

    Args:
        t: position along the segment, 0 at ``start`` and 1 at ``end``
        start: canvas start point of the segment
        end: canvas end point of the segment
        **options: additional data carried by the marker
    """

    __slots__ = ['_t', '_start', '_end', '_options', '_next']

    def __init__(self, t: float, start: Sequence[float], end: Sequence[float], **options):
        if not 0 <= t <= 1:
            raise ValueError(f"Marker position must be between 0 and 1, got {t}")
        self._t = float(t)
        self._start = Point(*start)
        self._end = Point(*end)
        self._options = MappingProxyType(dict(options))
        self._next = None

    @property
    def t(self) -> float:
        return self._t

    @property
    def start(self) -> Point:
        return self._start

    @property
    def end(self) -> Point:
        return self._end

    @property
    def options(self) -> MappingProxyType:
        return self._options

    @property
    def next(self) -> Optional["Marker"]:
        return self._next

    @property
    def point(self) -> Point:
        """The canvas point at this marker's position."""
        return Point(
            self._start.x + (self._end.x - self._start.x) * self._t,
            self._start.y + (self._end.y - self._start.y) * self._t,
        )

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self._options[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__!r} object has no attribute or option {name!r}"
            ) from None

    def __iter__(self) -> Iterator["Marker"]:
        marker = self
        while marker is not None:
            yield marker
            marker = marker._next

    def __repr__(self):
        opts = ', '.join(f'{k}={v!r}' for k, v in self._options.items())
        return f'Marker(t={self._t}{", " if opts else ""}{opts})'

    def add_subsequent_marker(self, t: float, **options) -> "Marker":
        """Splice a new marker into the chain at position ``t``.

        The new marker goes after every marker whose ``t`` is at most ``t``. It shares this
        marker's segment and starts from the options of the marker it follows, updated with
        ``options``.

        Raises:
            ValueError: if ``t`` is before this marker
        """
        if t < self._t:
            raise ValueError(f"Cannot add a marker at t={t} after a marker at t={self._t}")
        prev = self
        while prev._next is not None and prev._next._t <= t:
            prev = prev._next
        marker = Marker(t, self._start, self._end, **{**prev._options, **options})
        marker._next = prev._next
        prev._next = marker
        return marker


@dataclass(frozen=True)
class LineWalk:
    """Pixels visited while walking a line segment over a cache.

    Attributes:
        coordinates: (N, 2) integer local coordinates of the sampled pixels, in walk order
        pixels: the N pixel values
        t: the N positions of the samples along the canvas segment
        markers: the marker chain in order, empty if no marker function was given
    """

    coordinates: np.ndarray
    pixels: np.ndarray
    t: np.ndarray
    markers: list = field(default_factory=list)

    def __len__(self):
        return len(self.coordinates)

    @property
    def first_marker(self) -> Optional[Marker]:
        return self.markers[0] if self.markers else None
