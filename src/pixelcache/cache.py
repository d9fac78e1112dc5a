import logging
import math
from typing import Callable, Optional, Sequence, Union

import numpy as np

from pixelcache.aggregate import PixelAggregator
from pixelcache.extract import ExtractedPixels
from pixelcache.line import LineWalk, Marker, bresenham_line
from pixelcache.offsets import PixelOffsetTemplate, gather, pixel_offset_grid, sample_template
from pixelcache.resample import ResampleConfig, get_scaling_method, round_half_up
from pixelcache.shapes import Point, Polygon, Rectangle, Shape
from pixelcache.tile import TilePlacement, TileTransform
from pixelcache.transform import (
    COORDINATE_DECIMALS,
    CanvasTransform,
    CoordinateTransform,
    rectangle_or_polygon,
)

logger = logging.getLogger(__name__)

MAX_PIXEL_VALUE = 255
"""Default largest value a pixel can hold."""

DEFAULT_ALPHA_THRESHOLD = 0.75
"""Default fraction of the largest pixel value above which a pixel counts as present."""


class PixelCache:
    """A flat buffer of integer pixel values queried in canvas coordinates.

    The buffer is row-major with ``local_width`` pixels per row, and is never modified after
    construction. A :class:`~pixelcache.transform.CoordinateTransform` maps canvas coordinates
    to local (row/column) coordinates: a :class:`~pixelcache.transform.CanvasTransform` for a
    plain translated and scaled buffer, or a :class:`~pixelcache.tile.TileTransform` for a
    rotated, mirrored or stretched tile texture.

    The canvas bounds and the per-threshold bounding boxes are derived from the transform.
    Assigning a new :attr:`transform` is the only way to change the geometry, and it
    invalidates all derived data in one step.

    It is recommended to use the static factory methods :meth:`from_array`,
    :meth:`from_texture`, :meth:`from_tile_pixels` and :meth:`from_tile_texture`.

    Args:
        pixels: the pixel values, either a 2D array or a flat row-major sequence
        local_width: number of pixels per row (required for flat input). If it does not evenly
            divide the number of pixels, a warning is logged and the last partial row is
            dropped.
        transform: canvas-to-local transform; defaults to the identity at the origin
        max_pixel_value: the largest value a pixel can hold; thresholds are fractions of it
    """

    __slots__ = [
        '_pixels',
        '_grid',
        '_max_pixel_value',
        '_transform',
        '_bounds',
        '_threshold_boxes',
        '_threshold_canvas_boxes',
    ]

    def __init__(
        self,
        pixels,
        local_width: Optional[int] = None,
        *,
        transform: Optional[CoordinateTransform] = None,
        max_pixel_value: float = MAX_PIXEL_VALUE,
    ):
        arr = np.array(pixels)
        if arr.ndim == 2:
            if local_width is not None and local_width != arr.shape[1]:
                raise ValueError("local_width does not match the width of the 2D pixel array")
            local_width = arr.shape[1]
        elif local_width is None:
            raise ValueError("local_width must be provided when the pixels are a flat sequence")
        arr = arr.reshape(-1)

        local_width = int(local_width)
        if local_width <= 0:
            raise ValueError("local_width must be positive")
        local_height = len(arr) // local_width
        if len(arr) % local_width:
            logger.warning(
                "Width %d does not evenly divide into %d pixels; truncating to %d rows",
                local_width, len(arr), local_height,
            )
            arr = arr[: local_width * local_height]

        arr.flags.writeable = False
        self._pixels = arr
        self._grid = arr.reshape(local_height, local_width)
        self._max_pixel_value = max_pixel_value
        self._threshold_boxes = {}
        self._threshold_canvas_boxes = {}
        self._transform = None
        self._bounds = None
        self.transform = transform if transform is not None else CanvasTransform()

    # Construction

    @staticmethod
    def from_array(
        array: np.ndarray,
        *,
        x: float = 0.0,
        y: float = 0.0,
        resolution: float = 1.0,
        max_pixel_value: float = MAX_PIXEL_VALUE,
    ) -> "PixelCache":
        """Create a cache from a 2D array whose top-left corner sits at canvas (x, y).

        Args:
            array: 2D array of pixel values, indexed [row, column]
            x: canvas x coordinate of the left edge
            y: canvas y coordinate of the top edge
            resolution: local pixels per canvas unit
            max_pixel_value: the largest value a pixel can hold
        """
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError("Expected a 2D array")
        return PixelCache(
            array,
            transform=CanvasTransform(x, y, resolution),
            max_pixel_value=max_pixel_value,
        )

    @staticmethod
    def from_texture(
        texture,
        extract_fn: Callable,
        *,
        frame: Optional[Rectangle] = None,
        resolution: float = 1.0,
        x: float = 0.0,
        y: float = 0.0,
        channel: int = 0,
        combine_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        scaling_method: Union[str, Callable] = 'nearest',
        texture_resolution: float = 1.0,
        max_pixel_value: float = MAX_PIXEL_VALUE,
    ) -> "PixelCache":
        """Create a cache from pixels read back from a texture.

        The pixels are extracted once, reduced to one channel (or combined into one value per
        pixel with ``combine_fn``) and resampled to ``resolution``.

        Args:
            texture: the texture, passed through to ``extract_fn``
            extract_fn: called as ``extract_fn(texture, frame)``; returns an
                :class:`~pixelcache.extract.ExtractedPixels` or a mapping with the keys
                ``pixels``, ``x``, ``y``, ``width`` and ``height``
            frame: optional region of the texture to extract, passed through to ``extract_fn``
            resolution: size of the cache relative to the extracted pixels
            x: canvas x translation added to the extracted offset
            y: canvas y translation added to the extracted offset
            channel: which interleaved channel to keep, e.g. 0 for red or 3 for alpha
            combine_fn: maps an (N, channels) array of pixels to N values; overrides ``channel``
            scaling_method: "nearest", "box", or a function with the same signature as
                :func:`~pixelcache.resample.nearest_neighbor_scaling`
            texture_resolution: texture pixels per canvas unit of the source texture
            max_pixel_value: the largest value a pixel can hold
        """
        extracted = ExtractedPixels.coerce(extract_fn(texture, frame))
        config = ResampleConfig(channel=channel, stride=extracted.channels, combine_fn=combine_fn)
        scale = get_scaling_method(scaling_method)
        arr = scale(extracted.pixels, extracted.width, extracted.height, resolution, config)
        transform = CanvasTransform(
            x + extracted.x / texture_resolution,
            y + extracted.y / texture_resolution,
            resolution * texture_resolution,
        )
        return PixelCache(
            arr,
            round_half_up(extracted.width * resolution),
            transform=transform,
            max_pixel_value=max_pixel_value,
        )

    @staticmethod
    def from_tile_pixels(
        pixels,
        placement: TilePlacement,
        *,
        resolution: Optional[float] = None,
        local_width: Optional[int] = None,
        max_pixel_value: float = MAX_PIXEL_VALUE,
    ) -> "PixelCache":
        """Create a cache for a tile from an already extracted single-channel buffer.

        Provide either the resolution of the buffer relative to the native texture size, or
        its row width (from which the resolution is derived).
        """
        if local_width is None and np.ndim(pixels) == 2:
            local_width = np.shape(pixels)[1]
        if resolution is None:
            if local_width is None:
                raise ValueError("Either resolution or local_width must be provided")
            resolution = local_width / placement.texture_width
        elif local_width is None:
            local_width = round_half_up(placement.texture_width * resolution)
        return PixelCache(
            np.asarray(pixels).reshape(-1),
            local_width,
            transform=TileTransform(placement, resolution),
            max_pixel_value=max_pixel_value,
        )

    @staticmethod
    def from_tile_texture(
        texture,
        placement: TilePlacement,
        extract_fn: Callable,
        *,
        frame: Optional[Rectangle] = None,
        resolution: float = 1.0,
        channel: int = 3,
        combine_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        scaling_method: Union[str, Callable] = 'nearest',
        max_pixel_value: float = MAX_PIXEL_VALUE,
    ) -> "PixelCache":
        """Create a cache for a tile from its texture, by default from the alpha channel.

        See :meth:`from_texture` for the arguments.
        """
        extracted = ExtractedPixels.coerce(extract_fn(texture, frame))
        config = ResampleConfig(channel=channel, stride=extracted.channels, combine_fn=combine_fn)
        scale = get_scaling_method(scaling_method)
        arr = scale(extracted.pixels, extracted.width, extracted.height, resolution, config)
        return PixelCache.from_tile_pixels(
            arr,
            placement,
            local_width=round_half_up(extracted.width * resolution),
            max_pixel_value=max_pixel_value,
        )

    # Geometry

    @property
    def transform(self) -> CoordinateTransform:
        """The canvas-to-local transform. Assigning a new one invalidates derived data."""
        return self._transform

    @transform.setter
    def transform(self, value: CoordinateTransform):
        if not isinstance(value, CoordinateTransform):
            raise ValueError("transform must be a CoordinateTransform")
        self._transform = value
        self.invalidate()

    def set_origin(self, x: float, y: float):
        """Move the cache on the canvas (for tiles: the top-left corner of the tile frame)."""
        self.transform = self._transform.moved_to(x, y)

    def invalidate(self):
        """Drop all data derived from the transform and recompute the canvas bounds."""
        self._threshold_boxes.clear()
        self._threshold_canvas_boxes.clear()
        corners = self._transform.to_canvas.apply_points(self.local_frame.corners())
        x0, y0 = corners.min(axis=0)
        x1, y1 = corners.max(axis=0)
        self._bounds = Rectangle(float(x0), float(y0), float(x1 - x0), float(y1 - y0))
        logger.debug("Invalidated derived data of %r", self)

    @property
    def pixels(self) -> np.ndarray:
        """The flat, read-only pixel buffer."""
        return self._pixels

    @property
    def local_width(self) -> int:
        return self._grid.shape[1]

    @property
    def local_height(self) -> int:
        return self._grid.shape[0]

    @property
    def local_frame(self) -> Rectangle:
        """The whole buffer in local coordinates."""
        return Rectangle(0, 0, self.local_width, self.local_height)

    @property
    def max_pixel_value(self) -> float:
        return self._max_pixel_value

    @property
    def resolution(self) -> float:
        return self._transform.resolution

    @property
    def bounds(self) -> Rectangle:
        """The axis-aligned canvas rectangle covered by the buffer.

        For rotated tiles this is the bounding box of the rotated texture, computed from the
        four corners of the local frame.
        """
        return self._bounds

    def __len__(self):
        return len(self._pixels)

    def __repr__(self):
        return (
            f'PixelCache({self.local_width}x{self.local_height}, '
            f'bounds={self._bounds}, '
            f'{self._transform!r})'
        )

    def __array__(self, dtype=None, copy=None):
        if copy is False:
            raise ValueError("PixelCache cannot be viewed as a writable numpy array without copying")
        return np.array(self._grid, dtype=dtype)

    def to_array(self) -> np.ndarray:
        """A writable copy of the pixels as a 2D array indexed [row, column]."""
        return self._grid.copy()

    # Coordinates

    def from_canvas_coordinates(self, x, y):
        """Convert canvas coordinates to local coordinates."""
        return self._transform.from_canvas_coordinates(x, y)

    def to_canvas_coordinates(self, x, y):
        """Convert local coordinates to canvas coordinates."""
        return self._transform.to_canvas_coordinates(x, y)

    def shape_to_local(self, shape: Shape) -> Optional[Shape]:
        return self._transform.shape_to_local(shape)

    def index_at_local(self, x: float, y: float) -> Optional[int]:
        """Index into :attr:`pixels` of the pixel containing a local point, or None if outside."""
        col = math.floor(x)
        row = math.floor(y)
        if 0 <= col < self.local_width and 0 <= row < self.local_height:
            return row * self.local_width + col
        return None

    def index_at_canvas(self, x: float, y: float) -> Optional[int]:
        return self.index_at_local(*self.from_canvas_coordinates(x, y))

    def local_at_index(self, i: int) -> Point:
        return Point(i % self.local_width, i // self.local_width)

    def canvas_at_index(self, i: int) -> Point:
        return self.to_canvas_coordinates(*self.local_at_index(i))

    def pixel_at_local(self, x: float, y: float) -> Optional[int]:
        """The pixel value at a local point, or None if the point is outside the buffer."""
        i = self.index_at_local(x, y)
        return None if i is None else self._pixels[i].item()

    def pixel_at_canvas(self, x: float, y: float) -> Optional[int]:
        """The pixel value at a canvas point, or None if the point is outside the buffer."""
        return self.pixel_at_local(*self.from_canvas_coordinates(x, y))

    def contains_pixel(
        self, x: float, y: float, alpha_threshold: float = DEFAULT_ALPHA_THRESHOLD
    ) -> bool:
        """Whether the pixel at a canvas point exceeds a fraction of the largest pixel value."""
        value = self.pixel_at_canvas(x, y)
        return value is not None and value > alpha_threshold * self._max_pixel_value

    # Threshold bounding boxes

    def threshold_bounding_box(self, threshold: float = DEFAULT_ALPHA_THRESHOLD) -> Rectangle:
        """The smallest local rectangle containing every pixel above a threshold.

        Pixels count if their value exceeds ``threshold * max_pixel_value``. The result is
        memoized per threshold until the transform changes.

        Args:
            threshold: fraction of the largest pixel value, in (0, 1]

        Returns:
            A rectangle in local coordinates. If no pixel exceeds the threshold, the rectangle
            has zero area; callers must check :attr:`Rectangle.area` before relying on it.
        """
        _check_threshold(threshold)
        box = self._threshold_boxes.get(threshold)
        if box is None:
            box = self._calculate_bounding_box(threshold)
            self._threshold_boxes[threshold] = box
            logger.debug("Bounding box above threshold %s: %s", threshold, box)
        return box

    def threshold_canvas_bounding_box(
        self, threshold: float = DEFAULT_ALPHA_THRESHOLD
    ) -> Union[Rectangle, Polygon]:
        """The threshold bounding box in canvas coordinates.

        Returns:
            A rectangle, or a polygon if the transform rotates the box off the canvas axes.
            Zero area if no pixel exceeds the threshold.
        """
        box = self._threshold_canvas_boxes.get(threshold)
        if box is None:
            local = self.threshold_bounding_box(threshold)
            if local.area == 0:
                box = Rectangle(0, 0, 0, 0)
            else:
                box = rectangle_or_polygon(self._transform.to_canvas.apply_points(local.corners()))
            self._threshold_canvas_boxes[threshold] = box
        return box

    def _calculate_bounding_box(self, threshold: float) -> Rectangle:
        # Sweep inward from each side and stop at the first row or column with a hit.
        cutoff = threshold * self._max_pixel_value
        grid = self._grid
        height, width = grid.shape

        top = next((r for r in range(height) if (grid[r] > cutoff).any()), None)
        if top is None:
            return Rectangle(0, 0, 0, 0)
        bottom = next(r for r in range(height - 1, top - 1, -1) if (grid[r] > cutoff).any())
        rows = grid[top : bottom + 1]
        left = next(c for c in range(width) if (rows[:, c] > cutoff).any())
        right = next(c for c in range(width - 1, left - 1, -1) if (rows[:, c] > cutoff).any())
        return Rectangle(left, top, right - left + 1, bottom - top + 1)

    # Shapes

    def pixels_for_shape(self, shape: Shape, skip: int = 0) -> Optional[np.ndarray]:
        """Values of the pixels inside a canvas shape.

        Only pixels inside the buffer are returned. Rectangles that stay axis-aligned in local
        space are read as a strided slice; other shapes go through a
        :class:`~pixelcache.offsets.PixelOffsetTemplate`.

        Args:
            shape: rectangle, circle, ellipse or polygon in canvas coordinates
            skip: number of pixels to skip between samples along each axis

        Returns:
            A float array of values, or None (with an error logged) if ``shape`` is not a
            recognized shape.
        """
        if skip < 0:
            raise ValueError("skip must not be negative")
        local = self._transform.shape_to_local(shape)
        if local is None:
            return None
        if isinstance(local, Rectangle):
            x0, x1, y0, y1 = self._local_rect_range(local)
            step = int(skip) + 1
            return self._grid[y0:y1:step, x0:x1:step].astype(np.float64).reshape(-1)

        template = self._template_from_local(shape, local, skip)
        values = sample_template(self._grid, template, self.from_canvas_coordinates(*template.anchor))
        return values[~np.isnan(values)]

    def aggregate(
        self, shape: Shape, aggregator: Union[str, PixelAggregator], skip: int = 0
    ) -> Optional[float]:
        """Reduce the pixels inside a canvas shape with an aggregator.

        Returns:
            The aggregate, ``nan`` if the aggregate of no pixels is undefined, or None if the
            shape is not recognized.
        """
        aggregator = PixelAggregator.coerce(aggregator)
        values = self.pixels_for_shape(shape, skip)
        if values is None:
            return None
        return aggregator(values)

    def average(self, shape: Shape, skip: int = 0) -> Optional[float]:
        """Mean pixel value inside a canvas shape (``nan`` if it covers no pixels)."""
        return self.aggregate(shape, 'average', skip)

    def count(
        self, shape: Shape, threshold: float = DEFAULT_ALPHA_THRESHOLD, skip: int = 0
    ) -> Optional[int]:
        """Number of pixels inside a canvas shape above ``threshold * max_pixel_value``."""
        _check_threshold(threshold)
        aggregator = PixelAggregator('count_gt_threshold', threshold * self._max_pixel_value)
        return self.aggregate(shape, aggregator, skip)

    def percent(
        self, shape: Shape, threshold: float = DEFAULT_ALPHA_THRESHOLD, skip: int = 0
    ) -> Optional[float]:
        """Fraction of the pixels inside a canvas shape above ``threshold * max_pixel_value``.

        ``nan`` if the shape covers no pixels.
        """
        _check_threshold(threshold)
        aggregator = PixelAggregator('percent_gt_threshold', threshold * self._max_pixel_value)
        return self.aggregate(shape, aggregator, skip)

    def offset_template(self, shape: Shape, skip: int = 0) -> Optional[PixelOffsetTemplate]:
        """Precompute which pixels a canvas shape covers, for reuse at other positions.

        The template is anchored at the center of the shape's bounds. Sample it with
        :meth:`pixels_for_template`.
        """
        local = self._transform.shape_to_local(shape)
        if local is None:
            return None
        return self._template_from_local(shape, local, skip)

    def pixels_for_template(
        self, template: PixelOffsetTemplate, x: Optional[float] = None, y: Optional[float] = None
    ) -> np.ndarray:
        """Values under a template moved so that its anchor is at canvas (x, y).

        Defaults to the anchor the template was built at. Samples outside the buffer are
        ``nan``.
        """
        if x is None or y is None:
            x, y = template.anchor
        return sample_template(self._grid, template, self.from_canvas_coordinates(x, y))

    def aggregate_template(
        self,
        template: PixelOffsetTemplate,
        aggregator: Union[str, PixelAggregator],
        x: Optional[float] = None,
        y: Optional[float] = None,
    ) -> float:
        return PixelAggregator.coerce(aggregator)(self.pixels_for_template(template, x, y))

    @staticmethod
    def pixel_offset_grid(shape: Shape, skip: float) -> np.ndarray:
        """Canvas-space offsets from a shape's center on a grid spaced ``skip`` apart."""
        return pixel_offset_grid(shape, skip)

    def convert_canvas_offset_grid_to_local(self, offsets: np.ndarray) -> np.ndarray:
        """Convert canvas displacement vectors to local displacement vectors."""
        return self._transform.to_local.apply_vectors(offsets)

    def pixels_for_relative_points_from_canvas(
        self, x: float, y: float, local_offsets: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Values at local offsets from a canvas point (outside the buffer -> ``nan``).

        Args:
            x: canvas x coordinate of the reference point
            y: canvas y coordinate of the reference point
            local_offsets: (N, 2) local displacements, e.g. from
                :meth:`convert_canvas_offset_grid_to_local`; defaults to the point alone
        """
        if local_offsets is None:
            local_offsets = np.zeros((1, 2))
        local = np.asarray(self.from_canvas_coordinates(x, y), dtype=np.float64)
        points = np.floor(
            np.round(local + np.asarray(local_offsets).reshape(-1, 2), COORDINATE_DECIMALS)
        )
        return gather(self._grid, points[:, 0], points[:, 1])

    def apply_function(
        self, fn: Callable[[int, int], None], frame: Optional[Shape] = None
    ) -> Optional[int]:
        """Call ``fn(value, index)`` for each pixel, optionally limited to a canvas frame.

        Returns:
            The number of pixels visited.
        """
        if frame is None:
            return self._apply_in_local_rect(fn, self.local_frame)
        return self.apply_function_to_shape(fn, frame)

    def apply_function_to_shape(self, fn: Callable[[int, int], None], shape: Shape) -> Optional[int]:
        """Call ``fn(value, index)`` for each pixel inside a canvas shape.

        Returns:
            The number of pixels visited, or None if the shape is not recognized.
        """
        local = self._transform.shape_to_local(shape)
        if local is None:
            return None
        if isinstance(local, Rectangle):
            return self._apply_in_local_rect(fn, local)

        x0, x1, y0, y1 = self._local_rect_range(local.bounds(), inclusive=True)
        cols, rows = np.meshgrid(np.arange(x0, x1), np.arange(y0, y1))
        inside = np.asarray(local.contains(cols, rows), dtype=bool)
        width = self.local_width
        n = 0
        for col, row in zip(cols[inside].tolist(), rows[inside].tolist()):
            i = row * width + col
            fn(self._pixels[i].item(), i)
            n += 1
        return n

    def _apply_in_local_rect(self, fn, local: Rectangle) -> int:
        x0, x1, y0, y1 = self._local_rect_range(local)
        width = self.local_width
        for row in range(y0, y1):
            for col in range(x0, x1):
                i = row * width + col
                fn(self._pixels[i].item(), i)
        return max(0, x1 - x0) * max(0, y1 - y0)

    def _local_rect_range(self, rect: Rectangle, inclusive: bool = False):
        # Integer columns c with left <= c < right, clamped to the buffer.
        end_pad = 1 if inclusive else 0
        x0 = max(math.ceil(rect.left), 0)
        y0 = max(math.ceil(rect.top), 0)
        x1 = min(math.ceil(rect.right) + end_pad, self.local_width)
        y1 = min(math.ceil(rect.bottom) + end_pad, self.local_height)
        return x0, max(x0, x1), y0, max(y0, y1)

    def _template_from_local(self, shape: Shape, local: Shape, skip: int) -> PixelOffsetTemplate:
        anchor = shape.center
        return PixelOffsetTemplate.from_local_shape(
            local, anchor, self.from_canvas_coordinates(*anchor), skip
        )

    # Lines and rays

    def pixel_values_for_line(
        self,
        a: Sequence[float],
        b: Sequence[float],
        *,
        alpha_threshold: Optional[float] = None,
        skip: int = 0,
        mark_pixel_fn: Optional[Callable[[int, int], bool]] = None,
    ) -> Optional[LineWalk]:
        """Walk the pixels under the canvas segment a -> b.

        The segment is first trimmed to the buffer (or, with ``alpha_threshold``, to the
        threshold bounding box), then rasterized with Bresenham's algorithm. Both trimmed
        endpoints are always part of the walk.

        Without ``mark_pixel_fn``, every ``skip + 1``-th pixel is returned (plus the last one).
        With it, every pixel is returned, and a :class:`~pixelcache.line.Marker` is recorded
        wherever ``mark_pixel_fn(prev_value, curr_value)`` is true. The marker chain always
        starts at t=0 and ends at t=1; if the segment enters or leaves the covered region
        part way, markers with ``prev_pixel`` or ``curr_pixel`` of None are placed at the
        crossing.

        Args:
            a: canvas start point
            b: canvas end point
            alpha_threshold: if given, trim to the bounding box of pixels above this fraction
            skip: number of pixels to skip between returned samples
            mark_pixel_fn: predicate on consecutive pixel values

        Returns:
            A :class:`~pixelcache.line.LineWalk`, or None if the segment misses the covered
            region entirely (a normal outcome for queries off the cache).
        """
        if skip < 0:
            raise ValueError("skip must not be negative")
        a = Point(a[0], a[1])
        b = Point(b[0], b[1])
        la = self.from_canvas_coordinates(*a)
        lb = self.from_canvas_coordinates(*b)
        if alpha_threshold is None:
            frame = self.local_frame
        else:
            frame = self.threshold_bounding_box(alpha_threshold)

        clipped = frame.clip_segment(la, lb)
        if clipped is None:
            return None
        t0, t1 = clipped
        if not frame.contains(*_lerp(la, lb, (t0 + t1) * 0.5)):
            # Touches only the right or bottom edge, which belongs to no pixel.
            return None
        start = _lerp(la, lb, t0)
        end = _lerp(la, lb, t1)
        x0, y0 = _clamp_to_frame(start, frame)
        x1, y1 = _clamp_to_frame(end, frame)

        coords = bresenham_line(x0, y0, x1, y1)
        values = self._grid[coords[:, 1], coords[:, 0]]
        ts = np.linspace(t0, t1, len(coords))

        if mark_pixel_fn is None:
            idx = np.arange(0, len(coords), skip + 1)
            if idx[-1] != len(coords) - 1:
                idx = np.append(idx, len(coords) - 1)
            return LineWalk(coords[idx], values[idx], ts[idx])

        markers = _mark_pixels(a, b, coords, values, ts, t0, t1, mark_pixel_fn)
        return LineWalk(coords, values, ts, markers)

    def ray_intersects_boundary(
        self, ray: Sequence[Sequence[float]], threshold: float = DEFAULT_ALPHA_THRESHOLD
    ) -> list[tuple[Point, float]]:
        """Where a canvas segment crosses the outline of the threshold bounding box.

        Args:
            ray: the segment as a pair of canvas points (a, b)
            threshold: fraction of the largest pixel value, as in
                :meth:`threshold_bounding_box`

        Returns:
            (point, t) pairs sorted by t; empty if the segment does not cross the outline or no
            pixel exceeds the threshold.
        """
        a, b = ray
        boundary = self.threshold_canvas_bounding_box(threshold)
        if isinstance(boundary, Rectangle):
            if boundary.area == 0:
                return []
            boundary = Polygon(boundary.corners())
        return boundary.segment_intersections(a, b)

    def next_pixel_value_along_ray(
        self,
        a: Sequence[float],
        b: Sequence[float],
        cmp: Callable[[int], bool],
        *,
        step_t: float = 0.1,
        start_t: Optional[float] = None,
    ) -> Optional[tuple[Point, float]]:
        """Step along the canvas segment a -> b until ``cmp(pixel_value)`` is true.

        Positions outside the buffer are skipped.

        Args:
            a: canvas start point
            b: canvas end point
            cmp: predicate on pixel values
            step_t: distance between tests, as a fraction of the segment
            start_t: where to start; defaults to ``step_t``

        Returns:
            The canvas point and its t, or None if no tested position matches.
        """
        if not step_t > 0:
            raise ValueError("step_t must be positive")
        if start_t is None:
            start_t = step_t
        la = self.from_canvas_coordinates(a[0], a[1])
        lb = self.from_canvas_coordinates(b[0], b[1])

        i = 0
        t = start_t
        while t <= 1 + 1e-9:
            t = min(t, 1.0)
            local = _lerp(la, lb, t)
            value = self.pixel_at_local(*local)
            if value is not None and cmp(value):
                return Point(a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t), t
            i += 1
            t = start_t + i * step_t
        return None


def _mark_pixels(a, b, coords, values, ts, t0, t1, mark_pixel_fn) -> list[Marker]:
    coords = coords.tolist()
    values = values.tolist()
    ts = ts.tolist()
    n = len(values)

    def pixel_options(i, prev):
        return dict(prev_pixel=prev, curr_pixel=values[i], x=coords[i][0], y=coords[i][1])

    outside = dict(prev_pixel=None, curr_pixel=None, x=None, y=None)
    if t0 > 0:
        first = Marker(0.0, a, b, **outside)
    else:
        first = Marker(0.0, a, b, **pixel_options(0, None))
    markers = [first]
    last = first

    if t0 > 0:
        last = last.add_subsequent_marker(t0, **pixel_options(0, None))
        markers.append(last)

    for i in range(1, n):
        prev = values[i - 1]
        if mark_pixel_fn(prev, values[i]):
            last = last.add_subsequent_marker(ts[i], **pixel_options(i, prev))
            markers.append(last)

    if t1 < 1:
        last = last.add_subsequent_marker(t1, **{**outside, 'prev_pixel': values[-1]})
        markers.append(last)
        if last.t < 1:
            last = last.add_subsequent_marker(1.0, **outside)
            markers.append(last)
    elif last.t < 1:
        last = last.add_subsequent_marker(1.0, **pixel_options(n - 1, values[-1]))
        markers.append(last)
    return markers


def _lerp(a, b, t: float) -> Point:
    return Point(a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)


def _clamp_to_frame(point: Point, frame: Rectangle) -> tuple[int, int]:
    x = min(max(math.floor(point.x), int(frame.left)), int(frame.right) - 1)
    y = min(max(math.floor(point.y), int(frame.top)), int(frame.bottom) - 1)
    return x, y


def _check_threshold(threshold: float):
    if not 0 < threshold <= 1:
        raise ValueError(f"Threshold must be in (0, 1], got {threshold}")
