"""Spatial pixel cache for fast pixel queries in canvas coordinates.

A :class:`PixelCache` holds a single channel of a rendered texture (typically alpha) as a flat
buffer, together with the transform between canvas coordinates and the buffer's local pixel
coordinates. It answers point, shape, line and ray queries without touching the texture again.

There are two kinds of placement:

1. a plain buffer, translated and scaled on the canvas (:class:`CanvasTransform`)
2. a tile, whose texture is rotated, mirrored or stretched about its center
   (:class:`TileTransform` built from a :class:`TilePlacement`)

"""

__all__ = [
    "PixelCache",
    "DEFAULT_ALPHA_THRESHOLD",
    "MAX_PIXEL_VALUE",
    "Point",
    "Rectangle",
    "Circle",
    "Ellipse",
    "Polygon",
    "Shape",
    "AffineTransform",
    "CoordinateTransform",
    "CanvasTransform",
    "TilePlacement",
    "TileTransform",
    "ResampleConfig",
    "nearest_neighbor_scaling",
    "box_downscaling",
    "PixelAggregator",
    "PixelOffsetTemplate",
    "pixel_offset_grid",
    "Marker",
    "LineWalk",
    "bresenham_line",
    "ExtractedPixels",
    "unpremultiply_pixels",
]

from pixelcache.aggregate import PixelAggregator
from pixelcache.cache import DEFAULT_ALPHA_THRESHOLD, MAX_PIXEL_VALUE, PixelCache
from pixelcache.extract import ExtractedPixels, unpremultiply_pixels
from pixelcache.line import LineWalk, Marker, bresenham_line
from pixelcache.offsets import PixelOffsetTemplate, pixel_offset_grid
from pixelcache.resample import ResampleConfig, box_downscaling, nearest_neighbor_scaling
from pixelcache.shapes import Circle, Ellipse, Point, Polygon, Rectangle, Shape
from pixelcache.tile import TilePlacement, TileTransform
from pixelcache.transform import AffineTransform, CanvasTransform, CoordinateTransform
