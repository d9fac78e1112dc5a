"""Coordinate transform for tiles: textures placed with rotation, mirroring and stretch."""

import dataclasses
import math
from dataclasses import dataclass
from typing import Optional

from pixelcache.transform import AffineTransform, CoordinateTransform


@dataclass(frozen=True)
class TilePlacement:
    """Where and how a tile texture is drawn on the canvas.

    Args:
        x: canvas x coordinate of the top-left corner of the tile frame (before rotation)
        y: canvas y coordinate of the top-left corner of the tile frame (before rotation)
        width: width of the tile frame on the canvas
        height: height of the tile frame on the canvas
        rotation: clockwise rotation about the frame center, in degrees
        scale_x: texture stretch along x about the frame center; negative mirrors
        scale_y: texture stretch along y about the frame center; negative mirrors
        texture_width: native width of the texture in texture pixels (defaults to width)
        texture_height: native height of the texture in texture pixels (defaults to height)
    """

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    texture_width: Optional[float] = None
    texture_height: Optional[float] = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Tile width and height must be positive")
        if self.scale_x == 0 or self.scale_y == 0:
            raise ValueError("Tile scale cannot be zero")
        if self.texture_width is None:
            object.__setattr__(self, 'texture_width', self.width)
        if self.texture_height is None:
            object.__setattr__(self, 'texture_height', self.height)
        if self.texture_width <= 0 or self.texture_height <= 0:
            raise ValueError("Texture width and height must be positive")
        object.__setattr__(self, 'rotation', self.rotation % 360)

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width * 0.5, self.y + self.height * 0.5

    @property
    def radians(self) -> float:
        return math.radians(self.rotation)


class TileTransform(CoordinateTransform):
    """Canvas-to-local transform that undoes the placement of a tile.

    The canvas point is moved so that the tile center is the origin, rotated back by the tile
    rotation, unscaled (mirroring for negative scales), moved so the texture's top-left corner
    is the origin, stretched from the frame size to the native texture size, and finally scaled
    by the resolution of the pixel buffer.

    Args:
        placement: the tile placement
        resolution: local pixels per native texture pixel
    """

    __slots__ = ['placement']

    def __init__(self, placement: TilePlacement, resolution: float = 1.0):
        if not resolution > 0:
            raise ValueError("Resolution must be positive")
        self.placement = placement
        cx, cy = placement.center
        to_local = (
            AffineTransform.translation(-cx, -cy)
            .then(AffineTransform.rotation(-placement.radians))
            .then(AffineTransform.scaling(1 / placement.scale_x, 1 / placement.scale_y))
            .then(AffineTransform.translation(placement.width * 0.5, placement.height * 0.5))
            .then(
                AffineTransform.scaling(
                    placement.texture_width / placement.width,
                    placement.texture_height / placement.height,
                )
            )
            .then(AffineTransform.scaling(resolution))
        )
        super().__init__(to_local, float(resolution))

    def with_placement(self, **changes) -> "TileTransform":
        """A new transform with some placement fields replaced, e.g. ``rotation=45``."""
        return TileTransform(dataclasses.replace(self.placement, **changes), self.resolution)

    def moved_to(self, x: float, y: float) -> "TileTransform":
        return self.with_placement(x=x, y=y)

    def __repr__(self):
        return f'TileTransform({self.placement!r}, resolution={self.resolution})'
