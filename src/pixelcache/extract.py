"""Pixel data as handed over by a texture extraction routine."""

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ExtractedPixels:
    """A block of interleaved pixels read back from a texture.

    Args:
        pixels: flat array of ``width * height * channels`` values, row-major
        x: x offset of the block within the texture, in texture pixels
        y: y offset of the block within the texture, in texture pixels
        width: width of the block in pixels
        height: height of the block in pixels
        channels: number of interleaved channels per pixel (4 for RGBA)
    """

    pixels: np.ndarray
    x: int
    y: int
    width: int
    height: int
    channels: int = 4

    @staticmethod
    def coerce(obj) -> "ExtractedPixels":
        """Accept an ExtractedPixels or a mapping with the keys pixels, x, y, width, height."""
        if isinstance(obj, ExtractedPixels):
            return obj
        if isinstance(obj, Mapping):
            return ExtractedPixels(
                pixels=np.asarray(obj['pixels']),
                x=obj.get('x', 0),
                y=obj.get('y', 0),
                width=obj['width'],
                height=obj['height'],
                channels=obj.get('channels', 4),
            )
        raise ValueError("Unknown extracted pixel data type")

    @staticmethod
    def from_image(image: np.ndarray, x: int = 0, y: int = 0) -> "ExtractedPixels":
        """Wrap an image array of shape (height, width) or (height, width, channels)."""
        image = np.asarray(image)
        if image.ndim == 2:
            image = image[..., np.newaxis]
        if image.ndim != 3:
            raise ValueError("Image must be 2D or 3D")
        height, width, channels = image.shape
        return ExtractedPixels(
            np.ascontiguousarray(image).reshape(-1), x, y, width, height, channels
        )


def unpremultiply_pixels(pixels: np.ndarray) -> np.ndarray:
    """Undo alpha premultiplication of RGBA pixels.

    Color channels of pixels with nonzero alpha are divided by alpha / 255 and rounded; fully
    transparent pixels are left unchanged.

    Args:
        pixels: flat uint8 RGBA array

    Returns:
        A new uint8 array.
    """
    rgba = np.array(pixels, dtype=np.uint8).reshape(-1, 4)
    alpha = rgba[:, 3].astype(np.float64)
    visible = alpha > 0
    scale = np.zeros_like(alpha)
    scale[visible] = 255 / alpha[visible]
    rgb = rgba[:, :3].astype(np.float64) * scale[:, np.newaxis] + 0.5
    rgba[visible, :3] = np.minimum(rgb[visible], 255).astype(np.uint8)
    return rgba.reshape(-1)
