"""Build single-channel pixel buffers at a different resolution than their source texture.

The source is a flat, row-major, interleaved multi-channel array (typically RGBA as read back
from a texture). Which channel is used, or how several channels are combined into one value,
is described by a :class:`ResampleConfig`.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounded up (not to even)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ResampleConfig:
    """Channel layout of a source pixel array.

    Args:
        channel: which interleaved channel to read, e.g. 0 for red and 3 for alpha in RGBA
        stride: number of interleaved channels per pixel
        combine_fn: optional function that maps an (N, stride) array of pixels to N values;
            if given, it is used instead of picking a single channel
    """

    channel: int = 0
    stride: int = 4
    combine_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None

    def __post_init__(self):
        if self.stride < 1:
            raise ValueError("The channel stride must be at least 1")
        if not 0 <= self.channel < self.stride:
            raise ValueError(
                f"Channel {self.channel} is out of range for a stride of {self.stride}"
            )


def channel_grid(
    pixels, width: int, height: Optional[int] = None, config: Optional[ResampleConfig] = None
) -> np.ndarray:
    """Extract (or combine) one channel of an interleaved pixel array as a 2D grid.

    If the array does not hold a whole number of rows of ``width`` pixels, or fewer rows than
    ``height``, a warning is logged and the trailing partial row is dropped.

    Returns:
        An array of shape (height, width).
    """
    config = config or ResampleConfig()
    pixels = np.asarray(pixels).reshape(-1)
    row_length = width * config.stride
    if row_length <= 0:
        raise ValueError("Width must be positive")

    available = len(pixels) // row_length
    if len(pixels) % row_length or (height is not None and height > available):
        logger.warning(
            "%d values do not evenly fill rows of %d pixels with %d channels; "
            "using %d rows",
            len(pixels), width, config.stride, available,
        )
    height = available if height is None else min(int(height), available)

    block = pixels[: height * row_length].reshape(height, width, config.stride)
    if config.combine_fn is not None:
        values = np.asarray(config.combine_fn(block.reshape(-1, config.stride)))
        return values.reshape(height, width)
    return block[..., config.channel]


def nearest_neighbor_scaling(
    pixels, width: int, height: int, resolution: float, config: Optional[ResampleConfig] = None
) -> np.ndarray:
    """Resample by taking the nearest source pixel for each output pixel.

    Args:
        pixels: the source texture pixels (interleaved channels)
        width: width of the source texture
        height: height of the source texture
        resolution: ratio of the output size to the input size
        config: channel layout of ``pixels``

    Returns:
        A flat array of ``round(width * resolution) * round(height * resolution)`` values.
    """
    _check_resolution(resolution)
    grid = channel_grid(pixels, width, height, config)
    height, width = grid.shape
    local_width = round_half_up(width * resolution)
    local_height = round_half_up(height * resolution)
    if grid.size == 0:
        return np.zeros(local_width * local_height, dtype=grid.dtype)

    inv_resolution = 1 / resolution
    cols = np.floor(np.arange(local_width) * inv_resolution + 0.5).astype(np.intp)
    rows = np.floor(np.arange(local_height) * inv_resolution + 0.5).astype(np.intp)
    np.minimum(cols, width - 1, out=cols)
    np.minimum(rows, height - 1, out=rows)
    return grid[np.ix_(rows, cols)].reshape(-1)


def box_downscaling(
    pixels, width: int, height: int, resolution: float, config: Optional[ResampleConfig] = None
) -> np.ndarray:
    """Resample by averaging, for each output pixel, a box of source pixels.

    Each output pixel covers a box of ``ceil(1 / resolution)`` source pixels per axis,
    clamped to the source bounds. The average is rounded to the nearest integer. Box sums
    are read from a summed-area table, so the cost does not depend on the box size.

    Args:
        pixels: the source texture pixels (interleaved channels)
        width: width of the source texture
        height: height of the source texture
        resolution: ratio of the output size to the input size, at most 1
        config: channel layout of ``pixels``

    Returns:
        A flat array of ``round(width * resolution) * round(height * resolution)`` values.
    """
    _check_resolution(resolution)
    if resolution > 1:
        raise ValueError("Box downscaling requires a resolution of at most 1")

    grid = channel_grid(pixels, width, height, config)
    height, width = grid.shape
    local_width = round_half_up(width * resolution)
    local_height = round_half_up(height * resolution)
    if grid.size == 0:
        return np.zeros(local_width * local_height, dtype=grid.dtype)

    inv_resolution = 1 / resolution
    box = math.ceil(inv_resolution)
    x0 = np.minimum(np.floor(np.arange(local_width) * inv_resolution), width - 1).astype(np.intp)
    y0 = np.minimum(np.floor(np.arange(local_height) * inv_resolution), height - 1).astype(np.intp)
    x1 = np.minimum(x0 + box, width)
    y1 = np.minimum(y0 + box, height)

    integral = np.zeros((height + 1, width + 1), dtype=np.float64)
    integral[1:, 1:] = grid.astype(np.float64).cumsum(axis=0).cumsum(axis=1)
    sums = (
        integral[np.ix_(y1, x1)]
        - integral[np.ix_(y0, x1)]
        - integral[np.ix_(y1, x0)]
        + integral[np.ix_(y0, x0)]
    )
    counts = np.outer(y1 - y0, x1 - x0)
    averages = np.floor(sums / counts + 0.5)
    if np.issubdtype(grid.dtype, np.integer):
        averages = averages.astype(grid.dtype)
    return averages.reshape(-1)


SCALING_METHODS = {
    'nearest': nearest_neighbor_scaling,
    'box': box_downscaling,
}


def get_scaling_method(method: Union[str, Callable]) -> Callable:
    """Look up a scaling method by name ("nearest" or "box"), or pass a callable through."""
    if callable(method):
        return method
    try:
        return SCALING_METHODS[method]
    except KeyError:
        raise ValueError(
            f"Unknown scaling method {method!r}, must be one of {sorted(SCALING_METHODS)}"
        ) from None


def _check_resolution(resolution: float):
    if not resolution > 0:
        raise ValueError("Resolution must be positive")
