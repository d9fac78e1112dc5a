"""Reduce an array of sampled pixel values to a single number.

Sampled values arrive as a float array in which ``nan`` marks a sample that fell outside the
pixel buffer. Each aggregator states how it treats those: most ignore them, while
``median_zero_null`` counts them as zero and ``first`` reports them as they are.
"""

from typing import Optional, Union

import numpy as np


def _valid(values: np.ndarray) -> np.ndarray:
    return values[~np.isnan(values)]


def _first(values, threshold):
    return float(values[0]) if len(values) else float('nan')


def _sum(values, threshold):
    return float(np.nansum(values))


def _average(values, threshold):
    valid = _valid(values)
    return float(valid.mean()) if len(valid) else float('nan')


def _min(values, threshold):
    valid = _valid(values)
    return float(valid.min()) if len(valid) else float('nan')


def _max(values, threshold):
    valid = _valid(values)
    return float(valid.max()) if len(valid) else float('nan')


def _count(values, threshold):
    return int(np.count_nonzero(~np.isnan(values)))


def _count_gt_threshold(values, threshold):
    return int(np.count_nonzero(_valid(values) > threshold))


def _percent_gt_threshold(values, threshold):
    valid = _valid(values)
    if not len(valid):
        return float('nan')
    return np.count_nonzero(valid > threshold) / len(valid)


def _median_no_null(values, threshold):
    valid = _valid(values)
    return float(np.median(valid)) if len(valid) else float('nan')


def _median_zero_null(values, threshold):
    if not len(values):
        return float('nan')
    return float(np.median(np.nan_to_num(values, nan=0.0)))


_AGGREGATORS = {
    'first': _first,
    'sum': _sum,
    'average': _average,
    'min': _min,
    'max': _max,
    'count': _count,
    'count_gt_threshold': _count_gt_threshold,
    'percent_gt_threshold': _percent_gt_threshold,
    'median_no_null': _median_no_null,
    'median_zero_null': _median_zero_null,
}

_NEEDS_THRESHOLD = frozenset(['count_gt_threshold', 'percent_gt_threshold'])


class PixelAggregator:
    """A named reduction over sampled pixel values.

    Args:
        name: one of ``first``, ``sum``, ``average``, ``min``, ``max``, ``count``,
            ``count_gt_threshold``, ``percent_gt_threshold``, ``median_no_null``,
            ``median_zero_null``
        threshold: pixel value (not a fraction) that the ``*_gt_threshold`` aggregators
            compare against

    Examples:
        >>> agg = PixelAggregator('count_gt_threshold', threshold=100)
        >>> agg(np.array([50, 150, 200, np.nan]))
        2
    """

    __slots__ = ['name', 'threshold', '_fn']

    NAMES = tuple(_AGGREGATORS)

    def __init__(self, name: str, threshold: Optional[float] = None):
        try:
            self._fn = _AGGREGATORS[name]
        except KeyError:
            raise ValueError(f"Unknown aggregator {name!r}, must be one of {self.NAMES}") from None
        if name in _NEEDS_THRESHOLD and threshold is None:
            raise ValueError(f"The {name!r} aggregator requires a threshold")
        self.name = name
        self.threshold = threshold

    def __call__(self, values) -> Union[int, float]:
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        return self._fn(values, self.threshold)

    def __repr__(self):
        if self.threshold is None:
            return f'PixelAggregator({self.name!r})'
        return f'PixelAggregator({self.name!r}, threshold={self.threshold})'

    @staticmethod
    def coerce(aggregator: Union[str, "PixelAggregator"]) -> "PixelAggregator":
        if isinstance(aggregator, PixelAggregator):
            return aggregator
        return PixelAggregator(aggregator)
