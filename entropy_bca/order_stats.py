"""Order statistics on sorted samples.

All routines here take float64 arrays sorted in ascending order.  Binary
searches are written out so that the loop invariants are explicit; the
counts agree with ``numpy.searchsorted`` (``side="left"`` for
:func:`below_value`, ``side="right"`` for :func:`above_value`).
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from entropy_bca.summation import CompensatedAccumulator, SumDiagnostics

_LOGGER = logging.getLogger(__name__)


def sort_sample(sample) -> np.ndarray:
    """Validate a sample and sort it in place.

    A float64 ndarray is sorted in place and returned as-is; anything else is
    converted first.

    Raises
    ------
    ValueError
        If the sample is not one-dimensional, is empty, or contains NaN.
    """
    data = np.asarray(sample, dtype=np.float64)
    if data.ndim != 1:
        raise ValueError("sample must be one-dimensional")
    if data.size == 0:
        raise ValueError("sample must not be empty")
    if np.isnan(data).any():
        raise ValueError("sample must not contain NaN")
    data.sort()
    return data


def below_value(v: float, sorted_data: np.ndarray) -> int:
    """Number of elements strictly less than *v*."""
    n = len(sorted_data)
    if n == 0 or v <= sorted_data[0]:
        return 0
    if v > sorted_data[n - 1]:
        return n

    # data[low] < v <= data[high]
    low = 0
    high = n - 1
    while high - low > 1:
        mid = low + (high - low) // 2
        if sorted_data[mid] < v:
            low = mid
        else:
            high = mid
    return high


def above_value(v: float, sorted_data: np.ndarray) -> int:
    """Number of elements strictly greater than *v*."""
    n = len(sorted_data)
    if n == 0 or v >= sorted_data[n - 1]:
        return 0
    if v < sorted_data[0]:
        return n

    # data[low] <= v < data[high]
    low = 0
    high = n - 1
    while high - low > 1:
        mid = low + (high - low) // 2
        if sorted_data[mid] <= v:
            low = mid
        else:
            high = mid
    return n - high


def percentile_rank(v: float, sorted_data: np.ndarray) -> float:
    """Percentile rank of *v*: 100 * (below + equal / 2) / n."""
    n = len(sorted_data)
    if n == 0:
        raise ValueError("sorted_data must not be empty")
    below = below_value(v, sorted_data)
    equal = n - below - above_value(v, sorted_data)
    return 100.0 * (below + 0.5 * equal) / n


def sorted_percentile(p: float, data: np.ndarray, already_sorted: bool = True) -> float:
    """The *p* quantile of *data* by Hyndman and Fan's definition 6.

    Same as Excel's PERCENTILE.EXC and NIST's recommended method; the
    position used is p * (n + 1) with one-based ranks.
    """
    if not (0.0 <= p <= 1.0):
        raise ValueError("p must be in [0, 1]")
    n = len(data)
    if n == 0:
        raise ValueError("data must not be empty")
    if not already_sorted:
        data = np.sort(data)

    d, k = math.modf(p * (n + 1))
    k = int(k)

    if k == 0:
        return float(data[0])
    if k >= n:
        return float(data[n - 1])
    lower = float(data[k - 1])
    return lower + d * (float(data[k]) - lower)


def trim_to_range(sorted_data: np.ndarray, valid_min: float, valid_max: float) -> np.ndarray:
    """View of *sorted_data* without the values outside [valid_min, valid_max].

    Non-finite bounds do not trim.
    """
    if valid_min > valid_max:
        raise ValueError("valid_min must not exceed valid_max")

    n = len(sorted_data)
    start = below_value(valid_min, sorted_data) if math.isfinite(valid_min) else 0
    stop = n - above_value(valid_max, sorted_data) if math.isfinite(valid_max) else n

    if start > 0:
        _LOGGER.debug("Discarding %d values below %.17g", start, valid_min)
    if stop < n:
        _LOGGER.debug("Discarding %d values above %.17g", n - stop, valid_max)

    return sorted_data[start:max(start, stop)]


def percentile(
    p: float,
    sample,
    valid_min: float = -math.inf,
    valid_max: float = math.inf,
) -> float:
    """R6 percentile of the sample values lying in [valid_min, valid_max].

    The sample is sorted in place.
    """
    data = trim_to_range(sort_sample(sample), valid_min, valid_max)
    if len(data) == 0:
        raise ValueError("no sample values lie in the valid range")
    value = sorted_percentile(p, data)
    _LOGGER.debug("Percentile %g is %.17g (percentile rank %g)", p, value, percentile_rank(value, data))
    return value


def mean(
    sample,
    valid_min: float = -math.inf,
    valid_max: float = math.inf,
    diagnostics: Optional[SumDiagnostics] = None,
) -> float:
    """Mean of the sample values lying in [valid_min, valid_max]."""
    data = trim_to_range(sort_sample(sample), valid_min, valid_max)
    if len(data) == 0:
        raise ValueError("no sample values lie in the valid range")
    acc = CompensatedAccumulator("mean", diagnostics)
    acc.extend(data)
    return acc.result() / len(data)
