"""Leave-one-out (jackknife) estimates and the BCa acceleration factor."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from entropy_bca.config import BootstrapSettings, get_settings
from entropy_bca.summation import CompensatedAccumulator, SumDiagnostics
from entropy_bca.tolerance import rel_epsilon_equal

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Acceleration:
    """BCa acceleration; ``valid`` is False when it is effectively zero."""

    valid: bool
    a: float


def remap_index(j, held_out):
    """Index into the full array of position *j* once *held_out* is removed.

    Works elementwise on numpy arrays.
    """
    return np.where(held_out > j, j, j + 1)


def _check(sorted_data: np.ndarray) -> int:
    n = len(sorted_data)
    if n < 2:
        raise ValueError("jackknife estimates need at least two values")
    return n


def jackknife_mean_estimates(
    sorted_data: np.ndarray,
    diagnostics: Optional[SumDiagnostics] = None,
) -> tuple[np.ndarray, float]:
    """Means of the sample with each element left out in turn.

    Returns ``(estimates, theta)``; the average of the leave-one-out means
    is the sample mean, which is returned as theta.
    """
    n = _check(sorted_data)
    acc = CompensatedAccumulator("jackknife total", diagnostics)
    acc.extend(sorted_data)
    total = acc.result()
    estimates = (total - np.asarray(sorted_data, dtype=np.float64)) / (n - 1)
    return estimates, total / n


def jackknife_percentile_estimates(
    p: float,
    sorted_data: np.ndarray,
    diagnostics: Optional[SumDiagnostics] = None,
) -> tuple[np.ndarray, float]:
    """R6 percentile of the sample with each element left out in turn.

    The shrunk arrays are never materialized; positions are remapped around
    the held-out index instead.  Returns ``(estimates, theta)`` where theta is
    the mean of the estimates.
    """
    if not (0.0 <= p <= 1.0):
        raise ValueError("p must be in [0, 1]")
    n = _check(sorted_data)
    data = np.asarray(sorted_data, dtype=np.float64)
    held_out = np.arange(n)

    # n - 1 values remain, so the R6 position is p * n.
    d, k = math.modf(p * n)
    k = int(k)

    if k == 0:
        estimates = data[remap_index(0, held_out)]
    elif k >= n - 1:
        estimates = np.where(held_out != n - 1, data[n - 1], data[n - 2])
    else:
        lower = data[remap_index(k - 1, held_out)]
        upper = data[remap_index(k, held_out)]
        estimates = lower + d * (upper - lower)

    acc = CompensatedAccumulator("jackknife theta", diagnostics)
    acc.extend(estimates)
    theta = acc.result() / n
    return estimates, theta


def acceleration(
    estimates: np.ndarray,
    theta: float,
    diagnostics: Optional[SumDiagnostics] = None,
    settings: Optional[BootstrapSettings] = None,
) -> Acceleration:
    """a = sum(delta^3) / (6 * sum(delta^2)^1.5) with delta = estimate - theta.

    Zero tests use the tolerances of *settings*.
    """
    tolerances = (settings or get_settings()).tolerances
    if not math.isfinite(theta) or not np.isfinite(estimates).all():
        raise ValueError("jackknife estimates must be finite")

    numerator = CompensatedAccumulator("accel numerator", diagnostics)
    denominator = CompensatedAccumulator("accel denominator", diagnostics)

    delta = (np.asarray(estimates, dtype=np.float64) - theta).astype(np.longdouble)
    squares = delta * delta
    cubes = squares * delta
    for sq, cube in zip(squares, cubes):
        numerator.add_extended(cube)
        denominator.add_extended(sq)

    denom = np.longdouble(6.0) * denominator.result_extended() ** np.longdouble(1.5)
    if rel_epsilon_equal(float(denom), 0.0, **tolerances):
        _LOGGER.debug("Acceleration denominator is effectively zero.")
        return Acceleration(False, 0.0)

    a = float(numerator.result_extended() / denom)
    if rel_epsilon_equal(a, 0.0, **tolerances):
        _LOGGER.debug("Acceleration is effectively zero.")
        return Acceleration(False, 0.0)

    _LOGGER.debug("Acceleration: %.17g", a)
    return Acceleration(True, a)
