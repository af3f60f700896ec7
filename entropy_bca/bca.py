"""Bias-corrected and accelerated (BCa) bootstrap confidence intervals.

See Efron and Tibshirani, "An Introduction to the Bootstrap", chapter 14,
and Hesterberg, The American Statistician 69(4), 2015.

The builder falls back, in order, from BCa (or BC when the acceleration is
effectively zero) to the plain percentile method and finally to the extremal
values of the bootstrap distribution whenever the interval produced would
not contain the point estimate.  Samples that are too small or too
repetitive, and percentiles too close to the tails, go straight to the
extremal values.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from entropy_bca.adequacy import Diversity, PercentileSupport, percentile_support, resampling_diversity
from entropy_bca.config import BootstrapSettings, get_settings
from entropy_bca.errors import NumericalInconsistencyError
from entropy_bca.fpcheck import FloatingPointMonitor
from entropy_bca.jackknife import acceleration
from entropy_bca.order_stats import above_value, sort_sample, sorted_percentile, trim_to_range
from entropy_bca.resample import BootstrapResampler, MeanStatistic, PercentileStatistic
from entropy_bca.rng import SeedSource
from entropy_bca.special import inverse_normal_cdf, normal_cdf
from entropy_bca.summation import SumDiagnostics
from entropy_bca.tolerance import rel_epsilon_equal, value_count

_LOGGER = logging.getLogger(__name__)


class IntervalMethod(enum.Enum):
    BCA = "BCa"
    BC = "BC"
    PERCENTILE = "Percentile"
    EXTREMAL = "Extremal"
    DEGENERATE = "Degenerate"


class IntervalReason(enum.Enum):
    BIAS_AND_ACCELERATION = "bias and acceleration corrected"
    ZERO_ACCELERATION = "acceleration is effectively zero"
    NO_VALID_DATA = "no valid data"
    SINGLE_ELEMENT = "only one valid element"
    PERCENTILE_UNSUPPORTED = "too few values beyond the percentile"
    CONSTANT_DISTRIBUTION = "all bootstrap values are the same"
    EXTREME_PERCENTILE = "an extremal percentile was sought"
    SMALL_SAMPLE = "too little data"
    LOW_DIVERSITY = "too few distinct resamples"
    INFINITE_BIAS = "no or all bootstrap values under the point estimate"
    BCA_NOT_CONTAINING = "bias corrected interval did not contain the point estimate"
    PERCENTILE_NOT_CONTAINING = "percentile interval did not contain the point estimate"


_FORCED_REASONS = {
    Diversity.SMALL_SAMPLE: IntervalReason.SMALL_SAMPLE,
    Diversity.LOW_DIVERSITY: IntervalReason.LOW_DIVERSITY,
}


@dataclass(frozen=True)
class ConfidenceInterval:
    """A point estimate and its bootstrap confidence interval.

    ``lower <= upper`` always holds and, except for the extremal method,
    so does ``lower <= point <= upper``.
    """

    point: float
    lower: float
    upper: float
    method: IntervalMethod
    reason: IntervalReason
    rounds: int = 0
    confidence: float = 0.0

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def degenerate(self) -> bool:
        return self.method is IntervalMethod.DEGENERATE

    def contains(self, value: float) -> bool:
        return self.lower <= value <= self.upper

    def as_tuple(self) -> tuple[float, tuple[float, float]]:
        return self.point, (self.lower, self.upper)

    def describe(self, label: str) -> str:
        if self.method is IntervalMethod.DEGENERATE:
            return f"{label}: {self.point:.17g} ({self.reason.value})"
        if self.method is IntervalMethod.EXTREMAL:
            kind = "Bootstrap Extremal Values"
        else:
            kind = f"{100.0 * self.confidence:.17g} % {self.method.value} Bootstrap Confidence Interval"
        return f"{label}: {self.point:.17g}, {kind} ({self.rounds} bootstrap rounds): [ {self.lower:.17g}, {self.upper:.17g} ]"


def _adjusted_alpha(z0: float, a: float, alpha: float) -> float:
    """Phi(z0 + (z0 + z) / (1 - a (z0 + z))) with z = Phi^-1(alpha)."""
    if alpha <= 0.0:
        return 0.0
    if alpha >= 1.0:
        return 1.0
    z = z0 + inverse_normal_cdf(alpha)
    return normal_cdf(z0 + z / (1.0 - a * z))


class _Build:
    """State of one interval construction."""

    def __init__(self, statistic, rounds: int, confidence: float, diagnostics: Optional[SumDiagnostics]):
        self.statistic = statistic
        self.rounds = rounds
        self.confidence = confidence
        self.diagnostics = diagnostics

    def result(self, point, lower, upper, method, reason) -> ConfidenceInterval:
        return ConfidenceInterval(float(point), float(lower), float(upper), method, reason, self.rounds, self.confidence)

    def degenerate(self, value, reason) -> ConfidenceInterval:
        return self.result(value, value, value, IntervalMethod.DEGENERATE, reason)

    def extremal(self, point, dist, reason) -> ConfidenceInterval:
        return self.result(point, dist[0], dist[-1], IntervalMethod.EXTREMAL, reason)

    def percentile(self, point, dist, alpha_prime, reason) -> ConfidenceInterval:
        lower = sorted_percentile(alpha_prime, dist)
        upper = sorted_percentile(1.0 - alpha_prime, dist)
        if lower <= point <= upper:
            _LOGGER.debug("alpha1: %.17g, alpha2: %.17g", alpha_prime, 1.0 - alpha_prime)
            return self.result(point, lower, upper, IntervalMethod.PERCENTILE, reason)
        _LOGGER.warning(
            "Percentile confidence interval does not contain the observed %s. Returning extremal bootstrap values.",
            self.statistic.name,
        )
        return self.extremal(point, dist, IntervalReason.PERCENTILE_NOT_CONTAINING)


def _interval(
    build: _Build,
    data: np.ndarray,
    valid_min: float,
    valid_max: float,
    p: Optional[float],
    seed_source: SeedSource,
    settings: BootstrapSettings,
    workers: int,
) -> ConfidenceInterval:
    statistic = build.statistic
    rounds = build.rounds

    trimmed = trim_to_range(data, valid_min, valid_max)
    n = len(trimmed)
    if n == 0:
        _LOGGER.warning("No valid data present.")
        # The sentinel lies outside the valid range.
        return build.degenerate(data[0], IntervalReason.NO_VALID_DATA)
    if n == 1:
        _LOGGER.info("Data set contains only 1 element. Returning this value.")
        return build.degenerate(trimmed[0], IntervalReason.SINGLE_ELEMENT)

    forced: Optional[IntervalReason] = None
    if p is not None:
        support = percentile_support(p, n, settings)
        if support is PercentileSupport.UNSUPPORTED:
            _LOGGER.info(
                "There is a significant chance that the data set doesn't contain any data more extremal "
                "than the requested percentile. Returning only the extremal data value."
            )
            value = trimmed[n - 1] if p >= 0.5 else trimmed[0]
            return build.degenerate(value, IntervalReason.PERCENTILE_UNSUPPORTED)
        if support is PercentileSupport.EXTREMAL_ONLY:
            _LOGGER.debug("An extremal value is being sought. Returning extremal bootstrap values.")
            forced = IntervalReason.EXTREME_PERCENTILE

    point = statistic.point(trimmed, build.diagnostics)
    _LOGGER.debug("Sample %s: %.17g", statistic.name, point)
    if _LOGGER.isEnabledFor(logging.DEBUG):
        _LOGGER.debug("Data has %d distinct values.", value_count(trimmed, **settings.tolerances))

    diversity = resampling_diversity(n, rounds, settings)
    if forced is None and not diversity.sufficient:
        _LOGGER.info("%s Returning extremal bootstrap values.", diversity.message)
        forced = _FORCED_REASONS[diversity.status]

    dist = BootstrapResampler(workers, seed_source).distribution(trimmed, rounds, statistic)

    if rel_epsilon_equal(dist[0], dist[-1], **settings.tolerances):
        _LOGGER.info("All bootstrap values are the same.")
        return build.degenerate(point, IntervalReason.CONSTANT_DISTRIBUTION)

    if _LOGGER.isEnabledFor(logging.DEBUG):
        distinct = value_count(dist, **settings.tolerances)
        _LOGGER.debug("Bootstrap has %d distinct values (proportion: %.17g)", distinct, distinct / rounds)

    if forced is not None:
        return build.extremal(point, dist, forced)

    alpha_prime = (1.0 - build.confidence) / 2.0

    # Bias, from the bootstrap CDF (so including equality).
    at_or_below = rounds - above_value(point, dist)
    if at_or_below == 0 or at_or_below == rounds:
        _LOGGER.debug("No or all values under reference value, so the bias is infinite.")
        return build.percentile(point, dist, alpha_prime, IntervalReason.INFINITE_BIAS)

    raw_bias = at_or_below / rounds
    z0 = inverse_normal_cdf(raw_bias)
    _LOGGER.debug("Raw Bias: %.17g", raw_bias)
    _LOGGER.debug("Bias: %.17g", z0)

    estimates, theta = statistic.jackknife(trimmed, build.diagnostics)
    _LOGGER.debug("Jackknife theta: %.17g", theta)
    accel = acceleration(estimates, theta, build.diagnostics, settings)
    if accel.valid:
        method, reason = IntervalMethod.BCA, IntervalReason.BIAS_AND_ACCELERATION
    else:
        method, reason = IntervalMethod.BC, IntervalReason.ZERO_ACCELERATION

    alpha1 = _adjusted_alpha(z0, accel.a, alpha_prime)
    alpha2 = _adjusted_alpha(z0, accel.a, 1.0 - alpha_prime)
    if 0.0 <= alpha1 <= alpha2 <= 1.0:
        lower = sorted_percentile(alpha1, dist)
        upper = sorted_percentile(alpha2, dist)
        if lower <= point <= upper:
            _LOGGER.debug("alpha1: %.17g, alpha2: %.17g", alpha1, alpha2)
            return build.result(point, lower, upper, method, reason)

    _LOGGER.info(
        "Bias corrected confidence interval does not contain the observed %s. Falling back to Percentile method.",
        statistic.name,
    )
    return build.percentile(point, dist, alpha_prime, IntervalReason.BCA_NOT_CONTAINING)


def bootstrap_interval(
    statistic,
    sample,
    valid_min: float = -math.inf,
    valid_max: float = math.inf,
    rounds: Optional[int] = None,
    confidence: Optional[float] = None,
    seed_source: Optional[SeedSource] = None,
    *,
    p: Optional[float] = None,
    settings: Optional[BootstrapSettings] = None,
    workers: Optional[int] = None,
    diagnostics: Optional[SumDiagnostics] = None,
) -> ConfidenceInterval:
    """Build a confidence interval for *statistic* on *sample*.

    *sample* is sorted in place.  Pass *p* when *statistic* is a percentile so
    that the percentile support gate runs.

    Raises
    ------
    ValueError
        On an empty or NaN-containing sample, or out-of-range arguments.
    NumericalInconsistencyError
        If a floating-point exception occurred or the result is not finite.
    AllocationFailureError
        If a working buffer could not be allocated.
    """
    settings = settings or get_settings()
    rounds = settings.rounds if rounds is None else rounds
    confidence = settings.confidence if confidence is None else confidence
    if rounds <= 0:
        raise ValueError("rounds must be positive")
    if not (0.0 <= confidence <= 1.0):
        raise ValueError("confidence must be in [0, 1]")
    workers = settings.worker_count if workers is None else workers

    data = sort_sample(sample)
    build = _Build(statistic, rounds, confidence, diagnostics)

    try:
        with FloatingPointMonitor() as fp:
            ci = _interval(build, data, valid_min, valid_max, p, seed_source or SeedSource(), settings, workers)
            fp.check("bootstrap code")
    except ArithmeticError as exc:
        raise NumericalInconsistencyError(f"Math error in bootstrap code: {exc}") from exc

    if ci.reason is not IntervalReason.NO_VALID_DATA:
        if not all(math.isfinite(v) for v in (ci.point, ci.lower, ci.upper)):
            raise NumericalInconsistencyError("Non-finite confidence interval")
    if ci.lower > ci.upper:
        raise NumericalInconsistencyError("Confidence interval bounds are out of order")

    _LOGGER.info("%s", ci.describe(f"Sample {statistic.name}"))
    return ci


def bootstrap_percentile(
    p: float,
    sample,
    valid_min: float = -math.inf,
    valid_max: float = math.inf,
    rounds: Optional[int] = None,
    confidence: Optional[float] = None,
    seed_source: Optional[SeedSource] = None,
    *,
    settings: Optional[BootstrapSettings] = None,
    workers: Optional[int] = None,
    diagnostics: Optional[SumDiagnostics] = None,
) -> ConfidenceInterval:
    """BCa bootstrap interval for the *p* quantile (R6) of *sample*.

    Parameters
    ----------
    p:
        Requested quantile in [0, 1].
    sample:
        float64 array; sorted in place.
    valid_min, valid_max:
        Values outside this range are ignored.
    rounds:
        Number of bootstrap resamples (default from settings).
    confidence:
        Two-sided confidence level in [0, 1] (default from settings).
    seed_source:
        Source of per-worker random streams; OS-seeded when omitted.
    """
    if not (0.0 <= p <= 1.0):
        raise ValueError("p must be in [0, 1]")
    return bootstrap_interval(
        PercentileStatistic(p),
        sample,
        valid_min,
        valid_max,
        rounds,
        confidence,
        seed_source,
        p=p,
        settings=settings,
        workers=workers,
        diagnostics=diagnostics,
    )


def bootstrap_mean(
    sample,
    valid_min: float = -math.inf,
    valid_max: float = math.inf,
    rounds: Optional[int] = None,
    confidence: Optional[float] = None,
    seed_source: Optional[SeedSource] = None,
    *,
    settings: Optional[BootstrapSettings] = None,
    workers: Optional[int] = None,
    diagnostics: Optional[SumDiagnostics] = None,
) -> ConfidenceInterval:
    """BCa bootstrap interval for the mean of *sample*; see :func:`bootstrap_percentile`."""
    return bootstrap_interval(
        MeanStatistic(),
        sample,
        valid_min,
        valid_max,
        rounds,
        confidence,
        seed_source,
        settings=settings,
        workers=workers,
        diagnostics=diagnostics,
    )
