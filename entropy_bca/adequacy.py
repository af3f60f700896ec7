"""Checks that a sample can support a meaningful BCa interval.

Two independent gates run before any resampling:

* whether the requested percentile is statistically meaningful for the
  sample size (enough values are expected beyond it), and
* whether the sample can produce enough distinct resamples that the
  bootstrap rounds are unlikely to repeat each other.

Either gate can force the interval to be built from the extremal values of
the bootstrap distribution.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Optional

from entropy_bca.config import DBL_MIN, BootstrapSettings, get_settings
from entropy_bca.fpcheck import FloatingPointMonitor
from entropy_bca.special import binomial_cdf

_LOGGER = logging.getLogger(__name__)

_UINT64_MAX = (1 << 64) - 1


class PercentileSupport(enum.Enum):
    SUPPORTED = "supported"
    # Bootstrap, but report the extremal bootstrap values only.
    EXTREMAL_ONLY = "extremal-only"
    # Too few values expected beyond the percentile; report the sample extremum.
    UNSUPPORTED = "unsupported"


class Diversity(enum.Enum):
    SUFFICIENT = "sufficient"
    SMALL_SAMPLE = "small-sample"
    LOW_DIVERSITY = "low-diversity"


@dataclass(frozen=True)
class DiversityCheck:
    """Outcome of :func:`resampling_diversity`."""

    status: Diversity
    selections_needed: int
    message: str

    @property
    def sufficient(self) -> bool:
        return self.status is Diversity.SUFFICIENT


# ── counting helpers ──


def combinations_greater_than_bound(n: int, k: int, bound: int) -> bool:
    """Return ``C(n, k) > bound`` without computing C(n, k) in full.

    C(n, j) = C(n, j-1) * (n - j + 1) / j grows monotonically for
    j <= min(k, n - k), so the product stops as soon as it passes *bound*.
    """
    if n < 0 or k < 0:
        raise ValueError("n and k must be non-negative")
    if not (0 <= bound <= _UINT64_MAX):
        raise ValueError("bound must fit in an unsigned 64-bit integer")

    if k > n:
        return False
    k = min(k, n - k)
    if k == 0:
        return 1 > bound

    running = 1
    for j in range(1, k + 1):
        # exact: j divides C(n, j-1) * (n - j + 1)
        running = running * (n - j + 1) // j
        if running > bound:
            return True
    return False


def selections_for_birthday_collision_bound(rounds: int, b_exp: int) -> int:
    """Distinct selections needed to keep P(collision) among *rounds* below 2^-b_exp.

    Uses the approximation P = 1 - exp(-r (r - 1) / (2 H)), solved for H.
    """
    if rounds < 0:
        raise ValueError("rounds must be non-negative")
    if not (0 <= b_exp < 63):
        raise ValueError("b_exp must be in [0, 63)")

    pairs = rounds * (rounds - 1) // 2 if rounds > 0 else 0
    if b_exp == 0:
        # Collision probability 1 is always met.
        return 0
    needed = math.ceil(pairs / -math.log1p(-math.ldexp(1.0, -b_exp)))
    if needed > _UINT64_MAX:
        raise OverflowError("selection bound does not fit in 64 bits")
    return needed


# ── gates ──


def _tail_probability(k: int, n: int, q: float, what: str) -> float:
    with FloatingPointMonitor() as fp:
        bound = binomial_cdf(min(k, n), n, q)
        if fp.test("underflow"):
            _LOGGER.info("Clearing expected binomial CDF underflow when checking if data %s.", what)
            if bound <= DBL_MIN:
                bound = 0.0
            fp.clear("underflow")
        fp.check("binomial CDF")
    return bound


def percentile_support(p: float, n: int, settings: Optional[BootstrapSettings] = None) -> PercentileSupport:
    """Decide whether *n* values can say anything about the *p* quantile."""
    if not (0.0 <= p <= 1.0):
        raise ValueError("p must be in [0, 1]")
    if n <= 0:
        raise ValueError("n must be positive")
    settings = settings or get_settings()

    q = min(p, 1.0 - p)

    # Probability of fewer than smallest_significant values beyond the percentile.
    bound = _tail_probability(settings.smallest_significant - 1, n, q, "is likely meaningful")
    if bound < DBL_MIN:
        _LOGGER.debug("There is essentially no chance that this data will not include suitable extremal values.")
    else:
        _LOGGER.debug(
            "Probability of there being fewer than %d samples more extreme than the sought percentile "
            "in a set of %d samples = %.17g",
            settings.smallest_significant,
            n,
            bound,
        )
    if bound <= settings.binomial_cutoff:
        return PercentileSupport.SUPPORTED

    # Probability of no values at all beyond the percentile.
    bound = _tail_probability(0, n, q, "could be meaningful")
    _LOGGER.debug(
        "Probability of there being no samples more extreme than the sought percentile in a set of %d samples = %.17g",
        n,
        bound,
    )
    if bound > settings.binomial_cutoff:
        return PercentileSupport.UNSUPPORTED
    return PercentileSupport.EXTREMAL_ONLY


def resampling_diversity(n: int, rounds: int, settings: Optional[BootstrapSettings] = None) -> DiversityCheck:
    """Check that *n* values can yield enough distinct resamples for *rounds*.

    There are C(2n - 1, n) ways to select n of n indices with replacement.
    """
    if n <= 0:
        raise ValueError("n must be positive")
    settings = settings or get_settings()

    needed = selections_for_birthday_collision_bound(rounds, settings.birthday_bound_exp)
    _LOGGER.debug("We are targeting more than %d selections", needed)

    if n < settings.smallest_bootstrap_sample:
        return DiversityCheck(Diversity.SMALL_SAMPLE, needed, "There is too little data.")
    if not combinations_greater_than_bound(2 * n - 1, n, needed):
        return DiversityCheck(
            Diversity.LOW_DIVERSITY,
            needed,
            "The data has insufficient distinct values to support a meaningful bootstrap.",
        )
    return DiversityCheck(Diversity.SUFFICIENT, needed, "")
