"""Special functions consumed by the bootstrap engine.

Thin wrappers over :mod:`scipy.special`, plus a binomial CDF that sums the
first few terms directly in extended precision (more accurate than the
incomplete beta for small *k*).
"""

from __future__ import annotations

import numpy as np
from scipy import special as sp_special

from entropy_bca.config import DBL_EPSILON, DBL_MIN

# Below this k the CDF is summed term by term.
_DIRECT_SUM_LIMIT = 10


def inverse_normal_cdf(p: float) -> float:
    """Standard normal quantile function."""
    return float(sp_special.ndtri(p))


def normal_cdf(x: float, mean: float = 0.0, stddev: float = 1.0) -> float:
    """Normal distribution function."""
    return float(sp_special.ndtr((x - mean) / stddev))


def regularized_incomplete_beta(a: float, b: float, x: float) -> float:
    """I_x(a, b)."""
    return float(sp_special.betainc(a, b, x))


def binomial_cdf(k: int, n: int, p: float) -> float:
    """F(k; n, p): probability of *k* or fewer successes in *n* trials.

    Uses F(k; n, p) = I_{1-p}(n - k, k + 1) for larger *k*.  For small *k*
    the terms C(n, i) p^i q^(n-i) are accumulated in log2 space, where
    F(0; n, p) = q^n may underflow for large *n*; callers that expect this
    should clear the underflow condition.
    """
    if k < 0 or n < 0:
        raise ValueError("k and n must be non-negative")
    if k > n:
        raise ValueError("k must not exceed n")
    if not (0.0 <= p <= 1.0):
        raise ValueError("p must be in [0, 1]")

    if k == n:
        return 1.0
    if p < DBL_MIN:
        return 1.0
    if p > 1.0 - DBL_EPSILON:
        return 0.0

    if k < _DIRECT_SUM_LIMIT:
        one = np.longdouble(1.0)
        lp = np.log2(np.longdouble(p))
        lq = np.log2(one - np.longdouble(p))
        log_comb = np.longdouble(0.0)  # log2(C(n, 0))
        prob = np.exp2(np.longdouble(n) * lq)
        for i in range(1, k + 1):
            # C(n, i) = C(n, i-1) * (n - i + 1) / i
            log_comb += np.log2(np.longdouble(n - i + 1)) - np.log2(np.longdouble(i))
            prob += np.exp2(log_comb + np.longdouble(i) * lp + np.longdouble(n - i) * lq)
        return float(prob)

    return regularized_incomplete_beta(float(n - k), float(k + 1), 1.0 - p)
