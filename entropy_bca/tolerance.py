"""Tolerant floating-point comparison.

Checks for relative closeness where that is meaningful, and otherwise for
absolute separation, either by distance or by the number of ULPs between
the two values.  See Knuth, TAOCP vol. II, section 4.2.2 and
https://randomascii.wordpress.com/2012/02/25/comparing-floating-point-numbers-2012-edition/
"""

from __future__ import annotations

import math
import struct
from typing import Sequence

import numpy as np

from entropy_bca.config import DBL_EPSILON, DBL_MIN

ABS_EPSILON: float = DBL_MIN
REL_EPSILON: float = DBL_EPSILON
ULP_EPSILON: int = 4


def _bits(x: float) -> int:
    """IEEE-754 bit pattern of a non-negative double as an integer."""
    return struct.unpack("<q", struct.pack("<d", x))[0]


def rel_epsilon_equal(
    a: float,
    b: float,
    abs_tol: float = ABS_EPSILON,
    rel_tol: float = REL_EPSILON,
    ulp_tol: int = ULP_EPSILON,
) -> bool:
    """Return True if *a* and *b* are practically the same value.

    Parameters
    ----------
    a, b:
        Values to compare.
    abs_tol:
        Largest absolute separation accepted when a relative comparison
        would be meaningless (one side or the difference is subnormal).
    rel_tol:
        Largest separation accepted relative to the larger magnitude.
    ulp_tol:
        Largest number of representable doubles between same-signed values.
    """
    if abs_tol < 0.0 or rel_tol < 0.0:
        raise ValueError("tolerances must be non-negative")

    a = float(a)
    b = float(b)

    if math.isnan(a) or math.isnan(b):
        return False

    # Literal equality, including equal infinities.
    if a == b:
        return True

    if math.isinf(a) or math.isinf(b):
        return False

    abs_a = abs(a)
    abs_b = abs(b)
    # a is the value closest to zero
    if abs_a > abs_b:
        a, b = b, a
        abs_a, abs_b = abs_b, abs_a

    diff = abs(b - a)

    if abs_a < DBL_MIN or diff < DBL_MIN or math.isinf(diff) or abs_b * rel_tol < DBL_MIN:
        return diff <= abs_tol

    if diff <= abs_b * rel_tol:
        return True

    # Not close in the conventional sense; perhaps only by representation.
    # Neither value is zero here, so a sign mismatch means they are far apart.
    if math.copysign(1.0, a) != math.copysign(1.0, b):
        return False

    ulp_diff = _bits(abs_b) - _bits(abs_a)
    assert ulp_diff > 0
    return ulp_diff <= ulp_tol


def rel_factor(reference: float, other: float) -> float:
    """Relative error between two values, 0.0 when they are tolerantly equal."""
    if rel_epsilon_equal(reference, other):
        return 0.0
    if abs(reference) > abs(other):
        return abs(reference - other) / abs(reference)
    return abs(other - reference) / abs(other)


def value_count(
    sorted_data: Sequence[float] | np.ndarray,
    abs_tol: float = ABS_EPSILON,
    rel_tol: float = REL_EPSILON,
    ulp_tol: int = ULP_EPSILON,
) -> int:
    """Count the distinct values in sorted data.

    The reference value only moves when a new distinct value is found,
    which maximizes the distinct count.
    """
    n = len(sorted_data)
    if n == 0:
        return 0

    count = 1
    current = float(sorted_data[0])
    for value in sorted_data[1:]:
        value = float(value)
        if not rel_epsilon_equal(current, value, abs_tol, rel_tol, ulp_tol):
            count += 1
            current = value
    return count
