"""Compensated summation.

:class:`CompensatedAccumulator` keeps a list of non-overlapping partial sums
(Shewchuk, "Adaptive Precision Floating-Point Arithmetic and Fast Robust
Geometric Predicates", 1997) so that the final result is the correctly
rounded sum of everything added.  The finalization follows the well known
``msum`` / ``math.fsum`` recipe, including the half-way rounding
correction.

Optionally a Kahan and a naive running sum are carried along and compared
with the exact result; those comparisons are collected in an explicit
:class:`SumDiagnostics` object supplied by the caller.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Iterable, Optional

import numpy as np

from entropy_bca.config import DBL_EPSILON
from entropy_bca.tolerance import rel_factor

_LOGGER = logging.getLogger(__name__)

METHODS = ("kahan", "naive")


class SumDiagnostics:
    """Worst observed relative error of the cheaper summation methods.

    Errors are tracked per accumulator label and per method (``"kahan"``,
    ``"naive"``).  Safe to share between threads.
    """

    def __init__(self) -> None:
        self._worst: dict[str, dict[str, float]] = {}
        self._count: dict[str, int] = {}
        self._lock = threading.Lock()

    def record(self, label: str, method: str, error: float) -> None:
        if method not in METHODS:
            raise ValueError(f"unknown summation method {method!r}")
        with self._lock:
            per_label = self._worst.setdefault(label, {m: 0.0 for m in METHODS})
            if error > per_label[method]:
                per_label[method] = error
            if method == METHODS[0]:
                self._count[label] = self._count.get(label, 0) + 1

    def worst(self, label: Optional[str] = None, method: str = "kahan") -> float:
        """Worst relative error for *label*, or across all labels."""
        with self._lock:
            if label is not None:
                return self._worst.get(label, {}).get(method, 0.0)
            return max((v[method] for v in self._worst.values()), default=0.0)

    def count(self, label: str) -> int:
        """Number of finalized sums recorded under *label*."""
        with self._lock:
            return self._count.get(label, 0)

    @property
    def labels(self) -> list[str]:
        with self._lock:
            return sorted(self._worst)

    def merge(self, other: "SumDiagnostics") -> "SumDiagnostics":
        """Fold *other* into this object and return self."""
        with other._lock:
            worst = {k: dict(v) for k, v in other._worst.items()}
            counts = dict(other._count)
        with self._lock:
            for label, errors in worst.items():
                mine = self._worst.setdefault(label, {m: 0.0 for m in METHODS})
                for method, err in errors.items():
                    mine[method] = max(mine[method], err)
            for label, n in counts.items():
                self._count[label] = self._count.get(label, 0) + n
        return self

    def log_summary(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        log = logger or _LOGGER
        for label in self.labels:
            log.log(
                level,
                "%s: %d sums, worst Kahan relative error %.17g, worst naive relative error %.17g",
                label,
                self.count(label),
                self.worst(label, "kahan"),
                self.worst(label, "naive"),
            )


class CompensatedAccumulator:
    """Exact running sum of floats.

    Parameters
    ----------
    label:
        Name under which diagnostics are recorded.
    diagnostics:
        When given, Kahan and naive sums are kept alongside and their
        errors recorded at finalization.  The returned sums are unaffected.
    """

    def __init__(self, label: str = "sum", diagnostics: Optional[SumDiagnostics] = None) -> None:
        self.label = label
        self.diagnostics = diagnostics
        self._partials: list[float] = []
        # inf/nan contributions are kept out of the partials
        self._special = 0.0
        self._kahan = 0.0
        self._kahan_c = 0.0
        self._naive = 0.0

    def add(self, x: float) -> None:
        x = float(x)
        if self.diagnostics is not None:
            y = x - self._kahan_c
            t = self._kahan + y
            self._kahan_c = (t - self._kahan) - y
            self._kahan = t
            self._naive += x

        if not math.isfinite(x):
            self._special += x
            return

        partials = self._partials
        i = 0
        for y in partials:
            if abs(x) < abs(y):
                x, y = y, x
            hi = x + y
            if math.isinf(hi):
                raise OverflowError(f"{self.label}: intermediate overflow")
            lo = y - (hi - x)
            if lo:
                partials[i] = lo
                i += 1
            x = hi
        if x:
            partials[i:] = [x]
        else:
            del partials[i:]

    def add_extended(self, x: np.longdouble) -> None:
        """Add a long double as a high double plus its residual."""
        x = np.longdouble(x)
        hi = float(x)
        self.add(hi)
        if math.isfinite(hi):
            lo = float(x - np.longdouble(hi))
            if lo:
                self.add(lo)

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.add(value)

    def _adaptive(self) -> float:
        if self._special:
            return self._special
        partials = self._partials
        if not partials:
            return 0.0
        i = len(partials) - 1
        hi = partials[i]
        lo = 0.0
        while i > 0:
            x = hi
            y = partials[i - 1]
            i -= 1
            hi = x + y
            lo = y - (hi - x)
            if lo:
                break
        # Round half-way cases correctly.
        if i > 0 and ((lo < 0.0 and partials[i - 1] < 0.0) or (lo > 0.0 and partials[i - 1] > 0.0)):
            y = lo * 2.0
            x = hi + y
            if y == x - hi:
                hi = x
        return hi

    def result(self) -> float:
        """Correctly rounded sum of everything added so far."""
        total = self._adaptive()
        if self.diagnostics is not None:
            self._record(total)
        return total

    def result_extended(self) -> np.longdouble:
        """Sum of the partials in long double, largest first."""
        if self._special:
            return np.longdouble(self._special)
        total = np.longdouble(0.0)
        for partial in reversed(self._partials):
            total += np.longdouble(partial)
        if self.diagnostics is not None:
            self._record(float(total))
        return total

    def _record(self, total: float) -> None:
        kahan_error = rel_factor(total, self._kahan)
        naive_error = rel_factor(total, self._naive)
        self.diagnostics.record(self.label, "kahan", kahan_error)
        self.diagnostics.record(self.label, "naive", naive_error)
        if kahan_error > DBL_EPSILON:
            _LOGGER.debug(
                "%s: Kahan relative error %.17g, naive relative error %.17g",
                self.label,
                kahan_error,
                naive_error,
            )


def compensated_sum(
    values: Iterable[float],
    label: str = "sum",
    diagnostics: Optional[SumDiagnostics] = None,
) -> float:
    """Correctly rounded sum of *values*."""
    acc = CompensatedAccumulator(label, diagnostics)
    acc.extend(values)
    return acc.result()
