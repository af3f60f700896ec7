"""Bootstrap every estimator result field of a batch of test runs.

A batch is any iterable of records (mappings or objects).  Each
:class:`FieldSpec` names one estimator and projects its value out of a
record; records where that estimator did not run project to ``None`` and
are skipped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Sequence

import numpy as np

from entropy_bca.bca import ConfidenceInterval, bootstrap_percentile
from entropy_bca.config import BootstrapSettings
from entropy_bca.rng import SeedSource
from entropy_bca.summation import SumDiagnostics

_LOGGER = logging.getLogger(__name__)

Accessor = Callable[[Any], Optional[float]]


def field_accessor(name: str) -> Accessor:
    """Accessor reading key or attribute *name*; missing means not run."""

    def _get(record: Any) -> Optional[float]:
        if isinstance(record, Mapping):
            return record.get(name)
        return getattr(record, name, None)

    return _get


@dataclass(frozen=True)
class FieldSpec:
    label: str
    accessor: Accessor
    p: float = 0.5
    valid_min: float = 0.0
    valid_max: float = math.inf
    # Report min(point, lower, upper) rather than the max.
    lowest: bool = True


@dataclass(frozen=True)
class FieldResult:
    label: str
    count: int
    interval: ConfidenceInterval
    bound: float


@dataclass
class Assessment:
    results: list[FieldResult] = field(default_factory=list)

    @property
    def overall(self) -> Optional[float]:
        """Smallest bound across all fields, None if nothing was assessed."""
        if not self.results:
            return None
        return min(r.bound for r in self.results)


def estimator_fields(bit_width: int) -> list[FieldSpec]:
    """Min-entropy estimators of SP 800-90B section 6.3, keyed by short name.

    The median is bootstrapped for every estimator except Markov, whose
    0.5th percentile is used.
    """
    if bit_width <= 0:
        raise ValueError("bit_width must be positive")
    top = float(bit_width)
    names = [
        ("mcv", "Most Common Value", 0.5),
        ("collision", "Collision", 0.5),
        ("markov", "Markov", 0.005),
        ("compression", "Compression", 0.5),
        ("t_tuple", "t-Tuple", 0.5),
        ("lrs", "LRS", 0.5),
        ("multi_mcw", "MultiMCW Prediction", 0.5),
        ("lag", "Lag Prediction", 0.5),
        ("multi_mmc", "MultiMMC Prediction", 0.5),
        ("lz78y", "LZ78Y Prediction", 0.5),
    ]
    return [FieldSpec(label, field_accessor(key), p, 0.0, top) for key, label, p in names]


def collect_field(records: Iterable[Any], accessor: Accessor) -> np.ndarray:
    """Values *accessor* yields for *records*, skipping ``None``."""
    values = [float(v) for v in (accessor(r) for r in records) if v is not None]
    return np.array(values, dtype=np.float64)


def conservative_bound(ci: ConfidenceInterval, lowest: bool = True) -> float:
    """The most conservative of the point estimate and the interval ends."""
    if lowest:
        return min(ci.point, ci.lower, ci.upper)
    return max(ci.point, ci.lower, ci.upper)


def bootstrap_field(
    records: Iterable[Any],
    accessor: Accessor,
    p: float = 0.5,
    valid_min: float = -math.inf,
    valid_max: float = math.inf,
    rounds: Optional[int] = None,
    confidence: Optional[float] = None,
    seed_source: Optional[SeedSource] = None,
    *,
    settings: Optional[BootstrapSettings] = None,
    workers: Optional[int] = None,
    diagnostics: Optional[SumDiagnostics] = None,
) -> Optional[ConfidenceInterval]:
    """Bootstrap the *p* quantile of one field; None if no record has it."""
    values = collect_field(records, accessor)
    if len(values) == 0:
        return None
    return bootstrap_percentile(
        p,
        values,
        valid_min,
        valid_max,
        rounds,
        confidence,
        seed_source,
        settings=settings,
        workers=workers,
        diagnostics=diagnostics,
    )


def assess_fields(
    records: Sequence[Any],
    fields: Sequence[FieldSpec],
    rounds: Optional[int] = None,
    confidence: Optional[float] = None,
    seed_source: Optional[SeedSource] = None,
    *,
    label: str = "",
    settings: Optional[BootstrapSettings] = None,
    workers: Optional[int] = None,
    diagnostics: Optional[SumDiagnostics] = None,
) -> Assessment:
    """Bootstrap each field in turn and collect the conservative bounds."""
    seed_source = seed_source or SeedSource()
    assessment = Assessment()
    for spec in fields:
        values = collect_field(records, spec.accessor)
        if len(values) == 0:
            continue
        _LOGGER.info("Assessment Bootstrap %s %s Estimate: results = %d", label, spec.label, len(values))
        ci = bootstrap_percentile(
            spec.p,
            values,
            spec.valid_min,
            spec.valid_max,
            rounds,
            confidence,
            seed_source,
            settings=settings,
            workers=workers,
            diagnostics=diagnostics,
        )
        bound = conservative_bound(ci, spec.lowest)
        _LOGGER.info("Assessment Bootstrap %s %s Estimate: min entropy = %.17g", label, spec.label, bound)
        assessment.results.append(FieldResult(spec.label, len(values), ci, bound))
    return assessment
