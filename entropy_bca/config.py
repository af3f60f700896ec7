"""Tunables for the bootstrap engine.

Defaults reproduce the constants of the reference entropy assessment
tools.  Everything here is immutable; pass a modified copy via
``dataclasses.replace`` (or :meth:`BootstrapSettings.from_env`) to the
entry points that accept ``settings=``.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, replace
from typing import Optional

DBL_MIN: float = sys.float_info.min
DBL_EPSILON: float = sys.float_info.epsilon

# Fixed seed used when a deterministic run is requested.  Hex digits of
# pi, e, a nibble count and log(2).
DETERMINISTIC_SEED: int = 0x3243F6A8885A308D_2B7E151628AED2A6_0123456789ABCDEF_B17217F7D1CF79AB


@dataclass(frozen=True)
class BootstrapSettings:
    """Immutable configuration for interval construction."""

    # Tolerant comparison
    abs_epsilon: float = DBL_MIN
    rel_epsilon: float = DBL_EPSILON
    ulp_epsilon: int = 4

    # Sample adequacy.
    # Largest tolerated probability that too few extremal values are present.
    binomial_cutoff: float = 0.5
    smallest_significant: int = 5
    # "At least 30 data elements" (Chernick, Bootstrap Methods).
    smallest_bootstrap_sample: int = 30
    # Target birthday-collision probability across resamples is 2^-exp.
    birthday_bound_exp: int = 10

    # Bootstrap defaults
    rounds: int = 10000
    confidence: float = 0.99
    workers: Optional[int] = None
    deterministic_seed: int = DETERMINISTIC_SEED

    def __post_init__(self) -> None:
        if self.abs_epsilon < 0.0 or self.rel_epsilon < 0.0:
            raise ValueError("tolerances must be non-negative")
        if self.ulp_epsilon < 0:
            raise ValueError("ulp_epsilon must be non-negative")
        if not (0.0 <= self.binomial_cutoff <= 1.0):
            raise ValueError("binomial_cutoff must be in [0, 1]")
        if self.smallest_significant < 1:
            raise ValueError("smallest_significant must be >= 1")
        if not (0 <= self.birthday_bound_exp < 63):
            raise ValueError("birthday_bound_exp must be in [0, 63)")
        if self.rounds <= 0:
            raise ValueError("rounds must be positive")
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError("confidence must be in [0, 1]")
        if self.workers is not None and self.workers <= 0:
            raise ValueError("workers must be positive")
        if self.deterministic_seed < 0:
            raise ValueError("deterministic_seed must be non-negative")

    @property
    def tolerances(self) -> dict:
        """Keyword arguments for :func:`~entropy_bca.tolerance.rel_epsilon_equal`."""
        return {"abs_tol": self.abs_epsilon, "rel_tol": self.rel_epsilon, "ulp_tol": self.ulp_epsilon}

    @property
    def worker_count(self) -> int:
        """Number of resampling threads to use."""
        if self.workers is not None:
            return self.workers
        return os.cpu_count() or 1

    @classmethod
    def from_env(cls, base: Optional["BootstrapSettings"] = None) -> "BootstrapSettings":
        """Apply ``ENTROPY_BCA_WORKERS`` / ``ENTROPY_BCA_ROUNDS`` overrides."""
        settings = base or cls()
        overrides: dict[str, int] = {}
        workers = os.environ.get("ENTROPY_BCA_WORKERS")
        if workers:
            overrides["workers"] = int(workers)
        rounds = os.environ.get("ENTROPY_BCA_ROUNDS")
        if rounds:
            overrides["rounds"] = int(rounds)
        return replace(settings, **overrides) if overrides else settings


_DEFAULT_SETTINGS = BootstrapSettings()


def get_settings() -> BootstrapSettings:
    """Return the default settings instance."""
    return _DEFAULT_SETTINGS
