"""Parallel bootstrap resampling.

The rounds are split into contiguous blocks, one per worker thread.  Every
worker has its own random stream and scratch buffer and writes only its own
block of the shared result array.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Callable, Optional

import numpy as np

from entropy_bca.errors import AllocationFailureError
from entropy_bca.jackknife import jackknife_mean_estimates, jackknife_percentile_estimates
from entropy_bca.order_stats import sorted_percentile
from entropy_bca.rng import RandomStream, SeedSource
from entropy_bca.summation import CompensatedAccumulator, SumDiagnostics

_LOGGER = logging.getLogger(__name__)

Statistic = Callable[[np.ndarray], float]


# ── statistics ──


class MeanStatistic:
    """Arithmetic mean.

    Resamples are summed with ``math.fsum``, which is order independent
    and correctly rounded like :class:`CompensatedAccumulator`.
    """

    name = "mean"

    def __call__(self, resample: np.ndarray) -> float:
        return math.fsum(resample) / len(resample)

    def point(self, sorted_data: np.ndarray, diagnostics: Optional[SumDiagnostics] = None) -> float:
        acc = CompensatedAccumulator("mean", diagnostics)
        acc.extend(sorted_data)
        return acc.result() / len(sorted_data)

    def jackknife(self, sorted_data: np.ndarray, diagnostics: Optional[SumDiagnostics] = None):
        return jackknife_mean_estimates(sorted_data, diagnostics)

    def __repr__(self) -> str:
        return "MeanStatistic()"


class PercentileStatistic:
    """R6 percentile at *p*.  Sorts the resample in place."""

    def __init__(self, p: float):
        if not (0.0 <= p <= 1.0):
            raise ValueError("p must be in [0, 1]")
        self.p = p
        self.name = f"{p * 100.0:.17g} % percentile"

    def __call__(self, resample: np.ndarray) -> float:
        resample.sort()
        return sorted_percentile(self.p, resample)

    def point(self, sorted_data: np.ndarray, diagnostics: Optional[SumDiagnostics] = None) -> float:
        return sorted_percentile(self.p, sorted_data)

    def jackknife(self, sorted_data: np.ndarray, diagnostics: Optional[SumDiagnostics] = None):
        return jackknife_percentile_estimates(self.p, sorted_data, diagnostics)

    def __repr__(self) -> str:
        return f"PercentileStatistic({self.p!r})"


# ── resampler ──


class BootstrapResampler:
    """Produces sorted bootstrap distributions.

    Parameters
    ----------
    workers : int
        Number of threads; never more than the number of rounds.
    seed_source : SeedSource or None
        Source of per-worker streams.  A fresh OS-seeded source if None.
    """

    def __init__(self, workers: int = 1, seed_source: Optional[SeedSource] = None):
        if workers <= 0:
            raise ValueError("workers must be positive")
        self.workers = workers
        self.seed_source = seed_source or SeedSource()

    def distribution(self, sample: np.ndarray, rounds: int, statistic: Statistic) -> np.ndarray:
        """Evaluate *statistic* on *rounds* resamples of *sample*; sorted result."""
        data = np.ascontiguousarray(sample, dtype=np.float64)
        n = len(data)
        if n == 0:
            raise ValueError("sample must not be empty")
        if rounds <= 0:
            raise ValueError("rounds must be positive")

        workers = min(self.workers, rounds)
        # Spawned before any thread starts so that stream i always serves block i.
        streams = self.seed_source.streams(workers)

        try:
            results = np.empty(rounds, dtype=np.float64)
        except MemoryError as exc:
            raise AllocationFailureError("Can't allocate room for bootstrap results") from exc

        errors: list[tuple[int, BaseException]] = []
        errors_lock = threading.Lock()

        def _worker(index: int, stream: RandomStream) -> None:
            start = index * rounds // workers
            stop = (index + 1) * rounds // workers
            try:
                scratch = np.empty(n, dtype=np.float64)
                for r in range(start, stop):
                    indices = stream.bounded_uniform(n - 1, size=n)
                    # indices are always in range; "clip" lets take write straight into out
                    np.take(data, indices, out=scratch, mode="clip")
                    results[r] = statistic(scratch)
            except Exception as exc:
                with errors_lock:
                    errors.append((index, exc))

        _LOGGER.debug("Generating %d bootstrap rounds of %d values on %d workers", rounds, n, workers)
        if workers == 1:
            _worker(0, streams[0])
        else:
            threads = []
            for index, stream in enumerate(streams):
                t = threading.Thread(target=_worker, args=(index, stream), name=f"bootstrap-{index}")
                t.start()
                threads.append(t)
            for t in threads:
                t.join()

        if errors:
            errors.sort(key=lambda item: item[0])
            index, exc = errors[0]
            if isinstance(exc, MemoryError):
                raise AllocationFailureError(f"Worker {index} could not allocate its scratch buffer") from exc
            raise exc

        results.sort()
        return results
