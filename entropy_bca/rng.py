"""Independently seeded random streams for resampling workers.

Each worker thread owns one :class:`RandomStream`; streams are spawned from
a single :class:`numpy.random.SeedSequence` so that a fixed seed reproduces
the same streams in the same order.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from entropy_bca.config import DETERMINISTIC_SEED

_LOGGER = logging.getLogger(__name__)


class RandomStream:
    """A private PCG64 generator.  Not to be shared between threads.

    Parameters
    ----------
    seed_sequence : numpy.random.SeedSequence
        Seed material for this stream.
    """

    def __init__(self, seed_sequence: np.random.SeedSequence):
        self._rng = np.random.Generator(np.random.PCG64(seed_sequence))

    def uniform_unit(self, size: Optional[int] = None):
        """Uniform draw(s) from [0, 1)."""
        return self._rng.random(size)

    def bounded_uniform(self, high: int, size: Optional[int] = None):
        """Uniform integer draw(s) from [0, high], both ends included.

        numpy's bounded generation is unbiased (Lemire's method).
        """
        if high < 0:
            raise ValueError("high must be non-negative")
        return self._rng.integers(0, high, size=size, endpoint=True)


class SeedSource:
    """Hands out independently seeded :class:`RandomStream` objects.

    Every call to :meth:`streams` spawns fresh children of the root seed
    sequence, so a second bootstrap run on the same source draws different
    values.  To reproduce a run, build a new source from the same seed and
    use the same worker count.

    Parameters
    ----------
    seed : int or None
        Explicit seed.  Takes precedence over *deterministic*.
    deterministic : bool
        Use the fixed :data:`~entropy_bca.config.DETERMINISTIC_SEED`
        instead of OS entropy.
    """

    def __init__(self, seed: Optional[int] = None, deterministic: bool = False):
        if seed is None and deterministic:
            seed = DETERMINISTIC_SEED
        self._root = np.random.SeedSequence(seed)
        self.deterministic = seed is not None
        if not self.deterministic:
            _LOGGER.debug("Seeding random streams from OS entropy")

    @property
    def entropy(self) -> int:
        """Root entropy; pass it back as ``seed`` to reproduce a run."""
        return self._root.entropy

    def streams(self, count: int) -> list[RandomStream]:
        """Spawn *count* new streams, in worker-index order."""
        if count <= 0:
            raise ValueError("count must be positive")
        return [RandomStream(child) for child in self._root.spawn(count)]
