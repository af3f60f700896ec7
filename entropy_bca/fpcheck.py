"""Floating-point exception checkpoints.

numpy reports invalid / divide-by-zero / overflow / underflow conditions
through its error state; :class:`FloatingPointMonitor` records them instead
of warning so that an interval computation can verify, at the end, that
nothing went wrong along the way.
"""

from __future__ import annotations

import logging
import threading

import numpy as np

from entropy_bca.errors import NumericalInconsistencyError

_LOGGER = logging.getLogger(__name__)

FLAG_NAMES = ("invalid", "divide", "overflow", "underflow")

_DESCRIPTIONS = {
    "invalid": "FE_INVALID",
    "divide": "Divided by 0",
    "overflow": "Found an overflow",
    "underflow": "Found an underflow",
}


def _flag_name(err: str) -> str:
    if err.startswith("divide"):
        return "divide"
    if err.startswith("invalid"):
        return "invalid"
    if err.startswith("overflow"):
        return "overflow"
    return "underflow"


class FloatingPointMonitor:
    """Context manager that collects numpy floating-point conditions.

    Usage::

        with FloatingPointMonitor() as fp:
            ...
            if fp.test("underflow"):
                fp.clear("underflow")
            fp.check("bootstrap")
    """

    def __init__(self) -> None:
        self._flags: set[str] = set()
        self._lock = threading.Lock()
        self._errstate: np.errstate | None = None

    def _record(self, err: str, flag: int) -> None:
        with self._lock:
            self._flags.add(_flag_name(err))

    def __enter__(self) -> "FloatingPointMonitor":
        self._errstate = np.errstate(all="call", call=self._record)
        self._errstate.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._errstate is not None
        self._errstate.__exit__(exc_type, exc, tb)
        self._errstate = None

    @property
    def flags(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(name for name in FLAG_NAMES if name in self._flags)

    def test(self, *names: str) -> bool:
        """True if any of *names* (all flags when empty) has been raised."""
        wanted = names or FLAG_NAMES
        with self._lock:
            return any(name in self._flags for name in wanted)

    def clear(self, *names: str) -> None:
        """Forget *names* (all flags when empty)."""
        with self._lock:
            if names:
                self._flags.difference_update(names)
            else:
                self._flags.clear()

    def check(self, context: str) -> None:
        """Raise :class:`NumericalInconsistencyError` if any flag is set."""
        flags = self.flags
        if flags:
            detail = " ".join(_DESCRIPTIONS[name] for name in flags)
            _LOGGER.error("Math error in %s: %s", context, detail)
            raise NumericalInconsistencyError(f"Math error in {context}", flags)
