"""Exceptions raised by the bootstrap engine.

Empty, single-element and constant inputs are *not* errors; they come back
as degenerate :class:`~entropy_bca.bca.ConfidenceInterval` results.
"""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for failures that leave no trustworthy interval."""


class AllocationFailureError(BootstrapError):
    """A working buffer could not be allocated."""


class NumericalInconsistencyError(BootstrapError):
    """A floating-point exception was observed where none may occur.

    Parameters
    ----------
    message:
        Human readable description.
    flags:
        Names of the floating-point conditions that were observed
        (``"invalid"``, ``"divide"``, ``"overflow"``, ``"underflow"``).
    """

    def __init__(self, message: str, flags: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.flags = tuple(flags)

    def __str__(self) -> str:
        base = super().__str__()
        if not self.flags:
            return base
        return f"{base} [{', '.join(self.flags)}]"


class DataFormatError(ValueError):
    """Input data could not be parsed as finite doubles."""
