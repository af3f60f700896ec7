"""Readers for the sample formats accepted on the command line.

* ASCII: one double per line; blank lines are ignored.
* Binary: doubles in machine format, as written by ``ndarray.tofile``.
"""

from __future__ import annotations

import logging
import math
import os
from typing import BinaryIO, TextIO, Union

import numpy as np

from entropy_bca.errors import DataFormatError

_LOGGER = logging.getLogger(__name__)

_DOUBLE_SIZE = np.dtype(np.float64).itemsize


def read_ascii_doubles(stream: TextIO) -> np.ndarray:
    """Parse one finite double per line."""
    values: list[float] = []
    for lineno, line in enumerate(stream, 1):
        text = line.strip()
        if not text:
            continue
        try:
            value = float(text)
        except ValueError:
            raise DataFormatError(f"line {lineno}: not a number: {text!r}") from None
        if not math.isfinite(value):
            raise DataFormatError(f"line {lineno}: value out of range: {text!r}")
        values.append(value)
    return np.array(values, dtype=np.float64)


def read_binary_doubles(source: Union[str, os.PathLike, BinaryIO]) -> np.ndarray:
    """Read machine-format doubles from a path or a binary stream.

    Trailing bytes that do not make up a whole double are dropped.
    """
    if isinstance(source, (str, os.PathLike)):
        size = os.path.getsize(source)
        if size % _DOUBLE_SIZE:
            _LOGGER.warning("Extra bytes at the end of the file")
        data = np.fromfile(source, dtype=np.float64, count=size // _DOUBLE_SIZE)
    else:
        raw = source.read()
        rem = len(raw) % _DOUBLE_SIZE
        if rem:
            _LOGGER.warning("Extra bytes at the end of the file")
            raw = raw[: len(raw) - rem]
        # frombuffer is read-only; callers sort in place
        data = np.frombuffer(raw, dtype=np.float64).copy()

    if not np.isfinite(data).all():
        raise DataFormatError("binary input contains NaN or infinite values")
    return data
