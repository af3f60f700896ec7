"""CLI for entropy-bca."""

from __future__ import annotations

import logging
import math
import sys
from typing import NoReturn, Optional

import click
import numpy as np
from rich.console import Console
from rich.logging import RichHandler

from entropy_bca import __version__
from entropy_bca.bca import bootstrap_mean, bootstrap_percentile
from entropy_bca.config import BootstrapSettings
from entropy_bca.dataio import read_ascii_doubles, read_binary_doubles
from entropy_bca.errors import BootstrapError, DataFormatError
from entropy_bca.order_stats import mean, percentile
from entropy_bca.rng import SeedSource
from entropy_bca.tolerance import rel_epsilon_equal

_LOGGER = logging.getLogger(__name__)

EX_DATAERR = 65


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


def _pair(value: Optional[str], name: str) -> Optional[tuple[str, str]]:
    if value is None:
        return None
    first, sep, second = value.partition(",")
    if not sep or not first or not second:
        raise click.BadParameter(f"expected <{name}>", param_hint="'-b' / '-u'")
    return first.strip(), second.strip()


def _parse_bootstrap(ctx, param, value: Optional[str]) -> Optional[tuple[float, int]]:
    pair = _pair(value, "c>,<rounds")
    if pair is None:
        return None
    try:
        confidence = float(pair[0])
        rounds = int(pair[1], 0)
    except ValueError:
        raise click.BadParameter("expected <c>,<rounds>") from None
    if not (0.0 <= confidence <= 1.0) or rounds <= 0:
        raise click.BadParameter("c must be in [0, 1] and rounds positive")
    return confidence, rounds


def _parse_range(ctx, param, value: Optional[str]) -> Optional[tuple[float, float]]:
    pair = _pair(value, "low>,<high")
    if pair is None:
        return None
    try:
        low, high = float(pair[0]), float(pair[1])
    except ValueError:
        raise click.BadParameter("expected <low>,<high>") from None
    if math.isnan(low) or math.isnan(high) or low > high:
        raise click.BadParameter("expected low <= high")
    return low, high


def _read(filename: Optional[str], binary: bool) -> np.ndarray:
    try:
        if binary:
            if filename is None or filename == "-":
                return read_binary_doubles(click.get_binary_stream("stdin"))
            return read_binary_doubles(filename)
        with click.open_file(filename or "-", "r") as fh:
            return read_ascii_doubles(fh)
    except DataFormatError as e:
        click.echo(f"data error: {e}", err=True)
        sys.exit(EX_DATAERR)


def _fail(message: str) -> NoReturn:
    click.echo(message, err=True)
    sys.exit(EX_DATAERR)


def _report(ci, low: float, high: float, one_output: bool, last: Optional[float], settings: BootstrapSettings) -> None:
    if not (low <= ci.point <= high):
        _fail("No valid data present.")

    if rel_epsilon_equal(ci.lower, ci.upper, **settings.tolerances):
        click.echo("No confidence interval could be produced.", err=True)
        valid = False
        candidate = ci.point
    else:
        valid = True
        candidate = min(ci.lower, ci.point, ci.upper)

    if last is not None:
        if last < candidate:
            _LOGGER.info("Output value restricted by provided maximum.")
            candidate = last
        click.echo(f"{candidate:.17g}")
    elif one_output or not valid:
        click.echo(f"{candidate:.17g}")
    else:
        click.echo(f"{ci.lower:.17g}, {ci.point:.17g}, {ci.upper:.17g}")


def _seed_source(deterministic: bool, settings: BootstrapSettings) -> SeedSource:
    return SeedSource(settings.deterministic_seed if deterministic else None)


def _bootstrap_options(f):
    f = click.argument("filename", required=False, type=click.Path(dir_okay=False, allow_dash=True))(f)
    f = click.option("--workers", type=click.IntRange(min=1), default=None,
                     help="Resampling threads (default: ENTROPY_BCA_WORKERS or CPU count).")(f)
    f = click.option("-0", "binary", is_flag=True, help="Read in doubles in machine-specific format.")(f)
    f = click.option("-u", "valid_range", callback=_parse_range, metavar="LOW,HIGH",
                     help="Discard samples that are not in the range [LOW, HIGH].")(f)
    f = click.option("-b", "bootstrap", callback=_parse_bootstrap, metavar="C,ROUNDS",
                     help="Produce C-BCa bootstrap confidence intervals using ROUNDS of bootstrapping.")(f)
    f = click.option("-o", "one_output", is_flag=True,
                     help="Produce only one output. If there is a confidence interval, report the minimum value.")(f)
    f = click.option("-d", "deterministic", is_flag=True, help="Make any RNG deterministic.")(f)
    f = click.option("-v", "verbose", count=True, help="Verbose mode (can be used up to 3 times).")(f)
    return f


@click.group()
@click.version_option(__version__)
def main() -> None:
    """entropy-bca: percentiles and means with BCa bootstrap confidence intervals."""


# ────────────────────────────────────────────────────────────
# percentile
# ────────────────────────────────────────────────────────────


@main.command("percentile")
@click.argument("p", type=click.FloatRange(0.0, 1.0))
@_bootstrap_options
@click.option("-l", "last_bound", is_flag=True,
              help="Treat the last value as an upper bound, rather than a data element.")
def percentile_cmd(p, filename, verbose, deterministic, one_output, bootstrap, valid_range, binary, workers,
                   last_bound) -> None:
    """Give the P-th percentile (Hyndman and Fan's R6) of doubles, one per line.

    Data is read from FILENAME, or stdin when it is omitted.
    """
    _configure_logging(verbose)
    low, high = valid_range or (0.0, 8.0)
    data = _read(filename, binary)

    last = None
    if last_bound:
        if len(data) == 0:
            raise click.UsageError("no data")
        last = float(data[-1])
        data = data[:-1]
        _LOGGER.info("Last element (upper bound): %.17g", last)
    if len(data) == 0:
        raise click.UsageError("no data")

    if bootstrap is None:
        try:
            value = percentile(p, data, low, high)
        except ValueError:
            _fail("No valid data present.")
        if last is not None and last < value:
            _LOGGER.info("Output value restricted by provided maximum.")
            value = last
        click.echo(f"{value:.17g}")
        return

    confidence, rounds = bootstrap
    settings = BootstrapSettings.from_env()
    try:
        ci = bootstrap_percentile(p, data, low, high, rounds, confidence, _seed_source(deterministic, settings),
                                  settings=settings, workers=workers)
    except BootstrapError as e:
        _fail(str(e))
    _report(ci, low, high, one_output, last, settings)


# ────────────────────────────────────────────────────────────
# mean
# ────────────────────────────────────────────────────────────


@main.command("mean")
@_bootstrap_options
def mean_cmd(filename, verbose, deterministic, one_output, bootstrap, valid_range, binary, workers) -> None:
    """Give the mean of doubles, one per line.

    Data is read from FILENAME, or stdin when it is omitted.
    """
    _configure_logging(verbose)
    low, high = valid_range or (-math.inf, math.inf)
    data = _read(filename, binary)
    if len(data) == 0:
        raise click.UsageError("no data")

    if bootstrap is None:
        try:
            value = mean(data, low, high)
        except ValueError:
            _fail("No valid data present.")
        click.echo(f"{value:.17g}")
        return

    confidence, rounds = bootstrap
    settings = BootstrapSettings.from_env()
    try:
        ci = bootstrap_mean(data, low, high, rounds, confidence, _seed_source(deterministic, settings),
                            settings=settings, workers=workers)
    except BootstrapError as e:
        _fail(str(e))
    _report(ci, low, high, one_output, None, settings)


if __name__ == "__main__":
    main()
