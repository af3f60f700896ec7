"""
entropy-bca: conservative confidence bounds for entropy estimates.

BCa bootstrap confidence intervals for percentiles and means, built on
tolerant floating-point comparison, exact summation and order statistics.
"""

__version__ = "0.1.0"

from entropy_bca.adequacy import combinations_greater_than_bound, selections_for_birthday_collision_bound
from entropy_bca.assessment import Assessment, FieldSpec, assess_fields, bootstrap_field, estimator_fields
from entropy_bca.bca import (
    ConfidenceInterval,
    IntervalMethod,
    IntervalReason,
    bootstrap_interval,
    bootstrap_mean,
    bootstrap_percentile,
)
from entropy_bca.config import BootstrapSettings, get_settings
from entropy_bca.dataio import read_ascii_doubles, read_binary_doubles
from entropy_bca.errors import AllocationFailureError, BootstrapError, DataFormatError, NumericalInconsistencyError
from entropy_bca.order_stats import above_value, below_value, mean, percentile, trim_to_range
from entropy_bca.rng import SeedSource
from entropy_bca.special import binomial_cdf
from entropy_bca.summation import CompensatedAccumulator, SumDiagnostics
from entropy_bca.tolerance import rel_epsilon_equal

__all__ = [
    "AllocationFailureError",
    "Assessment",
    "BootstrapError",
    "BootstrapSettings",
    "CompensatedAccumulator",
    "ConfidenceInterval",
    "DataFormatError",
    "FieldSpec",
    "IntervalMethod",
    "IntervalReason",
    "NumericalInconsistencyError",
    "SeedSource",
    "SumDiagnostics",
    "__version__",
    "above_value",
    "assess_fields",
    "below_value",
    "binomial_cdf",
    "bootstrap_field",
    "bootstrap_interval",
    "bootstrap_mean",
    "bootstrap_percentile",
    "combinations_greater_than_bound",
    "estimator_fields",
    "get_settings",
    "mean",
    "percentile",
    "read_ascii_doubles",
    "read_binary_doubles",
    "rel_epsilon_equal",
    "selections_for_birthday_collision_bound",
    "trim_to_range",
]
