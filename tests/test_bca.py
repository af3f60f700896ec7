"""Tests for BCa interval construction."""

import math

import numpy as np
import pytest

from entropy_bca import bca
from entropy_bca.bca import (
    ConfidenceInterval,
    IntervalMethod,
    IntervalReason,
    bootstrap_interval,
    bootstrap_mean,
    bootstrap_percentile,
)
from entropy_bca.config import BootstrapSettings
from entropy_bca.errors import NumericalInconsistencyError
from entropy_bca.resample import MeanStatistic, PercentileStatistic
from entropy_bca.rng import SeedSource
from entropy_bca.summation import SumDiagnostics


def _normal(n, seed=0):
    return np.random.default_rng(seed).normal(loc=5.0, size=n)


class TestDegenerate:
    def test_single_element(self):
        ci = bootstrap_percentile(0.5, np.array([5.0]), 0.0, 8.0, 100, 0.99, SeedSource(seed=1))
        assert ci.method is IntervalMethod.DEGENERATE
        assert ci.reason is IntervalReason.SINGLE_ELEMENT
        assert ci.point == ci.lower == ci.upper == 5.0

    def test_single_element_mean(self):
        ci = bootstrap_mean(np.array([5.0]), rounds=100, seed_source=SeedSource(seed=1))
        assert ci.reason is IntervalReason.SINGLE_ELEMENT
        assert ci.point == ci.lower == ci.upper == 5.0

    def test_no_valid_data(self):
        ci = bootstrap_mean(np.array([11.0, 10.0]), 0.0, 8.0, 100, 0.99, SeedSource(seed=1))
        assert ci.reason is IntervalReason.NO_VALID_DATA
        assert ci.point == ci.lower == ci.upper == 10.0

    def test_constant_distribution(self):
        ci = bootstrap_mean(np.full(50, 3.0), rounds=200, seed_source=SeedSource(seed=1))
        assert ci.reason is IntervalReason.CONSTANT_DISTRIBUTION
        assert ci.as_tuple() == (3.0, (3.0, 3.0))

    def test_unsupported_percentile(self):
        ci = bootstrap_percentile(0.001, _normal(100), rounds=200, seed_source=SeedSource(seed=1))
        assert ci.reason is IntervalReason.PERCENTILE_UNSUPPORTED
        assert ci.point == ci.lower == ci.upper

    def test_unsupported_returns_extremum(self):
        sample = _normal(100)
        low = bootstrap_percentile(0.001, sample.copy(), rounds=200, seed_source=SeedSource(seed=1))
        high = bootstrap_percentile(0.999, sample.copy(), rounds=200, seed_source=SeedSource(seed=1))
        assert low.point == sample.min()
        assert high.point == sample.max()


class TestExtremal:
    def test_small_sample_percentile(self):
        ci = bootstrap_percentile(0.5, _normal(20), rounds=200, seed_source=SeedSource(seed=1))
        assert ci.method is IntervalMethod.EXTREMAL
        assert ci.reason is IntervalReason.SMALL_SAMPLE
        assert ci.lower < ci.upper

    def test_small_sample_mean(self):
        ci = bootstrap_mean(_normal(20), rounds=200, seed_source=SeedSource(seed=1))
        assert ci.method is IntervalMethod.EXTREMAL
        assert ci.reason is IntervalReason.SMALL_SAMPLE

    def test_every_small_size(self):
        for n in range(2, 30):
            ci = bootstrap_mean(_normal(n, seed=n), rounds=200, seed_source=SeedSource(seed=n))
            assert ci.method is IntervalMethod.EXTREMAL, n

    def test_extreme_percentile(self):
        ci = bootstrap_percentile(0.01, _normal(100), rounds=200, seed_source=SeedSource(seed=1))
        assert ci.method is IntervalMethod.EXTREMAL
        assert ci.reason is IntervalReason.EXTREME_PERCENTILE


class TestInterval:
    def test_mean(self):
        sample = _normal(200, seed=3)
        expected = math.fsum(sample) / len(sample)
        ci = bootstrap_mean(sample, rounds=2000, confidence=0.95, seed_source=SeedSource(seed=4), workers=2)
        assert ci.method is IntervalMethod.BCA
        assert ci.reason is IntervalReason.BIAS_AND_ACCELERATION
        assert ci.point == pytest.approx(expected, rel=1e-15)
        assert ci.lower <= ci.point <= ci.upper
        assert ci.upper - ci.lower < 1.0
        assert ci.rounds == 2000
        assert ci.confidence == 0.95

    def test_percentile(self):
        ci = bootstrap_percentile(0.5, _normal(500, seed=8), rounds=1000, seed_source=SeedSource(seed=2), workers=3)
        assert ci.lower <= ci.upper
        if ci.method is not IntervalMethod.EXTREMAL:
            assert ci.contains(ci.point)

    def test_deterministic(self):
        sample = _normal(120, seed=6)
        a = bootstrap_mean(sample.copy(), rounds=500, seed_source=SeedSource(seed=1234), workers=4)
        b = bootstrap_mean(sample.copy(), rounds=500, seed_source=SeedSource(seed=1234), workers=4)
        assert a == b

    def test_range_trims(self):
        sample = np.concatenate([_normal(100, seed=9), [1e6, -1e6]])
        ci = bootstrap_mean(sample, 0.0, 10.0, 500, 0.99, SeedSource(seed=1))
        assert 0.0 <= ci.lower <= ci.upper <= 10.0

    def test_diagnostics(self):
        diag = SumDiagnostics()
        bootstrap_mean(_normal(100), rounds=300, seed_source=SeedSource(seed=1), diagnostics=diag)
        assert "mean" in diag.labels

    def test_describe(self):
        ci = ConfidenceInterval(1.0, 0.5, 1.5, IntervalMethod.BCA, IntervalReason.BIAS_AND_ACCELERATION, 100, 0.99)
        assert "BCa" in ci.describe("Sample mean")
        assert ci.width == 1.0


class _ShiftedMean(MeanStatistic):
    """Mean whose point estimate sits above every bootstrap value."""

    def point(self, sorted_data, diagnostics=None):
        return super().point(sorted_data, diagnostics) + 10.0


class _OffsetJackknifeMean(MeanStatistic):
    """Mean whose jackknife theta lies below every estimate, so a is about sqrt(n) / 6."""

    def jackknife(self, sorted_data, diagnostics=None):
        estimates, theta = super().jackknife(sorted_data, diagnostics)
        return estimates, theta - 1.0


class TestFallbacks:
    def test_zero_acceleration_gives_bc(self):
        # Symmetric integers: the jackknife cubes cancel exactly.
        ci = bootstrap_mean(np.arange(-50.0, 51.0), rounds=2000, seed_source=SeedSource(seed=5))
        assert ci.method is IntervalMethod.BC
        assert ci.reason is IntervalReason.ZERO_ACCELERATION
        assert ci.lower <= ci.point <= ci.upper

    def test_unordered_bca_quantiles_fall_back_to_percentile(self):
        ci = bootstrap_interval(_OffsetJackknifeMean(), _normal(200, seed=12), rounds=2000,
                                seed_source=SeedSource(seed=6))
        assert ci.method is IntervalMethod.PERCENTILE
        assert ci.reason is IntervalReason.BCA_NOT_CONTAINING
        assert ci.lower <= ci.point <= ci.upper

    def test_infinite_bias_uses_percentile(self):
        # The 60th percentile is the tied maximum in almost every resample.
        sample = np.concatenate([np.linspace(0.0, 0.5, 50), np.ones(50)])
        ci = bootstrap_percentile(0.6, sample, rounds=2000, seed_source=SeedSource(seed=7))
        assert ci.method is IntervalMethod.PERCENTILE
        assert ci.reason is IntervalReason.INFINITE_BIAS
        assert ci.point == ci.upper == 1.0
        assert ci.lower < ci.point

    def test_point_outside_distribution_gives_extremal(self, caplog):
        sample = _normal(200, seed=13)
        with caplog.at_level("WARNING", logger="entropy_bca.bca"):
            ci = bootstrap_interval(_ShiftedMean(), sample, rounds=1000, seed_source=SeedSource(seed=8))
        assert ci.method is IntervalMethod.EXTREMAL
        assert ci.reason is IntervalReason.PERCENTILE_NOT_CONTAINING
        assert ci.lower <= ci.upper < ci.point
        assert "extremal" in caplog.text

    def test_non_extremal_results_contain_point(self):
        for seed in range(5):
            for ci in (
                bootstrap_mean(_normal(60, seed=seed), rounds=500, seed_source=SeedSource(seed=seed)),
                bootstrap_percentile(0.5, _normal(60, seed=seed), rounds=500, seed_source=SeedSource(seed=seed)),
            ):
                if ci.method is not IntervalMethod.EXTREMAL:
                    assert ci.lower <= ci.point <= ci.upper


class TestSettings:
    def test_relative_tolerance_detects_constant_distribution(self):
        sample = 100.0 + np.random.default_rng(3).uniform(0.0, 1e-3, 50)
        loose = BootstrapSettings(rel_epsilon=0.1)
        ci = bootstrap_mean(sample, rounds=500, seed_source=SeedSource(seed=1), settings=loose)
        assert ci.reason is IntervalReason.CONSTANT_DISTRIBUTION
        assert ci.lower == ci.upper == ci.point

    def test_default_tolerance_keeps_interval(self):
        sample = 100.0 + np.random.default_rng(3).uniform(0.0, 1e-3, 50)
        ci = bootstrap_mean(sample, rounds=500, seed_source=SeedSource(seed=1))
        assert ci.reason is not IntervalReason.CONSTANT_DISTRIBUTION
        assert ci.lower < ci.upper

    def test_unordered_bounds_are_fatal(self, monkeypatch):
        broken = ConfidenceInterval(1.0, 2.0, 0.5, IntervalMethod.BCA, IntervalReason.BIAS_AND_ACCELERATION)
        monkeypatch.setattr(bca, "_interval", lambda *args: broken)
        with pytest.raises(NumericalInconsistencyError):
            bootstrap_mean(_normal(40), rounds=10, seed_source=SeedSource(seed=1))


class TestArguments:
    def test_empty(self):
        with pytest.raises(ValueError):
            bootstrap_mean(np.array([]), rounds=10)

    def test_nan(self):
        with pytest.raises(ValueError):
            bootstrap_mean(np.array([1.0, math.nan]), rounds=10)

    def test_p(self):
        with pytest.raises(ValueError):
            bootstrap_percentile(1.5, _normal(40), rounds=10)

    def test_rounds(self):
        with pytest.raises(ValueError):
            bootstrap_mean(_normal(40), rounds=0)

    def test_confidence(self):
        with pytest.raises(ValueError):
            bootstrap_mean(_normal(40), rounds=10, confidence=1.5)


class _DividingMedian(PercentileStatistic):
    def point(self, sorted_data, diagnostics=None):
        np.divide(np.ones(1), np.zeros(1))
        return super().point(sorted_data, diagnostics)


class TestNumericalChecks:
    def test_fp_exception_is_fatal(self):
        with pytest.raises(NumericalInconsistencyError) as info:
            bootstrap_interval(_DividingMedian(0.5), _normal(40), rounds=50, seed_source=SeedSource(seed=1), p=0.5)
        assert "divide" in info.value.flags


@pytest.mark.slow
class TestCoverage:
    def test_mean_coverage(self):
        rng = np.random.default_rng(2024)
        trials = 100
        hits = 0
        for i in range(trials):
            sample = rng.normal(loc=1.0, size=50)
            ci = bootstrap_mean(sample, rounds=10000, confidence=0.99, seed_source=SeedSource(seed=i), workers=2)
            hits += ci.lower <= 1.0 <= ci.upper
        assert hits >= 93
