"""Tests for tolerant floating-point comparison."""

import math

import numpy as np

from entropy_bca.tolerance import rel_epsilon_equal, rel_factor, value_count


def _ulps_above(x, count):
    for _ in range(count):
        x = float(np.nextafter(x, math.inf))
    return x


class TestRelEpsilonEqual:
    def test_nan_never_equal(self):
        assert not rel_epsilon_equal(math.nan, math.nan)
        assert not rel_epsilon_equal(math.nan, 1.0)
        assert not rel_epsilon_equal(0.0, math.nan)

    def test_reflexive(self):
        rng = np.random.default_rng(1)
        for a in rng.standard_normal(50) * 10.0 ** rng.integers(-300, 300, 50):
            assert rel_epsilon_equal(a, a)

    def test_infinities(self):
        assert rel_epsilon_equal(math.inf, math.inf)
        assert rel_epsilon_equal(-math.inf, -math.inf)
        assert not rel_epsilon_equal(math.inf, -math.inf)
        assert not rel_epsilon_equal(math.inf, 1e308)

    def test_signed_zero(self):
        assert rel_epsilon_equal(-0.0, 0.0)

    def test_relative(self):
        eps = np.finfo(np.float64).eps
        assert rel_epsilon_equal(1.0, 1.0 + eps)
        assert rel_epsilon_equal(1e100, 1e100 * (1 + eps))
        assert not rel_epsilon_equal(1.0, 1.001)

    def test_ulp_tier(self):
        assert rel_epsilon_equal(1.0, _ulps_above(1.0, 4))
        assert not rel_epsilon_equal(1.0, _ulps_above(1.0, 5))
        assert rel_epsilon_equal(1.0, _ulps_above(1.0, 5), ulp_tol=5)

    def test_opposite_signs(self):
        assert not rel_epsilon_equal(-1.0, 1.0)

    def test_absolute_tier_near_zero(self):
        assert rel_epsilon_equal(0.0, 5e-324)
        assert not rel_epsilon_equal(0.0, 1e-300)
        assert rel_epsilon_equal(0.0, 1e-300, abs_tol=1e-299)

    def test_symmetric(self):
        pairs = [(1.0, 1.0 + 1e-15), (3.0, -3.0), (0.0, 1e-310), (2.5, 2.5000001)]
        for a, b in pairs:
            assert rel_epsilon_equal(a, b) == rel_epsilon_equal(b, a)


class TestRelFactor:
    def test_equal_is_zero(self):
        assert rel_factor(2.0, 2.0) == 0.0

    def test_relative_to_larger(self):
        assert rel_factor(1.0, 0.0) == 1.0
        assert rel_factor(2.0, 4.0) == 0.5


class TestValueCount:
    def test_counts_distinct(self):
        assert value_count(np.array([1.0, 1.0, 2.0, 2.0, 3.0])) == 3

    def test_near_duplicates_merge(self):
        x = _ulps_above(1.0, 1)
        assert value_count(np.array([1.0, x, 2.0])) == 2

    def test_empty(self):
        assert value_count(np.array([])) == 0

    def test_tolerance_arguments(self):
        data = np.array([100.0, 100.001, 100.002, 200.0])
        assert value_count(data) == 4
        assert value_count(data, rel_tol=0.01) == 2
