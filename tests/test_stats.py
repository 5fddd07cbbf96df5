# tests/test_stats.py

import math

import pytest

from mastery_core.stats import clamp01, online_mean_variance, percentile


def test_clamp01_bounds():
    assert clamp01(-0.5) == 0.0
    assert clamp01(0.25) == 0.25
    assert clamp01(3.0) == 1.0
    assert clamp01(float("nan")) == 0.0, "NaN không được lọt ra ngoài"


def test_percentile_interpolates():
    assert percentile([1, 2, 3, 4], 0.5) == pytest.approx(2.5)
    assert percentile([10, 20, 30], 0.5) == 20
    assert percentile([10, 20, 30], 0.25) == pytest.approx(15.0)


def test_percentile_empty_and_clamped_p():
    assert percentile([], 0.5) == 0
    assert percentile([1, 2, 3], 2.0) == 3
    assert percentile([1, 2, 3], -1.0) == 1


def test_online_mean_variance_matches_population_formula():
    mv = online_mean_variance([2, 4, 4, 4, 5, 5, 7, 9])
    assert mv.count == 8
    assert mv.mean == pytest.approx(5.0)
    assert mv.variance == pytest.approx(4.0)
    assert mv.stddev == pytest.approx(2.0)


def test_online_mean_variance_empty_defaults():
    mv = online_mean_variance([])
    assert mv.count == 0
    assert mv.mean == 0.0
    assert mv.stddev == 0.0


def test_online_mean_variance_single_pass_over_generator():
    mv = online_mean_variance(x for x in [1.0, 1.0, 1.0])
    assert mv.count == 3
    assert mv.variance == 0.0
    assert math.isfinite(mv.stddev)
