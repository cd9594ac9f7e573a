"""Unit tests for the numeric primitives.

These tests cover the quadratic least-squares fit and its degenerate
fallbacks, interior interpolation of user series, dated NPV, the
bracketed bisection IRR and the loan annuity factor.
"""

import math

import pytest

from core.economics import annuity_factor, interpolate_series, irr, npv, quadratic_fit


def test_quadratic_fit_exact():
    # y = 1 + x + x²
    coef = quadratic_fit([0, 1, 2, 3], [1, 3, 7, 13])
    assert coef["a"] == pytest.approx(1.0)
    assert coef["b"] == pytest.approx(1.0)
    assert coef["c"] == pytest.approx(1.0)
    assert coef["r2"] == pytest.approx(1.0)


def test_quadratic_fit_degenerate():
    assert quadratic_fit([1, 2], [3, 4]) == {"a": 0.0, "b": 0.0, "c": 0.0, "r2": None}
    # all x equal: singular normal equations
    assert quadratic_fit([2, 2, 2], [1, 5, 9]) == {"a": 0.0, "b": 0.0, "c": 0.0, "r2": None}


def test_quadratic_fit_flat_has_no_r2():
    coef = quadratic_fit([0, 1, 2, 3], [5, 5, 5, 5])
    assert coef["a"] == pytest.approx(5.0)
    assert abs(coef["b"]) < 1e-9 and abs(coef["c"]) < 1e-9
    assert coef["r2"] is None


def test_interpolate_series_fills_interior_only():
    assert interpolate_series([5, None, None, 20, None]) == [5.0, 10.0, 15.0, 20.0, None]
    assert interpolate_series([None, "", 4, "x", 8]) == [None, "", 4.0, 6.0, 8.0]
    assert interpolate_series([]) == []


def test_npv_discounts_from_base_year():
    years = [2025, 2030]
    assert math.isclose(npv(0.10, [-100, 161.051], years, 2025), 0.0, abs_tol=1e-9)
    # years before the base year are not compounded
    assert math.isclose(npv(0.10, [50], [2020], 2025), 50.0)
    assert math.isclose(npv(0.0, [10, 20, 30], [2025, 2030, 2035], 2025), 60.0)


def test_irr_bracketed():
    rate = irr([-100, 161.051], [2025, 2030], 2025)
    assert rate is not None
    assert rate == pytest.approx(0.10, abs=1e-6)


def test_irr_without_sign_change_is_none():
    assert irr([10, 20, 30], [2025, 2030, 2035], 2025) is None
    assert irr([-10, -20], [2025, 2030], 2025) is None


def test_annuity_factor():
    assert math.isclose(annuity_factor(0.0, 10), 0.1)
    expected = 0.07 * 1.07 ** 10 / (1.07 ** 10 - 1)
    assert math.isclose(annuity_factor(0.07, 10), expected)
    assert annuity_factor(0.07, 0) == 0.0
    assert annuity_factor(0.07, -5) == 0.0
    assert annuity_factor(float("nan"), 10) == 0.0


def test_quadratic_fit_downward_parabola():
    xs = [-1, 0, 1, 2, 4]
    ys = [2 + 3 * x - x * x for x in xs]
    coef = quadratic_fit(xs, ys)
    assert coef["a"] == pytest.approx(2.0)
    assert coef["b"] == pytest.approx(3.0)
    assert coef["c"] == pytest.approx(-1.0)
    assert coef["r2"] == pytest.approx(1.0)


def test_npv_survives_long_horizons():
    # 4 ** 575 overflows a float; that amount discounts to nothing
    value = npv(3.0, [-1, 1, 1], [2025, 2030, 2600], 2025)
    assert value == pytest.approx(-1 + 1 / 4 ** 5)
    assert irr([-1, 1, 1], [2025, 2030, 2600], 2025) is None
