"""Tests for curve construction, the quadratic fit and budget to target."""

import math

import pytest

from core.curve import (
    PALETTE,
    active_baseline,
    axis_width,
    baseline_intensity,
    budget_to_target,
    build_segments,
    fit_curve,
    macc_points,
    segments_frame,
    target_x,
    y_domain,
)
from core.measures import rank_measures
from core.params import ALL_SECTORS, Baseline, Measure


def _ranked():
    ms = [
        Measure(id=1, name="A", sector="Steel", abatement_tco2=100, cost_per_tco2=50),
        Measure(id=2, name="B", sector="Steel", abatement_tco2=200, cost_per_tco2=-10),
        Measure(id=3, name="C", sector="Steel", abatement_tco2=0, cost_per_tco2=-100),
        Measure(id=4, name="D", sector="Power", abatement_tco2=50, cost_per_tco2=20),
    ]
    return rank_measures(ms, 0.0)


def test_segments_are_contiguous():
    curve = build_segments(_ranked())
    assert [s.name for s in curve.segments] == ["B", "D", "A"]
    assert curve.segments[0].x1 == 0
    for prev, nxt in zip(curve.segments, curve.segments[1:]):
        assert nxt.x1 == prev.x2
        assert nxt.cost >= prev.cost
    assert curve.total == 350
    # colour follows the rank position, skipped measures included
    assert curve.segments[0].color == PALETTE[1]


def test_segments_intensity_mode():
    curve = build_segments(_ranked(), "intensity", 1000)
    assert [s.x2 for s in curve.segments] == pytest.approx([20.0, 25.0, 35.0])
    assert curve.total == pytest.approx(35.0)
    assert build_segments(_ranked(), "intensity", 0).total == 0


def test_empty_curve():
    curve = build_segments([])
    assert curve.segments == [] and curve.total == 0
    assert y_domain(curve.segments) == (0.0, 1.0)
    assert axis_width("capacity", 0) == 1.0
    assert axis_width("intensity", 35) == 100.0


def test_segments_frame():
    df = segments_frame(build_segments(_ranked()))
    assert list(df["width"]) == [200, 50, 100]


def test_points_and_fit():
    points = macc_points(_ranked())
    assert [p.cum_abatement for p in points] == [0, 200, 250, 350]
    fit = fit_curve(points)
    assert fit is not None and len(fit.fitted) == 4
    assert fit_curve(points[:2]) is None
    # dropping negative costs leaves two points
    assert fit_curve(points, positive_costs_only=True) is None


def test_budget_to_target_capacity():
    points = macc_points(_ranked())
    res = budget_to_target(points, "capacity", 1000, 30)
    assert math.isclose(res.target_reached, 300)
    # B 200 t at -10, D 50 t at 20, A 50 t at 50
    assert math.isclose(res.budget, -2000 + 1000 + 2500)


def test_budget_capped_by_potential():
    points = macc_points(_ranked())
    res = budget_to_target(points, "capacity", 1000, 90)
    assert math.isclose(res.target_reached, 350)
    assert budget_to_target([], "capacity", 1000, 10).budget == 0


def test_budget_to_target_intensity_uses_raw_percent():
    points = macc_points(_ranked(), "intensity", 1000)
    res = budget_to_target(points, "intensity", 1000, 30)
    assert math.isclose(res.target_reached, 3.0)
    assert math.isclose(res.budget, -300)


def test_target_position():
    assert target_x("capacity", 1000, 30) == 300
    assert target_x("intensity", 1000, 30) == 30
    assert target_x("capacity", 0, 30) == 0


def test_baselines():
    baselines = {
        "Steel": Baseline(production_label="t", annual_production=100, annual_emissions=250),
        "Power": Baseline(production_label="MWh", annual_production=400, annual_emissions=300),
        "Firm – Acme": Baseline(annual_production=1, annual_emissions=999),
    }
    total = active_baseline(baselines, ALL_SECTORS)
    assert total.annual_emissions == 550
    assert total.production_label == "t"
    assert active_baseline(baselines, "Cement") == Baseline()
    assert math.isclose(baseline_intensity(baselines["Steel"]), 2.5)
    assert baseline_intensity(Baseline(annual_production=0)) == 0
