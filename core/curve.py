# MIT License
"""Marginal abatement cost curve construction.

Functions in this module walk ranked measures (cheapest effective cost
first) to build contiguous curve segments, the cumulative points used by
the quadratic fit, and the greedy budget needed to reach an abatement
target.  The x-axis is either absolute abatement in tCO₂ (``capacity``)
or abatement as a percentage of the baseline emissions (``intensity``).
"""
from __future__ import annotations

import logging
import math
from typing import List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .economics import quadratic_fit
from .params import (
    ALL_SECTORS,
    Baseline,
    BudgetResult,
    CurveMode,
    CurvePoint,
    CurveResult,
    QuadFit,
    RankedMeasure,
    Segment,
)
from .utils import to_float

logger = logging.getLogger(__name__)

FIRM_SECTOR_PREFIX = "Firm – "

PALETTE = [
    "#4e79a7", "#f28e2b", "#e15759", "#76b7b2", "#59a14f",
    "#edc949", "#af7aa1", "#ff9da7", "#9c755f", "#bab0ab",
    "#2f4b7c", "#ffa600", "#a05195", "#003f5c", "#d45087",
    "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
    "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf",
]


def _to_axis(tons: float, mode: CurveMode, baseline_emissions: float) -> float:
    if mode == "capacity":
        return tons
    return (tons / baseline_emissions) * 100.0 if baseline_emissions > 0 else 0.0


def is_firm_sector(label: str) -> bool:
    return isinstance(label, str) and label.startswith(FIRM_SECTOR_PREFIX)


def active_baseline(baselines: Mapping[str, Baseline], sector: str = ALL_SECTORS) -> Baseline:
    """Baseline of the selected sector.

    "All sectors" sums every sector baseline except firm-level entries;
    an unknown sector reads as one unit emitting one ton.
    """
    if sector == ALL_SECTORS:
        entries = [b for k, b in (baselines or {}).items() if not is_firm_sector(k)]
        return Baseline(
            production_label=entries[0].production_label if entries else "units",
            annual_production=sum(to_float(b.annual_production) for b in entries),
            annual_emissions=sum(to_float(b.annual_emissions) for b in entries),
        )
    return (baselines or {}).get(sector) or Baseline()


def baseline_intensity(baseline: Baseline) -> float:
    prod = to_float(baseline.annual_production)
    return to_float(baseline.annual_emissions) / prod if prod > 0 else 0.0


def build_segments(ranked: Sequence[RankedMeasure], mode: CurveMode = "capacity",
                   baseline_emissions: float = 0.0) -> CurveResult:
    """Build contiguous curve segments from ranked measures.

    Parameters
    ----------
    ranked:
        Measures in ascending effective cost.
    mode:
        ``"capacity"`` (tCO₂) or ``"intensity"`` (% of baseline).
    baseline_emissions:
        Annual baseline emissions for the intensity axis.

    Returns
    -------
    CurveResult
        Segments whose ``x1`` equals the previous ``x2``; measures with
        non-finite or non-positive abatement are skipped.  ``total`` is the
        last ``x2`` or 0.
    """
    denom = to_float(baseline_emissions)
    cum = 0.0
    segments: List[Segment] = []
    for idx, r in enumerate(ranked):
        m = r.measure
        a, c = m.abatement_tco2, r.effective_cost
        if not math.isfinite(a) or not math.isfinite(c) or a <= 0:
            logger.debug("Measure %r left off the curve (abatement %s)", m.name, a)
            continue
        x1, x2 = cum, cum + a
        cum = x2
        segments.append(Segment(
            id=m.id, name=m.name, sector=m.sector,
            x1=_to_axis(x1, mode, denom), x2=_to_axis(x2, mode, denom),
            cost=c, abatement=a, color=PALETTE[idx % len(PALETTE)],
        ))
    return CurveResult(segments=segments, total=segments[-1].x2 if segments else 0.0)


def macc_points(ranked: Sequence[RankedMeasure], mode: CurveMode = "capacity",
                baseline_emissions: float = 0.0) -> List[CurvePoint]:
    """Cumulative points, one per ranked measure (negative abatement adds 0)."""
    denom = to_float(baseline_emissions)
    cum = 0.0
    points = []
    for r in ranked:
        m = r.measure
        a = to_float(m.abatement_tco2)
        cum += max(0.0, a)
        points.append(CurvePoint(
            id=m.id, name=m.name, sector=m.sector, abatement=a,
            cost=to_float(r.effective_cost), cum_abatement=cum,
            x=_to_axis(cum, mode, denom),
        ))
    return points


def fit_curve(points: Sequence[CurvePoint], positive_costs_only: bool = False) -> Optional[QuadFit]:
    """Quadratic fit of cost against x, drawn across every point.

    Returns ``None`` when fewer than three points are available to fit.
    """
    data = [p for p in points if p.cost >= 0] if positive_costs_only else list(points)
    if len(data) < 3:
        return None
    coef = quadratic_fit([p.x for p in data], [p.cost for p in data])
    a, b, c = coef["a"], coef["b"], coef["c"]
    fitted = [{"x": p.x, "y": a + b * p.x + c * p.x * p.x} for p in points]
    return QuadFit(a=a, b=b, c=c, r2=coef["r2"], fitted=fitted)


def target_x(mode: CurveMode, baseline_emissions: float, target_pct: float) -> float:
    """Position of an intensity-percent target on the x-axis."""
    t = to_float(target_pct)
    if mode == "capacity":
        base = to_float(baseline_emissions)
        return base * (t / 100.0) if base > 0 else 0.0
    return t


def budget_to_target(points: Sequence[CurvePoint], mode: CurveMode, baseline_emissions: float,
                     target_pct: float) -> BudgetResult:
    """Greedy budget to reach a target, cheapest measures first.

    Each measure contributes up to the remaining need; the budget grows by
    tons taken times cost.  The reported value reached is capped at the
    maximum achievable computed from the same walk.
    """
    if not points:
        return BudgetResult()
    base = to_float(baseline_emissions)
    t = to_float(target_pct)
    # the target is compared against tons; in intensity mode it stays a raw percent
    goal = base * (t / 100.0) if mode == "capacity" else t
    cum = budget = reached = 0.0
    for p in points:
        take = min(max(0.0, goal - cum), p.abatement)
        if take > 0:
            budget += take * p.cost
            cum += take
            reached = cum if mode == "capacity" else (cum / base * 100.0 if base > 0 else 0.0)
    max_possible = cum if mode == "capacity" else (cum / base * 100.0 if base > 0 else 0.0)
    return BudgetResult(target_reached=min(reached, max_possible), budget=budget)


def axis_width(mode: CurveMode, total: float) -> float:
    if mode == "capacity":
        return total if total > 0 else 1.0
    return max(100.0, total or 1.0)


def y_domain(segments: Sequence[Segment]) -> Tuple[float, float]:
    if not segments:
        return 0.0, 1.0
    ys = [to_float(s.cost) for s in segments]
    lo, hi = min([0.0] + ys), max([0.0] + ys)
    return (lo - 1.0, hi + 1.0) if lo == hi else (lo, hi)


def segments_frame(curve: CurveResult) -> pd.DataFrame:
    """Segments as a dataframe (one row per measure) for tables and charts."""
    cols = ["id", "name", "sector", "x1", "x2", "cost", "abatement", "color"]
    df = pd.DataFrame([s.model_dump() for s in curve.segments], columns=cols)
    df["width"] = df["x2"] - df["x1"]
    return df
