# MIT License
"""Measure lifecycle, cost normalisation and ranking.

A measure is edited as a mutable :class:`~core.params.MeasureDraft` and
saved as an immutable :class:`~core.params.Measure`.  :func:`freeze` is
the save step and :func:`thaw` re-opens a saved measure for editing.

Saved costs may already embed the carbon price that applied when the
measure was saved.  :func:`effective_cost` restates every measure at the
current carbon price so that measures saved at different times rank
consistently on the curve.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .catalogs import first_key
from .engine import compute_measure
from .params import (
    ALL_SECTORS,
    Catalogs,
    CostStack,
    Drivers,
    DriverLine,
    ElectricityLine,
    Measure,
    MeasureComputation,
    MeasureDraft,
    MeasureMeta,
    ModelConfig,
    QuickDetails,
    QuickDraft,
    RankedMeasure,
    TemplateDetails,
)
from .utils import to_float

logger = logging.getLogger(__name__)

LINE_CATEGORIES = {
    "fuel_lines": "fuels",
    "raw_lines": "raw",
    "transport_lines": "transport",
    "waste_lines": "waste",
    "electricity_lines": "electricity",
}

COLUMN_ALIASES = {
    "name": ("name", "Measure", "intervention"),
    "sector": ("sector", "Sector"),
    "abatement_tco2": ("abatement_tco2", "abatement", "Abatement"),
    "cost_per_tco2": ("cost_per_tco2", "cost", "Cost"),
}


# ---------------------------------------------------------------------------
# Draft lifecycle
# ---------------------------------------------------------------------------

def _blank_line(category: str, key: str, n_years: int, line_id: int = 1) -> Union[DriverLine, ElectricityLine]:
    if category == "electricity_lines":
        return ElectricityLine(
            id=line_id, state=key,
            ef_override_per_year=[None] * n_years, delta_mwh=[0.0] * n_years,
        )
    return DriverLine(id=line_id, name=key, delta=[0.0] * n_years)


def new_draft(config: ModelConfig, catalogs: Catalogs, sector: str = "Power") -> MeasureDraft:
    """Open a fresh template draft.

    One line per category is keyed on the first catalog row; adoption
    ramps by 0.2 per year from 0 in the base year.
    """
    n = len(config.years)
    drivers = Drivers(
        **{attr: [_blank_line(attr, first_key(catalogs, cat), n)] for attr, cat in LINE_CATEGORIES.items()},
        other_direct_t=[0.0] * n,
    )
    return MeasureDraft(
        meta=MeasureMeta(sector=sector, discount_rate=config.discount_rate),
        adoption=[0.0 if i == 0 else 0.2 * i for i in range(n)],
        drivers=drivers,
        stack=CostStack.default(n),
    )


def add_line(draft: MeasureDraft, category: str, catalogs: Catalogs, n_years: int) -> Union[DriverLine, ElectricityLine]:
    lines = getattr(draft.drivers, category)
    next_id = max([0] + [ln.id for ln in lines]) + 1
    line = _blank_line(category, first_key(catalogs, LINE_CATEGORIES[category]), n_years, next_id)
    lines.append(line)
    return line


def remove_line(draft: MeasureDraft, category: str, line_id: int) -> None:
    lines = getattr(draft.drivers, category)
    lines[:] = [ln for ln in lines if ln.id != line_id]


def update_line(draft: MeasureDraft, category: str, line_id: int, **patch: Any) -> None:
    """Apply a partial update to one line; unknown ids are ignored."""
    lines = getattr(draft.drivers, category)
    for i, ln in enumerate(lines):
        if ln.id == line_id:
            lines[i] = ln.model_validate({**ln.model_dump(), **patch})


def compute_draft(draft: MeasureDraft, catalogs: Catalogs, config: ModelConfig,
                  carbon_price: Optional[float] = None) -> MeasureComputation:
    """Run the engine on a draft (live recompute while editing)."""
    cp = config.carbon_price if carbon_price is None else carbon_price
    return compute_measure(
        draft.drivers, draft.adoption, draft.stack,
        draft.meta.discount_rate, cp, catalogs, config,
    )


def freeze(draft: MeasureDraft, catalogs: Catalogs, config: ModelConfig,
           carbon_price: Optional[float] = None, measure_id: Optional[int] = None) -> Measure:
    """Save a template draft as an immutable :class:`Measure`.

    The headline abatement and cost are those of the representative year.
    The cost includes the carbon price when the draft asks for it, and the
    carbon price in force is recorded so the cost can be restated later.
    """
    cp = config.carbon_price if carbon_price is None else to_float(carbon_price)
    computation = compute_draft(draft, catalogs, config, cp)
    rep = computation.representative
    abatement = max(0.0, rep.direct_t)
    cost = rep.implied_cost_per_t_w_cp if draft.apply_carbon_price_in_save else rep.implied_cost_per_t_wo_cp
    if abatement <= 0:
        logger.warning(
            "Measure %r has 0 tCO2 abatement in the representative year; "
            "it will not appear on the curve until abatement > 0",
            draft.meta.project_name,
        )
    snapshot = draft.model_dump()
    return Measure(
        id=measure_id if measure_id is not None else draft.id,
        name=draft.meta.project_name,
        sector=draft.meta.sector,
        abatement_tco2=abatement,
        cost_per_tco2=cost,
        selected=True,
        details=TemplateDetails(
            years=computation.years,
            meta=snapshot["meta"],
            adoption=snapshot["adoption"],
            drivers=snapshot["drivers"],
            stack=snapshot["stack"],
            per_year=computation.per_year,
            representative_index=computation.representative_index,
            finance_summary=computation.finance,
            saved_cost_includes_carbon_price=draft.apply_carbon_price_in_save,
            carbon_price_at_save=cp,
        ),
    )


def freeze_quick(q: QuickDraft) -> Measure:
    return Measure(
        id=q.id,
        name=q.name,
        sector=q.sector,
        abatement_tco2=to_float(q.abatement_tco2),
        cost_per_tco2=to_float(q.cost_per_tco2),
        selected=bool(q.selected),
        details=QuickDetails(),
    )


def _pad(series: Sequence[Any], n: int, fill: Any) -> List[Any]:
    out = list(series or [])[:n]
    return out + [fill] * (n - len(out))


def thaw(measure: Measure, config: ModelConfig, catalogs: Catalogs) -> Union[MeasureDraft, QuickDraft]:
    """Re-open a saved measure for editing.

    Template measures are rebuilt line by line (ids renumbered from 1,
    missing series defaulted); anything else opens as a quick draft.
    """
    d = measure.details
    if not isinstance(d, TemplateDetails):
        return QuickDraft(
            id=measure.id,
            name=measure.name or "Measure",
            sector=measure.sector or "Power",
            abatement_tco2=to_float(measure.abatement_tco2),
            cost_per_tco2=to_float(measure.cost_per_tco2),
            selected=measure.selected,
        )

    n = len(config.years)
    fresh = Drivers.model_validate(d.drivers.model_dump())
    for attr, cat in LINE_CATEGORIES.items():
        lines = getattr(fresh, attr)
        for i, ln in enumerate(lines, start=1):
            ln.id = i
            if attr == "electricity_lines":
                ln.state = ln.state or first_key(catalogs, cat)
                ln.delta_mwh = _pad(ln.delta_mwh, n, 0.0)
                ln.ef_override_per_year = _pad(ln.ef_override_per_year, n, None)
            else:
                ln.name = ln.name or first_key(catalogs, cat)
                ln.delta = _pad(ln.delta, n, 0.0)
    fresh.other_direct_t = _pad(fresh.other_direct_t, n, 0.0)
    return MeasureDraft(
        id=measure.id,
        meta=MeasureMeta.model_validate(d.meta.model_dump()),
        adoption=_pad(d.adoption, n, 0.0),
        drivers=fresh,
        stack=CostStack.model_validate(d.stack.model_dump()),
        apply_carbon_price_in_save=d.saved_cost_includes_carbon_price,
    )


# ---------------------------------------------------------------------------
# Measure collection
# ---------------------------------------------------------------------------

def next_id(measures: Sequence[Measure]) -> int:
    return max([0] + [m.id or 0 for m in measures]) + 1


def upsert_measure(measures: Sequence[Measure], measure: Measure) -> List[Measure]:
    """Replace the measure with the same id, or append it with a new id."""
    if measure.id is not None and any(m.id == measure.id for m in measures):
        return [measure if m.id == measure.id else m for m in measures]
    return list(measures) + [measure.model_copy(update={"id": next_id(measures)})]


def _selected(value: Any) -> bool:
    return str(True if value is None else value).lower() != "false"


def normalize_measures(rows: Iterable[Union[Mapping[str, Any], Measure]]) -> List[Measure]:
    """Coerce stored rows into measures.

    Missing ids default to the 1-based position, numbers are coerced and
    ``selected`` is false only when it reads "false".
    """
    out = []
    for i, r in enumerate(rows):
        if isinstance(r, Measure):
            r = r.model_dump()
        rid = to_float(r.get("id"), 0.0)
        out.append(Measure(
            id=int(rid) if rid else i + 1,
            name=str(r.get("name") or "Measure"),
            sector=str(r.get("sector") or "Power"),
            abatement_tco2=to_float(r.get("abatement_tco2")),
            cost_per_tco2=to_float(r.get("cost_per_tco2")),
            selected=_selected(r.get("selected")),
            details=r.get("details"),
        ))
    return out


def _aliased(row: Mapping[str, Any], field: str) -> Any:
    for col in COLUMN_ALIASES[field]:
        v = row.get(col)
        if v is not None and not (isinstance(v, float) and pd.isna(v)) and v != "":
            return v
    return None


def measures_from_frame(df: pd.DataFrame, existing: Sequence[Measure] = ()) -> List[Measure]:
    """Import a flat measure table, appending after ``existing`` ids."""
    base = next_id(existing)
    out = []
    for i, row in enumerate(df.to_dict(orient="records")):
        details = row.get("details")
        if isinstance(details, float) and pd.isna(details):
            details = None
        selected = row.get("selected")
        if isinstance(selected, float) and pd.isna(selected):
            selected = None
        out.append(Measure(
            id=base + i,
            name=str(_aliased(row, "name") or f"Row {i + 1}"),
            sector=str(_aliased(row, "sector") or "Power"),
            abatement_tco2=to_float(_aliased(row, "abatement_tco2")),
            cost_per_tco2=to_float(_aliased(row, "cost_per_tco2")),
            selected=_selected(selected),
            details=details,
        ))
    return out


def measures_to_frame(measures: Sequence[Measure]) -> pd.DataFrame:
    """Export measures as a flat table; ``details`` becomes embedded JSON."""
    rows = []
    for m in measures:
        row = m.model_dump(mode="json", exclude={"id"})
        row["details"] = json.dumps(row["details"])
        rows.append(row)
    cols = ["name", "sector", "abatement_tco2", "cost_per_tco2", "selected", "details"]
    return pd.DataFrame(rows, columns=cols)


# ---------------------------------------------------------------------------
# Cost normalisation and ranking
# ---------------------------------------------------------------------------

def effective_cost(measure: Measure, carbon_price: float) -> float:
    """Cost per ton restated at the current carbon price.

    If the saved cost already included a carbon price, only the change in
    carbon price since saving is removed; otherwise the whole current
    price is.
    """
    base = to_float(measure.cost_per_tco2)
    cp_now = to_float(carbon_price)
    d = measure.details
    if isinstance(d, TemplateDetails) and d.saved_cost_includes_carbon_price:
        return base - (cp_now - to_float(d.carbon_price_at_save))
    return base - cp_now


def filter_measures(measures: Iterable[Measure], sector: str = ALL_SECTORS) -> List[Measure]:
    return [m for m in measures if m.selected and (sector == ALL_SECTORS or m.sector == sector)]


def rank_measures(measures: Iterable[Measure], carbon_price: float, sector: str = ALL_SECTORS) -> List[RankedMeasure]:
    """Selected measures in the sector, cheapest effective cost first.

    The sort is stable so ties keep their input order and re-ranking a
    ranked list changes nothing.
    """
    ranked = [RankedMeasure(measure=m, effective_cost=effective_cost(m, carbon_price))
              for m in filter_measures(measures, sector)]
    return sorted(ranked, key=lambda r: r.effective_cost or 0.0)


def curve_totals(filtered: Sequence[Measure], ranked: Sequence[RankedMeasure]) -> Dict[str, float]:
    """Headline totals shown above the curve."""
    total = sum(to_float(m.abatement_tco2) for m in filtered)
    avg = sum(to_float(m.cost_per_tco2) for m in filtered) / len(filtered) if filtered else 0.0
    negative = sum(to_float(r.measure.abatement_tco2) for r in ranked if r.effective_cost < 0)
    return {"total_abatement": total, "avg_cost": avg, "neg_cost_abatement": negative}
