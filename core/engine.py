# MIT License
"""Measure computation engine.

Turns one measure's driver lines, adoption ramp, other direct reductions
and cost stack into a per-year series of abatement, net cost and
cashflows, then picks the representative year and summarises the
finance (NPV, IRR, lifetime average cost per ton).

Fuel, raw material, transport and waste lines share a single evaluation
path.  Electricity lines go through the same path with one extra
capability: a per-year emission factor override that replaces the drifted
factor for that year.

Sign convention: each driver term is ``quantity × EF`` and the year's
``direct_t`` is the plain sum of the driver terms and the other direct
reduction.  Downstream consumers (representative year, curve filtering on
positive abatement) rely on this exact arithmetic.

The engine is pure: identical inputs give bit-identical output and no
input makes it raise.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .catalogs import lookup_elec_row, lookup_row
from .economics import annuity_factor, irr, npv
from .params import (
    CatalogRow,
    Catalogs,
    CostStack,
    Drivers,
    DriverLine,
    ElectricityCatalogRow,
    ElectricityLine,
    FinanceSummary,
    MeasureComputation,
    ModelConfig,
    YearPieces,
    YearResult,
)
from .utils import clamp, compound, is_blank, series_value, to_float, to_large_unit

logger = logging.getLogger(__name__)

# piece name, Drivers attribute, Catalogs attribute
DRIVER_CATEGORIES = (
    ("fuel_t", "fuel_lines", "fuels"),
    ("raw_t", "raw_lines", "raw"),
    ("transport_t", "transport_lines", "transport"),
    ("waste_t", "waste_lines", "waste"),
)


@dataclass(frozen=True)
class LineTerms:
    """Resolved inputs of one line, independent of the year."""

    base_price: float
    base_ef: float
    price_drift: float
    ef_drift: float
    quantity: Sequence[Optional[float]]
    ef_override_per_year: Sequence[Optional[float]] = ()


def driver_terms(line: DriverLine, rows: Sequence[CatalogRow]) -> LineTerms:
    row = lookup_row(rows, line.name)
    if row is None and (line.price_override is None or line.ef_override is None):
        logger.warning("Catalog has no row %r; missing price/EF read as 0", line.name)
    price = line.price_override if line.price_override is not None else (row.price_per_unit if row else 0.0)
    ef = line.ef_override if line.ef_override is not None else (row.emission_factor_per_unit if row else 0.0)
    return LineTerms(
        base_price=to_float(price),
        base_ef=to_float(ef),
        price_drift=to_float(line.price_drift_pct_per_year) / 100.0,
        ef_drift=to_float(line.ef_drift_pct_per_year) / 100.0,
        quantity=line.delta,
    )


def electricity_terms(
    line: ElectricityLine, rows: Sequence[ElectricityCatalogRow], config: ModelConfig
) -> LineTerms:
    row = lookup_elec_row(rows, line.state)
    if row is not None:
        price, ef = row.price_per_mwh, row.emission_factor_per_mwh
    else:
        price, ef = config.default_grid_price_per_mwh, config.default_grid_ef_per_mwh
    if line.price_override is not None:
        price = line.price_override
    if line.ef_override is not None:
        ef = line.ef_override
    return LineTerms(
        base_price=to_float(price),
        base_ef=to_float(ef),
        price_drift=to_float(line.price_drift_pct_per_year) / 100.0,
        ef_drift=to_float(line.ef_drift_pct_per_year) / 100.0,
        quantity=line.delta_mwh,
        ef_override_per_year=line.ef_override_per_year,
    )


def evaluate_line(terms: LineTerms, i: int, years_since_base: int, adoption: float) -> Tuple[float, float]:
    """Emission and cost contribution of one line in year ``i``.

    Returns
    -------
    tuple of float
        ``(tCO2, cost)`` where cost is in base-currency units.
    """
    price = terms.base_price * compound(terms.price_drift, years_since_base)
    override = terms.ef_override_per_year[i] if i < len(terms.ef_override_per_year) else None
    if not is_blank(override):
        ef = to_float(override)
    else:
        ef = terms.base_ef * compound(terms.ef_drift, years_since_base)
    qty = adoption * series_value(list(terms.quantity), i)
    return to_float(qty * ef), to_float(qty * price)


def representative_index(per_year: Sequence[YearResult], years: Sequence[int], fallback_year: int = 2035) -> int:
    """First year with positive abatement, else ``fallback_year``, else the middle."""
    for i, y in enumerate(per_year):
        if y.direct_t > 0:
            return i
    if fallback_year in years:
        return list(years).index(fallback_year)
    return len(years) // 2


def finance_summary(
    per_year: Sequence[YearResult],
    years: Sequence[int],
    base_year: int,
    discount_rate: float,
    carbon_price: float,
    unit_scale: float,
) -> FinanceSummary:
    """NPV/IRR of both cashflow series and lifetime average cost per ton."""
    flows_wo = [y.cashflow_wo_cp for y in per_year]
    flows_w = [y.cashflow_w_cp for y in per_year]
    r = to_float(discount_rate)

    sum_direct = sum(max(0.0, y.direct_t) for y in per_year)
    sum_cost_wo = sum(y.net_cost * unit_scale for y in per_year)
    sum_cost_w = sum(y.net_cost * unit_scale - carbon_price * y.direct_t for y in per_year)

    irr_wo = irr(flows_wo, years, base_year)
    irr_w = irr(flows_w, years, base_year)
    if irr_wo is None:
        logger.debug("IRR without carbon price not bracketed in [-0.9, 3.0]")
    return FinanceSummary(
        npv_wo_cp=to_float(npv(r, flows_wo, years, base_year)),
        npv_w_cp=to_float(npv(r, flows_w, years, base_year)),
        irr_wo_cp=irr_wo,
        irr_w_cp=irr_w,
        avg_cost_wo_cp=to_float(sum_cost_wo / sum_direct) if sum_direct > 0 else 0.0,
        avg_cost_w_cp=to_float(sum_cost_w / sum_direct) if sum_direct > 0 else 0.0,
        sum_direct_t=to_float(sum_direct),
    )


def compute_measure(
    drivers: Drivers,
    adoption: Sequence[Optional[float]],
    stack: CostStack,
    discount_rate: float,
    carbon_price: float,
    catalogs: Catalogs,
    config: Optional[ModelConfig] = None,
) -> MeasureComputation:
    """Compute the per-year series and finance summary of a measure.

    Parameters
    ----------
    drivers:
        Driver lines per category plus the other direct reduction series
        (tCO₂, positive = less emissions).
    adoption:
        Fraction of full potential per year; clamped to [0, 1].
    stack:
        Cost stack in the large currency unit.
    discount_rate:
        Discount rate for NPV (fraction).
    carbon_price:
        Current carbon price per tCO₂ in base currency.
    catalogs:
        Resolved catalogs supplying base prices and emission factors.
    config:
        Year grid, base year and currency unit scale.

    Returns
    -------
    MeasureComputation
        Per-year results, representative index and finance summary.
    """
    config = config or ModelConfig()
    years = list(config.years)
    base_year = config.base_year
    scale = config.unit_scale
    cp = to_float(carbon_price)

    categories = [
        (piece, [driver_terms(ln, getattr(catalogs, cat)) for ln in getattr(drivers, attr)])
        for piece, attr, cat in DRIVER_CATEGORIES
    ]
    categories.append(
        ("electricity_t", [electricity_terms(ln, catalogs.electricity, config) for ln in drivers.electricity_lines])
    )

    per_year: List[YearResult] = []
    for i, year in enumerate(years):
        a = clamp(series_value(list(adoption), i), 0.0, 1.0)
        since_base = max(0, year - base_year)

        tons = {}
        driver_cost = 0.0
        for piece, lines in categories:
            total_t = 0.0
            for terms in lines:
                t, cost = evaluate_line(terms, i, since_base, a)
                total_t += t
                driver_cost += cost
            tons[piece] = total_t
        other_t = to_float(a * series_value(drivers.other_direct_t, i))
        direct_t = (
            tons["fuel_t"] + tons["raw_t"] + tons["transport_t"]
            + tons["waste_t"] + tons["electricity_t"] + other_t
        )
        driver_cr = to_float(to_large_unit(driver_cost, scale))

        opex = series_value(stack.opex, i)
        savings = series_value(stack.savings, i)
        other_recurring = series_value(stack.other_recurring, i)
        capex_upfront = series_value(stack.capex_upfront, i)
        capex_financed = series_value(stack.capex_financed, i)
        rate = series_value(stack.interest_rate_pct, i) / 100.0
        tenure = series_value(stack.financing_tenure_years, i)
        financed_annual = (
            capex_financed * annuity_factor(rate, tenure)
            if capex_financed > 0 and rate > 0 and tenure > 0 else 0.0
        )

        net_cost = (driver_cr + opex + other_recurring - savings) + financed_annual
        cash_wo = (savings - opex - driver_cr - other_recurring - financed_annual - capex_upfront) * scale
        cash_w = cash_wo + cp * direct_t
        implied_wo = (net_cost * scale) / direct_t if direct_t > 0 else 0.0
        implied_w = ((net_cost * scale) - cp * direct_t) / direct_t if direct_t > 0 else 0.0

        per_year.append(YearResult(
            year=year,
            direct_t=to_float(direct_t),
            net_cost=to_float(net_cost),
            implied_cost_per_t_wo_cp=to_float(implied_wo),
            implied_cost_per_t_w_cp=to_float(implied_w),
            cashflow_wo_cp=to_float(cash_wo),
            cashflow_w_cp=to_float(cash_w),
            pieces=YearPieces(
                **tons, other_t=other_t, driver_cost=driver_cr, opex=opex,
                other_recurring=other_recurring, savings=savings,
                financed_annual=to_float(financed_annual), capex_upfront=capex_upfront,
            ),
        ))

    rep = representative_index(per_year, years, config.fallback_year)
    finance = finance_summary(per_year, years, base_year, discount_rate, cp, scale)
    logger.debug("Representative year %s (index %d); finance %s", years[rep] if years else None, rep, finance)
    return MeasureComputation(
        years=years, base_year=base_year, per_year=per_year,
        representative_index=rep, finance=finance,
    )


def per_year_frame(computation: MeasureComputation) -> pd.DataFrame:
    """Flatten the per-year results into a dataframe, one row per year.

    Pieces are prefixed with ``pieces.`` (e.g. ``pieces.fuel_t``).  A
    boolean ``representative`` column marks the headline year.
    """
    rows = [y.model_dump() for y in computation.per_year]
    df = pd.json_normalize(rows) if rows else pd.DataFrame(columns=["year", "direct_t", "net_cost"])
    df["representative"] = [i == computation.representative_index for i in range(len(df))]
    return df
