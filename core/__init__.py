"""Core package for marginal abatement cost curve (MACC) modelling.

This package contains the deterministic pieces behind the MACC builder:
catalog resolution, numeric primitives (NPV, IRR, annuity, quadratic fit,
interpolation), the measure computation engine, cost normalisation and
ranking, and curve construction.

Each submodule exposes pure functions that accept typed pydantic models
and return models or pandas DataFrames.  The Streamlit pages only render
what these functions return.
"""

from .params import (
    ModelConfig,
    CatalogRow,
    ElectricityCatalogRow,
    Catalogs,
    DriverLine,
    ElectricityLine,
    CostStack,
    Drivers,
    MeasureDraft,
    QuickDraft,
    Measure,
    MeasureComputation,
    Baseline,
)
from .catalogs import resolve, load_catalog_dir
from .economics import npv, irr, annuity_factor, quadratic_fit, interpolate_series
from .engine import compute_measure, per_year_frame
from .measures import new_draft, freeze, thaw, effective_cost, rank_measures
from .curve import build_segments, budget_to_target

__all__ = [
    "ModelConfig",
    "CatalogRow",
    "ElectricityCatalogRow",
    "Catalogs",
    "DriverLine",
    "ElectricityLine",
    "CostStack",
    "Drivers",
    "MeasureDraft",
    "QuickDraft",
    "Measure",
    "MeasureComputation",
    "Baseline",
    "resolve",
    "load_catalog_dir",
    "npv",
    "irr",
    "annuity_factor",
    "quadratic_fit",
    "interpolate_series",
    "compute_measure",
    "per_year_frame",
    "new_draft",
    "freeze",
    "thaw",
    "effective_cost",
    "rank_measures",
    "build_segments",
    "budget_to_target",
]
