# MIT License
"""Data models for the MACC builder.

All data models are defined using [`pydantic.BaseModel`](https://docs.pydantic.dev/)
to provide type checking, validation and JSON serialisation.  They fall
into four groups:

* configuration (:class:`ModelConfig`) supplied by the hosting firm,
* catalog rows (:class:`CatalogRow`, :class:`ElectricityCatalogRow`),
* the editable measure *draft* (:class:`MeasureDraft` and its lines),
* the frozen saved record (:class:`Measure`) and the engine output
  (:class:`MeasureComputation`).

Numeric series typed by users keep blanks as ``None`` so that "not yet
entered" stays distinct from zero.  Monetary values in a
:class:`CostStack` are in the large currency unit (e.g. ₹ crore); the
conversion factor lives in :attr:`ModelConfig.unit_scale`.
"""
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic import field_validator

from .utils import blank_to_none, is_blank, to_float

logger = logging.getLogger(__name__)

DEFAULT_YEARS = [2025, 2030, 2035, 2040, 2045, 2050]
TEMPLATE_MODE = "template_db_multiline"
ALL_SECTORS = "All sectors"

CatalogMode = Literal["sample", "custom", "merged"]
CurveMode = Literal["capacity", "intensity"]


class ModelConfig(BaseModel):
    """Firm-level configuration consumed by the engine and the curve.

    The year grid, base year and currency unit are inputs rather than
    engine constants; the defaults reproduce the 2025–2050 five-year grid
    with ₹ crore as the stack unit.
    """

    years: List[int] = Field(
        default_factory=lambda: list(DEFAULT_YEARS),
        description="Ordered modelled years (strictly increasing)."
    )
    base_year: int = Field(
        2025,
        ge=1900,
        le=2200,
        description="Base year for drift compounding and discounting."
    )
    unit_scale: float = Field(
        10_000_000.0,
        gt=0.0,
        description="Base-currency units per stack unit (₹ per ₹ crore)."
    )
    currency: str = Field("₹", description="Display currency symbol.")
    discount_rate: float = Field(
        0.10,
        ge=-0.9,
        le=3.0,
        description="Default discount rate for new drafts (fraction)."
    )
    carbon_price: float = Field(
        0.0,
        description="Current carbon price (currency per tCO₂)."
    )
    default_grid_price_per_mwh: float = Field(
        500.0,
        ge=0.0,
        description="Electricity price used when the grid catalog is empty."
    )
    default_grid_ef_per_mwh: float = Field(
        0.710,
        description="Grid emission factor (tCO₂/MWh) used when the grid catalog is empty."
    )
    fallback_year: int = Field(
        2035,
        description="Representative year when no year has positive abatement."
    )

    @field_validator("years")
    def years_increasing(cls, v):
        if not v:
            raise ValueError("years must not be empty")
        if any(b <= a for a, b in zip(v, v[1:])):
            raise ValueError("years must be strictly increasing")
        return v


def load_config(path: Union[str, Path]) -> ModelConfig:
    """Load a :class:`ModelConfig` from a JSON file.

    If the file does not exist or is malformed, returns the default
    configuration.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return ModelConfig.model_validate(data)
    except (OSError, ValueError) as exc:
        logger.warning("Falling back to default config (%s): %s", path, exc)
        return ModelConfig()


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------

class CatalogRow(BaseModel):
    """One fuel, raw material, transport mode or waste stream."""

    name: str = ""
    unit: str = ""
    price_per_unit: float = Field(0.0, description="Price per physical unit (base currency).")
    emission_factor_per_unit: float = Field(0.0, description="tCO₂ per physical unit.")


class ElectricityCatalogRow(BaseModel):
    """Grid electricity for one state or region."""

    state: str = ""
    price_per_mwh: float = Field(500.0, description="Price per MWh (base currency).")
    emission_factor_per_mwh: float = Field(0.710, description="tCO₂ per MWh.")


class Catalogs(BaseModel):
    """The five lookup tables consulted by the engine."""

    fuels: List[CatalogRow] = Field(default_factory=list)
    raw: List[CatalogRow] = Field(default_factory=list)
    transport: List[CatalogRow] = Field(default_factory=list)
    waste: List[CatalogRow] = Field(default_factory=list)
    electricity: List[ElectricityCatalogRow] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Draft (editable) measure
# ---------------------------------------------------------------------------

class DriverLine(BaseModel):
    """One fuel/raw/transport/waste entry of a measure.

    ``delta[i]`` is the signed change in physical quantity against
    business-as-usual in year ``i``; ``None`` means not entered.
    """

    id: int = 1
    name: str = ""
    price_override: Optional[float] = None
    ef_override: Optional[float] = None
    price_drift_pct_per_year: float = 0.0
    ef_drift_pct_per_year: float = 0.0
    delta: List[Optional[float]] = Field(default_factory=list)

    @field_validator("price_override", "ef_override", mode="before")
    @classmethod
    def _blank_override(cls, v):
        return None if is_blank(v) else to_float(v)

    @field_validator("price_drift_pct_per_year", "ef_drift_pct_per_year", mode="before")
    @classmethod
    def _drift(cls, v):
        return to_float(v)

    @field_validator("delta", mode="before")
    @classmethod
    def _series(cls, v):
        return blank_to_none(v)


class ElectricityLine(BaseModel):
    """Grid electricity change of a measure, keyed by state.

    ``ef_override_per_year[i]``, when present, replaces the drifted
    emission factor for year ``i`` outright.
    """

    id: int = 1
    state: str = ""
    price_override: Optional[float] = None
    ef_override: Optional[float] = None
    price_drift_pct_per_year: float = 0.0
    ef_drift_pct_per_year: float = 0.0
    ef_override_per_year: List[Optional[float]] = Field(default_factory=list)
    delta_mwh: List[Optional[float]] = Field(default_factory=list)

    @field_validator("price_override", "ef_override", mode="before")
    @classmethod
    def _blank_override(cls, v):
        return None if is_blank(v) else to_float(v)

    @field_validator("price_drift_pct_per_year", "ef_drift_pct_per_year", mode="before")
    @classmethod
    def _drift(cls, v):
        return to_float(v)

    @field_validator("ef_override_per_year", "delta_mwh", mode="before")
    @classmethod
    def _series(cls, v):
        return blank_to_none(v)


class CostStack(BaseModel):
    """Per-year cost series, monetary values in the large currency unit."""

    opex: List[Optional[float]] = Field(default_factory=list)
    savings: List[Optional[float]] = Field(default_factory=list)
    other_recurring: List[Optional[float]] = Field(default_factory=list)
    capex_upfront: List[Optional[float]] = Field(default_factory=list)
    capex_financed: List[Optional[float]] = Field(default_factory=list)
    financing_tenure_years: List[Optional[float]] = Field(default_factory=list)
    interest_rate_pct: List[Optional[float]] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _series(cls, v):
        return blank_to_none(v)

    @classmethod
    def default(cls, n_years: int) -> "CostStack":
        zeros = [0.0] * n_years
        return cls(
            opex=zeros, savings=zeros, other_recurring=zeros,
            capex_upfront=zeros, capex_financed=zeros,
            financing_tenure_years=[10.0] * n_years,
            interest_rate_pct=[7.0] * n_years,
        )


class Drivers(BaseModel):
    """All driver lines of a measure, grouped by category."""

    fuel_lines: List[DriverLine] = Field(default_factory=list)
    raw_lines: List[DriverLine] = Field(default_factory=list)
    transport_lines: List[DriverLine] = Field(default_factory=list)
    waste_lines: List[DriverLine] = Field(default_factory=list)
    electricity_lines: List[ElectricityLine] = Field(default_factory=list)
    other_direct_t: List[Optional[float]] = Field(default_factory=list)

    @field_validator("other_direct_t", mode="before")
    @classmethod
    def _series(cls, v):
        return blank_to_none(v)


class MeasureMeta(BaseModel):
    project_name: str = "Industrial Efficiency Project"
    sector: str = "Power"
    discount_rate: float = Field(0.10, ge=-0.9, le=3.0)
    project_life_years: int = Field(30, ge=1, le=100)


class MeasureDraft(BaseModel):
    """Editable state of a template measure.

    Lists are mutated in place while editing; :func:`core.measures.freeze`
    turns a draft into an immutable :class:`Measure`.
    """

    id: Optional[int] = None
    meta: MeasureMeta = Field(default_factory=MeasureMeta)
    adoption: List[Optional[float]] = Field(default_factory=list)
    drivers: Drivers = Field(default_factory=Drivers)
    stack: CostStack = Field(default_factory=CostStack)
    apply_carbon_price_in_save: bool = False

    @field_validator("adoption", mode="before")
    @classmethod
    def _series(cls, v):
        return blank_to_none(v)


class QuickDraft(BaseModel):
    """A measure entered directly as abatement and cost."""

    id: Optional[int] = None
    name: str = "New Measure"
    sector: str = "Power"
    abatement_tco2: float = 0.0
    cost_per_tco2: float = 0.0
    selected: bool = True


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------

class YearPieces(BaseModel):
    model_config = ConfigDict(frozen=True)

    fuel_t: float = 0.0
    raw_t: float = 0.0
    transport_t: float = 0.0
    waste_t: float = 0.0
    electricity_t: float = 0.0
    other_t: float = 0.0
    driver_cost: float = 0.0
    opex: float = 0.0
    other_recurring: float = 0.0
    savings: float = 0.0
    financed_annual: float = 0.0
    capex_upfront: float = 0.0


class YearResult(BaseModel):
    """Engine output for one modelled year.

    ``net_cost`` is in the large currency unit; cashflows and implied
    costs per ton are in base-currency units.
    """

    model_config = ConfigDict(frozen=True)

    year: int
    direct_t: float = 0.0
    net_cost: float = 0.0
    implied_cost_per_t_wo_cp: float = 0.0
    implied_cost_per_t_w_cp: float = 0.0
    cashflow_wo_cp: float = 0.0
    cashflow_w_cp: float = 0.0
    pieces: YearPieces = Field(default_factory=YearPieces)


class FinanceSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    npv_wo_cp: float = 0.0
    npv_w_cp: float = 0.0
    irr_wo_cp: Optional[float] = None
    irr_w_cp: Optional[float] = None
    avg_cost_wo_cp: float = 0.0
    avg_cost_w_cp: float = 0.0
    sum_direct_t: float = 0.0


class MeasureComputation(BaseModel):
    years: List[int]
    base_year: int
    per_year: List[YearResult]
    representative_index: int
    finance: FinanceSummary

    @property
    def representative(self) -> YearResult:
        if 0 <= self.representative_index < len(self.per_year):
            return self.per_year[self.representative_index]
        return YearResult(year=self.base_year)


# ---------------------------------------------------------------------------
# Saved (frozen) measure
# ---------------------------------------------------------------------------

Series = Tuple[Optional[float], ...]


class SavedMeta(MeasureMeta):
    model_config = ConfigDict(frozen=True)


class SavedDriverLine(DriverLine):
    """Read-only copy of a :class:`DriverLine` inside a saved measure."""

    model_config = ConfigDict(frozen=True)

    delta: Series = ()


class SavedElectricityLine(ElectricityLine):
    model_config = ConfigDict(frozen=True)

    ef_override_per_year: Series = ()
    delta_mwh: Series = ()


class SavedDrivers(Drivers):
    model_config = ConfigDict(frozen=True)

    fuel_lines: Tuple[SavedDriverLine, ...] = ()
    raw_lines: Tuple[SavedDriverLine, ...] = ()
    transport_lines: Tuple[SavedDriverLine, ...] = ()
    waste_lines: Tuple[SavedDriverLine, ...] = ()
    electricity_lines: Tuple[SavedElectricityLine, ...] = ()
    other_direct_t: Series = ()


class SavedCostStack(CostStack):
    model_config = ConfigDict(frozen=True)

    opex: Series = ()
    savings: Series = ()
    other_recurring: Series = ()
    capex_upfront: Series = ()
    capex_financed: Series = ()
    financing_tenure_years: Series = ()
    interest_rate_pct: Series = ()


class QuickDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["quick"] = "quick"


class TemplateDetails(BaseModel):
    """Everything needed to redisplay a template measure or re-open it.

    Nested models and series are frozen as well, so a saved record cannot
    be edited in place; :func:`core.measures.thaw` returns an editable copy.
    """

    model_config = ConfigDict(frozen=True)

    mode: Literal["template_db_multiline"] = TEMPLATE_MODE
    years: Tuple[int, ...]
    meta: SavedMeta
    adoption: Series = ()
    drivers: SavedDrivers
    stack: SavedCostStack
    per_year: Tuple[YearResult, ...]
    representative_index: int
    finance_summary: FinanceSummary
    saved_cost_includes_carbon_price: bool = False
    carbon_price_at_save: float = 0.0


class Measure(BaseModel):
    """A saved abatement measure as consumed by ranking and the curve."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str = "Measure"
    sector: str = "Power"
    abatement_tco2: float = 0.0
    cost_per_tco2: float = 0.0
    selected: bool = True
    details: Union[TemplateDetails, QuickDetails] = Field(default_factory=QuickDetails)

    @field_validator("details", mode="before")
    @classmethod
    def _details(cls, v):
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                v = None
        if not isinstance(v, (dict, QuickDetails, TemplateDetails)):
            return QuickDetails()
        if isinstance(v, dict) and v.get("mode") != TEMPLATE_MODE:
            return QuickDetails()
        return v

    @property
    def is_template(self) -> bool:
        return isinstance(self.details, TemplateDetails)


class Baseline(BaseModel):
    production_label: str = "units"
    annual_production: float = Field(1.0, ge=0.0)
    annual_emissions: float = Field(1.0, ge=0.0)


def load_baselines(path: Union[str, Path]) -> Dict[str, Baseline]:
    """Load sector baselines (sector -> :class:`Baseline`) from JSON.

    A missing or malformed file yields no baselines.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {str(k): Baseline.model_validate(v) for k, v in (data or {}).items()}
    except (OSError, ValueError, AttributeError) as exc:
        logger.warning("No sector baselines loaded from %s: %s", path, exc)
        return {}


class RankedMeasure(BaseModel):
    """A measure paired with its cost at the current carbon price."""

    measure: Measure
    effective_cost: float


class Segment(BaseModel):
    id: Optional[int] = None
    name: str
    sector: str
    x1: float
    x2: float
    cost: float
    abatement: float
    color: str


class CurveResult(BaseModel):
    segments: List[Segment] = Field(default_factory=list)
    total: float = 0.0


class CurvePoint(BaseModel):
    id: Optional[int] = None
    name: str
    sector: str
    abatement: float
    cost: float
    cum_abatement: float
    x: float


class QuadFit(BaseModel):
    a: float = 0.0
    b: float = 0.0
    c: float = 0.0
    r2: Optional[float] = None
    fitted: List[Dict[str, float]] = Field(default_factory=list)


class BudgetResult(BaseModel):
    target_reached: float = 0.0
    budget: float = 0.0
