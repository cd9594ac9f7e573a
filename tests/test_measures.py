"""Tests for the measure lifecycle and ranking.

Covers saving a draft (freeze), re-opening it (thaw), carbon price
normalisation of saved costs, stable ranking and the flat table
import/export used for CSV files.
"""

import math

import pandas as pd
import pytest
from pydantic import ValidationError

from core.measures import (
    add_line,
    compute_draft,
    curve_totals,
    effective_cost,
    filter_measures,
    freeze,
    freeze_quick,
    measures_from_frame,
    measures_to_frame,
    new_draft,
    normalize_measures,
    rank_measures,
    remove_line,
    thaw,
    update_line,
    upsert_measure,
)
from core.params import (
    ALL_SECTORS,
    Catalogs,
    CatalogRow,
    ElectricityCatalogRow,
    Measure,
    MeasureDraft,
    ModelConfig,
    QuickDetails,
    QuickDraft,
    TemplateDetails,
)

CONFIG = ModelConfig(years=[2025, 2030, 2035], base_year=2025)


def _catalogs() -> Catalogs:
    return Catalogs(
        fuels=[CatalogRow(name="Coal", unit="t", price_per_unit=7000, emission_factor_per_unit=2.0)],
        raw=[CatalogRow(name="Clinker", unit="t", price_per_unit=3500, emission_factor_per_unit=0.84)],
        electricity=[ElectricityCatalogRow(state="India", price_per_mwh=5000, emission_factor_per_mwh=0.7)],
    )


def _draft() -> MeasureDraft:
    draft = new_draft(CONFIG, _catalogs(), sector="Cement")
    draft.meta.project_name = "Coal to biomass"
    draft.drivers.fuel_lines[0].delta = [100.0, 100.0, 100.0]
    return draft


def _template(cost, cp_at_save, includes) -> Measure:
    m = freeze(_draft(), _catalogs(), CONFIG, carbon_price=cp_at_save)
    details = m.details.model_copy(update={
        "saved_cost_includes_carbon_price": includes, "carbon_price_at_save": cp_at_save,
    })
    return m.model_copy(update={"cost_per_tco2": cost, "details": details})


def test_new_draft_defaults():
    draft = new_draft(CONFIG, _catalogs())
    assert draft.adoption == [0.0, 0.2, 0.4]
    assert draft.drivers.fuel_lines[0].name == "Coal"
    assert draft.drivers.electricity_lines[0].state == "India"
    assert draft.drivers.waste_lines[0].name == ""
    assert draft.stack.interest_rate_pct == [7.0, 7.0, 7.0]


def test_line_editing():
    draft = new_draft(CONFIG, _catalogs())
    line = add_line(draft, "raw_lines", _catalogs(), 3)
    assert line.id == 2 and line.name == "Clinker"
    update_line(draft, "raw_lines", 2, delta=["1", "", 3], ef_override="")
    assert draft.drivers.raw_lines[1].delta == [1.0, None, 3.0]
    assert draft.drivers.raw_lines[1].ef_override is None
    remove_line(draft, "raw_lines", 1)
    assert [ln.id for ln in draft.drivers.raw_lines] == [2]


def test_freeze_uses_representative_year():
    draft = _draft()
    m = freeze(draft, _catalogs(), CONFIG)
    comp = compute_draft(draft, _catalogs(), CONFIG)
    rep = comp.representative
    assert m.is_template
    assert m.name == "Coal to biomass" and m.sector == "Cement"
    assert math.isclose(m.abatement_tco2, rep.direct_t)
    assert math.isclose(m.cost_per_tco2, rep.implied_cost_per_t_wo_cp)
    assert m.details.representative_index == comp.representative_index
    assert list(m.details.per_year) == comp.per_year


def test_freeze_with_carbon_price():
    draft = _draft()
    draft.apply_carbon_price_in_save = True
    m = freeze(draft, _catalogs(), CONFIG, carbon_price=1000)
    assert math.isclose(m.cost_per_tco2, 2500.0)
    assert m.details.saved_cost_includes_carbon_price
    assert m.details.carbon_price_at_save == 1000
    # restated at the same price nothing changes; at zero the price is added back
    assert math.isclose(effective_cost(m, 1000), 2500.0)
    assert math.isclose(effective_cost(m, 0), 3500.0)


def test_freeze_snapshot_is_independent():
    draft = _draft()
    m = freeze(draft, _catalogs(), CONFIG)
    draft.drivers.fuel_lines[0].delta[1] = 999
    assert m.details.drivers.fuel_lines[0].delta[1] == 100


def test_saved_measure_is_read_only():
    m = freeze(_draft(), _catalogs(), CONFIG)
    with pytest.raises(TypeError):
        m.details.drivers.fuel_lines[0].delta[1] = 999.0
    with pytest.raises(ValidationError):
        m.details.drivers.fuel_lines[0].name = "Gas"
    with pytest.raises(ValidationError):
        m.details.meta.project_name = "Renamed"
    with pytest.raises(TypeError):
        m.details.stack.opex[0] = 1.0
    assert m.details.drivers.fuel_lines[0].delta == (100.0, 100.0, 100.0)
    # a re-opened draft is editable again
    reopened = thaw(m, CONFIG, _catalogs())
    reopened.drivers.fuel_lines[0].delta[1] = 999.0
    assert m.details.drivers.fuel_lines[0].delta[1] == 100.0


def test_thaw_round_trip():
    draft = _draft()
    draft.id = 7
    m = freeze(draft, _catalogs(), CONFIG)
    reopened = thaw(m, CONFIG, _catalogs())
    assert isinstance(reopened, MeasureDraft)
    assert reopened.id == 7
    assert reopened.adoption == draft.adoption
    assert reopened.drivers.fuel_lines[0].delta == [100.0, 100.0, 100.0]
    again = freeze(reopened, _catalogs(), CONFIG)
    assert again.abatement_tco2 == m.abatement_tco2
    assert again.cost_per_tco2 == m.cost_per_tco2


def test_thaw_pads_short_series():
    m = freeze(_draft(), _catalogs(), CONFIG)
    longer = ModelConfig(years=[2025, 2030, 2035, 2040], base_year=2025)
    reopened = thaw(m, longer, _catalogs())
    assert reopened.adoption[-1] == 0.0
    assert reopened.drivers.electricity_lines[0].ef_override_per_year == [None] * 4


def test_quick_measures():
    q = QuickDraft(id=3, name="LED retrofit", sector="Power", abatement_tco2=50, cost_per_tco2=-200)
    m = freeze_quick(q)
    assert not m.is_template
    assert m.details == QuickDetails()
    back = thaw(m, CONFIG, _catalogs())
    assert isinstance(back, QuickDraft)
    assert back == q


def test_effective_cost_normalisation():
    m = _template(100, 500, True)
    assert math.isclose(effective_cost(m, 700), -100.0)
    m = _template(100, 500, False)
    assert math.isclose(effective_cost(m, 50), 50.0)
    quick = Measure(name="q", cost_per_tco2=100)
    assert math.isclose(effective_cost(quick, 50), 50.0)


def test_rank_is_stable_and_filters():
    ms = [
        Measure(id=1, name="a", sector="Steel", cost_per_tco2=10, abatement_tco2=1),
        Measure(id=2, name="b", sector="Power", cost_per_tco2=-5, abatement_tco2=1),
        Measure(id=3, name="c", sector="Steel", cost_per_tco2=10, abatement_tco2=1),
        Measure(id=4, name="d", sector="Steel", cost_per_tco2=-50, abatement_tco2=1, selected=False),
    ]
    ranked = rank_measures(ms, 0.0)
    assert [r.measure.id for r in ranked] == [2, 1, 3]
    again = rank_measures([r.measure for r in ranked], 0.0)
    assert [r.measure.id for r in again] == [2, 1, 3]
    assert [r.measure.id for r in rank_measures(ms, 0.0, "Steel")] == [1, 3]
    assert len(filter_measures(ms, ALL_SECTORS)) == 3


def test_curve_totals():
    ms = [
        Measure(id=1, cost_per_tco2=-10, abatement_tco2=100),
        Measure(id=2, cost_per_tco2=30, abatement_tco2=50),
    ]
    totals = curve_totals(ms, rank_measures(ms, 0.0))
    assert totals == {"total_abatement": 150.0, "avg_cost": 10.0, "neg_cost_abatement": 100.0}


def test_upsert_measure():
    ms = [Measure(id=1, name="a"), Measure(id=4, name="b")]
    ms = upsert_measure(ms, Measure(id=4, name="b2"))
    assert [m.name for m in ms] == ["a", "b2"]
    ms = upsert_measure(ms, Measure(name="c"))
    assert ms[-1].id == 5


def test_normalize_measures():
    ms = normalize_measures([
        {"name": "x", "abatement_tco2": "12", "cost_per_tco2": "abc", "selected": "false"},
        {"id": 9, "details": '{"mode": "quick"}'},
    ])
    assert ms[0].id == 1 and ms[0].abatement_tco2 == 12.0 and ms[0].cost_per_tco2 == 0.0
    assert ms[0].selected is False
    assert ms[1].id == 9 and ms[1].name == "Measure" and ms[1].selected is True


def test_frame_import_aliases():
    df = pd.DataFrame({
        "Measure": ["VFDs", "Solar"],
        "Sector": ["Power", None],
        "abatement": [120.0, 80.0],
        "cost": [-300.0, 150.0],
        "selected": [True, False],
    })
    ms = measures_from_frame(df, existing=[Measure(id=3)])
    assert [m.id for m in ms] == [4, 5]
    assert ms[0].name == "VFDs" and ms[1].sector == "Power"
    assert ms[0].abatement_tco2 == 120.0 and ms[0].cost_per_tco2 == -300.0
    assert ms[1].selected is False


def test_frame_export_keeps_template_details():
    m = freeze(_draft(), _catalogs(), CONFIG)
    df = measures_to_frame([m, Measure(name="quick one")])
    assert list(df.columns) == ["name", "sector", "abatement_tco2", "cost_per_tco2", "selected", "details"]
    back = measures_from_frame(df)
    assert isinstance(back[0].details, TemplateDetails)
    assert back[0].details == m.details
    assert isinstance(back[1].details, QuickDetails)
