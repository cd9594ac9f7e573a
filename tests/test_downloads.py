"""Tests for download helpers.

These tests ensure that saved measures and the configuration survive
JSON serialisation and that the measures CSV export is well-formed.
"""

import json

from core.measures import measures_to_frame
from core.params import Measure, ModelConfig, load_baselines, load_config


def test_config_json_roundtrip(tmp_path):
    cfg = ModelConfig(carbon_price=750, years=[2025, 2030])
    fp = tmp_path / "config.json"
    fp.write_text(cfg.model_dump_json(), encoding="utf-8")
    assert load_config(fp) == cfg


def test_bad_config_falls_back_to_defaults(tmp_path):
    fp = tmp_path / "config.json"
    fp.write_text(json.dumps({"years": [2030, 2025]}), encoding="utf-8")
    assert load_config(fp) == ModelConfig()
    assert load_config(tmp_path / "missing.json") == ModelConfig()


def test_measure_json_roundtrip():
    m = Measure(id=2, name="Heat pumps", sector="Cement", abatement_tco2=1200, cost_per_tco2=-35.5)
    data = json.loads(m.model_dump_json())
    assert data["details"] == {"mode": "quick"}
    assert Measure.model_validate_json(json.dumps(data)) == m


def test_measures_csv_export():
    df = measures_to_frame([Measure(name="x")])
    first_line = df.to_csv(index=False).splitlines()[0]
    assert "abatement_tco2" in first_line and "details" in first_line


def test_load_baselines(tmp_path):
    fp = tmp_path / "baselines.json"
    fp.write_text(json.dumps({"Steel": {"annual_production": 10, "annual_emissions": 25}}), encoding="utf-8")
    baselines = load_baselines(fp)
    assert baselines["Steel"].annual_emissions == 25
    assert load_baselines(tmp_path / "missing.json") == {}
