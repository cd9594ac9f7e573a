# MIT License
"""Catalog resolution for the measure wizard.

A firm can work from the bundled sample catalogs, from its own custom
catalogs, or from both merged (custom rows override sample rows with the
same key).  This module normalises raw rows coming from files or editors,
resolves the active catalogs for a given source mode and provides the
tolerant lookups the engine uses to find base prices and emission
factors.
"""
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .params import CatalogMode, CatalogRow, Catalogs, ElectricityCatalogRow
from .utils import to_float

logger = logging.getLogger(__name__)

CATEGORIES = ("fuels", "raw", "transport", "waste")
CATALOG_FILES = {
    "fuels": "fuels.json",
    "raw": "raw.json",
    "transport": "transport.json",
    "waste": "waste.json",
    "electricity": "electricity.json",
}


def _first(row: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        v = row.get(k)
        if v is not None:
            return v
    return default


def normalize_row(row: Union[Mapping[str, Any], CatalogRow]) -> CatalogRow:
    """Build a :class:`CatalogRow` from a row using any of the known aliases."""
    if isinstance(row, CatalogRow):
        return row
    return CatalogRow(
        name=str(_first(row, "name", "fuel", "material", "transport", "item", default="")),
        unit=str(_first(row, "unit", default="")),
        price_per_unit=to_float(_first(row, "price_per_unit_inr", "price_per_unit", "price")),
        emission_factor_per_unit=to_float(_first(row, "ef_tco2_per_unit", "ef_t_per_unit", "ef_t", "emission_factor_per_unit")),
    )


def normalize_elec_row(row: Union[Mapping[str, Any], ElectricityCatalogRow]) -> ElectricityCatalogRow:
    """Build an :class:`ElectricityCatalogRow`; a missing EF reads as 0.710."""
    if isinstance(row, ElectricityCatalogRow):
        return row
    return ElectricityCatalogRow(
        state=str(_first(row, "state", "region", "grid", default="")),
        price_per_mwh=to_float(_first(row, "price_per_mwh_inr", "price_per_mwh", "price")),
        emission_factor_per_mwh=to_float(
            _first(row, "ef_tco2_per_mwh", "ef_t_per_mwh", "ef_t", "emission_factor_per_mwh"), 0.710
        ),
    )


def normalize_catalogs(raw: Union[Mapping[str, Sequence[Any]], Catalogs, None]) -> Catalogs:
    """Normalise a mapping of category -> rows into :class:`Catalogs`."""
    if isinstance(raw, Catalogs):
        return raw
    raw = raw or {}
    return Catalogs(
        fuels=[normalize_row(r) for r in raw.get("fuels") or []],
        raw=[normalize_row(r) for r in raw.get("raw") or []],
        transport=[normalize_row(r) for r in raw.get("transport") or []],
        waste=[normalize_row(r) for r in raw.get("waste") or []],
        electricity=[normalize_elec_row(r) for r in raw.get("electricity") or []],
    )


def load_catalog_dir(path: Union[str, Path]) -> Catalogs:
    """Read the five catalog JSON files from a directory.

    Missing files yield empty categories.  Malformed JSON raises, since a
    broken data file is a packaging error rather than user input.
    """
    root = Path(path)
    data: Dict[str, List[Any]] = {}
    for category, filename in CATALOG_FILES.items():
        fp = root / filename
        if not fp.exists():
            logger.info("No %s catalog at %s", category, fp)
            continue
        with open(fp, "r", encoding="utf-8") as f:
            data[category] = json.load(f)
    return normalize_catalogs(data)


def merged_by(sample: Sequence[Any], custom: Sequence[Any], key_name: str) -> List[Any]:
    """Merge two row lists on ``key_name`` (case-insensitive).

    Sample rows seed the map and custom rows overwrite matching keys; the
    result keeps sample order with custom-only keys appended.  Rows with an
    empty key are dropped.
    """
    merged: Dict[str, Any] = {}
    for row in list(sample or []) + list(custom or []):
        key = getattr(row, key_name, "")
        if key:
            merged[str(key).lower()] = row
    return list(merged.values())


def resolve(sample: Optional[Catalogs], custom: Optional[Catalogs], mode: CatalogMode = "merged") -> Catalogs:
    """Resolve the catalogs the wizard should consult.

    Parameters
    ----------
    sample:
        Bundled sample catalogs.
    custom:
        The firm's own catalogs.
    mode:
        ``"sample"``, ``"custom"`` or ``"merged"``.  Unknown modes behave
        as ``"merged"``.

    Returns
    -------
    Catalogs
        The resolved lookup tables.
    """
    sample = sample or Catalogs()
    custom = custom or Catalogs()
    if mode == "sample":
        return sample
    if mode == "custom":
        return custom
    out = Catalogs(
        **{c: merged_by(getattr(sample, c), getattr(custom, c), "name") for c in CATEGORIES},
        electricity=merged_by(sample.electricity, custom.electricity, "state"),
    )
    logger.info(
        "Resolved merged catalogs: %s",
        {c: len(getattr(out, c)) for c in CATEGORIES + ("electricity",)},
    )
    return out


def lookup_row(rows: Sequence[CatalogRow], name: str) -> Optional[CatalogRow]:
    """Find a non-electric row by name (case-insensitive)."""
    key = (name or "").lower()
    for row in rows:
        if row.name.lower() == key:
            return row
    return None


def lookup_elec_row(rows: Sequence[ElectricityCatalogRow], state: str) -> Optional[ElectricityCatalogRow]:
    """Find a grid row by state, falling back to the first row."""
    key = (state or "").lower()
    for row in rows:
        if row.state.lower() == key:
            return row
    return rows[0] if rows else None


def first_key(catalogs: Catalogs, category: str) -> str:
    """Key of the first row of a category, used to seed new draft lines."""
    rows = getattr(catalogs, category)
    if not rows:
        return "India" if category == "electricity" else ""
    return rows[0].state if category == "electricity" else rows[0].name
