# MIT License
from __future__ import annotations
import hashlib, json, math
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel


def is_blank(value: Any) -> bool:
    """Return True for values that mean "not entered yet".

    ``None``, empty/whitespace strings and anything that does not parse as
    a finite number count as blank.  Zero is *not* blank.
    """
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return not math.isfinite(to_float(value, float("nan")))


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce an untrusted value to a finite float.

    Parameters
    ----------
    value:
        Anything a user could have typed or a file could have stored.
    default:
        Returned when ``value`` is blank, non-numeric or non-finite.

    Returns
    -------
    float
        The parsed number or ``default``.
    """
    if value is None:
        return default
    try:
        x = float(value.strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return default
    return x if math.isfinite(x) else default


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def blank_to_none(series: Optional[Iterable[Any]]) -> List[Optional[float]]:
    """Normalise a user series: numbers stay numbers, blanks become None."""
    if series is None:
        return []
    return [None if is_blank(v) else to_float(v) for v in series]


def series_value(series: List[Optional[float]], i: int) -> float:
    """Value at ``i`` with blanks and missing positions read as 0."""
    return to_float(series[i]) if i < len(series) else 0.0


def model_hash(model: BaseModel) -> str:
    """Compute a stable hash for any parameter model.

    Serialises the model to JSON (with sorted keys) and computes a
    SHA256 hash.  Used to detect whether a draft changed since its last
    computation.
    """
    payload = json.dumps(model.model_dump(mode="json"), sort_keys=True).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def to_large_unit(amount: float, unit_scale: float) -> float:
    """Convert base-currency units into the stack unit (e.g. ₹ → ₹ crore)."""
    return amount / unit_scale if unit_scale else 0.0


def compound(rate: float, n: float) -> float:
    """``(1 + rate) ** n`` that returns inf instead of raising on overflow."""
    try:
        return (1.0 + rate) ** n
    except OverflowError:
        return math.inf
