# MIT License
"""Numeric primitives for the MACC builder.

This module defines the financial metrics (net present value, internal
rate of return, loan annuity factor) used by the measure engine, the
series interpolation offered to users filling in five-year grids, and
the quadratic fit drawn over the cost curve.  The functions are pure,
never raise on degenerate input and do not depend on the rest of the
model structure.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .utils import compound, is_blank, to_float


def quadratic_fit(xs: Sequence[float], ys: Sequence[float]) -> Dict[str, Optional[float]]:
    """Least-squares fit of ``y = a + b·x + c·x²`` with R².

    The 3×3 normal equations built from the power sums
    (Σx … Σx⁴, Σy, Σxy, Σx²y) are solved by Cramer's rule.

    Parameters
    ----------
    xs, ys:
        Parallel sequences of abscissae and ordinates.

    Returns
    -------
    dict
        Keys ``a``, ``b``, ``c`` and ``r2``.  With fewer than three points
        or a near-singular system (``|det| < 1e-12``) all coefficients are
        0 and ``r2`` is ``None``.  ``r2`` is also ``None`` when every y is
        equal.
    """
    n = min(len(xs), len(ys))
    if n < 3:
        return {"a": 0.0, "b": 0.0, "c": 0.0, "r2": None}
    x = np.array([to_float(v) for v in xs[:n]], dtype=float)
    y = np.array([to_float(v) for v in ys[:n]], dtype=float)
    x2 = x * x
    sx, sx2, sx3, sx4 = x.sum(), x2.sum(), (x2 * x).sum(), (x2 * x2).sum()
    sy, sxy, sx2y = y.sum(), (x * y).sum(), (x2 * y).sum()

    m = np.array([[n, sx, sx2], [sx, sx2, sx3], [sx2, sx3, sx4]], dtype=float)
    rhs = np.array([sy, sxy, sx2y], dtype=float)
    d = float(np.linalg.det(m))
    if not math.isfinite(d) or abs(d) < 1e-12:
        return {"a": 0.0, "b": 0.0, "c": 0.0, "r2": None}

    coef = []
    for col in range(3):
        mk = m.copy()
        mk[:, col] = rhs
        coef.append(float(np.linalg.det(mk)) / d)
    a, b, c = coef

    y_hat = a + b * x + c * x2
    sse = float(((y - y_hat) ** 2).sum())
    sst = float(((y - y.mean()) ** 2).sum())
    r2 = 1.0 - sse / sst if sst > 0 else None
    return {"a": a, "b": b, "c": c, "r2": r2}


def interpolate_series(series: Sequence[Any]) -> List[Any]:
    """Fill interior blanks by linear interpolation.

    Blanks (``None``, empty strings, non-numeric entries) lying between two
    filled values are replaced by points on the straight line joining the
    nearest filled neighbours.  Blanks before the first or after the last
    filled value are left as they are; nothing is extrapolated.

    Examples
    --------
    >>> interpolate_series([5, None, None, 20, None])
    [5.0, 10.0, 15.0, 20.0, None]
    """
    out = list(series)
    last = None
    for i, v in enumerate(out):
        if is_blank(v):
            continue
        out[i] = to_float(v)
        if last is not None:
            step = (out[i] - out[last]) / (i - last)
            for k in range(last + 1, i):
                out[k] = out[last] + step * (k - last)
        last = i
    return out


def npv(rate: float, amounts: Sequence[float], years: Sequence[int], base_year: int) -> float:
    """Compute the net present value of dated cashflows.

    Parameters
    ----------
    rate:
        Discount rate as a decimal (e.g. 0.10 for 10%).
    amounts:
        Cashflow amounts.
    years:
        Calendar year of each amount.
    base_year:
        Year discounted with exponent 0; earlier years are clamped to 0.

    Returns
    -------
    float
        Net present value of the cashflows, or NaN when a discount factor
        collapses to zero (rate of -100%).  Amounts whose factor overflows
        discount to 0.
    """
    r = to_float(rate)
    total = 0.0
    for i, amt in enumerate(amounts):
        factor = compound(r, max(0, years[i] - base_year))
        if factor == 0:
            return float("nan")
        if math.isinf(factor):
            continue
        total += to_float(amt) / factor
    return total


def irr(
    amounts: Sequence[float],
    years: Sequence[int],
    base_year: int,
    lo: float = -0.9,
    hi: float = 3.0,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> Optional[float]:
    """Internal rate of return of dated cashflows by bisection.

    The NPV is evaluated at both ends of ``[lo, hi]`` first.  If either end
    is NaN or both have the same sign there is no bracketed root and
    ``None`` is returned instead of a guess.

    Returns
    -------
    float or None
        The rate whose NPV is within ``tol`` of zero, the midpoint of the
        last bracket once ``max_iter`` is exhausted, or ``None``.
    """
    def f(rate: float) -> float:
        return npv(rate, amounts, years, base_year)

    f_lo, f_hi = f(lo), f(hi)
    if math.isnan(f_lo) or math.isnan(f_hi):
        return None
    if f_lo * f_hi > 0:
        return None
    for _ in range(max_iter):
        mid = (lo + hi) / 2.0
        f_mid = f(mid)
        if abs(f_mid) < tol:
            return mid
        if f_lo * f_mid < 0:
            hi, f_hi = mid, f_mid
        else:
            lo, f_lo = mid, f_mid
    return (lo + hi) / 2.0


def annuity_factor(rate: float, n_years: float) -> float:
    """Yearly payment per unit of financed capital.

    ``n_years <= 0`` gives 0, a zero rate gives straight-line ``1/n``,
    otherwise the standard amortisation factor ``r(1+r)^n / ((1+r)^n - 1)``.
    """
    r, n = to_float(rate, float("nan")), to_float(n_years, float("nan"))
    if not math.isfinite(r) or not math.isfinite(n) or n <= 0:
        return 0.0
    if abs(r) < 1e-9:
        return 1.0 / n
    if 1.0 + r <= 0:
        return 0.0
    try:
        growth = (1.0 + r) ** n
    except OverflowError:
        return r
    if growth == 1.0:
        return 1.0 / n
    return r * growth / (growth - 1.0)
