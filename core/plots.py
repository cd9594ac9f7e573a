# MIT License
"""Plotly figure builders for the MACC builder.

This module centralises creation of Plotly figures used by the Streamlit
frontend.  Keeping the plotting code separate from the page logic
facilitates consistent styling and keeps the pages free of computation.
"""

from __future__ import annotations
from typing import Optional
import pandas as pd
import plotly.graph_objects as go

from .curve import axis_width, y_domain
from .params import CurveMode, CurveResult, QuadFit


def fig_macc(curve: CurveResult, mode: CurveMode = "capacity", fit: Optional[QuadFit] = None,
             target: Optional[float] = None, currency: str = "₹") -> go.Figure:
    """Create the stepped marginal abatement cost curve.

    Parameters
    ----------
    curve:
        Segments from :func:`core.curve.build_segments`.
    mode:
        Axis mode; only affects the x-axis title and width.
    fit:
        Optional quadratic fit drawn as a line over the steps.
    target:
        Optional x position of the abatement target.

    Returns
    -------
    plotly.graph_objects.Figure
        One filled rectangle per measure, width = abatement, height = cost.
    """
    fig = go.Figure()
    for s in curve.segments:
        fig.add_scatter(
            x=[s.x1, s.x1, s.x2, s.x2, s.x1],
            y=[0, s.cost, s.cost, 0, 0],
            fill="toself", mode="lines", line={"width": 1, "color": s.color},
            fillcolor=s.color, name=s.name,
            hovertemplate=f"{s.name}<br>{s.sector}<br>%{{y:,.0f}} {currency}/tCO₂<extra></extra>",
        )
    if fit is not None and fit.fitted:
        fig.add_scatter(
            x=[p["x"] for p in fit.fitted], y=[p["y"] for p in fit.fitted],
            mode="lines", line={"dash": "dash", "color": "#333333"},
            name=f"Quadratic fit (R² {fit.r2:.3f})" if fit.r2 is not None else "Quadratic fit",
        )
    if target is not None and target > 0:
        fig.add_vline(x=target, line_dash="dot", line_color="#d62728", annotation_text="Target")
    lo, hi = y_domain(curve.segments)
    fig.update_layout(
        title="Marginal Abatement Cost Curve",
        xaxis_title="Cumulative abatement (tCO₂/yr)" if mode == "capacity" else "Abatement (% of baseline)",
        yaxis_title=f"Cost ({currency}/tCO₂)",
        xaxis_range=[0, axis_width(mode, curve.total)],
        yaxis_range=[lo, hi],
        template="plotly_white",
    )
    return fig


def fig_measure_years(df: pd.DataFrame) -> go.Figure:
    """Abatement (bars) and net cost (line) per modelled year.

    Parameters
    ----------
    df:
        Dataframe from :func:`core.engine.per_year_frame`.
    """
    fig = go.Figure()
    fig.add_bar(x=df["year"], y=df["direct_t"], name="Abatement (tCO₂)")
    fig.add_scatter(x=df["year"], y=df["net_cost"], mode="lines+markers", name="Net cost (cr)", yaxis="y2")
    fig.update_layout(
        title="Measure by Year",
        xaxis_title="Year",
        yaxis_title="tCO₂",
        yaxis2={"title": "Net cost (cr)", "overlaying": "y", "side": "right"},
        template="plotly_white",
    )
    return fig


def fig_cashflows(df: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    fig.add_bar(x=df["year"], y=df["cashflow_wo_cp"], name="Without carbon price")
    fig.add_bar(x=df["year"], y=df["cashflow_w_cp"], name="With carbon price")
    fig.update_layout(template="plotly_white", barmode="group", title="Cashflows", xaxis_title="Year", yaxis_title="Cashflow")
    return fig
