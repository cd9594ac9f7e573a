# MIT License
"""Streamlit entry point for the MACC builder.

This script sets up the session state (configuration, catalogs, saved
measures), and renders the marginal abatement cost curve with its
budget-to-target readout.  Measures are built on the wizard page under
the `pages/` directory.
"""

import logging

import pandas as pd
import streamlit as st

from core.catalogs import load_catalog_dir
from core.curve import (
    active_baseline,
    baseline_intensity,
    budget_to_target,
    build_segments,
    fit_curve,
    macc_points,
    segments_frame,
    target_x,
)
from core.measures import (
    curve_totals,
    filter_measures,
    measures_from_frame,
    measures_to_frame,
    rank_measures,
)
from core.params import ALL_SECTORS, Catalogs, load_baselines, load_config
from core.plots import fig_macc

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger("macc_app")

st.set_page_config(page_title="MACC Builder", layout="wide")

DATA_DIR = "data"


def init_state() -> None:
    """Populate session state on first load."""
    if "config" not in st.session_state:
        st.session_state.config = load_config(f"{DATA_DIR}/config.json")
    if "sample_catalogs" not in st.session_state:
        st.session_state.sample_catalogs = load_catalog_dir(DATA_DIR)
    if "custom_catalogs" not in st.session_state:
        st.session_state.custom_catalogs = Catalogs()
    if "catalog_mode" not in st.session_state:
        st.session_state.catalog_mode = "merged"
    if "baselines" not in st.session_state:
        st.session_state.baselines = load_baselines(f"{DATA_DIR}/baselines.json")
    if "measures" not in st.session_state:
        try:
            st.session_state.measures = measures_from_frame(pd.read_csv(f"{DATA_DIR}/measures.csv"))
        except OSError as exc:
            logger.warning("No sample measures loaded: %s", exc)
            st.session_state.measures = []


def main() -> None:
    init_state()
    cfg = st.session_state.config
    measures = st.session_state.measures

    # --- SIDEBAR: CURVE CONTROLS -------------------------------------------
    st.sidebar.header("Curve settings")
    sectors = sorted({m.sector for m in measures} | set(st.session_state.baselines))
    sector = st.sidebar.selectbox("Sector", [ALL_SECTORS] + sectors)
    mode = st.sidebar.radio("X-axis", ["capacity", "intensity"], horizontal=True)
    carbon_price = st.sidebar.number_input(
        f"Carbon price ({cfg.currency}/tCO₂)", value=float(cfg.carbon_price), step=100.0
    )
    st.session_state.config = cfg.model_copy(update={"carbon_price": carbon_price})
    st.session_state.catalog_mode = st.sidebar.selectbox(
        "Catalog source", ["merged", "sample", "custom"],
        index=["merged", "sample", "custom"].index(st.session_state.catalog_mode),
    )
    target_pct = st.sidebar.slider("Abatement target (% of baseline)", 0.0, 100.0, 10.0, 0.5)
    fit_positive = st.sidebar.checkbox("Fit only non-negative costs", value=False)

    baseline = active_baseline(st.session_state.baselines, sector)
    st.sidebar.caption(
        f"Baseline: {baseline.annual_emissions:,.0f} tCO₂/yr, "
        f"{baseline_intensity(baseline):.4f} tCO₂ per {baseline.production_label}"
    )

    # --- MAIN: CURVE --------------------------------------------------------
    st.title("Marginal Abatement Cost Curve")

    filtered = filter_measures(measures, sector)
    ranked = rank_measures(measures, carbon_price, sector)
    totals = curve_totals(filtered, ranked)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total abatement (tCO₂/yr)", f"{totals['total_abatement']:,.0f}")
    c2.metric(f"Average cost ({cfg.currency}/tCO₂)", f"{totals['avg_cost']:,.0f}")
    c3.metric("Negative-cost abatement (tCO₂/yr)", f"{totals['neg_cost_abatement']:,.0f}")

    curve = build_segments(ranked, mode, baseline.annual_emissions)
    points = macc_points(ranked, mode, baseline.annual_emissions)
    fit = fit_curve(points, positive_costs_only=fit_positive)
    tx = target_x(mode, baseline.annual_emissions, target_pct)
    st.plotly_chart(fig_macc(curve, mode, fit, tx, cfg.currency), use_container_width=True)

    budget = budget_to_target(points, mode, baseline.annual_emissions, target_pct)
    unit = "tCO₂" if mode == "capacity" else "% of baseline"
    st.markdown(
        f"**Budget to target:** {cfg.currency} {budget.budget:,.0f} "
        f"reaching {budget.target_reached:,.2f} {unit}"
    )
    if not curve.segments:
        st.info("No selected measure with positive abatement in this sector.")

    with st.expander("Curve table"):
        st.dataframe(segments_frame(curve))

    # --- IMPORT / EXPORT ----------------------------------------------------
    st.subheader("Measures")
    upload = st.file_uploader("Import measures (CSV)", type=["csv"])
    if upload is not None and st.button("Append imported measures"):
        imported = measures_from_frame(pd.read_csv(upload), measures)
        st.session_state.measures = list(measures) + imported
        logger.info("Imported %d measures", len(imported))
        st.rerun()
    df = measures_to_frame(st.session_state.measures)
    st.dataframe(df.drop(columns=["details"]))
    st.download_button(
        "Download measures CSV", df.to_csv(index=False), file_name="macc_measures.csv", mime="text/csv"
    )


if __name__ == "__main__":
    main()
