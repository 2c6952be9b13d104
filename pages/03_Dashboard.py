# referral_tracker/pages/03_Dashboard.py
# PERIOD-OVER-PERIOD KPI DASHBOARD

import logging
from datetime import date, datetime, time, timedelta

import pandas as pd
import streamlit as st

from analytics import generate_kpi_summary_table
from config import settings
from data_processing.cached import get_cached_dashboard_kpis, get_referral_snapshot
from record_store import RecordStoreError
from visualization import (load_and_inject_css, plot_stage_distribution, plot_stoplight_donut,
                           render_kpi_card, render_stoplight_summary, set_plotly_theme)

st.set_page_config(page_title=f"Dashboard - {settings.APP_NAME}", page_icon="📊", layout="wide")
logger = logging.getLogger(__name__)

# kpi key -> (title, unit, delta kind, higher_is_better, icon)
KPI_CARDS = {
    'new_referrals': ("New Referrals", "", "percent", True, "📥"),
    'ready_for_par': ("Ready for PAR", "", "percent", True, "✅"),
    'denials': ("Denials", "", "percent", False, "⛔"),
    'regressions': ("Regressions", "", "percent", False, "↩️"),
    'docs_complete_percent': ("Docs Complete", "%", "absolute", True, "📄"),
    'avg_age_days': ("Avg. Age", " days", "absolute", False, "⏳"),
}


def render_date_range() -> tuple:
    today = date.today()
    default_start = today - timedelta(days=settings.ANALYTICS.default_dashboard_days)
    picked = st.sidebar.date_input("Reporting period", value=(default_start, today), key="dashboard_range")
    start, end = picked if isinstance(picked, (list, tuple)) and len(picked) == 2 else (default_start, today)
    return pd.Timestamp(datetime.combine(start, time.min)), pd.Timestamp(datetime.combine(end, time.max))


def render_kpi_cards(kpis: dict) -> None:
    cols = st.columns(3)
    for i, (key, (title, unit, kind, higher_is_better, icon)) in enumerate(KPI_CARDS.items()):
        kpi = kpis[key]
        delta = kpi['delta']
        improvement = None if delta == 0 else ((delta > 0) == higher_is_better)
        with cols[i % 3]:
            render_kpi_card(title=title, value=kpi['value'], unit=unit, delta=delta, delta_kind=kind,
                            delta_is_improvement=improvement, icon=icon,
                            help_text="Compared with the previous period of equal length.")


def render_kpi_table(full_df: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> None:
    table = generate_kpi_summary_table(full_df, start, end)
    if table.empty:
        return
    st.dataframe(
        table[['Metric', 'Current', 'Change', 'Trend']], hide_index=True, use_container_width=True,
        column_config={
            'Current': st.column_config.NumberColumn(format="%.1f"),
            'Trend': st.column_config.LineChartColumn(f"Weekly trend ({settings.ANALYTICS.trend_lookback_days}d)"),
        },
    )


def main():
    load_and_inject_css(settings.STYLE_CSS_PATH)
    set_plotly_theme()
    st.title("📊 Referral Dashboard")

    try:
        full_df = get_referral_snapshot()
    except RecordStoreError as e:
        logger.error(f"Dashboard fetch failed: {e}")
        st.error(f"Could not load referrals: {e}")
        st.stop()

    start, end = render_date_range()
    st.caption(f"**Period:** {start:%d %b %Y} to {end:%d %b %Y}")

    result = get_cached_dashboard_kpis(full_df, start, end)
    render_kpi_cards(result['kpis'])
    st.divider()

    col1, col2 = st.columns([0.4, 0.6], gap="large")
    with col1:
        st.plotly_chart(plot_stoplight_donut(result['stoplight_counts']), use_container_width=True)
        render_stoplight_summary(result['stoplight_counts'])
    with col2:
        st.plotly_chart(plot_stage_distribution(result['orders']), use_container_width=True)

    st.divider()
    st.subheader("KPI Breakdown")
    render_kpi_table(full_df, start, end)


if __name__ == "__main__":
    main()
