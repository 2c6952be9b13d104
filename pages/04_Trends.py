# referral_tracker/pages/04_Trends.py
# WEEKLY REFERRAL TRENDS

import logging

import streamlit as st

from analytics import summarize_weekly_trends
from config import settings
from data_processing.cached import get_cached_weekly_buckets, get_referral_snapshot
from data_processing.logic import has_enough_trend_points
from record_store import RecordStoreError
from visualization import load_and_inject_css, plot_weekly_trends, render_kpi_card, set_plotly_theme

st.set_page_config(page_title=f"Trends - {settings.APP_NAME}", page_icon="📈", layout="wide")
logger = logging.getLogger(__name__)


def main():
    load_and_inject_css(settings.STYLE_CSS_PATH)
    set_plotly_theme()
    st.title("📈 Weekly Trends")
    st.markdown("New referrals, document readiness and archiving by ISO week of creation.")

    try:
        df = get_referral_snapshot()
    except RecordStoreError as e:
        logger.error(f"Trends fetch failed: {e}")
        st.error(f"Could not load referrals: {e}")
        st.stop()

    buckets = get_cached_weekly_buckets(df)
    summary = summarize_weekly_trends(buckets)

    cols = st.columns(3)
    with cols[0]:
        render_kpi_card("Total Referrals", summary['total'], icon="📥")
    with cols[1]:
        render_kpi_card("Busiest Week", summary['busiest_week'], icon="📅")
    with cols[2]:
        render_kpi_card("Docs Ready Rate", summary['ready_rate'], unit="%", icon="✅")

    st.divider()
    if not has_enough_trend_points(buckets):
        st.info("Not enough data to display a trend yet: at least "
                f"{settings.ANALYTICS.min_trend_points} weeks of referrals are needed.", icon="📉")
        return

    st.plotly_chart(plot_weekly_trends(buckets), use_container_width=True)
    with st.expander("Weekly counts"):
        st.dataframe(
            buckets.rename(columns={'week': 'Week', 'new_referrals': 'New Referrals',
                                    'docs_ready': 'Docs Ready', 'archived': 'Archived'}),
            hide_index=True, use_container_width=True,
        )


if __name__ == "__main__":
    main()
