# referral_tracker/pages/01_Referrals.py
# REFERRAL WORKLIST: FILTER, SELECT, EDIT

import logging

import streamlit as st

from config import settings
from data_processing.cached import get_cached_filtered_referrals, get_referral_snapshot
from pages.referral_components import (read_only_notice, referral_display_frame,
                                       render_bulk_referral_actions, render_filter_sidebar,
                                       render_referral_detail, render_selectable_table,
                                       render_view_summary)
from record_store import RecordStoreError, get_record_store
from state.selection import SelectionState
from state.url_state import pop_open_patient_id
from visualization import load_and_inject_css

# --- Page Setup & Constants ---
st.set_page_config(page_title=f"Referrals - {settings.APP_NAME}", page_icon="📋", layout="wide")
logger = logging.getLogger(__name__)
FILTER_STATE_KEY = "referral_filters"
OPEN_REFERRAL_KEY = "referrals_open_id"


def _referral_label(row) -> str:
    return f"{row.get('patient_name') or 'Unknown'} · {row.get('workflow_stage') or '—'}"


def render_detail_picker(store, visible_df) -> None:
    if visible_df.empty:
        return
    records = {row['id']: row for row in visible_df.to_dict('records')}

    # A navigation link (?openPatientId=...) opens that patient's first visible referral once.
    open_patient = pop_open_patient_id(st.query_params)
    if open_patient:
        match = next((rid for rid, row in records.items() if str(row.get('patient_id')) == open_patient), None)
        if match is not None:
            st.session_state[OPEN_REFERRAL_KEY] = match

    ids = [None] + list(records)
    current = st.session_state.get(OPEN_REFERRAL_KEY)
    picked = st.selectbox(
        "Open referral", ids, index=ids.index(current) if current in ids else 0,
        format_func=lambda rid: "—" if rid is None else _referral_label(records[rid]),
    )
    st.session_state[OPEN_REFERRAL_KEY] = picked
    if picked is not None:
        render_referral_detail(store, records[picked])


def main():
    load_and_inject_css(settings.STYLE_CSS_PATH)
    st.title("📋 Referrals")

    try:
        snapshot_df = get_referral_snapshot()
    except RecordStoreError as e:
        logger.error(f"Referral snapshot fetch failed: {e}")
        st.error(f"Could not load referrals: {e}")
        st.stop()

    store = get_record_store()
    read_only_notice(store)

    filters = render_filter_sidebar(snapshot_df, FILTER_STATE_KEY)
    visible_df = get_cached_filtered_referrals(snapshot_df, filters)
    render_view_summary(filters, len(visible_df), len(snapshot_df))

    selection = SelectionState(st.session_state, "referrals")
    selection.reset_if_changed(filters.model_dump_json())

    if visible_df.empty:
        st.info("No referrals match the current filters.", icon="🔍")
        return

    render_selectable_table(referral_display_frame(visible_df), selection, key="referrals_table")
    with st.expander("Bulk actions", expanded=selection.count() > 0):
        render_bulk_referral_actions(store, visible_df, selection)

    st.divider()
    render_detail_picker(store, visible_df)

    st.download_button(
        "Export view (CSV)", referral_display_frame(visible_df).drop(columns='id').to_csv(index=False),
        file_name="referrals_view.csv", mime="text/csv",
    )


if __name__ == "__main__":
    main()
