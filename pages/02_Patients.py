# referral_tracker/pages/02_Patients.py
# PATIENT DIRECTORY

import logging

import streamlit as st

from config import settings
from data_processing.cached import get_cached_filtered_patients, get_patient_snapshot
from pages.referral_components import (patient_display_frame, read_only_notice,
                                       render_bulk_patient_actions, render_filter_sidebar,
                                       render_patient_detail, render_selectable_table,
                                       render_view_summary)
from record_store import RecordStoreError, get_record_store
from state.selection import SelectionState
from visualization import load_and_inject_css

st.set_page_config(page_title=f"Patients - {settings.APP_NAME}", page_icon="🧑‍⚕️", layout="wide")
logger = logging.getLogger(__name__)
FILTER_STATE_KEY = "patient_filters"


def main():
    load_and_inject_css(settings.STYLE_CSS_PATH)
    st.title("🧑‍⚕️ Patients")

    try:
        patients_df, orders_df = get_patient_snapshot()
    except RecordStoreError as e:
        logger.error(f"Patient snapshot fetch failed: {e}")
        st.error(f"Could not load patients: {e}")
        st.stop()

    store = get_record_store()
    read_only_notice(store)

    filters = render_filter_sidebar(patients_df, FILTER_STATE_KEY, patients_view=True)
    visible_df = get_cached_filtered_patients(patients_df, orders_df, filters)
    render_view_summary(filters, len(visible_df), len(patients_df))

    selection = SelectionState(st.session_state, "patients")
    selection.reset_if_changed(filters.model_dump_json())

    if visible_df.empty:
        st.info("No patients match the current filters.", icon="🔍")
        return

    render_selectable_table(patient_display_frame(visible_df), selection, key="patients_table")
    with st.expander("Bulk actions", expanded=selection.count() > 0):
        render_bulk_patient_actions(store, selection)

    st.divider()
    records = {row['id']: row for row in visible_df.to_dict('records')}
    ids = [None] + list(records)
    picked = st.selectbox("Open patient", ids,
                          format_func=lambda pid: "—" if pid is None else records[pid].get('name') or 'Unknown')
    if picked is not None:
        render_patient_detail(records[picked], orders_df)
        st.markdown(f"📋 [Open in referrals](/Referrals?openPatientId={picked})")


if __name__ == "__main__":
    main()
