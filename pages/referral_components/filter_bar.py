# referral_tracker/pages/referral_components/filter_bar.py
# SIDEBAR FILTER CONTROLS SHARED BY THE REFERRALS AND PATIENTS PAGES

import logging
from typing import List, Optional

import pandas as pd
import streamlit as st

from config import settings
from data_processing.filters import AdvancedFilters, ReferralFilters, describe_view, is_view_filtered
from state.url_state import cleared_query_params, filters_from_query_params, sync_query_params

logger = logging.getLogger(__name__)

ARCHIVE_LABELS = {'active': 'Active', 'archived': 'Archived', 'all': 'All'}
ANY = "Any"


def _unique_values(df: Optional[pd.DataFrame], col: str) -> List[str]:
    if not isinstance(df, pd.DataFrame) or df.empty or col not in df.columns:
        return []
    return sorted({v for v in df[col].dropna() if isinstance(v, str) and v})


def initial_filters(state_key: str) -> ReferralFilters:
    """Session state wins; on the first run of a session the URL seeds the filters."""
    saved = st.session_state.get(state_key)
    if saved:
        return ReferralFilters.model_validate(saved)
    return filters_from_query_params(st.query_params)


def _choice(label: str, options: List[str], current: str, key: str) -> str:
    choices = [ANY] + options
    index = choices.index(current) if current in choices else 0
    picked = st.selectbox(label, choices, index=index, key=key)
    return '' if picked == ANY else picked


def render_advanced_filters(current: AdvancedFilters, df: Optional[pd.DataFrame], key_prefix: str,
                            patients_view: bool = False) -> AdvancedFilters:
    with st.expander("Advanced filters", expanded=current.is_active()):
        first_name = st.text_input("First name", value=current.first_name, key=f"{key_prefix}_first")
        last_name = st.text_input("Last name", value=current.last_name, key=f"{key_prefix}_last")
        dob = st.date_input("Date of birth", value=current.dob, key=f"{key_prefix}_dob", format="YYYY-MM-DD")
        insurance = st.text_input(
            "Insurance", value=current.insurance, key=f"{key_prefix}_insurance",
            help="Substring match." if patients_view else "Comma-separated list of exact payer names.")
        col1, col2 = st.columns(2)
        date_start = col1.date_input("Referral from", value=current.date_start, key=f"{key_prefix}_start")
        date_end = col2.date_input("Referral to", value=current.date_end, key=f"{key_prefix}_end")
        workflow_stage = _choice("Workflow stage", settings.WORKFLOW_STAGES, current.workflow_stage, f"{key_prefix}_stage")

        doc_labels = settings.DOCUMENT_LABELS
        doc_key = _choice("Document", list(doc_labels), current.doc_filter_key, f"{key_prefix}_doc_key")
        doc_status = _choice("Document requirement", settings.DOC_FILTER_STATUSES, current.doc_filter_status,
                             f"{key_prefix}_doc_status") if doc_key else ''

        payer_region, rep_name = current.payer_region, current.rep_name
        if not patients_view:
            payer_region = _choice("Payer region", _unique_values(df, 'payer_region'), current.payer_region, f"{key_prefix}_region")
            rep_name = _choice("Rep", _unique_values(df, 'rep_name'), current.rep_name, f"{key_prefix}_rep")

    return AdvancedFilters(
        first_name=first_name.strip(), last_name=last_name.strip(), dob=dob, insurance=insurance,
        date_start=date_start, date_end=date_end, workflow_stage=workflow_stage,
        doc_filter_key=doc_key, doc_filter_status=doc_status,
        payer_region=payer_region, rep_name=rep_name,
    )


def render_filter_sidebar(df: Optional[pd.DataFrame], state_key: str, patients_view: bool = False) -> ReferralFilters:
    """
    Renders every filter control in the sidebar and returns the resulting
    filters. The result is stored in session state and mirrored to the URL.
    """
    current = initial_filters(state_key)
    key_prefix = f"{state_key}_w"

    with st.sidebar:
        st.header("🔎 Filters")
        modes = list(ARCHIVE_LABELS)
        archive_mode = st.radio("Show", modes, index=modes.index(current.archive_mode),
                                format_func=ARCHIVE_LABELS.get, horizontal=True, key=f"{key_prefix}_archive")
        search_term = st.text_input("Search", value=current.search_term, key=f"{key_prefix}_search",
                                    placeholder="Name, email, insurance..." if patients_view else "Name, insurance, stage...")

        active_stages: List[str] = []
        account = ''
        if not patients_view:
            active_stages = st.multiselect("Stages", settings.QUICK_FILTER_STAGES,
                                           default=[s for s in current.active_stages if s in settings.QUICK_FILTER_STAGES],
                                           key=f"{key_prefix}_stages")
            account = _choice("Account", _unique_values(df, 'patient_primary_insurance'), current.account, f"{key_prefix}_account")

        stoplight = _choice("Stoplight", settings.STOPLIGHT_STATUSES, current.stoplight_status, f"{key_prefix}_stoplight")
        advanced = render_advanced_filters(current.advanced, df, key_prefix, patients_view=patients_view)

        if st.button("Clear filters", use_container_width=True, key=f"{key_prefix}_clear"):
            st.session_state.pop(state_key, None)
            for widget_key in [k for k in st.session_state.keys() if str(k).startswith(key_prefix)]:
                del st.session_state[widget_key]
            st.query_params.from_dict(cleared_query_params(st.query_params))
            st.rerun()

    filters = ReferralFilters(
        archive_mode=archive_mode, search_term=search_term.strip(), active_stages=active_stages,
        stoplight_status=stoplight, account=account, advanced=advanced,
    )
    st.session_state[state_key] = filters.model_dump(mode='json')
    sync_query_params(st.query_params, filters)
    return filters


def render_view_summary(filters: ReferralFilters, shown: int, total: int) -> None:
    if not is_view_filtered(filters):
        st.caption(f"Showing {shown:,} active of {total:,} records.")
        return
    parts = ", ".join(f"{k}: {v}" for k, v in describe_view(filters).items())
    st.caption(f"Showing {shown:,} of {total:,} records ({parts}).")
