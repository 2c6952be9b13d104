# referral_tracker/pages/referral_components/detail.py
# REFERRAL / PATIENT DETAIL PANEL

import html
from typing import Any, Mapping, Optional

import pandas as pd
import streamlit as st

from config import settings
from data_processing.enrichment import document_readiness
from record_store import RecordStoreClient
from visualization import stoplight_badge_html
from .actions import (render_archive_toggle, render_delete_referral,
                      render_document_checklist, render_stage_change)


def _fmt_date(value: Any) -> str:
    ts = pd.to_datetime(value, errors='coerce')
    return "—" if pd.isna(ts) else f"{ts:%Y-%m-%d}"


def render_referral_detail(store: Optional[RecordStoreClient], order: Mapping[str, Any]) -> None:
    """Everything about one referral: patient header, stage controls, documents and archive/delete."""
    required = list(order.get('patient_required_documents') or [])
    completed, total = document_readiness(required, order.get('document_status'))

    with st.container(border=True):
        head = st.columns([0.6, 0.4])
        head[0].subheader(order.get('patient_name') or "Unknown patient")
        head[0].caption(f"DOB {_fmt_date(order.get('patient_dob'))} · {order.get('patient_primary_insurance') or 'No insurance on file'}")
        head[1].markdown(stoplight_badge_html(order.get('stoplight_status')), unsafe_allow_html=True)
        if order.get('is_archived'):
            head[1].markdown("**Archived**")

        info = st.columns(4)
        info[0].metric("Stage", order.get('workflow_stage') or "—")
        info[1].metric("Docs", f"{completed}/{total}")
        info[2].metric("Denials", int(order.get('denial_count') or 0))
        info[3].metric("Referral date", _fmt_date(order.get('referral_date')))
        if order.get('last_stage_note'):
            st.markdown(f"> {html.escape(str(order.get('last_stage_note')))}")

        stage_tab, docs_tab, manage_tab = st.tabs(["Workflow", "Documents", "Manage"])
        with stage_tab:
            render_stage_change(store, order)
        with docs_tab:
            render_document_checklist(store, order, required)
        with manage_tab:
            st.caption(f"Payer region: {order.get('payer_region') or '—'} · Rep: {order.get('rep_name') or '—'}")
            render_archive_toggle(store, order)
            render_delete_referral(store, order)


def render_patient_detail(patient: Mapping[str, Any], orders_df: pd.DataFrame) -> None:
    with st.container(border=True):
        st.subheader(patient.get('name') or "Unknown patient")
        st.caption(f"DOB {_fmt_date(patient.get('dob'))} · {patient.get('email') or 'no email'} · "
                   f"{patient.get('primary_insurance') or 'No insurance on file'}")
        st.markdown(stoplight_badge_html(patient.get('stoplight_status')), unsafe_allow_html=True)

        required = list(patient.get('required_documents') or [])
        labels = [settings.DOCUMENT_LABELS.get(k, k) for k in required]
        st.markdown(f"**Required documents:** {', '.join(labels) if labels else 'none'}")

        patient_orders = orders_df[orders_df['patient_id'] == patient.get('id')] if not orders_df.empty else orders_df
        if patient_orders.empty:
            st.info("No referrals on file for this patient.")
            return
        rows = []
        for order in patient_orders.to_dict('records'):
            completed, total = document_readiness(required, order.get('document_status'))
            rows.append({
                'Stage': order.get('workflow_stage'),
                'Status': order.get('status') or '',
                'Archived': bool(order.get('is_archived')),
                'Docs': f"{completed}/{total}",
                'Referral Date': _fmt_date(order.get('referral_date')),
                'Updated': _fmt_date(order.get('updated_at')),
            })
        st.dataframe(pd.DataFrame(rows), hide_index=True, use_container_width=True)
