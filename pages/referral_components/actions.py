# referral_tracker/pages/referral_components/actions.py
# MUTATION CONTROLS: STAGE CHANGES, ARCHIVING, DELETION, BULK EDITS, DOCUMENTS

"""
Streamlit controls that send mutations through `record_store.mutations`.

Every action reports exactly one success or failure toast, then clears the
snapshot cache so the next rerun works on fresh data. Without a configured
record store the controls are rendered disabled (read-only demo mode).
"""

import logging
from typing import Any, Callable, Mapping, Optional, Sequence

import pandas as pd
import streamlit as st

from config import settings
from data_processing.cached import clear_snapshot_cache
from data_processing.workflow import InvalidStageError, is_backward
from record_store import (RecordStoreClient, RecordStoreError, RegressionReasonRequired,
                          bulk_archive_patients, bulk_update_documents, change_stage,
                          delete_referral, mass_update_stage, set_archived,
                          update_document_status)
from state.doc_toggle import COMMITTED, OptimisticDocumentToggle
from state.selection import SelectionState

logger = logging.getLogger(__name__)


def run_mutation(action: Callable[[], Any], success_message: str, failure_message: str) -> bool:
    """Runs one mutation, toasts the outcome and invalidates the snapshot cache on success."""
    try:
        action()
    except (RecordStoreError, RegressionReasonRequired, InvalidStageError) as e:
        logger.error(f"{failure_message}: {e}")
        st.toast(f"{failure_message}: {e}", icon="⚠️")
        return False
    clear_snapshot_cache()
    st.toast(success_message, icon="✅")
    return True


def read_only_notice(store: Optional[RecordStoreClient]) -> bool:
    if store is None:
        st.info("Read-only demo: configure a record store URL to enable editing.", icon="🔒")
        return True
    return False


def _order_dict(order: Mapping[str, Any]) -> dict:
    return {k: order.get(k) for k in ('id', 'patient_id', 'workflow_stage', 'is_archived', 'document_status')}


# --- Single Referral ---

def render_stage_change(store: Optional[RecordStoreClient], order: Mapping[str, Any]) -> None:
    current_stage = order.get('workflow_stage')
    stages = settings.WORKFLOW_STAGES
    with st.form(key=f"stage_form_{order.get('id')}", clear_on_submit=True):
        index = stages.index(current_stage) if current_stage in stages else 0
        new_stage = st.selectbox("Move to stage", stages, index=index)
        note = st.text_area("Stage note", placeholder="What changed?")
        reason = st.selectbox("Regression reason (required when moving backward)",
                              [""] + settings.REGRESSION_REASONS)
        submitted = st.form_submit_button("Update stage", disabled=store is None)

    if not submitted:
        return
    if new_stage == current_stage:
        st.toast("Referral is already in that stage.", icon="ℹ️")
        return
    if is_backward(current_stage, new_stage) and not reason:
        st.warning(f"Moving back to '{new_stage}' is a regression; choose a reason.")
        return
    if run_mutation(
        lambda: change_stage(store, _order_dict(order), new_stage, note.strip(),
                             regression_reason=reason or None, user_id=settings.OPERATOR_EMAIL),
        success_message=f"Moved to {new_stage}.",
        failure_message="Stage update failed",
    ):
        st.rerun()


def render_archive_toggle(store: Optional[RecordStoreClient], order: Mapping[str, Any]) -> None:
    archived = bool(order.get('is_archived'))
    label = "Restore referral" if archived else "Archive referral"
    if st.button(label, key=f"archive_{order.get('id')}", disabled=store is None):
        if run_mutation(lambda: set_archived(store, _order_dict(order), not archived),
                        success_message="Referral restored." if archived else "Referral archived.",
                        failure_message="Archive update failed"):
            st.rerun()


def render_delete_referral(store: Optional[RecordStoreClient], order: Mapping[str, Any]) -> None:
    with st.expander("Danger zone"):
        st.caption("Permanently deletes this referral with its notes, denials and equipment. This cannot be undone.")
        confirmed = st.checkbox("I understand", key=f"confirm_delete_{order.get('id')}")
        if st.button("Delete referral", type="primary", disabled=store is None or not confirmed,
                     key=f"delete_{order.get('id')}"):
            if run_mutation(lambda: delete_referral(store, order.get('id')),
                            success_message="Referral deleted.", failure_message="Delete failed"):
                st.rerun()


def render_document_checklist(store: Optional[RecordStoreClient], order: Mapping[str, Any],
                              required_docs: Sequence[str]) -> None:
    """Optimistic per-document toggles with a one-step undo for the last committed change."""
    if not required_docs:
        st.caption("No documents are required for this patient.")
        return

    order_id = order.get('id')
    toggle_key, map_key = f"doc_toggle_{order_id}", f"doc_status_{order_id}"
    if toggle_key not in st.session_state:
        st.session_state[toggle_key] = OptimisticDocumentToggle(required_docs, order.get('document_status'))
        st.session_state[map_key] = dict(order.get('document_status') or {})
    toggle: OptimisticDocumentToggle = st.session_state[toggle_key]

    def dispatch(key: str, status: str) -> None:
        st.session_state[map_key] = update_document_status(store, order_id, st.session_state[map_key], key, status)

    for key in required_docs:
        label = settings.DOCUMENT_LABELS.get(key, key)
        status = toggle.docs.get(key)
        cols = st.columns([0.6, 0.2, 0.2])
        cols[0].markdown(f"{'✅' if status == 'Complete' else '❌'} **{label}** · {status}")
        if cols[1].button("Toggle", key=f"toggle_{order_id}_{key}", disabled=store is None):
            if toggle.toggle(key, dispatch):
                clear_snapshot_cache()
                st.toast(f"{label} marked {toggle.docs[key]}.", icon="✅")
            else:
                st.toast("Update failed", icon="⚠️")
            st.rerun()
        if toggle.state_of(key) == COMMITTED and cols[2].button("Undo", key=f"undo_{order_id}_{key}"):
            try:
                toggle.undo(key, dispatch)
            except RecordStoreError as e:
                logger.error(f"Undo of '{key}' failed: {e}")
                st.toast("Undo failed", icon="⚠️")
            else:
                clear_snapshot_cache()
            st.rerun()


# --- Bulk Actions ---

def render_bulk_referral_actions(store: Optional[RecordStoreClient], visible_df: pd.DataFrame,
                                 selection: SelectionState) -> None:
    selected_ids = selection.as_list()
    st.markdown(f"**{len(selected_ids):,} selected**")
    if not selected_ids:
        return
    chosen = set(selected_ids)
    orders = [_order_dict(row) for row in visible_df.to_dict('records') if row.get('id') in chosen]

    stage_tab, docs_tab = st.tabs(["Move stage", "Mark documents"])
    with stage_tab, st.form("bulk_stage_form", clear_on_submit=True):
        new_stage = st.selectbox("New stage", settings.WORKFLOW_STAGES)
        note = st.text_input("Note", value="Bulk stage update")
        if st.form_submit_button("Apply to selected", disabled=store is None):
            if run_mutation(lambda: mass_update_stage(store, orders, selected_ids, new_stage, note),
                            success_message=f"Moved {len(selected_ids)} referrals to {new_stage}.",
                            failure_message="Bulk stage update failed"):
                selection.clear()
                st.rerun()

    with docs_tab, st.form("bulk_docs_form", clear_on_submit=True):
        doc_keys = st.multiselect("Documents to mark complete", list(settings.DOCUMENT_LABELS),
                                  format_func=lambda k: settings.DOCUMENT_LABELS.get(k, k))
        note = st.text_input("Note", value="Bulk document update")
        if st.form_submit_button("Mark complete", disabled=store is None):
            if not doc_keys:
                st.warning("Choose at least one document.")
            elif run_mutation(lambda: bulk_update_documents(store, selected_ids, doc_keys, note, settings.OPERATOR_EMAIL),
                              success_message=f"Updated documents on {len(selected_ids)} referrals.",
                              failure_message="Bulk document update failed"):
                selection.clear()
                st.rerun()


def render_bulk_patient_actions(store: Optional[RecordStoreClient], selection: SelectionState) -> None:
    selected_ids = selection.as_list()
    st.markdown(f"**{len(selected_ids):,} selected**")
    if selected_ids and st.button("Archive selected patients", disabled=store is None):
        if run_mutation(lambda: bulk_archive_patients(store, selected_ids),
                        success_message=f"Archived {len(selected_ids)} patients.",
                        failure_message="Bulk archive failed"):
            selection.clear()
            st.rerun()
