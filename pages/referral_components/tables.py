# referral_tracker/pages/referral_components/tables.py
# SELECTABLE RECORD TABLES

from typing import Dict, Optional

import pandas as pd
import streamlit as st

from config import settings
from data_processing.helpers import to_naive_utc
from state.selection import SelectionState

SELECT_COL = "Select"


def referral_display_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Flattens referral rows into the columns shown in the referrals table."""
    if df.empty:
        return pd.DataFrame(columns=['id', 'Patient', 'Insurance', 'Stage', 'Stoplight', 'Docs', 'Referral Date', 'Rep'])
    docs = [f"{int(c)}/{int(r)}" for c, r in zip(df['docs_completed'], df['docs_required'])] \
        if 'docs_completed' in df.columns else [''] * len(df)
    return pd.DataFrame({
        'id': df['id'].values,
        'Patient': df['patient_name'].values,
        'Insurance': df['patient_primary_insurance'].values,
        'Stage': df['workflow_stage'].values,
        'Stoplight': df['stoplight_status'].replace('', 'green').values,
        'Docs': docs,
        'Referral Date': to_naive_utc(df['referral_date']).dt.date.values,
        'Rep': df['rep_name'].values,
    })


def patient_display_frame(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=['id', 'Patient', 'Email', 'Insurance', 'Stoplight', 'Archived'])
    return pd.DataFrame({
        'id': df['id'].values,
        'Patient': df['name'].values,
        'Email': df['email'].values,
        'Insurance': df['primary_insurance'].values,
        'Stoplight': df['stoplight_status'].replace('', 'green').values,
        'Archived': df['is_archived_effective'].values,
    })


def render_selectable_table(display_df: pd.DataFrame, selection: SelectionState, key: str,
                            column_config: Optional[Dict] = None) -> None:
    """
    Shows `display_df` with a leading checkbox column bound to `selection`.
    The widget key includes the selection version so select-all/clear re-render it.
    """
    visible_ids = display_df['id'].tolist()
    header = st.columns([0.2, 0.2, 0.6])
    if header[0].button("Select all / none", key=f"{key}_select_all", disabled=not visible_ids):
        selection.select_all(visible_ids)
        st.rerun()
    if header[1].button("Clear selection", key=f"{key}_clear", disabled=selection.count() == 0):
        selection.clear()
        st.rerun()

    editor_df = display_df.copy()
    editor_df.insert(0, SELECT_COL, editor_df['id'].map(selection.is_selected).astype(bool))
    config = {
        SELECT_COL: st.column_config.CheckboxColumn(SELECT_COL, width="small"),
        'id': None,
        'Stoplight': st.column_config.TextColumn(
            'Stoplight', help=" / ".join(settings.STOPLIGHT_STATUSES)),
        **(column_config or {}),
    }
    edited = st.data_editor(
        editor_df, hide_index=True, use_container_width=True, column_config=config,
        disabled=[c for c in editor_df.columns if c != SELECT_COL],
        key=f"{key}_editor_{selection.version}",
    )
    # Rows filtered out of view keep their selection until the filter signature changes.
    hidden_selected = selection.selected - set(visible_ids)
    selection.replace(hidden_selected | set(edited.loc[edited[SELECT_COL], 'id']))
