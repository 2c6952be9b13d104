# referral_tracker/state/__init__.py

"""
UI state containers that outlive a single Streamlit rerun: row selection,
URL query-parameter sync and the optimistic document toggle.
"""

from .doc_toggle import OptimisticDocumentToggle
from .selection import SelectionState
from .url_state import (cleared_query_params, filters_from_query_params,
                        filters_to_query_params, pop_open_patient_id,
                        sync_query_params)

__all__ = [
    "OptimisticDocumentToggle",
    "SelectionState",
    "cleared_query_params",
    "filters_from_query_params",
    "filters_to_query_params",
    "pop_open_patient_id",
    "sync_query_params",
]
