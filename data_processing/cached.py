# referral_tracker/data_processing/cached.py
# STREAMLIT CACHING LAYER

import logging
from typing import Any, Dict, Optional, Tuple

import pandas as pd
import streamlit as st

from config import settings
from record_store.client import get_record_store
from .filters import ReferralFilters, filter_patients, filter_referrals
from .helpers import hash_dataframe
from .loaders import (fetch_patient_snapshot, fetch_referral_snapshot, load_snapshot_file,
                      patients_from_snapshot, referrals_from_snapshot)
from .logic import bucket_weekly, calculate_dashboard_kpis

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = settings.CACHE_TTL_SECONDS


# --- Snapshot Fetches (cleared after every mutation) ---

@st.cache_data(ttl=CACHE_TTL_SECONDS, show_spinner="Loading referrals...")
def get_referral_snapshot() -> pd.DataFrame:
    """The full referral snapshot, from the record store or the local demo file."""
    store = get_record_store()
    if store is None:
        return referrals_from_snapshot(load_snapshot_file())
    return fetch_referral_snapshot(store)


@st.cache_data(ttl=CACHE_TTL_SECONDS, show_spinner="Loading patients...")
def get_patient_snapshot() -> Tuple[pd.DataFrame, pd.DataFrame]:
    store = get_record_store()
    if store is None:
        return patients_from_snapshot(load_snapshot_file())
    return fetch_patient_snapshot(store)


def clear_snapshot_cache() -> None:
    """Drops cached snapshots so the next rerun refetches fresh rows."""
    get_referral_snapshot.clear()
    get_patient_snapshot.clear()
    logger.debug("Snapshot caches cleared.")


# --- Memoized Engine Calls ---

def _filters_key(filters: ReferralFilters) -> str:
    return filters.model_dump_json()


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe, ReferralFilters: _filters_key})
def get_cached_filtered_referrals(df: Optional[pd.DataFrame], filters: ReferralFilters) -> pd.DataFrame:
    """Cached wrapper for filter_referrals."""
    return filter_referrals(df, filters)


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe, ReferralFilters: _filters_key})
def get_cached_filtered_patients(patients_df: Optional[pd.DataFrame], orders_df: Optional[pd.DataFrame],
                                 filters: ReferralFilters) -> pd.DataFrame:
    """Cached wrapper for filter_patients."""
    return filter_patients(patients_df, orders_df, filters)


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_dashboard_kpis(df: Optional[pd.DataFrame], start: pd.Timestamp, end: pd.Timestamp) -> Dict[str, Any]:
    """Cached wrapper for calculate_dashboard_kpis."""
    return calculate_dashboard_kpis(df, start, end)


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_weekly_buckets(df: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Cached wrapper for bucket_weekly."""
    return bucket_weekly(df)

