# referral_tracker/data_processing/filters.py
# FILTER PREDICATE ENGINE

"""
Pure, Streamlit-free predicates that decide which referrals and patients are
visible for a given set of filter criteria.

Every function here takes a DataFrame and returns a new one; inputs are never
mutated and applying the same filters twice yields the same rows in the same
order.
"""

import logging
import unicodedata
from datetime import date
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field, field_validator

from config import settings
from .enrichment import COMPLETE
from .helpers import to_naive_utc

logger = logging.getLogger(__name__)

ArchiveMode = Literal['active', 'archived', 'all']

END_OF_DAY = pd.Timedelta(hours=23, minutes=59, seconds=59, milliseconds=999)


# --- Filter Criteria Models ---

class AdvancedFilters(BaseModel):
    first_name: str = ''
    last_name: str = ''
    dob: Optional[date] = None
    insurance: str = ''
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    workflow_stage: str = ''
    doc_filter_key: str = ''
    doc_filter_status: str = ''
    payer_region: str = ''
    rep_name: str = ''

    @field_validator('dob', 'date_start', 'date_end', mode='before')
    @classmethod
    def blank_dates_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def is_active(self) -> bool:
        return any(bool(v) for v in self.model_dump().values())

    def insurance_list(self) -> List[str]:
        return [part.strip().lower() for part in self.insurance.split(',') if part.strip()]


class ReferralFilters(BaseModel):
    archive_mode: ArchiveMode = 'active'
    search_term: str = ''
    active_stages: List[str] = Field(default_factory=list)
    stoplight_status: str = ''
    account: str = ''
    advanced: AdvancedFilters = Field(default_factory=AdvancedFilters)


# --- Shared Predicates ---

def collation_key(value: Any) -> str:
    """Case-insensitive, accent-folded sort key; anything that isn't a name sorts as ''."""
    if not isinstance(value, str):
        return ''
    folded = unicodedata.normalize('NFKD', value)
    return ''.join(ch for ch in folded if not unicodedata.combining(ch)).casefold()


def sort_by_name(df: pd.DataFrame, name_col: str) -> pd.DataFrame:
    if df.empty or name_col not in df.columns:
        return df
    return df.sort_values(name_col, key=lambda s: s.map(collation_key), kind='mergesort')


def _column(df: pd.DataFrame, col: str, default: Any = '') -> pd.Series:
    if col in df.columns:
        return df[col]
    return pd.Series([default] * len(df), index=df.index, dtype=object)


def _lower_text(series: pd.Series) -> pd.Series:
    return series.map(lambda v: v.lower() if isinstance(v, str) else '')


def _contains(series: pd.Series, needle: str) -> pd.Series:
    return _lower_text(series).str.contains(needle.lower(), regex=False)


def _is_true(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_)) and bool(value)


def _archive_mask(archived: pd.Series, mode: str) -> pd.Series:
    flags = archived.map(_is_true)
    if mode == 'archived':
        return flags
    if mode == 'all':
        return pd.Series(True, index=archived.index)
    return ~flags


def document_policy_matches(required: Optional[Iterable[str]], status: Optional[Mapping[str, Any]],
                            key: str, policy: str) -> bool:
    """Evaluates one document requirement policy (Complete / Missing / Not Required) for one referral."""
    required = list(required or [])
    doc_status = (status or {}).get(key)
    if policy == 'Complete':
        return key in required and doc_status == COMPLETE
    if policy == 'Missing':
        return key in required and doc_status != COMPLETE
    if policy == 'Not Required':
        return key not in required
    return True


def _date_range_mask(dates: pd.Series, start: Optional[date], end: Optional[date]) -> pd.Series:
    """Rows without a date are never excluded by the bounds."""
    dates = to_naive_utc(dates)
    mask = pd.Series(True, index=dates.index)
    if start:
        mask &= dates.isna() | (dates >= pd.Timestamp(start))
    if end:
        mask &= dates.isna() | (dates <= pd.Timestamp(end) + END_OF_DAY)
    return mask


def _dob_mask(dobs: pd.Series, dob: Optional[date]) -> pd.Series:
    if not dob:
        return pd.Series(True, index=dobs.index)
    dobs = to_naive_utc(dobs)
    return dobs.isna() | (dobs.dt.date == dob)


def _doc_policy_mask(required: pd.Series, status: pd.Series, adv: AdvancedFilters) -> pd.Series:
    if not (adv.doc_filter_key and adv.doc_filter_status):
        return pd.Series(True, index=required.index)
    matches = [
        document_policy_matches(req, doc_status, adv.doc_filter_key, adv.doc_filter_status)
        for req, doc_status in zip(required, status)
    ]
    return pd.Series(matches, index=required.index, dtype=bool)


# --- Referral Filtering ---

def _advanced_referral_mask(df: pd.DataFrame, adv: AdvancedFilters) -> pd.Series:
    mask = _column(df, 'has_patient', True).astype(bool)
    names = _column(df, 'patient_name')

    if adv.first_name:
        mask &= _contains(names, adv.first_name)
    if adv.last_name:
        mask &= _contains(names, adv.last_name)
    mask &= _dob_mask(_column(df, 'patient_dob', None), adv.dob)

    insurances = adv.insurance_list()
    if insurances:
        mask &= _lower_text(_column(df, 'patient_primary_insurance')).isin(insurances)

    mask &= _date_range_mask(_column(df, 'referral_date', None), adv.date_start, adv.date_end)

    if adv.workflow_stage:
        mask &= _column(df, 'workflow_stage') == adv.workflow_stage
    mask &= _doc_policy_mask(_column(df, 'patient_required_documents', None), _column(df, 'document_status', None), adv)
    if adv.payer_region:
        mask &= _column(df, 'payer_region') == adv.payer_region
    if adv.rep_name:
        mask &= _column(df, 'rep_name') == adv.rep_name
    return mask


def filter_referrals(df: Optional[pd.DataFrame], filters: ReferralFilters) -> pd.DataFrame:
    """
    Applies every referral criterion as a logical AND and returns the visible
    rows sorted by patient name.

    Args:
        df (pd.DataFrame): Normalized referral snapshot (see loaders).
        filters (ReferralFilters): Current view criteria.

    Returns:
        A new, filtered and sorted DataFrame.
    """
    if not isinstance(df, pd.DataFrame):
        return pd.DataFrame()
    if df.empty:
        return df.copy()

    mask = _archive_mask(_column(df, 'is_archived', False), filters.archive_mode)

    if filters.account:
        mask &= _column(df, 'patient_primary_insurance') == filters.account
    if filters.active_stages:
        mask &= _column(df, 'workflow_stage').isin(filters.active_stages)
    if filters.stoplight_status:
        mask &= _column(df, 'stoplight_status') == filters.stoplight_status
    if filters.advanced.is_active():
        mask &= _advanced_referral_mask(df, filters.advanced)
    if filters.search_term:
        mask &= (_contains(_column(df, 'patient_name'), filters.search_term)
                 | _contains(_column(df, 'patient_primary_insurance'), filters.search_term)
                 | _contains(_column(df, 'workflow_stage'), filters.search_term))

    result = sort_by_name(df[mask.astype(bool)], 'patient_name')
    logger.debug(f"Referral filter kept {len(result)} of {len(df)} rows.")
    return result


# --- Patient Filtering ---

def latest_orders(orders_df: Optional[pd.DataFrame]) -> pd.DataFrame:
    """One row per patient: the order with the greatest updated_at (falling back to created_at); ties keep input order."""
    if not isinstance(orders_df, pd.DataFrame) or orders_df.empty or 'patient_id' not in orders_df.columns:
        return pd.DataFrame(columns=['patient_id'])
    recency = to_naive_utc(_column(orders_df, 'updated_at', None)).fillna(
        to_naive_utc(_column(orders_df, 'created_at', None)))
    ordered = orders_df.assign(_recency=recency).sort_values('_recency', ascending=False, kind='mergesort', na_position='last')
    return ordered.drop_duplicates('patient_id', keep='first').drop(columns='_recency').set_index('patient_id')


def patient_archive_flags(patients_df: pd.DataFrame, orders_df: Optional[pd.DataFrame]) -> pd.Series:
    """Archived when the patient is, or their latest order is archived or in a closed-out status."""
    latest = latest_orders(orders_df)
    flags = _column(patients_df, 'archived', False).map(_is_true)
    if latest.empty:
        return flags
    ids = _column(patients_df, 'id', None)
    latest_archived = ids.map(_column(latest, 'is_archived', False)).map(_is_true)
    latest_closed = ids.map(_column(latest, 'status', '')).isin(settings.ARCHIVED_ORDER_STATUSES)
    return flags | latest_archived | latest_closed


def _order_level_mask(orders_df: pd.DataFrame, patients_df: pd.DataFrame, adv: AdvancedFilters) -> pd.Series:
    """Patients with at least one order satisfying every order-level criterion."""
    has_order_criteria = adv.date_start or adv.date_end or adv.workflow_stage or (adv.doc_filter_key and adv.doc_filter_status)
    if not has_order_criteria:
        return pd.Series(True, index=patients_df.index)
    if not isinstance(orders_df, pd.DataFrame) or orders_df.empty:
        return pd.Series(False, index=patients_df.index)

    required_by_patient = dict(zip(_column(patients_df, 'id', None), _column(patients_df, 'required_documents', None)))
    order_mask = _date_range_mask(_column(orders_df, 'referral_date', None), adv.date_start, adv.date_end)
    if adv.workflow_stage:
        order_mask &= _column(orders_df, 'workflow_stage') == adv.workflow_stage
    order_mask &= _doc_policy_mask(_column(orders_df, 'patient_id', None).map(required_by_patient),
                                   _column(orders_df, 'document_status', None), adv)

    matching_ids = set(orders_df.loc[order_mask, 'patient_id'])
    return _column(patients_df, 'id', None).isin(matching_ids)


def filter_patients(patients_df: Optional[pd.DataFrame], orders_df: Optional[pd.DataFrame],
                    filters: ReferralFilters) -> pd.DataFrame:
    """Patient-level counterpart of filter_referrals; adds an `is_archived_effective` column."""
    if not isinstance(patients_df, pd.DataFrame):
        return pd.DataFrame()
    if patients_df.empty:
        return patients_df.copy()

    archived = patient_archive_flags(patients_df, orders_df)
    df = patients_df.assign(is_archived_effective=archived.astype(bool))
    mask = _archive_mask(df['is_archived_effective'], filters.archive_mode)

    if filters.search_term:
        mask &= (_contains(_column(df, 'name'), filters.search_term)
                 | _contains(_column(df, 'email'), filters.search_term)
                 | _contains(_column(df, 'primary_insurance'), filters.search_term))
    if filters.stoplight_status:
        mask &= _column(df, 'stoplight_status') == filters.stoplight_status

    adv = filters.advanced
    if adv.is_active():
        if adv.first_name:
            mask &= _contains(_column(df, 'name'), adv.first_name)
        if adv.last_name:
            mask &= _contains(_column(df, 'name'), adv.last_name)
        mask &= _dob_mask(_column(df, 'dob', None), adv.dob)
        if adv.insurance.strip():
            mask &= _contains(_column(df, 'primary_insurance'), adv.insurance.strip())
        mask &= _order_level_mask(orders_df, df, adv)

    return sort_by_name(df[mask.astype(bool)], 'name')


# --- View Summaries ---

def describe_view(filters: ReferralFilters) -> Dict[str, str]:
    """Query parameters describing how the current view deviates from the default one."""
    summary: Dict[str, str] = {}
    if filters.search_term:
        summary['search'] = filters.search_term
    if filters.account:
        summary['account'] = filters.account
    if filters.active_stages:
        summary['stages'] = ','.join(filters.active_stages)
    if filters.archive_mode != 'active':
        summary['archive'] = filters.archive_mode
    if filters.stoplight_status:
        summary['stoplight'] = filters.stoplight_status
    if filters.advanced.is_active():
        summary['advanced'] = 'Active'
    return summary


def is_view_filtered(filters: ReferralFilters) -> bool:
    return bool(describe_view(filters))
