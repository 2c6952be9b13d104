# referral_tracker/data_processing/enrichment.py
# VECTORIZED REFERRAL ENRICHMENT

import logging
from typing import Any, Iterable, Mapping, Optional, Tuple

import pandas as pd

from .workflow import is_backward

logger = logging.getLogger(__name__)

COMPLETE = 'Complete'


def document_readiness(required: Optional[Iterable[str]], status: Optional[Mapping[str, Any]]) -> Tuple[int, int]:
    """Returns (completed, total) for a patient's required documents."""
    required = list(required or [])
    status = status or {}
    completed = sum(1 for key in required if status.get(key) == COMPLETE)
    return completed, len(required)


def is_ready(required: Optional[Iterable[str]], status: Optional[Mapping[str, Any]]) -> bool:
    """All required documents complete; a referral with none required is never ready."""
    completed, total = document_readiness(required, status)
    return total > 0 and completed == total


def has_backward_transition(history: Optional[Iterable[Mapping[str, Any]]]) -> bool:
    return any(is_backward(h.get('previous_stage'), h.get('new_stage')) for h in (history or []))


def enrich_referrals_with_kpis(df: pd.DataFrame) -> pd.DataFrame:
    """
    Adds the per-referral flag and count columns the dashboards and
    aggregations read: docs_completed, docs_required, is_ready, has_denial
    and has_regression.
    """
    if df.empty:
        return df

    enriched_df = df.copy()

    if all(c in enriched_df.columns for c in ['patient_required_documents', 'document_status']):
        readiness = [
            document_readiness(req, status)
            for req, status in zip(enriched_df['patient_required_documents'], enriched_df['document_status'])
        ]
        enriched_df['docs_completed'] = [r[0] for r in readiness]
        enriched_df['docs_required'] = [r[1] for r in readiness]
        enriched_df['is_ready'] = (enriched_df['docs_required'] > 0) & (enriched_df['docs_completed'] == enriched_df['docs_required'])

    if 'denial_count' in enriched_df.columns:
        enriched_df['has_denial'] = enriched_df['denial_count'] > 0

    if 'workflow_history' in enriched_df.columns:
        enriched_df['has_regression'] = enriched_df['workflow_history'].map(has_backward_transition).astype(bool)

    logger.debug(f"Enriched {len(df)} referral records with KPI flags.")
    return enriched_df
