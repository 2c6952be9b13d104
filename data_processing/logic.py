# referral_tracker/data_processing/logic.py
# PURE BACKEND AGGREGATION LOGIC

"""
Houses the pure, non-cached aggregation logic behind the dashboard and trends
pages: period metrics, period-over-period deltas and weekly bucketing.

This module has no dependency on Streamlit and can be safely imported by any
backend component, including the analytics modules and the tests.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

import numpy as np
import pandas as pd

from config import settings
from .enrichment import enrich_referrals_with_kpis
from .helpers import convert_to_numeric, parse_timestamp, to_naive_utc

logger = logging.getLogger(__name__)

COUNT_METRICS = ('new_referrals', 'ready_for_par', 'denials', 'regressions')
RATE_METRICS = ('docs_complete_percent', 'avg_age_days')
ONE_MILLISECOND = pd.Timedelta(milliseconds=1)
COUNTING_AGGS = ('count', 'size', 'nunique')

TimestampLike = Union[str, datetime, pd.Timestamp]


def _ensure_enriched(df: pd.DataFrame) -> pd.DataFrame:
    needed = {'is_ready', 'has_denial', 'has_regression', 'docs_completed', 'docs_required'}
    return df if needed.issubset(df.columns) else enrich_referrals_with_kpis(df)


def _window(df: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> pd.DataFrame:
    created = to_naive_utc(df['created_at'])
    return df[(created >= start) & (created <= end)]


def calculate_period_metrics(df: Optional[pd.DataFrame], start: TimestampLike, end: TimestampLike,
                             now: Optional[TimestampLike] = None) -> Dict[str, float]:
    """
    Computes the dashboard metrics for referrals created within [start, end].

    Args:
        df (pd.DataFrame): Referral snapshot (enriched or raw-normalized).
        start, end: Inclusive window bounds on `created_at`.
        now: Reference point for record age; defaults to the current UTC time.

    Returns:
        A dict with new_referrals, ready_for_par, denials, regressions,
        docs_complete_percent and avg_age_days.
    """
    empty = {'new_referrals': 0, 'ready_for_par': 0, 'denials': 0, 'regressions': 0,
             'docs_complete_percent': 0.0, 'avg_age_days': 0.0}
    if not isinstance(df, pd.DataFrame) or df.empty or 'created_at' not in df.columns:
        return empty

    period_df = _window(df, parse_timestamp(start), parse_timestamp(end))
    if period_df.empty:
        return empty
    period_df = _ensure_enriched(period_df)

    total_docs = int(period_df['docs_required'].sum())
    completed_docs = int(period_df['docs_completed'].sum())

    reference = parse_timestamp(now) if now is not None else pd.Timestamp.now(tz='UTC').tz_convert(None)
    ages = (reference - to_naive_utc(period_df['created_at'])).dt.days

    return {
        'new_referrals': int(len(period_df)),
        'ready_for_par': int(period_df['is_ready'].sum()),
        'denials': int(period_df['has_denial'].sum()),
        'regressions': int(period_df['has_regression'].sum()),
        'docs_complete_percent': (completed_docs / total_docs) * 100 if total_docs > 0 else 0.0,
        'avg_age_days': float(ages.mean()) if not ages.empty else 0.0,
    }


def calculate_delta(current: float, prev: float) -> float:
    """Relative change in percent; a zero baseline reads as +100% if anything appeared, else 0."""
    if prev == 0:
        return 100.0 if current > 0 else 0.0
    return ((current - prev) / prev) * 100


def previous_window(start: TimestampLike, end: TimestampLike):
    """The immediately preceding window of equal duration, ending 1ms before `start`."""
    start_ts, end_ts = parse_timestamp(start), parse_timestamp(end)
    return start_ts - (end_ts - start_ts), start_ts - ONE_MILLISECOND


def stoplight_counts(df: Optional[pd.DataFrame]) -> Dict[str, int]:
    counts = {status: 0 for status in settings.STOPLIGHT_STATUSES}
    if not isinstance(df, pd.DataFrame) or df.empty:
        return counts
    statuses = df.get('stoplight_status', pd.Series('', index=df.index))
    statuses = statuses.map(lambda v: v if isinstance(v, str) and v else 'green')
    for status, n in statuses.value_counts().items():
        counts[status] = counts.get(status, 0) + int(n)
    return counts


def calculate_dashboard_kpis(df: Optional[pd.DataFrame], start: TimestampLike, end: TimestampLike,
                             now: Optional[TimestampLike] = None) -> Dict[str, Any]:
    """
    Current vs previous period KPIs for the dashboard.

    Only non-archived referrals with a joined patient are considered. Count
    metrics carry a relative delta; docs_complete_percent and avg_age_days
    carry an absolute (current - previous) delta.
    """
    if isinstance(df, pd.DataFrame) and not df.empty:
        keep = ~df.get('is_archived', pd.Series(False, index=df.index)).fillna(False).astype(bool)
        if 'has_patient' in df.columns:
            keep &= df['has_patient'].astype(bool)
        df = df[keep]

    prev_start, prev_end = previous_window(start, end)
    current = calculate_period_metrics(df, start, end, now=now)
    previous = calculate_period_metrics(df, prev_start, prev_end, now=now)

    kpis: Dict[str, Dict[str, float]] = {}
    for key in COUNT_METRICS:
        kpis[key] = {'value': current[key], 'delta': calculate_delta(current[key], previous[key])}
    for key in RATE_METRICS:
        kpis[key] = {'value': current[key], 'delta': current[key] - previous[key]}

    current_rows = _window(df, parse_timestamp(start), parse_timestamp(end)) \
        if isinstance(df, pd.DataFrame) and not df.empty and 'created_at' in df.columns else pd.DataFrame()

    return {'kpis': kpis, 'stoplight_counts': stoplight_counts(current_rows), 'orders': current_rows}


def iso_week_key(ts: Any) -> Optional[str]:
    ts = parse_timestamp(ts)
    if pd.isna(ts):
        return None
    iso = ts.isocalendar()
    return f"{iso[0]}-W{iso[1]:02d}"


def bucket_weekly(df: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    Groups referrals by ISO week of creation.

    Returns:
        A DataFrame with columns week, new_referrals, docs_ready and archived,
        sorted ascending by week key.
    """
    columns = ['week', 'new_referrals', 'docs_ready', 'archived']
    if not isinstance(df, pd.DataFrame) or df.empty or 'created_at' not in df.columns:
        return pd.DataFrame(columns=columns)

    enriched = _ensure_enriched(df)
    work = pd.DataFrame({
        'week': enriched['created_at'].map(iso_week_key),
        'is_ready': enriched['is_ready'].astype(bool),
        'is_archived': enriched.get('is_archived', pd.Series(False, index=enriched.index)).fillna(False).astype(bool),
    }).dropna(subset=['week'])
    if work.empty:
        return pd.DataFrame(columns=columns)

    buckets = work.groupby('week').agg(
        new_referrals=('is_ready', 'size'),
        docs_ready=('is_ready', 'sum'),
        archived=('is_archived', 'sum'),
    ).reset_index().sort_values('week').reset_index(drop=True)
    return buckets[columns].astype({'new_referrals': int, 'docs_ready': int, 'archived': int})


def has_enough_trend_points(buckets: Optional[pd.DataFrame]) -> bool:
    """Single-point series are suppressed rather than drawn."""
    if not isinstance(buckets, pd.DataFrame):
        return False
    return len(buckets) >= settings.ANALYTICS.min_trend_points


def calculate_trend(df: Optional[pd.DataFrame], value_col: str, date_col: str, freq: str = 'D', agg_func: Union[str, Callable] = 'mean') -> pd.Series:
    """
    Resamples `value_col` over `date_col` at `freq`. Counting aggregations work
    on raw values (ids, flags); the others coerce the column to numbers first.
    Empty periods inside the range read as 0 for counts and sums.
    """
    if not isinstance(df, pd.DataFrame) or df.empty or not {date_col, value_col} <= set(df.columns):
        return pd.Series(dtype=np.float64)

    values = df[value_col]
    if agg_func not in COUNTING_AGGS:
        values = convert_to_numeric(values)
    series = pd.Series(values.to_numpy(), index=to_naive_utc(df[date_col]))
    series = series[series.index.notna() & series.notna()]
    if series.empty:
        return pd.Series(dtype=np.float64)

    try:
        trend = series.sort_index().resample(freq).agg(agg_func)
    except (ValueError, TypeError) as e:
        logger.error(f"Could not resample '{value_col}' by {freq}: {e}", exc_info=True)
        return pd.Series(dtype=np.float64)

    if agg_func in COUNTING_AGGS or agg_func == 'sum':
        trend = trend.fillna(0).astype(int)
    return trend
