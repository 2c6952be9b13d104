# referral_tracker/analytics/kpi_analyzer.py
# KPI ANALYSIS & PERIOD-OVER-PERIOD TABLE

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from config import settings
from data_processing.helpers import parse_timestamp, to_naive_utc
from data_processing.logic import calculate_dashboard_kpis, calculate_trend

logger = logging.getLogger(__name__)

# Display name -> (kpi key, delta kind, higher_is_better, trend column, trend aggregation)
KPI_DEFINITIONS = {
    "New Referrals": ("new_referrals", "percent", True, "id", "count"),
    "Ready for PAR": ("ready_for_par", "percent", True, "is_ready", "sum"),
    "Denials": ("denials", "percent", False, "has_denial", "sum"),
    "Regressions": ("regressions", "percent", False, "has_regression", "sum"),
    "Docs Complete (%)": ("docs_complete_percent", "absolute", True, None, None),
    "Avg. Age (Days)": ("avg_age_days", "absolute", False, None, None),
}


def format_delta(delta: float, kind: str) -> str:
    return f"{delta:+.1f}%" if kind == "percent" else f"{delta:+.1f}"


def is_good_change(delta: float, higher_is_better: bool) -> Optional[bool]:
    if delta == 0:
        return None
    return (delta > 0) if higher_is_better else (delta < 0)


def generate_kpi_summary_table(full_df: pd.DataFrame, start_date: Any, end_date: Any,
                               now: Optional[Any] = None) -> pd.DataFrame:
    """
    Builds one row per dashboard KPI with its current value, delta against the
    previous equal-length window and a weekly trend for sparklines.
    """
    if not isinstance(full_df, pd.DataFrame) or full_df.empty or 'created_at' not in full_df.columns:
        return pd.DataFrame()

    result = calculate_dashboard_kpis(full_df, start_date, end_date, now=now)
    kpis = result['kpis']

    lookback_start = parse_timestamp(end_date) - timedelta(days=settings.ANALYTICS.trend_lookback_days)
    trend_df_subset = full_df[to_naive_utc(full_df['created_at']) >= lookback_start]

    analysis_data: List[Dict[str, Any]] = []
    for name, (kpi_key, kind, higher_is_better, trend_col, trend_agg) in KPI_DEFINITIONS.items():
        value, delta = kpis[kpi_key]['value'], kpis[kpi_key]['delta']
        trend_values: List[float] = []
        if trend_col:
            trend_series = calculate_trend(trend_df_subset, value_col=trend_col, date_col='created_at', freq='W-MON', agg_func=trend_agg)
            trend_values = [float(v) for v in trend_series.tolist()]

        analysis_data.append({
            "Metric": name,
            "Key": kpi_key,
            "Current": value,
            "Delta": delta,
            "Delta Kind": kind,
            "Change": format_delta(delta, kind),
            "Is Good Change": is_good_change(delta, higher_is_better),
            "Trend": trend_values,
        })

    logger.debug(f"Built KPI summary table with {len(analysis_data)} rows.")
    return pd.DataFrame(analysis_data)
