# referral_tracker/analytics/trends.py
# WEEKLY TREND SUMMARY KPIs

from typing import Any, Dict, Optional

import pandas as pd


def summarize_weekly_trends(buckets: Optional[pd.DataFrame]) -> Dict[str, Any]:
    """
    Headline numbers for the trends page from `bucket_weekly` output.

    The busiest week is the first bucket with the highest referral count;
    the ready rate is docs-ready over new referrals, rounded to a whole percent.
    """
    if not isinstance(buckets, pd.DataFrame) or buckets.empty:
        return {'total': 0, 'busiest_week': 'N/A', 'ready_rate': 0}

    total = int(buckets['new_referrals'].sum())
    busiest = buckets.loc[buckets['new_referrals'].idxmax()]
    total_ready = int(buckets['docs_ready'].sum())
    ready_rate = int(round(total_ready / total * 100)) if total > 0 else 0

    return {
        'total': total,
        'busiest_week': f"{busiest['week']} ({int(busiest['new_referrals'])} referrals)",
        'ready_rate': ready_rate,
    }
