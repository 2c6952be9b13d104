# referral_tracker/data_processing/__init__.py
# PACKAGE API

"""
Initializes the data_processing package, defining its public API.

Pure modules (helpers, workflow, enrichment, filters, logic, loaders) are
exported here. The Streamlit caching layer lives in `data_processing.cached`
and is imported directly by the pages so the pure engines stay importable
without a running Streamlit session.
"""

# --- Core Data Pipeline & Utilities from helpers.py ---
from .helpers import (
    DataPipeline,
    convert_to_numeric,
    hash_dataframe,
    parse_timestamp,
    robust_json_load,
    to_naive_utc
)

# --- Workflow Stage Ordering from workflow.py ---
from .workflow import (
    InvalidStageError,
    is_backward,
    stage_index,
    validate_stage
)

# --- Record Enrichment from enrichment.py ---
from .enrichment import (
    document_readiness,
    enrich_referrals_with_kpis,
    is_ready
)

# --- Filter Predicate Engine from filters.py ---
from .filters import (
    AdvancedFilters,
    ReferralFilters,
    describe_view,
    filter_patients,
    filter_referrals,
    is_view_filtered
)

# --- Pure Aggregation Logic from logic.py ---
from .logic import (
    bucket_weekly,
    calculate_dashboard_kpis,
    calculate_delta,
    calculate_period_metrics,
    calculate_trend,
    has_enough_trend_points
)

# --- Snapshot Loading from loaders.py ---
from .loaders import (
    fetch_patient_snapshot,
    fetch_referral_snapshot,
    load_snapshot_file,
    normalize_referral_records,
    patients_from_snapshot,
    referrals_from_snapshot
)


# --- Define the canonical public API for the package ---
__all__ = [
    # helpers.py
    "DataPipeline",
    "convert_to_numeric",
    "hash_dataframe",
    "parse_timestamp",
    "robust_json_load",
    "to_naive_utc",

    # workflow.py
    "InvalidStageError",
    "is_backward",
    "stage_index",
    "validate_stage",

    # enrichment.py
    "document_readiness",
    "enrich_referrals_with_kpis",
    "is_ready",

    # filters.py
    "AdvancedFilters",
    "ReferralFilters",
    "describe_view",
    "filter_patients",
    "filter_referrals",
    "is_view_filtered",

    # logic.py
    "bucket_weekly",
    "calculate_dashboard_kpis",
    "calculate_delta",
    "calculate_period_metrics",
    "calculate_trend",
    "has_enough_trend_points",

    # loaders.py
    "fetch_patient_snapshot",
    "fetch_referral_snapshot",
    "load_snapshot_file",
    "normalize_referral_records",
    "patients_from_snapshot",
    "referrals_from_snapshot",
]
