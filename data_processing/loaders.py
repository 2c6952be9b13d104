# referral_tracker/data_processing/loaders.py
# SNAPSHOT LOADING & NORMALIZATION

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, Field

from config import settings
from record_store.client import RecordStoreClient
from record_store.exceptions import FetchError
from .enrichment import enrich_referrals_with_kpis
from .helpers import DataPipeline, robust_json_load

logger = logging.getLogger(__name__)

# --- Pydantic Models for Type-Safe Source Configuration ---

class QueryConfig(BaseModel):
    """Defines one read query against the record store and how to normalize it."""
    table: str
    columns: str = "*"
    date_cols: List[str] = Field(default_factory=list)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    required_cols: List[str] = Field(default_factory=list)

# --- Centralized Query Configuration ---

DATA_CONFIG: Dict[str, QueryConfig] = {
    'referrals': QueryConfig(
        table='orders',
        columns='*, patients(*), denials(id), equipment(id), workflow_history(previous_stage,new_stage)',
        date_cols=['created_at', 'updated_at', 'referral_date', 'last_stage_change', 'patient_dob'],
        defaults={
            'workflow_stage': '', 'is_archived': False, 'status': '', 'stoplight_status': '',
            'document_status': {}, 'workflow_history': [], 'last_stage_note': '',
            'payer_region': '', 'rep_name': '', 'denial_count': 0, 'equipment_count': 0,
            'patient_name': '', 'patient_email': '', 'patient_primary_insurance': '',
            'patient_required_documents': [], 'patient_archived': False, 'patient_stoplight_status': '',
        },
        required_cols=['id', 'patient_id', 'workflow_stage', 'created_at'],
    ),
    'patients': QueryConfig(
        table='patients',
        date_cols=['dob', 'created_at'],
        defaults={'name': '', 'email': '', 'primary_insurance': '', 'required_documents': [],
                  'archived': False, 'stoplight_status': ''},
        required_cols=['id', 'name'],
    ),
    'patient_orders': QueryConfig(
        table='orders',
        columns='id, patient_id, workflow_stage, status, is_archived, created_at, updated_at, referral_date, document_status',
        date_cols=['created_at', 'updated_at', 'referral_date'],
        defaults={'workflow_stage': '', 'status': '', 'is_archived': False, 'document_status': {}},
        required_cols=['id', 'patient_id'],
    ),
}

PATIENT_FIELDS = ['name', 'dob', 'email', 'primary_insurance', 'required_documents', 'archived', 'stoplight_status']

# --- Row Flattening ---

def _embedded_count(value: Any) -> int:
    """Counts an embedded relation; accepts a list of rows or an already-denormalized integer."""
    if isinstance(value, list):
        return len(value)
    if isinstance(value, (int, float)) and not pd.isna(value):
        return int(value)
    return 0


def flatten_referral_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Flattens one `orders` row with its joined patient into a single-level dict."""
    row = {k: v for k, v in record.items() if k not in ('patients', 'denials', 'equipment')}
    patient = record.get('patients')
    if isinstance(patient, list):
        patient = patient[0] if patient else None

    row['has_patient'] = isinstance(patient, Mapping)
    for field in PATIENT_FIELDS:
        row[f'patient_{field}'] = patient.get(field) if row['has_patient'] else None

    row['denial_count'] = _embedded_count(record.get('denials', record.get('denial_count')))
    row['equipment_count'] = _embedded_count(record.get('equipment', record.get('equipment_count')))
    return row


def _normalize(config_key: str, rows: List[Dict[str, Any]]) -> pd.DataFrame:
    config = DATA_CONFIG[config_key]
    if not rows:
        return pd.DataFrame(columns=list(dict.fromkeys(config.required_cols + list(config.defaults))))

    processed_df = (DataPipeline(pd.DataFrame(rows))
        .clean_column_names()
        .ensure_columns(config.defaults)
        .standardize_missing_values(config.defaults)
        .convert_date_columns(config.date_cols)
        .get_dataframe()
    )

    missing_cols = set(config.required_cols) - set(processed_df.columns)
    if missing_cols:
        raise FetchError(f"({config_key}) Schema validation failed. Missing required columns: {sorted(missing_cols)}")

    logger.info(f"({config_key}) Normalized {len(processed_df)} records.")
    return processed_df


def normalize_referral_records(records: List[Mapping[str, Any]]) -> pd.DataFrame:
    """Turns raw joined `orders` rows into the analytics-ready referral frame."""
    df = _normalize('referrals', [flatten_referral_record(r) for r in records])
    if df.empty:
        return df
    df['has_patient'] = df['has_patient'].astype(bool)
    return enrich_referrals_with_kpis(df)

# --- Main Loading Functions ---

def fetch_referral_snapshot(store: RecordStoreClient) -> pd.DataFrame:
    """One unfiltered fetch of every referral with its patient; filtering happens client-side."""
    config = DATA_CONFIG['referrals']
    rows = store.select(config.table, config.columns)
    return normalize_referral_records(rows)


def fetch_patient_snapshot(store: RecordStoreClient) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Fetches patients and their (slim) orders separately for the patients view."""
    patients_cfg, orders_cfg = DATA_CONFIG['patients'], DATA_CONFIG['patient_orders']
    patients = store.select(patients_cfg.table, patients_cfg.columns)
    orders = store.select(orders_cfg.table, orders_cfg.columns)
    return _normalize('patients', patients), _normalize('patient_orders', orders)


def load_snapshot_file(filepath_override: Optional[Union[str, Path]] = None) -> Dict[str, List[Dict[str, Any]]]:
    """
    Reads a local JSON snapshot produced by `generate_data.py`. Expected shape:
    {"patients": [...], "orders": [...]} with orders carrying embedded
    denials/equipment/workflow_history lists.
    """
    path = Path(filepath_override) if filepath_override else settings.SNAPSHOT_PATH
    data = robust_json_load(path)
    if not isinstance(data, dict):
        raise FetchError(f"Snapshot file at {path} is missing or malformed.")
    return {'patients': data.get('patients', []), 'orders': data.get('orders', [])}


def referrals_from_snapshot(snapshot: Mapping[str, List[Dict[str, Any]]]) -> pd.DataFrame:
    """Joins snapshot patients onto orders the way the record store embed would."""
    patients_by_id = {p.get('id'): p for p in snapshot.get('patients', [])}
    joined = [{**o, 'patients': patients_by_id.get(o.get('patient_id'))} for o in snapshot.get('orders', [])]
    return normalize_referral_records(joined)


def patients_from_snapshot(snapshot: Mapping[str, List[Dict[str, Any]]]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    return _normalize('patients', list(snapshot.get('patients', []))), _normalize('patient_orders', list(snapshot.get('orders', [])))
