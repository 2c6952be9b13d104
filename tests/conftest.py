# referral_tracker/tests/conftest.py
# PYTEST FIXTURES

import sys
from pathlib import Path

# --- Path Setup for Module Imports ---
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pandas as pd
import pytest

from data_processing import normalize_referral_records, patients_from_snapshot

# Reference "now" for every age-dependent assertion.
NOW = pd.Timestamp("2024-03-15 12:00:00")
PERIOD_START = "2024-03-01"
PERIOD_END = "2024-03-15"


def _patient(pid, name, insurance, required, dob="1950-06-01", email=None, archived=False, stoplight=None):
    return {
        'id': pid, 'name': name, 'dob': dob, 'email': email, 'primary_insurance': insurance,
        'required_documents': required, 'archived': archived, 'stoplight_status': stoplight,
    }


PATIENTS = {
    'p1': _patient('p1', "Zoë Adams", "Medicare", ["FACE", "CMN"], email="zoe@example.org", stoplight="green"),
    'p2': _patient('p2', "adam Brown", "Aetna", ["FACE", "CMN"], dob="1961-11-30", stoplight="yellow"),
    'p3': _patient('p3', "Émile Zola", "BlueCross", [], email="emile@example.org"),
    'p4': _patient('p4', "Carla Díaz", "Medicaid", ["RX"], dob="1948-02-29", stoplight="red"),
}


def _order(oid, patient_id, stage, created_at, **extra):
    base = {
        'id': oid, 'patient_id': patient_id, 'workflow_stage': stage, 'status': 'Open',
        'is_archived': False, 'stoplight_status': None, 'document_status': {},
        'payer_region': 'North', 'rep_name': 'Dana Cole', 'referral_date': None,
        'created_at': created_at, 'updated_at': created_at,
        'denials': [], 'equipment': [], 'workflow_history': [],
    }
    base.update(extra)
    return base


ORDERS = [
    _order('o1', 'p1', "Documentation Verification", "2024-03-10T00:00:00Z",
           stoplight_status='green', document_status={'FACE': 'Complete', 'CMN': 'Complete'},
           referral_date="2024-03-01T09:00:00Z", equipment=[{'id': 'e1'}]),
    _order('o2', 'p2', "Referral Received", "2024-03-12T00:00:00Z",
           stoplight_status='yellow', document_status={'FACE': 'Complete'},
           referral_date="2024-03-05T23:30:00Z", payer_region='South', rep_name='Sam Ortiz',
           denials=[{'id': 'd1'}],
           workflow_history=[{'previous_stage': "Insurance Verification", 'new_stage': "Referral Received"}]),
    _order('o3', 'p3', "Preauthorization (PAR)", "2024-03-02T00:00:00Z",
           workflow_history=[{'previous_stage': "Referral Received", 'new_stage': "Insurance Verification"}]),
    _order('o4', 'p1', "Delivered", "2024-03-11T00:00:00Z", is_archived=True, status='Delivered',
           updated_at="2024-03-14T00:00:00Z"),
    _order('o5', 'p9', "Referral Received", "2024-03-13T00:00:00Z"),
    _order('o6', 'p4', "Insurance Verification", "2024-02-20T00:00:00Z",
           stoplight_status='red', document_status={'RX': 'Complete'}, referral_date="2024-02-15T00:00:00Z"),
]


@pytest.fixture(scope="session")
def snapshot() -> dict:
    """Raw snapshot in the shape written by generate_data.py."""
    return {'patients': list(PATIENTS.values()), 'orders': [dict(o) for o in ORDERS]}


@pytest.fixture(scope="session")
def joined_records() -> list:
    """Orders with their patient embedded, as the record store returns them."""
    return [{**o, 'patients': PATIENTS.get(o['patient_id'])} for o in ORDERS]


@pytest.fixture
def referrals_df(joined_records) -> pd.DataFrame:
    """The normalized, enriched referral frame the pages work on."""
    return normalize_referral_records(joined_records)


@pytest.fixture
def patients_and_orders(snapshot):
    return patients_from_snapshot(snapshot)
