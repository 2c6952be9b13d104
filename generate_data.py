# referral_tracker/generate_data.py
# SYNTHETIC REFERRAL SNAPSHOT GENERATOR
#
# Writes data_sources/referral_snapshot.json, the file the dashboards read in
# read-only demo mode: {"patients": [...], "orders": [...]}, where each order
# embeds its denials, equipment and workflow_history rows the way the hosted
# record store returns them.

import json
import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent))

from config import settings

# --- Configuration for Data Generation ---
SEED = 42
NUM_PATIENTS = 180
AVG_ORDERS_PER_PATIENT = 1.6
DAYS_OF_DATA = 120
ARCHIVED_PATIENT_RATE = 0.08
MISSING_PATIENT_ORDERS = 4  # orphaned orders, exercises the "no patient" paths

END_DATE = datetime.now(timezone.utc).replace(microsecond=0)
START_DATE = END_DATE - timedelta(days=DAYS_OF_DATA - 1)

FIRST_NAMES = ["Ana", "José", "Amélie", "Chloé", "Zoë", "Liam", "Noah", "Olivia", "Emma", "Mateo",
               "Sofía", "Björn", "Aisha", "Kenji", "Priya", "Marcus", "Élodie", "Ines", "Omar", "Grace"]
LAST_NAMES = ["García", "Smith", "Nguyen", "Müller", "O'Brien", "Johnson", "Álvarez", "Kowalski",
              "Brown", "Dubois", "Okafor", "Patel", "Rossi", "Lee", "Fernández", "Walker"]
INSURANCES = ["Medicare", "Medicaid", "Aetna", "BlueCross", "Cigna", "UnitedHealthcare", "Humana"]
PAYER_REGIONS = ["North", "South", "East", "West"]
REPS = ["Dana Cole", "Sam Ortiz", "Lee Park", "Riley Shah", "Morgan Diaz"]
EQUIPMENT = ["Power Wheelchair", "Hospital Bed", "CPAP", "Oxygen Concentrator", "Walker", "Patient Lift"]
DENIAL_REASONS = ["Missing CMN", "Not medically necessary", "Out of network", "Expired prescription"]

# Later stages are rarer; weights line up with settings.WORKFLOW_STAGES.
STAGE_WEIGHTS = np.array([0.18, 0.18, 0.16, 0.16, 0.14, 0.10, 0.08])
STAGE_WEIGHTS = STAGE_WEIGHTS / STAGE_WEIGHTS.sum()
STOPLIGHT_WEIGHTS = [0.55, 0.30, 0.15]

rng = np.random.default_rng(SEED)


def iso(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


def random_timestamp(start: datetime, end: datetime) -> datetime:
    span = int((end - start).total_seconds())
    return start + timedelta(seconds=int(rng.integers(0, max(span, 1))))


def new_id() -> str:
    return str(uuid.UUID(bytes=rng.bytes(16), version=4))


def build_patient(created_at: datetime) -> dict:
    doc_keys = list(settings.DOCUMENT_LABELS)
    n_required = int(rng.integers(0, 5))
    required = sorted(rng.choice(doc_keys, size=n_required, replace=False).tolist()) if n_required else []
    dob = pd.Timestamp(END_DATE.date()) - pd.Timedelta(days=int(rng.integers(18 * 365, 95 * 365)))
    first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
    return {
        'id': new_id(),
        'name': f"{first} {last}",
        'dob': dob.strftime("%Y-%m-%d"),
        'email': f"{first.lower()}.{last.lower().replace(chr(39), '')}@example.org" if rng.random() < 0.8 else None,
        'primary_insurance': str(rng.choice(INSURANCES)),
        'required_documents': required,
        'archived': bool(rng.random() < ARCHIVED_PATIENT_RATE),
        'stoplight_status': str(rng.choice(settings.STOPLIGHT_STATUSES, p=STOPLIGHT_WEIGHTS)) if rng.random() < 0.9 else None,
        'created_at': iso(created_at),
    }


def build_history(order_id: str, final_index: int, created_at: datetime, updated_at: datetime) -> list:
    """Forward walk to the final stage, with the occasional step backwards on the way."""
    stages = settings.WORKFLOW_STAGES
    path = list(range(final_index + 1))
    if final_index >= 2 and rng.random() < 0.15:
        back_at = int(rng.integers(2, final_index + 1))
        back_to = int(rng.integers(0, back_at))
        path = path[:back_at + 1] + list(range(back_to, final_index + 1))

    times = pd.date_range(created_at, updated_at, periods=len(path)).to_pydatetime() if len(path) > 1 else [created_at]
    history = []
    for prev_idx, new_idx, ts in zip(path, path[1:], times[1:]):
        regression = new_idx < prev_idx
        history.append({
            'id': new_id(),
            'order_id': order_id,
            'previous_stage': stages[prev_idx],
            'new_stage': stages[new_idx],
            'reason': str(rng.choice(settings.REGRESSION_REASONS)) if regression else None,
            'notes': "Sent back for correction." if regression else None,
            'changed_by': str(rng.choice(REPS)),
            'created_at': iso(ts),
        })
    return history


def build_order(patient: dict, patient_id: str) -> dict:
    created_at = random_timestamp(START_DATE, END_DATE)
    updated_at = random_timestamp(created_at, END_DATE)
    order_id = new_id()
    stage_index = int(rng.choice(len(settings.WORKFLOW_STAGES), p=STAGE_WEIGHTS))
    stage = settings.WORKFLOW_STAGES[stage_index]

    required = patient.get('required_documents', []) if patient else []
    # Orders further along the workflow tend to have more documentation in hand.
    complete_p = 0.3 + 0.6 * stage_index / (len(settings.WORKFLOW_STAGES) - 1)
    document_status = {key: ("Complete" if rng.random() < complete_p else "Missing") for key in required}

    if stage == "Delivered":
        status = str(rng.choice(["Delivered", "Closed"]))
    else:
        status = str(rng.choice(["Open", "On Hold", "Archived"], p=[0.85, 0.1, 0.05]))

    referral_date = created_at - timedelta(days=int(rng.integers(0, 10))) if rng.random() < 0.92 else None
    denials = [
        {'id': new_id(), 'order_id': order_id, 'reason': str(rng.choice(DENIAL_REASONS)), 'created_at': iso(updated_at)}
        for _ in range(int(rng.random() < 0.12))
    ]
    equipment = [
        {'id': new_id(), 'order_id': order_id, 'name': str(rng.choice(EQUIPMENT))}
        for _ in range(int(rng.integers(0, 3)))
    ]
    history = build_history(order_id, stage_index, created_at, updated_at)

    return {
        'id': order_id,
        'patient_id': patient_id,
        'workflow_stage': stage,
        'status': status,
        'is_archived': bool(rng.random() < 0.06) or None,
        'stoplight_status': str(rng.choice(settings.STOPLIGHT_STATUSES, p=STOPLIGHT_WEIGHTS)),
        'document_status': document_status,
        'payer_region': str(rng.choice(PAYER_REGIONS)),
        'rep_name': str(rng.choice(REPS)),
        'referral_date': iso(referral_date) if referral_date else None,
        'last_stage_change': history[-1]['created_at'] if history else iso(created_at),
        'last_stage_note': history[-1]['notes'] if history and history[-1]['notes'] else None,
        'created_at': iso(created_at),
        'updated_at': iso(updated_at),
        'denials': denials,
        'equipment': equipment,
        'workflow_history': history,
    }


def main(output_path: Path = settings.SNAPSHOT_PATH) -> None:
    patients = [build_patient(random_timestamp(START_DATE - timedelta(days=60), END_DATE)) for _ in range(NUM_PATIENTS)]

    orders = []
    order_counts = np.clip(rng.poisson(AVG_ORDERS_PER_PATIENT, size=len(patients)), 1, None)
    for patient, n_orders in zip(patients, order_counts):
        orders.extend(build_order(patient, patient['id']) for _ in range(int(n_orders)))
    orders.extend(build_order({}, new_id()) for _ in range(MISSING_PATIENT_ORDERS))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump({'patients': patients, 'orders': orders}, f, indent=2, ensure_ascii=False)

    orders_df = pd.DataFrame(orders)
    print(f"Generated {len(patients)} patients and {len(orders)} orders.")
    print(f"Data saved to {output_path.resolve()}")
    print(f"\nDate range of generated orders: {START_DATE:%Y-%m-%d} to {END_DATE:%Y-%m-%d}")
    print("\nWorkflow stage distribution:")
    print(orders_df['workflow_stage'].value_counts().reindex(settings.WORKFLOW_STAGES, fill_value=0))
    print("\nOrders with a regression:",
          int(orders_df['workflow_history'].map(lambda h: any(
              settings.WORKFLOW_STAGES.index(x['new_stage']) < settings.WORKFLOW_STAGES.index(x['previous_stage'])
              for x in h)).sum()))


if __name__ == "__main__":
    main()
