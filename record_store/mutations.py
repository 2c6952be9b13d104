# referral_tracker/record_store/mutations.py
# MUTATION DISPATCH: REQUEST SHAPES SENT TO THE RECORD STORE

"""
Thin functions that send updates, inserts, deletes and batch RPCs to the
record store. Each bulk operation is one request; partial success is not
modeled and nothing is retried. Callers clear the snapshot cache afterwards
so the next rerun reads fresh data.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from data_processing.workflow import is_backward, validate_stage
from .client import RecordStoreClient
from .exceptions import MutationError, RegressionReasonRequired

logger = logging.getLogger(__name__)

ORDERS = "orders"
PATIENTS = "patients"
REGRESSIONS = "regressions"
PATIENT_NOTES = "patient_notes"

DELETE_REFERRAL_RPC = "delete_referral_and_dependents"
BULK_UPDATE_DOCS_RPC = "bulk_update_order_docs"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StageChangeResult:
    order_id: str
    previous_stage: Optional[str]
    new_stage: str
    is_regression: bool


def build_stage_note(order: Mapping[str, Any], new_stage: str, note: str) -> Dict[str, Any]:
    return {
        "patient_id": order.get("patient_id"),
        "body": note,
        "source": "stage_change",
        "stage_from": order.get("workflow_stage"),
        "stage_to": new_stage,
    }


def build_regression_record(order: Mapping[str, Any], new_stage: str, reason: str,
                            note: str, user_id: Optional[str]) -> Dict[str, Any]:
    return {
        "order_id": order.get("id"),
        "reason": reason,
        "notes": note,
        "previous_stage": order.get("workflow_stage"),
        "new_stage": new_stage,
        "user_id": user_id,
    }


def change_stage(store: RecordStoreClient, order: Mapping[str, Any], new_stage: str, note: str,
                 regression_reason: Optional[str] = None, user_id: Optional[str] = None) -> StageChangeResult:
    """
    Moves one referral to `new_stage`. A backward move must carry a reason and
    writes a regression record; every move writes a stage-change patient note.

    Requests go out in order: order update, note insert, regression insert.
    They are not atomic, so a failed insert leaves the stage already moved and
    the MutationError propagates to the caller.
    """
    validate_stage(new_stage)
    previous_stage = order.get("workflow_stage")
    regression = is_backward(previous_stage, new_stage)
    if regression and not (regression_reason or "").strip():
        raise RegressionReasonRequired(
            f"Moving from '{previous_stage}' back to '{new_stage}' requires a reason.")

    store.update(ORDERS, {
        "workflow_stage": new_stage,
        "last_stage_note": note,
        "last_stage_change": _now_iso(),
    }, {"id": order.get("id")})
    store.insert(PATIENT_NOTES, build_stage_note(order, new_stage, note))

    if regression:
        store.insert(REGRESSIONS, build_regression_record(order, new_stage, regression_reason, note, user_id))
        logger.info(f"Recorded regression for order {order.get('id')}: '{previous_stage}' -> '{new_stage}'.")

    return StageChangeResult(order.get("id"), previous_stage, new_stage, regression)


def mass_update_stage(store: RecordStoreClient, orders: Sequence[Mapping[str, Any]],
                      order_ids: Sequence[str], new_stage: str, note: str) -> int:
    """Single `in.(...)` update for every selected order, then one batched notes insert."""
    if not order_ids:
        return 0
    validate_stage(new_stage)

    store.update(ORDERS, {
        "workflow_stage": new_stage,
        "last_stage_note": note,
        "last_stage_change": _now_iso(),
    }, {"id": list(order_ids)})

    note_payloads = [build_stage_note(o, new_stage, note) for o in selected_orders(orders, order_ids)]
    if note_payloads:
        store.insert(PATIENT_NOTES, note_payloads)

    logger.info(f"Mass-updated {len(order_ids)} referrals to '{new_stage}'.")
    return len(order_ids)


def set_archived(store: RecordStoreClient, order: Mapping[str, Any], archived: bool) -> bool:
    store.update(ORDERS, {"is_archived": archived}, {"id": order.get("id")})
    store.insert(PATIENT_NOTES, {
        "patient_id": order.get("patient_id"),
        "body": f"Referral {'archived' if archived else 'restored'}.",
        "source": "manual",
    })
    return archived


def bulk_archive_patients(store: RecordStoreClient, patient_ids: Sequence[str]) -> int:
    if not patient_ids:
        return 0
    store.update(PATIENTS, {"archived": True}, {"id": list(patient_ids)})
    logger.info(f"Archived {len(patient_ids)} patients.")
    return len(patient_ids)


def update_document_status(store: RecordStoreClient, order_id: str,
                           current_status: Optional[Mapping[str, Any]], key: str, status: str) -> Dict[str, Any]:
    """Patches the whole document-status map with one key changed and returns the new map."""
    updated = {**(current_status or {}), key: status}
    store.update(ORDERS, {"document_status": updated}, {"id": order_id})
    return updated


def delete_referral(store: RecordStoreClient, order_id: str) -> None:
    """Irreversible: the server removes the referral and every dependent row atomically."""
    if not order_id:
        raise MutationError("No referral id given for deletion.")
    store.rpc(DELETE_REFERRAL_RPC, {"p_order_id": order_id})
    logger.warning(f"Referral {order_id} permanently deleted.")


def bulk_update_documents(store: RecordStoreClient, order_ids: Sequence[str], doc_keys: Sequence[str],
                          note: str, user_email: Optional[str] = None) -> int:
    if not order_ids or not doc_keys:
        return 0
    store.rpc(BULK_UPDATE_DOCS_RPC, {
        "order_ids": list(order_ids),
        "doc_keys": list(doc_keys),
        "note": note,
        "user_email": user_email or "System",
    })
    return len(order_ids)


def selected_orders(orders: Sequence[Mapping[str, Any]], order_ids: Sequence[str]) -> List[Mapping[str, Any]]:
    wanted = set(order_ids)
    return [o for o in orders if o.get("id") in wanted]
