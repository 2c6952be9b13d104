# referral_tracker/state/doc_toggle.py
# OPTIMISTIC DOCUMENT-STATUS TOGGLE

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from record_store.exceptions import MutationError

logger = logging.getLogger(__name__)

COMPLETE = "Complete"
MISSING = "Missing"

PENDING = "pending"
COMMITTED = "committed"
REVERTED = "reverted"

Dispatch = Callable[[str, str], Any]


class OptimisticDocumentToggle:
    """
    Per document-key state machine for a referral's required documents.

    `toggle` flips the displayed status immediately (pending), then sends it.
    On success the key is committed and can be undone; on failure the display
    reverts and the inverse mutation is re-issued so the stored map matches.
    """

    def __init__(self, required_keys: Iterable[str], document_status: Optional[Mapping[str, Any]] = None):
        document_status = document_status or {}
        self.docs: Dict[str, str] = {
            key: COMPLETE if document_status.get(key) == COMPLETE else MISSING
            for key in required_keys
        }
        self.states: Dict[str, str] = {}
        self._previous: Dict[str, str] = {}

    @staticmethod
    def flip(status: str) -> str:
        return MISSING if status == COMPLETE else COMPLETE

    def state_of(self, key: str) -> Optional[str]:
        return self.states.get(key)

    def toggle(self, key: str, dispatch: Dispatch) -> bool:
        """Returns True when the new status was stored, False when it was reverted."""
        if key not in self.docs:
            raise KeyError(f"'{key}' is not a required document.")

        previous = self.docs[key]
        self.docs[key] = self.flip(previous)
        self.states[key] = PENDING
        try:
            dispatch(key, self.docs[key])
        except MutationError as e:
            logger.error(f"Document '{key}' update failed, reverting to {previous}: {e}")
            self.docs[key] = previous
            self.states[key] = REVERTED
            self._reissue(key, previous, dispatch)
            return False

        self._previous[key] = previous
        self.states[key] = COMMITTED
        return True

    def undo(self, key: str, dispatch: Dispatch) -> None:
        """Restores the status a committed toggle replaced; MutationError propagates to the caller."""
        if self.states.get(key) != COMMITTED:
            raise ValueError(f"Nothing to undo for document '{key}'.")
        previous = self._previous.pop(key)
        committed = self.docs[key]
        self.docs[key] = previous
        try:
            dispatch(key, previous)
        except MutationError:
            self.docs[key] = committed
            self._previous[key] = previous
            raise
        self.states[key] = REVERTED

    def _reissue(self, key: str, status: str, dispatch: Dispatch) -> None:
        try:
            dispatch(key, status)
        except MutationError as e:
            logger.error(f"Re-issuing '{key}' = {status} also failed: {e}")
