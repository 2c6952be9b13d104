# referral_tracker/state/selection.py
# ROW SELECTION STATE FOR BULK ACTIONS

import logging
from typing import Any, Iterable, List, MutableMapping, Set

logger = logging.getLogger(__name__)


class SelectionState:
    """
    Selected row ids for one table, kept inside a session-state mapping so they
    survive Streamlit reruns.

    Usage:
        selection = SelectionState(st.session_state, "referrals")
        selection.reset_if_changed(filters.model_dump_json())
        selection.toggle(order_id)
    """

    def __init__(self, store: MutableMapping[str, Any], scope: str):
        self._store = store
        self._ids_key = f"selection_{scope}_ids"
        self._signature_key = f"selection_{scope}_signature"
        self._version_key = f"selection_{scope}_version"
        if self._ids_key not in self._store:
            self._store[self._ids_key] = []

    @property
    def version(self) -> int:
        """Bumped on programmatic changes so table widgets keyed on it re-render."""
        return self._store.get(self._version_key, 0)

    def _bump(self) -> None:
        self._store[self._version_key] = self.version + 1

    @property
    def selected(self) -> Set[str]:
        return set(self._store.get(self._ids_key, []))

    def _save(self, ids: Iterable[str]) -> None:
        # Stored as a sorted list so session state stays JSON-friendly.
        self._store[self._ids_key] = sorted(set(ids))

    def is_selected(self, row_id: str) -> bool:
        return row_id in self.selected

    def count(self) -> int:
        return len(self.selected)

    def as_list(self) -> List[str]:
        return list(self._store.get(self._ids_key, []))

    def set(self, row_id: str, checked: bool) -> None:
        ids = self.selected
        if checked:
            ids.add(row_id)
        else:
            ids.discard(row_id)
        self._save(ids)

    def replace(self, row_ids: Iterable[str]) -> None:
        self._save(row_ids)

    def toggle(self, row_id: str) -> bool:
        """Flips one row and returns its new selected state."""
        now_selected = not self.is_selected(row_id)
        self.set(row_id, now_selected)
        return now_selected

    def select_all(self, visible_ids: Iterable[str]) -> bool:
        """Selects every visible row, or clears the selection if they already are all selected."""
        visible = set(visible_ids)
        if visible and visible.issubset(self.selected):
            self.clear()
            return False
        self._save(visible)
        self._bump()
        return bool(visible)

    def clear(self) -> None:
        self._save([])
        self._bump()

    def reset_if_changed(self, signature: str) -> bool:
        """Clears the selection when the filter signature differs from the last one seen."""
        previous = self._store.get(self._signature_key)
        self._store[self._signature_key] = signature
        if previous is not None and previous != signature and self.selected:
            logger.debug(f"Filters changed; clearing {self.count()} selected rows.")
            self.clear()
            return True
        return False
