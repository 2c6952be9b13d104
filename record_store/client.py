# referral_tracker/record_store/client.py
# THIN CLIENT FOR THE HOSTED, POSTGREST-STYLE RECORD STORE

"""
A minimal synchronous client over the record store's REST interface.

Every call is a single request/response pair: no pagination, no retries and
no chunking. HTTP failures are translated into `FetchError` (reads) or
`MutationError` (writes) so the pages can surface them without crashing the
session.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import requests

from config import settings
from .exceptions import FetchError, MutationError, RecordStoreError, RecordStoreNotConfigured

logger = logging.getLogger(__name__)

FilterValue = Union[str, int, bool, Iterable[Any]]


def _format_filter_value(value: FilterValue) -> str:
    """Renders a filter as a PostgREST operator: `eq.x`, or `in.(a,b)` for collections."""
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if isinstance(value, (list, tuple, set, frozenset)):
        items = ",".join(f'"{v}"' for v in value)
        return f"in.({items})"
    if value is None:
        return "is.null"
    return f"eq.{value}"


def build_filter_params(filters: Optional[Mapping[str, FilterValue]]) -> Dict[str, str]:
    return {column: _format_filter_value(value) for column, value in (filters or {}).items()}


class RecordStoreClient:
    """
    Usage:
        store = RecordStoreClient(url, api_key)
        rows = store.select("orders", "*, patients(*)")
        store.update("orders", {"is_archived": True}, {"id": order_id})
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise RecordStoreNotConfigured("Record store URL is not configured.")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if api_key:
            self.session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})

    def _url(self, path: str) -> str:
        return f"{self.base_url}/rest/v1/{path.lstrip('/')}"

    def _request(self, method: str, path: str, error_cls: type, **kwargs: Any) -> Any:
        url = self._url(path)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Record store {method} {path} failed in transit: {e}")
            raise error_cls(f"Could not reach the record store: {e}") from e

        if not response.ok:
            details = response.text
            logger.error(f"Record store {method} {path} returned {response.status_code}: {details}")
            raise error_cls(f"Record store request failed ({response.status_code}).",
                            status_code=response.status_code, details=details)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise error_cls("Record store returned a non-JSON body.", status_code=response.status_code) from e

    # --- Reads ---
    def select(self, table: str, columns: str = "*", filters: Optional[Mapping[str, FilterValue]] = None,
               order: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"select": columns, **build_filter_params(filters)}
        if order:
            params["order"] = order
        rows = self._request("GET", table, FetchError, params=params)
        logger.debug(f"Fetched {len(rows or [])} rows from '{table}'.")
        return rows or []

    # --- Writes ---
    def update(self, table: str, values: Mapping[str, Any], filters: Mapping[str, FilterValue]) -> Any:
        if not filters:
            raise MutationError(f"Refusing to update every row of '{table}' without a filter.")
        return self._request("PATCH", table, MutationError, params=build_filter_params(filters),
                             json=dict(values), headers={"Prefer": "return=minimal"})

    def insert(self, table: str, rows: Union[Mapping[str, Any], List[Mapping[str, Any]]]) -> Any:
        payload = [dict(r) for r in rows] if isinstance(rows, list) else dict(rows)
        return self._request("POST", table, MutationError, json=payload, headers={"Prefer": "return=minimal"})

    def rpc(self, function: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self._request("POST", f"rpc/{function}", MutationError, json=dict(params or {}))


def get_record_store() -> Optional[RecordStoreClient]:
    """Builds a client from settings, or returns None when running from a local snapshot."""
    cfg = settings.RECORD_STORE
    if not cfg.is_configured:
        logger.info("No record store URL configured; using the local snapshot in read-only mode.")
        return None
    try:
        return RecordStoreClient(cfg.url, cfg.api_key, timeout=cfg.timeout_seconds)
    except RecordStoreError as e:
        logger.error(f"Could not initialize record store client: {e}")
        return None
