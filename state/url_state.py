# referral_tracker/state/url_state.py
# TWO-WAY SYNC BETWEEN FILTERS AND URL QUERY PARAMETERS

"""
Maps the referral view's filter state onto the URL query string so a view
can be bookmarked or shared. Works on any mapping (e.g. `st.query_params`).
"""

import logging
from datetime import date
from typing import Any, Dict, Mapping, MutableMapping, Optional

from data_processing.filters import AdvancedFilters, ReferralFilters

logger = logging.getLogger(__name__)

ARCHIVE_MODES = ('active', 'archived', 'all')
OPEN_PATIENT_PARAM = 'openPatientId'

# query parameter -> AdvancedFilters field
ADVANCED_PARAMS = {
    'insurance': 'insurance',
    'dateStart': 'date_start',
    'dateEnd': 'date_end',
    'region': 'payer_region',
    'rep': 'rep_name',
}
FILTER_PARAMS = ('account', 'archive_status', 'stoplight_status', *ADVANCED_PARAMS)


def _first(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = value[-1] if value else ''
    return str(value).strip() if value is not None else ''


def _parse_date(raw: str, param: str) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed '{param}' query parameter: {raw!r}")
        return None


def filters_from_query_params(params: Mapping[str, Any], base: Optional[ReferralFilters] = None) -> ReferralFilters:
    """
    Builds filters from the URL. Parameters that are absent keep the value
    from `base`; an unknown archive_status falls back to 'active'.
    """
    base = base or ReferralFilters()
    updates: Dict[str, Any] = {}

    if 'account' in params:
        updates['account'] = _first(params['account'])
    if 'archive_status' in params:
        mode = _first(params['archive_status']).lower()
        updates['archive_mode'] = mode if mode in ARCHIVE_MODES else 'active'
    if 'stoplight_status' in params:
        updates['stoplight_status'] = _first(params['stoplight_status']).lower()

    advanced_updates: Dict[str, Any] = {}
    for param, field in ADVANCED_PARAMS.items():
        if param not in params:
            continue
        raw = _first(params[param])
        advanced_updates[field] = _parse_date(raw, param) if field in ('date_start', 'date_end') else raw

    if advanced_updates:
        updates['advanced'] = AdvancedFilters(**{**base.advanced.model_dump(), **advanced_updates})
    return base.model_copy(update=updates)


def filters_to_query_params(filters: ReferralFilters) -> Dict[str, str]:
    """The URL-backed subset of the filters, omitting anything at its default."""
    params: Dict[str, str] = {}
    if filters.account:
        params['account'] = filters.account
    if filters.archive_mode != 'active':
        params['archive_status'] = filters.archive_mode
    if filters.stoplight_status:
        params['stoplight_status'] = filters.stoplight_status

    adv = filters.advanced
    for param, field in ADVANCED_PARAMS.items():
        value = getattr(adv, field)
        if value:
            params[param] = value.isoformat() if isinstance(value, date) else str(value)
    return params


def pop_open_patient_id(params: MutableMapping[str, Any]) -> Optional[str]:
    """Reads and removes the one-shot `openPatientId` navigation parameter."""
    if OPEN_PATIENT_PARAM not in params:
        return None
    patient_id = _first(params[OPEN_PATIENT_PARAM])
    del params[OPEN_PATIENT_PARAM]
    return patient_id or None


def cleared_query_params(params: Mapping[str, Any]) -> Dict[str, str]:
    """Query parameters with every filter key removed; unrelated keys survive."""
    return {k: _first(v) for k, v in params.items() if k not in FILTER_PARAMS}


def sync_query_params(params: MutableMapping[str, Any], filters: ReferralFilters) -> bool:
    """Writes the filters back onto `params`, touching it only when something changed."""
    desired = {**cleared_query_params(params), **filters_to_query_params(filters)}
    current = {k: _first(v) for k, v in params.items()}
    if desired == current:
        return False
    for key in list(params.keys()):
        if key not in desired:
            del params[key]
    for key, value in desired.items():
        if current.get(key) != value:
            params[key] = value
    return True
