# referral_tracker/tests/test_record_store.py
# RECORD STORE CLIENT & MUTATION DISPATCH TESTS

from unittest.mock import MagicMock, patch

import pytest
import requests

from data_processing import InvalidStageError
from record_store import (FetchError, MutationError, RecordStoreClient, RecordStoreNotConfigured,
                          RegressionReasonRequired, build_filter_params, bulk_archive_patients,
                          bulk_update_documents, change_stage, delete_referral, get_record_store,
                          mass_update_stage, set_archived, update_document_status)

BASE_URL = "https://records.example.org"


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.content = b"" if payload is None else b"x"
    response.json.return_value = payload
    response.text = "error body" if not response.ok else ""
    return response


@pytest.fixture
def session():
    mock_session = MagicMock()
    mock_session.headers = {}
    mock_session.request.return_value = _response(204)
    return mock_session


@pytest.fixture
def store(session):
    return RecordStoreClient(BASE_URL + "/", api_key="secret", timeout=5, session=session)


def _calls(session):
    """(method, path, kwargs) for every request the session saw."""
    prefix = f"{BASE_URL}/rest/v1/"
    return [(c.args[0], c.args[1][len(prefix):], c.kwargs) for c in session.request.call_args_list]


# --- Client ---
def test_client_requires_url():
    with pytest.raises(RecordStoreNotConfigured):
        RecordStoreClient("")


def test_client_sets_auth_headers(store, session):
    assert session.headers["apikey"] == "secret"
    assert session.headers["Authorization"] == "Bearer secret"


def test_build_filter_params():
    assert build_filter_params({'id': 'o1', 'is_archived': False, 'patient_id': ['p1', 'p2']}) == {
        'id': 'eq.o1', 'is_archived': 'eq.false', 'patient_id': 'in.("p1","p2")',
    }
    assert build_filter_params(None) == {}


def test_select_sends_columns_and_returns_rows(store, session):
    session.request.return_value = _response(200, [{'id': 'o1'}])
    rows = store.select("orders", "*, patients(*)", filters={'is_archived': False}, order="created_at.desc")
    assert rows == [{'id': 'o1'}]
    method, path, kwargs = _calls(session)[0]
    assert (method, path) == ("GET", "orders")
    assert kwargs['params'] == {'select': "*, patients(*)", 'is_archived': 'eq.false', 'order': "created_at.desc"}
    assert kwargs['timeout'] == 5


def test_select_http_error_raises_fetch_error(store, session):
    session.request.return_value = _response(500)
    with pytest.raises(FetchError) as exc_info:
        store.select("orders")
    assert exc_info.value.status_code == 500
    assert exc_info.value.details == "error body"


def test_transport_error_raises_mutation_error_on_writes(store, session):
    session.request.side_effect = requests.ConnectionError("boom")
    with pytest.raises(MutationError):
        store.update("orders", {'is_archived': True}, {'id': 'o1'})


def test_update_without_filter_is_refused(store, session):
    with pytest.raises(MutationError):
        store.update("orders", {'is_archived': True}, {})
    session.request.assert_not_called()


@patch('record_store.client.settings')
def test_get_record_store_returns_none_when_unconfigured(mock_settings):
    mock_settings.RECORD_STORE.is_configured = False
    assert get_record_store() is None


# --- Stage Changes ---
ORDER = {'id': 'o1', 'patient_id': 'p1', 'workflow_stage': "Preauthorization (PAR)"}


def test_forward_stage_change_updates_order_and_writes_note(store, session):
    result = change_stage(store, ORDER, "Ready for Delivery", "Approved")
    assert not result.is_regression

    calls = _calls(session)
    assert [(m, p) for m, p, _ in calls] == [("PATCH", "orders"), ("POST", "patient_notes")]
    patch_kwargs = calls[0][2]
    assert patch_kwargs['params'] == {'id': 'eq.o1'}
    assert patch_kwargs['json']['workflow_stage'] == "Ready for Delivery"
    assert calls[1][2]['json']['stage_from'] == "Preauthorization (PAR)"


def test_backward_stage_change_requires_reason(store, session):
    with pytest.raises(RegressionReasonRequired):
        change_stage(store, ORDER, "Referral Received", "Back you go", regression_reason="  ")
    session.request.assert_not_called()


def test_backward_stage_change_records_regression(store, session):
    result = change_stage(store, ORDER, "Referral Received", "Missing CMN",
                          regression_reason="Missing documentation", user_id="ops@example.org")
    assert result.is_regression

    calls = _calls(session)
    assert [p for _, p, _ in calls] == ["orders", "patient_notes", "regressions"]
    regression = calls[2][2]['json']
    assert regression == {
        'order_id': 'o1', 'reason': "Missing documentation", 'notes': "Missing CMN",
        'previous_stage': "Preauthorization (PAR)", 'new_stage': "Referral Received",
        'user_id': "ops@example.org",
    }


def test_failed_regression_insert_surfaces_after_stage_moved(store, session):
    session.request.side_effect = [_response(204), _response(201), _response(500)]
    with pytest.raises(MutationError):
        change_stage(store, ORDER, "Referral Received", "Missing CMN", regression_reason="Missing documentation")
    assert [(m, p) for m, p, _ in _calls(session)] == [
        ("PATCH", "orders"), ("POST", "patient_notes"), ("POST", "regressions"),
    ]


def test_unknown_stage_is_rejected_before_any_request(store, session):
    with pytest.raises(InvalidStageError):
        change_stage(store, ORDER, "Teleported", "")
    session.request.assert_not_called()


def test_mass_update_stage_is_one_update_and_one_batched_insert(store, session):
    orders = [ORDER, {'id': 'o2', 'patient_id': 'p2', 'workflow_stage': "Referral Received"},
              {'id': 'o3', 'patient_id': 'p3', 'workflow_stage': "Delivered"}]
    assert mass_update_stage(store, orders, ['o1', 'o2'], "Insurance Verification", "Batch") == 2

    calls = _calls(session)
    assert len(calls) == 2
    assert calls[0][2]['params'] == {'id': 'in.("o1","o2")'}
    notes = calls[1][2]['json']
    assert [n['patient_id'] for n in notes] == ['p1', 'p2']


def test_mass_update_with_no_selection_sends_nothing(store, session):
    assert mass_update_stage(store, [ORDER], [], "Delivered", "") == 0
    session.request.assert_not_called()


# --- Archive, Documents, Delete ---
def test_set_archived_patches_flag_and_logs_note(store, session):
    assert set_archived(store, ORDER, True) is True
    calls = _calls(session)
    assert calls[0][2]['json'] == {'is_archived': True}
    assert calls[1][2]['json']['body'] == "Referral archived."


def test_bulk_archive_patients(store, session):
    assert bulk_archive_patients(store, ['p1', 'p2']) == 2
    method, path, kwargs = _calls(session)[0]
    assert (method, path) == ("PATCH", "patients")
    assert kwargs['json'] == {'archived': True}


def test_update_document_status_sends_whole_map(store, session):
    updated = update_document_status(store, 'o1', {'FACE': 'Complete'}, 'CMN', 'Complete')
    assert updated == {'FACE': 'Complete', 'CMN': 'Complete'}
    assert _calls(session)[0][2]['json'] == {'document_status': updated}


def test_delete_referral_calls_rpc(store, session):
    delete_referral(store, 'o1')
    method, path, kwargs = _calls(session)[0]
    assert (method, path) == ("POST", "rpc/delete_referral_and_dependents")
    assert kwargs['json'] == {'p_order_id': 'o1'}
    with pytest.raises(MutationError):
        delete_referral(store, '')


def test_bulk_update_documents_defaults_user_to_system(store, session):
    assert bulk_update_documents(store, ['o1'], ['FACE', 'CMN'], "Received by fax") == 1
    method, path, kwargs = _calls(session)[0]
    assert path == "rpc/bulk_update_order_docs"
    assert kwargs['json']['user_email'] == "System"
    assert bulk_update_documents(store, [], ['FACE'], "") == 0


def test_failed_rpc_surfaces_as_mutation_error(store, session):
    session.request.return_value = _response(409)
    with pytest.raises(MutationError) as exc_info:
        delete_referral(store, 'o1')
    assert exc_info.value.status_code == 409
