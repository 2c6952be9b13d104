# referral_tracker/tests/test_filters.py
# FILTER PREDICATE ENGINE TESTS

from datetime import date

import pandas as pd
import pytest

from data_processing import (AdvancedFilters, ReferralFilters, describe_view,
                             filter_patients, filter_referrals, is_view_filtered)
from data_processing.filters import (collation_key, document_policy_matches,
                                     latest_orders, patient_archive_flags)

# Fixtures are sourced from conftest.py


def _ids(df: pd.DataFrame) -> list:
    return df['id'].tolist()


def _with_advanced(**kwargs) -> ReferralFilters:
    return ReferralFilters(advanced=AdvancedFilters(**kwargs))


# --- Guard Rails ---
def test_filter_referrals_handles_missing_and_empty_input():
    assert filter_referrals(None, ReferralFilters()).empty
    empty = pd.DataFrame(columns=['id', 'patient_name'])
    result = filter_referrals(empty, ReferralFilters())
    assert result.empty and result is not empty


def test_filter_referrals_does_not_mutate_input(referrals_df):
    before = referrals_df.copy()
    filter_referrals(referrals_df, ReferralFilters(search_term="zo", archive_mode='all'))
    pd.testing.assert_frame_equal(referrals_df, before)


def test_filter_referrals_is_idempotent(referrals_df):
    filters = ReferralFilters(search_term="a")
    once = filter_referrals(referrals_df, filters)
    twice = filter_referrals(once, filters)
    assert _ids(once) == _ids(twice)


# --- Archive Mode & Ordering ---
def test_default_view_hides_archived_and_sorts_by_folded_name(referrals_df):
    result = filter_referrals(referrals_df, ReferralFilters())
    # '' < adam < carla < emile < zoe once case and accents are folded
    assert _ids(result) == ['o5', 'o2', 'o6', 'o3', 'o1']


@pytest.mark.parametrize("mode, expected", [
    ('archived', ['o4']),
    ('all', ['o5', 'o2', 'o6', 'o3', 'o1', 'o4']),
])
def test_archive_modes(referrals_df, mode, expected):
    assert _ids(filter_referrals(referrals_df, ReferralFilters(archive_mode=mode))) == expected


def test_sort_is_stable_for_equal_names():
    df = pd.DataFrame({
        'id': ['a', 'b', 'c'],
        'patient_name': ["ANA", "Zed", "ana"],
        'workflow_stage': ["Referral Received"] * 3,
    })
    assert _ids(filter_referrals(df, ReferralFilters())) == ['a', 'c', 'b']


def test_collation_key_folds_case_and_accents():
    assert collation_key("Émile") == collation_key("emile")
    assert collation_key(None) == ''
    assert collation_key("Zoë") < collation_key("Zz")


# --- Criteria ---
@pytest.mark.parametrize("term, expected", [
    ("medic", ['o6', 'o1']),          # insurance
    ("REFERRAL", ['o5', 'o2']),       # workflow stage
    ("adam", ['o2', 'o1']),           # patient name, case-insensitive
    ("[PAR]", []),                    # literal match, not a regex
])
def test_free_text_search(referrals_df, term, expected):
    assert _ids(filter_referrals(referrals_df, ReferralFilters(search_term=term))) == expected


def test_stage_stoplight_and_account_filters(referrals_df):
    stages = ReferralFilters(active_stages=["Referral Received", "Insurance Verification"])
    assert _ids(filter_referrals(referrals_df, stages)) == ['o5', 'o2', 'o6']
    assert _ids(filter_referrals(referrals_df, ReferralFilters(stoplight_status='yellow'))) == ['o2']
    assert _ids(filter_referrals(referrals_df, ReferralFilters(account='Aetna'))) == ['o2']


def test_single_stage_chip_returns_exactly_that_stage():
    df = pd.DataFrame({
        'id': ['r0', 'r1', 'r2'],
        'patient_name': ["One", "Two", "Three"],
        'workflow_stage': ["Referral Received", "Documentation Verification", "Preauthorization (PAR)"],
    })
    result = filter_referrals(df, ReferralFilters(active_stages=["Documentation Verification"]))
    assert _ids(result) == ['r1']


def test_criteria_combine_with_and(referrals_df):
    filters = ReferralFilters(search_term="medic", stoplight_status='red')
    assert _ids(filter_referrals(referrals_df, filters)) == ['o6']


# --- Advanced Filters ---
def test_advanced_filters_drop_referrals_without_patient(referrals_df):
    result = filter_referrals(referrals_df, _with_advanced(rep_name='Dana Cole'))
    assert 'o5' not in _ids(result)
    assert _ids(result) == ['o6', 'o3', 'o1']


def test_name_fragments_match_substrings(referrals_df):
    assert _ids(filter_referrals(referrals_df, _with_advanced(first_name="zo"))) == ['o3', 'o1']
    assert _ids(filter_referrals(referrals_df, _with_advanced(last_name="BROWN"))) == ['o2']


def test_insurance_list_is_case_insensitive_membership(referrals_df):
    result = filter_referrals(referrals_df, _with_advanced(insurance="aetna, MEDICAID"))
    assert _ids(result) == ['o2', 'o6']


def test_dob_exact_match(referrals_df):
    result = filter_referrals(referrals_df, _with_advanced(dob=date(1961, 11, 30)))
    assert _ids(result) == ['o2']


def test_date_range_end_is_inclusive_through_end_of_day(referrals_df):
    # o2 was referred at 23:30 on the end date; o3 has no referral date and is kept.
    result = filter_referrals(referrals_df, _with_advanced(date_start=date(2024, 3, 1), date_end=date(2024, 3, 5)))
    assert _ids(result) == ['o2', 'o3', 'o1']


def _dated_frame(stamps) -> pd.DataFrame:
    return pd.DataFrame({
        'id': ['r0', 'r1'],
        'patient_name': ["Ana", "Ben"],
        'workflow_stage': ["Referral Received"] * 2,
        'referral_date': stamps,
    })


@pytest.mark.parametrize("stamps", [
    [pd.Timestamp("2024-01-05 23:59:59.999"), pd.Timestamp("2024-01-06 00:00:00.000")],
    ["2024-01-05T23:59:59.999Z", "2024-01-06T00:00:00.000Z"],
    ["2024-01-06T04:59:59.999+05:00", "2024-01-06T05:00:00.000+05:00"],
])
def test_date_end_keeps_last_millisecond_and_drops_next_day(stamps):
    df = _dated_frame(stamps)
    assert _ids(filter_referrals(df, _with_advanced(date_end=date(2024, 1, 5)))) == ['r0']
    assert _ids(filter_referrals(df, _with_advanced(date_start=date(2024, 1, 6)))) == ['r1']


def test_blank_date_strings_are_ignored():
    adv = AdvancedFilters(date_start="", date_end="  ", dob="")
    assert adv.date_start is None and adv.date_end is None and adv.dob is None
    assert not adv.is_active()


@pytest.mark.parametrize("policy, expected", [
    ('Complete', ['o1']),
    ('Missing', ['o2']),
    ('Not Required', ['o6', 'o3']),
])
def test_document_policy_filter(referrals_df, policy, expected):
    result = filter_referrals(referrals_df, _with_advanced(doc_filter_key='CMN', doc_filter_status=policy))
    assert _ids(result) == expected


def test_partially_documented_referral_is_excluded_by_complete_filter(referrals_df):
    row = referrals_df.set_index('id').loc['o2']
    assert (row['docs_completed'], row['docs_required']) == (1, 2)
    result = filter_referrals(referrals_df, _with_advanced(doc_filter_key='CMN', doc_filter_status='Complete'))
    assert 'o2' not in _ids(result)


def test_document_policy_matches_directly():
    assert document_policy_matches(['FACE'], {'FACE': 'Complete'}, 'FACE', 'Complete')
    assert document_policy_matches(['FACE'], {}, 'FACE', 'Missing')
    assert not document_policy_matches(['FACE'], {}, 'FACE', 'Not Required')
    assert document_policy_matches(None, None, 'FACE', 'Not Required')
    assert document_policy_matches(['FACE'], {}, 'FACE', 'Unknown policy')


def test_complete_policy_requires_the_document_to_be_required():
    assert not document_policy_matches(['CMN'], {'FACE': 'Complete'}, 'FACE', 'Complete')
    assert not document_policy_matches(None, {'FACE': 'Complete'}, 'FACE', 'Complete')
    assert document_policy_matches(['CMN'], {'FACE': 'Complete'}, 'FACE', 'Not Required')

    df = pd.DataFrame({
        'id': ['x', 'y'],
        'patient_name': ["Ann", "Bo"],
        'workflow_stage': ["Referral Received"] * 2,
        'patient_required_documents': [['CMN'], ['FACE']],
        'document_status': [{'FACE': 'Complete'}, {'FACE': 'Complete'}],
    })
    result = filter_referrals(df, _with_advanced(doc_filter_key='FACE', doc_filter_status='Complete'))
    assert _ids(result) == ['y']


def _patients_with_orders(order_stamps):
    patients_df = pd.DataFrame({
        'id': ['a', 'b'], 'name': ["Ann", "Bo"],
        'required_documents': [['CMN'], ['FACE']], 'archived': [False, False],
    })
    orders_df = pd.DataFrame({
        'id': [f"o{i}" for i in range(len(order_stamps))],
        'patient_id': ['a', 'b', 'b'][:len(order_stamps)],
        'document_status': [{'FACE': 'Complete'}] * len(order_stamps),
        'is_archived': [False, False, True][:len(order_stamps)],
        'status': ['Open'] * len(order_stamps),
        'updated_at': order_stamps,
    })
    return patients_df, orders_df


def test_patients_complete_policy_ignores_documents_not_required():
    patients_df, orders_df = _patients_with_orders(["2024-01-01T00:00:00Z"] * 2)
    result = filter_patients(patients_df, orders_df,
                             _with_advanced(doc_filter_key='FACE', doc_filter_status='Complete'))
    assert _ids(result) == ['b']


def test_region_and_stage_filters(referrals_df):
    assert _ids(filter_referrals(referrals_df, _with_advanced(payer_region='South'))) == ['o2']
    assert _ids(filter_referrals(referrals_df, _with_advanced(workflow_stage="Preauthorization (PAR)"))) == ['o3']


# --- Patients ---
def test_latest_orders_prefers_most_recent_update(patients_and_orders):
    _, orders_df = patients_and_orders
    latest = latest_orders(orders_df)
    assert latest.loc['p1', 'id'] == 'o4'
    assert latest.loc['p2', 'id'] == 'o2'


def test_latest_orders_tie_keeps_first_in_input_order():
    # o1 and o2 share an updated_at; the first one listed wins and it is not archived.
    patients_df, orders_df = _patients_with_orders(
        ["2024-01-01T00:00:00Z", "2024-02-01T00:00:00Z", "2024-02-01T00:00:00Z"])
    assert latest_orders(orders_df).loc['b', 'id'] == 'o1'
    flags = dict(zip(patients_df['id'], patient_archive_flags(patients_df, orders_df)))
    assert flags == {'a': False, 'b': False}


def test_latest_orders_compares_offset_timestamps_in_utc():
    _, orders_df = _patients_with_orders(
        ["2024-01-01T00:00:00Z", "2024-02-01T10:00:00+05:00", "2024-02-01T06:00:00Z"])
    assert latest_orders(orders_df).loc['b', 'id'] == 'o2'


def test_patient_archive_flags_follow_latest_order(patients_and_orders):
    patients_df, orders_df = patients_and_orders
    flags = dict(zip(patients_df['id'], patient_archive_flags(patients_df, orders_df)))
    assert flags == {'p1': True, 'p2': False, 'p3': False, 'p4': False}


def test_filter_patients_archive_modes(patients_and_orders):
    patients_df, orders_df = patients_and_orders
    active = filter_patients(patients_df, orders_df, ReferralFilters())
    assert _ids(active) == ['p2', 'p4', 'p3']
    assert not active['is_archived_effective'].any()
    archived = filter_patients(patients_df, orders_df, ReferralFilters(archive_mode='archived'))
    assert _ids(archived) == ['p1']


def test_filter_patients_search_covers_email(patients_and_orders):
    patients_df, orders_df = patients_and_orders
    result = filter_patients(patients_df, orders_df, ReferralFilters(search_term="example.org"))
    assert _ids(result) == ['p3']


def test_filter_patients_order_level_criteria(patients_and_orders):
    patients_df, orders_df = patients_and_orders
    result = filter_patients(patients_df, orders_df, _with_advanced(workflow_stage="Referral Received"))
    assert _ids(result) == ['p2']
    no_orders = filter_patients(patients_df, None, _with_advanced(workflow_stage="Referral Received"))
    assert no_orders.empty


def test_filter_patients_insurance_substring(patients_and_orders):
    patients_df, orders_df = patients_and_orders
    result = filter_patients(patients_df, orders_df, _with_advanced(insurance="medic"))
    assert _ids(result) == ['p4']


# --- View Summaries ---
def test_describe_view_omits_defaults():
    assert describe_view(ReferralFilters()) == {}
    assert not is_view_filtered(ReferralFilters())


def test_describe_view_lists_active_criteria():
    filters = ReferralFilters(search_term="zoe", archive_mode='all',
                              active_stages=["Referral Received", "Delivered"],
                              advanced=AdvancedFilters(rep_name="Dana Cole"))
    assert describe_view(filters) == {
        'search': "zoe",
        'stages': "Referral Received,Delivered",
        'archive': 'all',
        'advanced': 'Active',
    }
    assert is_view_filtered(filters)
