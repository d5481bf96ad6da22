# clinic_records/tests/test_reconciliation.py
# RECONCILIATION ENGINE TESTS

import pandas as pd
import pytest

from analytics import reconcile_day, reconcile_window, slots_to_frame
from data_processing import (
    AttendanceStatus,
    EventKind,
    MonthWindow,
    PatientKey,
    adapt_events,
    adapt_roster,
    days_in,
    summarize
)


def _attendance(*rows):
    return adapt_events('attendance', list(rows))


def test_later_correction_wins_despite_format_mismatch():
    """A later correction in a different id and date format replaces the earlier mark."""
    roster = adapt_roster([{'id': 1, 'patient_id': None, 'status': 'Active'}])
    events = _attendance(
        {'id': 'a1', 'patient_id': '1', 'date': '2025-03-05', 'status': 'Present', 'createdAt': 100},
        {'id': 'a2', 'patient_id': 'P0001', 'date': '05-03-2025', 'status': 'Absent', 'createdAt': 200},
    )
    slots = reconcile_day(roster, events, '2025-03-05')
    assert len(slots) == 1
    assert slots[0].status is AttendanceStatus.ABSENT
    assert slots[0].latest_event.id == 'a2'
    assert [e.id for e in slots[0].events] == ['a1', 'a2']


@pytest.mark.parametrize("order", [(0, 1), (1, 0)])
def test_tie_break_is_independent_of_input_order(order):
    roster = adapt_roster([{'id': 1}])
    rows = [
        {'id': 'early', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Late', 'created_at': '2025-03-05T09:00:00Z'},
        {'id': 'late', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Present', 'created_at': '2025-03-05T10:00:00Z'},
    ]
    events = _attendance(*[rows[i] for i in order])
    slot = reconcile_day(roster, events, '2025-03-05')[0]
    assert slot.latest_event.id == 'late'
    assert slot.status is AttendanceStatus.PRESENT


@pytest.mark.parametrize("order", [(0, 1, 2), (2, 1, 0), (1, 2, 0)])
def test_missing_timestamps_lose_and_ids_settle_exact_ties(order):
    roster = adapt_roster([{'id': 1}])
    rows = [
        {'id': 'b', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Absent', 'createdAt': 500},
        {'id': 'c', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Present', 'createdAt': 500},
        {'id': 'z', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Late'},
    ]
    events = _attendance(*[rows[i] for i in order])
    slot = reconcile_day(roster, events, '2025-03-05')[0]
    assert [e.id for e in slot.events] == ['z', 'b', 'c']
    assert slot.status is AttendanceStatus.PRESENT


@pytest.mark.parametrize("order", [(0, 1), (1, 0)])
def test_day_first_timestamps_order_chronologically(order):
    """05-03 10:30 is the fifth of March, so the 13-03 correction is the latest."""
    roster = adapt_roster([{'id': 1}])
    rows = [
        {'id': 'first', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Absent', 'created_at': '05-03-2025 10:30'},
        {'id': 'correction', 'patient_id': 1, 'date': '2025-03-05', 'status': 'Present', 'created_at': '13-03-2025 09:00'},
    ]
    events = _attendance(*[rows[i] for i in order])
    slot = reconcile_day(roster, events, '2025-03-05')[0]
    assert slot.latest_event.id == 'correction'
    assert slot.status is AttendanceStatus.PRESENT


@pytest.mark.parametrize("ids", [(9, 10), ('9', '10'), (10, 'b')])
def test_numeric_ids_settle_ties_by_value(ids):
    roster = adapt_roster([{'id': 1}])
    events = _attendance(
        {'id': ids[1], 'patient_id': 1, 'date': '2025-03-05', 'status': 'Present', 'createdAt': 500},
        {'id': ids[0], 'patient_id': 1, 'date': '2025-03-05', 'status': 'Late', 'createdAt': 500},
    )
    slot = reconcile_day(roster, events, '2025-03-05')[0]
    assert [e.id for e in slot.events] == list(ids)
    assert slot.status is AttendanceStatus.PRESENT


def test_empty_month_yields_one_not_marked_slot_per_day():
    roster = adapt_roster([{'id': 1, 'status': 'Active'}])
    window = MonthWindow(3, 2025)
    by_patient = reconcile_window(roster, [], window)
    slots = by_patient[PatientKey(1)]
    assert len(slots) == 31
    assert all(s.status is AttendanceStatus.NOT_MARKED and s.latest_event is None for s in slots)

    summary = summarize(by_patient, window)
    assert summary.total_patients == 1
    assert summary.not_marked == 31
    assert summary.counts == {AttendanceStatus.NOT_MARKED: 31}


@pytest.mark.parametrize("month, year", [(2, 2024), (2, 2025), (4, 2025), (12, 2025)])
def test_reconciliation_totality(roster, attendance_events, month, year):
    window = MonthWindow(month, year)
    by_patient = reconcile_window(roster, attendance_events, window)
    active = [p for p in roster if p.is_active]
    assert list(by_patient) == [p.key for p in active]
    assert sum(len(s) for s in by_patient.values()) == len(active) * len(days_in(window))
    for slots in by_patient.values():
        assert [s.day for s in slots] == days_in(window)


def test_window_reconciliation_over_fixture(roster, attendance_events, march_2025):
    by_patient = reconcile_window(roster, attendance_events, march_2025)
    assert PatientKey(3) not in by_patient
    assert PatientKey(99) not in by_patient

    p1 = {s.day: s for s in by_patient[PatientKey(1)]}
    assert p1['2025-03-05'].status is AttendanceStatus.ABSENT
    assert p1['2025-03-06'].status is AttendanceStatus.NOT_MARKED
    p2 = {s.day: s for s in by_patient[PatientKey(2)]}
    assert p2['2025-03-05'].status is AttendanceStatus.LATE
    p4 = {s.day: s for s in by_patient[PatientKey(4)]}
    assert p4['2025-03-06'].status is AttendanceStatus.PRESENT


def test_explicit_not_marked_record_resets_the_slot():
    roster = adapt_roster([{'id': 1}])
    events = _attendance(
        {'id': 1, 'patient_id': 1, 'date': '2025-03-05', 'status': 'Present', 'createdAt': 100},
        {'id': 2, 'patient_id': 1, 'date': '2025-03-05', 'status': 'NotMarked', 'createdAt': 200},
    )
    slot = reconcile_day(roster, events, '2025-03-05')[0]
    assert slot.status is AttendanceStatus.NOT_MARKED
    assert slot.latest_event.id == 2


def test_invalid_day_returns_no_slots(roster, attendance_events):
    assert reconcile_day(roster, attendance_events, 'not a date') == []


def test_duplicate_roster_entries_produce_one_slot():
    roster = adapt_roster([{'id': 1}, {'id': 'P0001'}, {'id': 2}])
    slots = reconcile_day(roster, [], '2025-03-05', kind='attendance')
    assert [s.patient_key for s in slots] == [PatientKey(1), PatientKey(2)]


def test_free_form_kinds_collect_entries():
    roster = adapt_roster([{'id': 1}, {'id': 2}])
    calls = adapt_events('call', [
        {'id': 1, 'patientId': 'P0001', 'date': '2025-03-05', 'createdAt': '2025-03-05T10:00:00Z'},
        {'id': 2, 'patientId': 'P0001', 'date': '2025-03-05', 'createdAt': '2025-03-05T09:00:00Z'},
    ])
    slots = reconcile_day(roster, calls, '2025-03-05')
    assert slots[0].status is None
    assert slots[0].entry_count == 2
    assert [e.id for e in slots[0].events] == [2, 1]
    assert slots[1].entry_count == 0


def test_mixed_kinds_require_an_explicit_kind(roster, attendance_events):
    calls = adapt_events(EventKind.CALL, [{'id': 1, 'patientId': 1, 'date': '2025-03-05'}])
    mixed = list(attendance_events) + calls
    with pytest.raises(ValueError):
        reconcile_day(roster, mixed, '2025-03-05')
    slots = reconcile_day(roster, mixed, '2025-03-05', kind=EventKind.CALL)
    assert [s.entry_count for s in slots] == [1, 0, 0]


def test_inputs_are_not_mutated(roster, attendance_events, march_2025):
    roster_before, events_before = list(roster), list(attendance_events)
    reconcile_window(roster, attendance_events, march_2025)
    assert list(roster) == roster_before
    assert list(attendance_events) == events_before


def test_reconciliation_is_deterministic(roster, attendance_events, march_2025):
    first = slots_to_frame(reconcile_window(roster, attendance_events, march_2025))
    second = slots_to_frame(reconcile_window(roster, list(reversed(attendance_events)), march_2025))
    pd.testing.assert_frame_equal(first, second)


def test_slots_to_frame_columns(roster, attendance_events):
    frame = slots_to_frame(reconcile_day(roster, attendance_events, '2025-03-05'))
    assert list(frame.columns) == ['patient_key', 'patient_id', 'day', 'status', 'event_count', 'latest_event_id']
    assert frame['patient_id'].tolist() == ['P0001', 'P0002', 'P0004']
    assert frame['status'].tolist() == ['Absent', 'Late', 'NotMarked']
    assert frame['event_count'].tolist() == [2, 1, 0]
