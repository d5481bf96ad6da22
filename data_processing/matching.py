# clinic_records/data_processing/matching.py
# RECORD MATCHING - PATIENT, DAY & WINDOW FILTERS

"""
Selects the records that belong to a patient, a day or a month window.

Every comparison goes through `normalize_patient_id` and `to_day`, never
through raw identifier or date strings, so a call log keyed ``"P0001"``
and an attendance row keyed ``1`` land on the same patient. Records with an
invalid day never match a day or window filter.
"""

import logging
from typing import Any, Iterable, List, Sequence, Set

from .dates import INVALID_DAY, MonthWindow, is_valid_day, is_within, to_day
from .identity import PatientKey, normalize_patient_id
from .models import AttendanceStatus, EventRecord, Patient

logger = logging.getLogger(__name__)


def for_patient(events: Iterable[EventRecord], key_or_raw: Any) -> List[EventRecord]:
    key = normalize_patient_id(key_or_raw)
    return [e for e in events if e.patient_key == key]


def for_patient_on_day(events: Iterable[EventRecord], key_or_raw: Any, day: Any) -> List[EventRecord]:
    """Zero or more events for one patient on one calendar day, in input order."""
    day_key = to_day(day)
    if day_key is INVALID_DAY:
        return []
    return [e for e in for_patient(events, key_or_raw) if e.day == day_key]


def for_window(events: Iterable[EventRecord], window: MonthWindow) -> List[EventRecord]:
    return [e for e in events if is_within(e.day, window)]


def active_patients(roster: Iterable[Patient]) -> List[Patient]:
    """
    Active roster entries in roster order, one per PatientKey.

    A key listed twice keeps its first entry; reconciliation relies on this
    to produce exactly one slot per patient per day.
    """
    seen: Set[PatientKey] = set()
    active: List[Patient] = []
    for patient in roster:
        if patient.key in seen:
            logger.warning(f"Duplicate roster entry for {patient.display_id}; keeping the first occurrence.")
            continue
        seen.add(patient.key)
        if patient.is_active:
            active.append(patient)
    return active


def search_roster(roster: Iterable[Patient], term: Any, active_only: bool = True) -> List[Patient]:
    """
    Roster search as used by the attendance and call-log screens.

    Matches a case-insensitive substring of the name, display id or phone.
    A term that is itself a patient id ("7", "P0007") also matches by key.
    """
    candidates = [p for p in roster if p.is_active or not active_only]
    text = str(term).strip().lower() if term is not None else ""
    if not text:
        return candidates

    term_key = normalize_patient_id(text)
    return [
        p for p in candidates
        if text in p.name.lower()
        or text in p.display_id.lower()
        or (p.phone and text in p.phone.lower())
        or (term_key.is_resolved and p.key == term_key)
    ]


def filter_by_status(events: Iterable[EventRecord], statuses: Sequence[Any]) -> List[EventRecord]:
    """
    Keeps events whose attendance status or free-form label is in ``statuses``.
    Accepts AttendanceStatus members or plain strings ("Pending", "late").
    """
    wanted = {
        (s.value if isinstance(s, AttendanceStatus) else str(s)).strip().lower()
        for s in statuses
    }
    kept = []
    for event in events:
        if event.status is not None and event.status.value.lower() in wanted:
            kept.append(event)
        elif event.label is not None and event.label.lower() in wanted:
            kept.append(event)
    return kept

# --- Diagnostics Filters ---

def undated_events(events: Iterable[EventRecord]) -> List[EventRecord]:
    return [e for e in events if not is_valid_day(e.day)]


def unresolved_events(events: Iterable[EventRecord]) -> List[EventRecord]:
    return [e for e in events if not e.patient_key.is_resolved]


def unmatched_events(roster: Iterable[Patient], events: Iterable[EventRecord]) -> List[EventRecord]:
    """Events whose patient is not on the roster at all (any status)."""
    known = {p.key for p in roster}
    return [e for e in events if e.patient_key not in known]
