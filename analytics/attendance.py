# clinic_records/analytics/attendance.py
# ATTENDANCE STATE MACHINE & MUTATION INTENTS

"""
Attendance marking as a state machine over reconciled slots.

The engine never writes to storage. Marking, correcting or resetting a slot
produces intents (`MarkAttendance`, `UpdateAttendanceStatus`, `DeleteEvent`)
for the caller's mutation sink; the caller then hands back a new event
snapshot. `apply_intents` performs the same change on an in-memory snapshot
for optimistic local state.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, time
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

import pandas as pd

from config import settings
from data_processing.dates import INVALID_DAY, DayKey, to_day
from data_processing.identity import PatientKey, display_id, normalize_patient_id
from data_processing.matching import for_patient_on_day
from data_processing.models import AttendanceStatus, EventKind, EventRecord

logger = logging.getLogger(__name__)

_MARKED = frozenset({AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.LATE})

ALLOWED_TRANSITIONS: Dict[AttendanceStatus, FrozenSet[AttendanceStatus]] = {
    AttendanceStatus.NOT_MARKED: _MARKED,
    **{status: (_MARKED - {status}) | {AttendanceStatus.NOT_MARKED} for status in _MARKED},
}


# --- Mutation Intents ---
@dataclass(frozen=True)
class MarkAttendance:
    """Create a new attendance record for a slot that has none."""
    patient_key: PatientKey
    day: DayKey
    status: AttendanceStatus


@dataclass(frozen=True)
class UpdateAttendanceStatus:
    """Overwrite the status of an existing attendance record."""
    event_id: Union[int, str]
    status: AttendanceStatus


@dataclass(frozen=True)
class DeleteEvent:
    event_id: Union[int, str]
    kind: EventKind = EventKind.ATTENDANCE


Intent = Union[MarkAttendance, UpdateAttendanceStatus, DeleteEvent]


def can_transition(current: AttendanceStatus, target: AttendanceStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _slot_events(events: Iterable[EventRecord], key: PatientKey, day: DayKey) -> List[EventRecord]:
    attendance = [e for e in events if e.kind is EventKind.ATTENDANCE]
    return sorted(for_patient_on_day(attendance, key, day), key=lambda e: e.sort_key)


def plan_reset_attendance(events: Iterable[EventRecord], patient_key: Any, day: Any) -> List[DeleteEvent]:
    """
    Intents that return a slot to NotMarked: every record in the slot is
    deleted, not just hidden, so no older duplicate resurfaces afterwards.
    """
    key, day_key = normalize_patient_id(patient_key), to_day(day)
    if day_key is INVALID_DAY:
        logger.warning(f"Cannot reset attendance for {display_id(key)} on unparseable day {day!r}.")
        return []
    return [DeleteEvent(event_id=e.id, kind=e.kind) for e in _slot_events(events, key, day_key)]


def plan_mark_attendance(
    events: Iterable[EventRecord],
    patient_key: Any,
    day: Any,
    status: Union[AttendanceStatus, str]
) -> List[Intent]:
    """
    Intents that move a slot to ``status``.

    A slot that already has a record is updated in place (its latest record);
    an empty slot gets a new record. Marking a slot with its current status,
    or on an unparseable day, plans nothing. Marking NotMarked is a reset.
    """
    events = list(events)
    key, day_key = normalize_patient_id(patient_key), to_day(day)
    target = status if isinstance(status, AttendanceStatus) else AttendanceStatus.parse(status)
    if day_key is INVALID_DAY:
        logger.warning(f"Cannot mark attendance for {display_id(key)} on unparseable day {day!r}.")
        return []

    slot_events = _slot_events(events, key, day_key)
    latest = slot_events[-1] if slot_events else None
    current = latest.status if latest is not None and latest.status is not None else AttendanceStatus.NOT_MARKED

    if target is current:
        return []
    if not can_transition(current, target):
        logger.warning(f"Attendance transition {current.value} -> {target.value} is not allowed.")
        return []
    if target is AttendanceStatus.NOT_MARKED:
        return plan_reset_attendance(slot_events, key, day_key)
    if latest is not None:
        return [UpdateAttendanceStatus(event_id=latest.id, status=target)]
    return [MarkAttendance(patient_key=key, day=day_key, status=target)]


def _now_ms() -> float:
    return pd.Timestamp.now(tz='UTC').value / 1_000_000


def _new_event_id(taken: set, key: PatientKey, day: DayKey) -> str:
    base = f"local-{display_id(key)}-{day}"
    candidate, n = base, 1
    while candidate in taken:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def apply_intents(
    events: Sequence[EventRecord],
    intents: Iterable[Intent],
    now_ms: Optional[float] = None
) -> List[EventRecord]:
    """
    Applies intents to a copy of ``events`` and returns the new snapshot.

    Each intent is stamped one millisecond after the previous one, starting
    at ``now_ms`` (the current time when omitted), so a later intent always
    wins the created_at tie-break. Intents naming unknown records are skipped.
    """
    snapshot = list(events)
    stamp = _now_ms() if now_ms is None else float(now_ms)

    for intent in intents:
        if isinstance(intent, MarkAttendance):
            taken = {str(e.id) for e in snapshot}
            snapshot.append(EventRecord(
                id=_new_event_id(taken, intent.patient_key, intent.day),
                kind=EventKind.ATTENDANCE,
                patient_key=intent.patient_key,
                day=intent.day,
                created_at=stamp,
                status=intent.status,
            ))
        elif isinstance(intent, UpdateAttendanceStatus):
            matched = False
            for i, event in enumerate(snapshot):
                if event.kind is EventKind.ATTENDANCE and event.id == intent.event_id:
                    snapshot[i] = replace(event, status=intent.status, created_at=stamp)
                    matched = True
            if not matched:
                logger.warning(f"Update for unknown attendance record {intent.event_id!r} skipped.")
        elif isinstance(intent, DeleteEvent):
            kept = [e for e in snapshot if not (e.kind is intent.kind and e.id == intent.event_id)]
            if len(kept) == len(snapshot):
                logger.warning(f"Delete for unknown {intent.kind.value} record {intent.event_id!r} skipped.")
            snapshot = kept
        else:
            raise TypeError(f"Unsupported attendance intent: {type(intent).__name__}")
        stamp += 1
    return snapshot


def _parse_clock(value: Any) -> time:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    return pd.Timestamp(str(value).strip()).time()


def status_for_check_in(check_in_time: Any) -> AttendanceStatus:
    """
    Present or Late for a self check-in. Compared to the minute: a check-in
    in the minute after ``settings.ATTENDANCE.late_after`` or later is Late.

    Raises:
        ValueError: ``check_in_time`` is not a time, datetime or HH:MM[:SS] string.
    """
    arrived = _parse_clock(check_in_time)
    cutoff = _parse_clock(settings.ATTENDANCE.late_after)
    if (arrived.hour, arrived.minute) > (cutoff.hour, cutoff.minute):
        return AttendanceStatus.LATE
    return AttendanceStatus.PRESENT
