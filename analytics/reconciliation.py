# clinic_records/analytics/reconciliation.py
# PER-PATIENT, PER-DAY RECONCILIATION ENGINE

"""
Folds a roster snapshot and an event snapshot into one slot per
(active patient, day).

Competing events for the same slot are ordered by ``created_at`` (missing
timestamps first) with the event id as the final tie-break, and the last one
wins. The losing records are kept on the slot in ``events``; nothing is
deleted here. Inputs are never mutated.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from data_processing.adapters import coerce_kind
from data_processing.dates import INVALID_DAY, DayKey, MonthWindow, days_in, to_day
from data_processing.identity import PatientKey, display_id
from data_processing.logic import flatten_slots
from data_processing.matching import active_patients
from data_processing.models import SORT_COLUMNS, AttendanceStatus, EventKind, EventRecord, Patient, ReconciledSlot

logger = logging.getLogger(__name__)

SlotGroups = Dict[Tuple[PatientKey, DayKey], Tuple[EventRecord, ...]]


def resolve_kind(events: Sequence[EventRecord], kind: Optional[Union[EventKind, str]] = None) -> EventKind:
    """
    The kind to reconcile. When not given it is inferred from the events,
    defaulting to attendance for an empty snapshot.

    Raises:
        ValueError: ``kind`` is unknown, or omitted for a mixed-kind snapshot.
    """
    if kind is not None:
        return coerce_kind(kind)
    kinds = {e.kind for e in events}
    if len(kinds) > 1:
        names = sorted(k.value for k in kinds)
        raise ValueError(f"Events of several kinds {names} were passed without a kind to reconcile.")
    return kinds.pop() if kinds else EventKind.ATTENDANCE


def group_events(events: Iterable[EventRecord], kind: EventKind, keys: Iterable[PatientKey], days: Iterable[DayKey]) -> SlotGroups:
    """
    Groups the events of ``kind`` that fall on the given patients and days,
    each group in ascending (created_at, id) order.
    """
    wanted_keys, wanted_days = set(keys), set(days)
    candidates = [
        e for e in events
        if e.kind is kind and e.patient_key in wanted_keys and e.day in wanted_days
    ]
    if not candidates:
        return {}

    order = pd.DataFrame({
        'position': range(len(candidates)),
        **dict(zip(SORT_COLUMNS, zip(*(e.sort_key for e in candidates)))),
    }).sort_values(list(SORT_COLUMNS), kind='mergesort')

    grouped: Dict[Tuple[PatientKey, DayKey], List[EventRecord]] = {}
    for position in order['position']:
        event = candidates[position]
        grouped.setdefault((event.patient_key, event.day), []).append(event)
    return {slot: tuple(members) for slot, members in grouped.items()}


def _build_slot(key: PatientKey, day: DayKey, members: Tuple[EventRecord, ...], kind: EventKind) -> ReconciledSlot:
    latest = members[-1] if members else None
    status = None
    if kind is EventKind.ATTENDANCE:
        status = latest.status if latest is not None and latest.status is not None else AttendanceStatus.NOT_MARKED
    return ReconciledSlot(patient_key=key, day=day, status=status, latest_event=latest, events=members)


def slots_for_keys(
    keys: Sequence[PatientKey],
    events: Iterable[EventRecord],
    days: Sequence[DayKey],
    kind: EventKind
) -> Dict[PatientKey, List[ReconciledSlot]]:
    """A full grid of slots for the given keys and days, keys in the order given."""
    groups = group_events(events, kind, keys, days)
    return {
        key: [_build_slot(key, day, groups.get((key, day), ()), kind) for day in days]
        for key in keys
    }


def reconcile_day(
    roster: Iterable[Patient],
    events: Sequence[EventRecord],
    day: Any,
    kind: Optional[Union[EventKind, str]] = None
) -> List[ReconciledSlot]:
    """
    One slot per active roster patient for ``day``, in roster order.

    An invalid day yields no slots rather than an error.
    """
    day_key = to_day(day)
    if day_key is INVALID_DAY:
        logger.warning(f"reconcile_day called with an unparseable day {day!r}; returning no slots.")
        return []
    event_kind = resolve_kind(events, kind)
    keys = [p.key for p in active_patients(roster)]
    by_patient = slots_for_keys(keys, events, [day_key], event_kind)
    return [slots[0] for slots in by_patient.values()]


def reconcile_window(
    roster: Iterable[Patient],
    events: Sequence[EventRecord],
    window: MonthWindow,
    kind: Optional[Union[EventKind, str]] = None
) -> Dict[PatientKey, List[ReconciledSlot]]:
    """
    Every active patient's slots for every day of ``window``.

    The result always holds len(active patients) x len(days_in(window)) slots.
    """
    event_kind = resolve_kind(events, kind)
    keys = [p.key for p in active_patients(roster)]
    days = days_in(window)
    by_patient = slots_for_keys(keys, events, days, event_kind)
    logger.debug(f"({event_kind.value}) Reconciled {len(keys)} patients over {len(days)} days of {window}.")
    return by_patient


def slots_to_frame(slots: Union[Mapping[PatientKey, List[ReconciledSlot]], Iterable[ReconciledSlot]]) -> pd.DataFrame:
    """Flat tabular view of reconciled slots, one row per slot."""
    columns = ['patient_key', 'patient_id', 'day', 'status', 'event_count', 'latest_event_id']
    rows = [
        {
            'patient_key': slot.patient_key.value,
            'patient_id': display_id(slot.patient_key),
            'day': slot.day,
            'status': slot.status.value if slot.status is not None else None,
            'event_count': slot.entry_count,
            'latest_event_id': slot.latest_event.id if slot.latest_event is not None else None,
        }
        for slot in flatten_slots(slots)
    ]
    return pd.DataFrame(rows, columns=columns)
