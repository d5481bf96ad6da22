# clinic_records/data_processing/logic.py
# PURE AGGREGATION LOGIC OVER RECONCILED SLOTS

"""
Houses the pure, non-cached aggregation logic for the reconciliation engine.

Summaries are always recomputed from a full slot set, never patched
incrementally. This module has no dependency on Streamlit and can be
imported by any backend component; `cached.py` wraps it for dashboards.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .dates import INVALID_DAY, DayKey, MonthWindow, is_valid_day, is_within, month_window_of, to_day
from .helpers import convert_to_numeric
from .identity import PatientKey, normalize_patient_id
from .matching import active_patients, undated_events, unmatched_events, unresolved_events
from .models import SORT_COLUMNS, AttendanceStatus, EventKind, EventRecord, Patient, ReconciledSlot

logger = logging.getLogger(__name__)

CANCELLED_LABEL = "cancelled"
UNLABELLED = "Unlabelled"

SlotInput = Union[Mapping[PatientKey, List[ReconciledSlot]], Iterable[ReconciledSlot]]


@dataclass(frozen=True)
class FinancialTotals:
    """
    Amount totals over one window. ``by_label`` sums amounts per record label
    (Pending/Completed/Cancelled); ``total_amount`` leaves Cancelled out.
    """
    total_amount: float
    record_count: int
    by_label: Dict[str, float] = field(default_factory=dict)
    excluded_count: int = 0


@dataclass(frozen=True)
class AggregateSummary:
    window: Optional[Union[MonthWindow, DayKey]]
    total_patients: int
    total_slots: int
    counts: Dict[AttendanceStatus, int]
    not_marked: int
    entry_count: int
    financial_totals: Optional[FinancialTotals] = None


@dataclass(frozen=True)
class RecordDiagnostics:
    total: int
    undated: int
    unresolved: int
    unmatched: int
    inactive: int
    superseded: int

    @property
    def has_issues(self) -> bool:
        return any((self.undated, self.unresolved, self.unmatched, self.superseded))


def flatten_slots(slots: SlotInput) -> List[ReconciledSlot]:
    """Accepts reconcile_day or reconcile_window output and returns a flat slot list."""
    if isinstance(slots, Mapping):
        return [slot for patient_slots in slots.values() for slot in patient_slots]
    return list(slots)


def _infer_window(slots: List[ReconciledSlot]) -> Optional[Union[MonthWindow, DayKey]]:
    days = {s.day for s in slots}
    if not days:
        return None
    if len(days) == 1:
        return next(iter(days))
    return month_window_of(min(days))


def _in_window(event: EventRecord, window: Union[MonthWindow, DayKey]) -> bool:
    if isinstance(window, MonthWindow):
        return is_within(event.day, window)
    return is_valid_day(event.day) and event.day == window


def summarize(
    slots: SlotInput,
    window: Optional[Union[MonthWindow, Any]] = None,
    payments: Optional[Iterable[EventRecord]] = None
) -> AggregateSummary:
    """
    Rolls a reconciled slot set up into status counts.

    Args:
        slots: reconcile_day or reconcile_window output.
        window: the MonthWindow or day summarized; inferred from the slots when omitted.
        payments: optional payment events whose amounts are totalled over the same window.

    Returns:
        An AggregateSummary. ``total_patients`` counts distinct patients, not
        slots, so a 31-day window over one patient reports 1 patient and 31 slots.
    """
    flat = flatten_slots(slots)
    if window is not None and not isinstance(window, MonthWindow):
        window = to_day(window)
        if window is INVALID_DAY:
            logger.warning("summarize received an unparseable day window; summarizing without one.")
            window = None
    if window is None:
        window = _infer_window(flat)

    statuses = pd.Series([s.status for s in flat if s.status is not None], dtype=object)
    tallies = statuses.value_counts().to_dict()
    counts = {status: int(tallies[status]) for status in AttendanceStatus if tallies.get(status)}

    financial = None
    if payments is not None:
        if window is None:
            logger.warning("Payments were given but no window could be determined; skipping financial totals.")
        else:
            financial = summarize_payments(payments, window)

    return AggregateSummary(
        window=window,
        total_patients=len({s.patient_key for s in flat}),
        total_slots=len(flat),
        counts=counts,
        not_marked=counts.get(AttendanceStatus.NOT_MARKED, 0),
        entry_count=sum(s.entry_count for s in flat),
        financial_totals=financial,
    )


def summarize_payments(events: Iterable[EventRecord], window: Union[MonthWindow, Any]) -> FinancialTotals:
    """
    Totals amounts over records whose day falls inside ``window`` (a MonthWindow
    or a single day). Records outside it, or undated, are counted as excluded;
    nothing is extrapolated from a partial window.
    """
    events = list(events)
    if not isinstance(window, MonthWindow):
        window = to_day(window)
        if window is INVALID_DAY:
            logger.warning("summarize_payments received an unparseable day; every record is excluded.")
            return FinancialTotals(total_amount=0.0, record_count=0, excluded_count=len(events))

    included = [e for e in events if _in_window(e, window)]
    if not included:
        return FinancialTotals(total_amount=0.0, record_count=0, excluded_count=len(events))

    frame = pd.DataFrame({
        'amount': convert_to_numeric(pd.Series([e.amount for e in included], dtype=object), default_value=0.0),
        'label': [e.label if e.label else UNLABELLED for e in included],
    })
    by_label = frame.groupby('label', sort=True)['amount'].sum()
    counted = frame[frame['label'].str.lower() != CANCELLED_LABEL]

    return FinancialTotals(
        total_amount=float(counted['amount'].sum()),
        record_count=len(included),
        by_label={str(label): float(amount) for label, amount in by_label.items()},
        excluded_count=len(events) - len(included),
    )


def calculate_patient_balances(
    roster: Iterable[Patient],
    payments: Iterable[EventRecord],
    window: MonthWindow,
    carry_forward: Optional[Mapping[Any, Any]] = None
) -> pd.DataFrame:
    """
    Monthly fee balance per active patient.

    ``total_paid`` is the patient's advance plus the non-cancelled payments
    dated inside ``window``; ``carry_forward`` maps any patient identifier to
    the amount brought in from the previous month.
    """
    columns = ['patient_id', 'name', 'total_fees', 'total_paid', 'carry_forward',
               'balance', 'payment_status', 'next_carry_forward']
    patients = active_patients(roster)
    if not patients:
        return pd.DataFrame(columns=columns)

    carried: Dict[PatientKey, float] = {}
    for raw_key, amount in (carry_forward or {}).items():
        key = normalize_patient_id(raw_key)
        carried[key] = carried.get(key, 0.0) + float(convert_to_numeric(amount, default_value=0.0))

    in_window = [
        e for e in payments
        if is_within(e.day, window) and (e.label or "").lower() != CANCELLED_LABEL
    ]
    paid: Dict[PatientKey, float] = {}
    if in_window:
        paid_df = pd.DataFrame({
            'patient_key': [e.patient_key for e in in_window],
            'amount': convert_to_numeric(pd.Series([e.amount for e in in_window], dtype=object), default_value=0.0),
        })
        totals = paid_df.groupby('patient_key', sort=False)['amount'].sum()
        paid = dict(zip(totals.index, totals.to_numpy(dtype=float)))

    df = pd.DataFrame({
        'patient_id': [p.display_id for p in patients],
        'name': [p.name for p in patients],
        'total_fees': [p.total_fees for p in patients],
        'total_paid': [p.advance_paid + float(paid.get(p.key, 0.0)) for p in patients],
        'carry_forward': [carried.get(p.key, 0.0) for p in patients],
    })
    df['balance'] = df['total_fees'] + df['carry_forward'] - df['total_paid']
    df['payment_status'] = np.where(df['balance'] <= 0, 'Paid', 'Pending')
    df['next_carry_forward'] = df['balance'].clip(lower=0.0)
    return df[columns]


def daily_status_counts(slots: SlotInput) -> pd.DataFrame:
    """Per-day attendance counts, one column per status, zero-filled."""
    status_columns = [status.value for status in AttendanceStatus]
    attendance = [s for s in flatten_slots(slots) if s.status is not None]
    if not attendance:
        return pd.DataFrame(columns=status_columns, index=pd.Index([], name='day'), dtype=int)

    frame = pd.DataFrame({
        'day': [s.day for s in attendance],
        'status': [s.status.value for s in attendance],
    })
    counts = pd.crosstab(frame['day'], frame['status'])
    counts = counts.reindex(columns=status_columns, fill_value=0).sort_index()
    counts.index.name = 'day'
    counts.columns.name = None
    return counts.astype(int)


def _count_superseded(events: List[EventRecord]) -> int:
    dated = [e for e in events if e.kind is EventKind.ATTENDANCE and is_valid_day(e.day)]
    if not dated:
        return 0
    frame = pd.DataFrame({
        'patient_key': [str(e.patient_key.value) for e in dated],
        'day': [e.day for e in dated],
        **dict(zip(SORT_COLUMNS, zip(*(e.sort_key for e in dated)))),
    })
    frame = frame.sort_values(list(SORT_COLUMNS), kind='mergesort')
    return int(frame.duplicated(subset=['patient_key', 'day'], keep='last').sum())


def diagnose_events(roster: Iterable[Patient], events: Iterable[EventRecord]) -> RecordDiagnostics:
    """
    Counts the records a report cannot place cleanly: undated, unresolved,
    not on the roster, belonging to a non-active patient, or superseded by a
    later attendance record for the same slot.
    """
    roster, events = list(roster), list(events)
    inactive_keys = {p.key for p in roster if not p.is_active} - {p.key for p in roster if p.is_active}

    diagnostics = RecordDiagnostics(
        total=len(events),
        undated=len(undated_events(events)),
        unresolved=len(unresolved_events(events)),
        unmatched=len(unmatched_events(roster, events)),
        inactive=sum(1 for e in events if e.patient_key in inactive_keys),
        superseded=_count_superseded(events),
    )
    if diagnostics.has_issues:
        logger.info(f"Record diagnostics: {diagnostics}")
    return diagnostics
