# clinic_records/data_processing/adapters.py
# SOURCE ADAPTERS - RAW ROWS TO CANONICAL RECORDS

"""
The mapping boundary between the clinic's record sources and the engine.

Each source names its fields differently (``patient_id`` vs ``patientId``,
``attendance_date`` vs ``date`` vs ``test_date``). This module is the only
place those names appear: `SOURCE_CONFIG` lists candidate fields per kind and
the adapters translate raw rows into `Patient` and `EventRecord` objects
before any matching or reconciliation runs.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from .dates import INVALID_DAY, to_day, to_epoch_ms
from .helpers import convert_to_numeric, is_missing
from .identity import PatientKey, display_id, normalize_patient_id
from .models import AttendanceStatus, EventKind, EventRecord, Patient, PatientStatus

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r'[^a-z0-9]+')

# --- Pydantic Models for Type-Safe Source Configuration ---

class SourceConfig(BaseModel):
    """Candidate field names for one event source, tried in order."""
    kind: EventKind
    id_fields: List[str] = Field(default_factory=lambda: ['id'])
    patient_fields: List[str] = Field(default_factory=lambda: ['patient_id'])
    date_fields: List[str]
    created_fields: List[str] = Field(default_factory=lambda: ['created_at', 'updated_at'])
    status_fields: List[str] = Field(default_factory=list)
    amount_fields: List[str] = Field(default_factory=list)
    name_fields: List[str] = Field(default_factory=lambda: ['patient_name'])

class RosterConfig(BaseModel):
    """Candidate field names for patient roster rows."""
    id_fields: List[str] = Field(default_factory=lambda: ['id'])
    display_id_fields: List[str] = Field(default_factory=lambda: ['patient_id'])
    name_fields: List[str] = Field(default_factory=lambda: ['name', 'patient_name'])
    status_fields: List[str] = Field(default_factory=lambda: ['status'])
    phone_fields: List[str] = Field(default_factory=lambda: ['phone', 'contact_number', 'patient_phone'])
    fee_fields: List[str] = Field(default_factory=lambda: ['blood_test', 'fees', 'pickup_charge'])
    advance_fields: List[str] = Field(default_factory=lambda: ['pay_amount', 'advance_paid'])

# --- Centralized Source Configuration ---
# Field lookup ignores case and separators, so 'patient_id' also matches 'patientId'.

ROSTER_CONFIG = RosterConfig()

SOURCE_CONFIG: Dict[EventKind, SourceConfig] = {
    EventKind.ATTENDANCE: SourceConfig(
        kind=EventKind.ATTENDANCE,
        date_fields=['attendance_date', 'date'],
        status_fields=['status'],
    ),
    EventKind.CALL: SourceConfig(
        kind=EventKind.CALL,
        date_fields=['date', 'call_date', 'created_at'],
    ),
    EventKind.HISTORY: SourceConfig(
        kind=EventKind.HISTORY,
        date_fields=['date', 'created_at'],
    ),
    EventKind.PAYMENT: SourceConfig(
        kind=EventKind.PAYMENT,
        date_fields=['test_date', 'payment_date', 'date'],
        status_fields=['status'],
        amount_fields=['amount', 'payment_amount'],
    ),
}

# --- Field Access Helpers ---

def _field_token(name: Any) -> str:
    return _NON_ALNUM.sub('', str(name).lower())


def _as_record(row: Any, context: str, index: int) -> Mapping[str, Any]:
    if isinstance(row, Mapping):
        return row
    if isinstance(row, pd.Series):
        return row.to_dict()
    logger.warning(f"({context}) Row {index} is a {type(row).__name__}, not a mapping; keeping it as an empty record.")
    return {}


def _index_fields(record: Mapping[str, Any]) -> Dict[str, Any]:
    # Tables built from mixed rows carry both spellings of a field (patient_id
    # and patientId); the first non-missing one wins.
    index: Dict[str, Any] = {}
    for name, value in record.items():
        token = _field_token(name)
        if token not in index or is_missing(index[token]):
            index[token] = value
    return index


def _pick(fields: Mapping[str, Any], candidates: Iterable[str]) -> Optional[Any]:
    """First non-missing value among the candidate field names."""
    for candidate in candidates:
        value = fields.get(_field_token(candidate))
        if not is_missing(value):
            return value
    return None


def _text(value: Any) -> str:
    return "" if is_missing(value) else str(value).strip()


def _amount(value: Any) -> Optional[float]:
    number = convert_to_numeric(value)
    return None if pd.isna(number) else float(number)


def _sum_amounts(fields: Mapping[str, Any], candidates: Iterable[str]) -> float:
    values = pd.Series([fields.get(_field_token(c)) for c in candidates], dtype=object)
    return float(convert_to_numeric(values, default_value=0.0).sum())


def coerce_kind(kind: Union[EventKind, str]) -> EventKind:
    """Accepts an EventKind or its string value; raises ValueError for an unknown kind."""
    return kind if isinstance(kind, EventKind) else EventKind(str(kind).strip().lower())

# --- Roster Adapter ---

def _resolve_roster_key(fields: Mapping[str, Any]) -> PatientKey:
    raw_id = _pick(fields, ROSTER_CONFIG.id_fields)
    raw_display = _pick(fields, ROSTER_CONFIG.display_id_fields)
    id_key = normalize_patient_id(raw_id)
    display_key = normalize_patient_id(raw_display)

    if id_key.is_resolved:
        if display_key.is_resolved and display_key != id_key:
            logger.warning(f"Roster row id {raw_id!r} disagrees with patient_id {raw_display!r}; using the id.")
        return id_key
    if display_key.is_resolved:
        return display_key
    return id_key if raw_id is not None else display_key


def adapt_roster(raw_rows: Optional[Iterable[Any]]) -> List[Patient]:
    """Maps raw roster rows (numeric or string ids, any status casing) to Patients."""
    patients: List[Patient] = []
    for index, row in enumerate(raw_rows if raw_rows is not None else []):
        record = _as_record(row, 'roster', index)
        fields = _index_fields(record)
        key = _resolve_roster_key(fields)
        if not key.is_resolved:
            logger.warning(f"(roster) Row {index} has no resolvable patient id; keyed as '{key.value}'.")
        patients.append(Patient(
            key=key,
            display_id=display_id(key),
            name=_text(_pick(fields, ROSTER_CONFIG.name_fields)),
            status=PatientStatus.parse(_pick(fields, ROSTER_CONFIG.status_fields)),
            phone=_text(_pick(fields, ROSTER_CONFIG.phone_fields)),
            total_fees=_sum_amounts(fields, ROSTER_CONFIG.fee_fields),
            advance_paid=_sum_amounts(fields, ROSTER_CONFIG.advance_fields),
            attributes=dict(record),
        ))
    logger.debug(f"(roster) Adapted {len(patients)} roster rows.")
    return patients

# --- Event Adapter ---

def adapt_events(kind: Union[EventKind, str], raw_rows: Optional[Iterable[Any]]) -> List[EventRecord]:
    """
    Maps raw event rows of one kind to EventRecords.

    Rows are never dropped: an unusable identifier becomes a sentinel key and
    an unparseable date becomes INVALID_DAY, so callers can report them.
    """
    event_kind = coerce_kind(kind)
    config = SOURCE_CONFIG[event_kind]
    context = event_kind.value

    events: List[EventRecord] = []
    undated = 0
    for index, row in enumerate(raw_rows if raw_rows is not None else []):
        record = _as_record(row, context, index)
        fields = _index_fields(record)

        raw_id = _pick(fields, config.id_fields)
        if isinstance(raw_id, (np.integer, np.floating)):
            raw_id = raw_id.item()
        day = to_day(_pick(fields, config.date_fields))
        if day is INVALID_DAY:
            undated += 1

        raw_status = _pick(fields, config.status_fields) if config.status_fields else None
        is_attendance = event_kind is EventKind.ATTENDANCE
        events.append(EventRecord(
            id=raw_id if raw_id is not None else f"{context}-row-{index}",
            kind=event_kind,
            patient_key=normalize_patient_id(_pick(fields, config.patient_fields)),
            day=day,
            created_at=to_epoch_ms(_pick(fields, config.created_fields)),
            status=AttendanceStatus.parse(raw_status) if is_attendance else None,
            label=None if is_attendance or raw_status is None else _text(raw_status).title(),
            amount=_amount(_pick(fields, config.amount_fields)) if config.amount_fields else None,
            patient_name=_text(_pick(fields, config.name_fields)) or None,
            payload=dict(record),
        ))

    if undated:
        logger.warning(f"({context}) {undated} of {len(events)} records could not be dated.")
    logger.debug(f"({context}) Adapted {len(events)} event rows.")
    return events
