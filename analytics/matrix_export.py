# clinic_records/analytics/matrix_export.py
# DENSE PATIENT x DAY MATRIX & CSV EXPORT SINK

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from config import settings
from data_processing.dates import DayKey, MonthWindow, days_in
from data_processing.identity import PatientKey, display_id
from data_processing.matching import active_patients, for_window
from data_processing.models import AttendanceStatus, EventKind, EventRecord, Patient, ReconciledSlot
from .reconciliation import resolve_kind, slots_for_keys

logger = logging.getLogger(__name__)

CellValue = Union[str, int]


@dataclass(frozen=True)
class MatrixRow:
    patient_key: PatientKey
    display_id: str
    name: str
    cells: Dict[DayKey, CellValue] = field(default_factory=dict)


@dataclass(frozen=True)
class PatientMatrix:
    """A month of one record kind as a patient x day grid, ready for export."""
    window: MonthWindow
    kind: EventKind
    days: Tuple[DayKey, ...]
    rows: Tuple[MatrixRow, ...]


def _cell_value(slot: ReconciledSlot, kind: EventKind) -> CellValue:
    marker = settings.EXPORT.no_event_marker
    if kind is EventKind.ATTENDANCE:
        if slot.status is None or slot.status is AttendanceStatus.NOT_MARKED:
            return marker
        return slot.status.value
    return slot.entry_count if slot.entry_count else marker


def _name_from_events(key: PatientKey, events: Sequence[EventRecord]) -> str:
    """Name carried by the patient's most recent event, for patients missing from the roster."""
    named = [e for e in events if e.patient_key == key and e.patient_name]
    if not named:
        return ""
    return max(named, key=lambda e: e.sort_key).patient_name


def to_matrix(
    roster: Iterable[Patient],
    events: Sequence[EventRecord],
    window: MonthWindow,
    kind: Optional[Union[EventKind, str]] = None
) -> PatientMatrix:
    """
    Projects a month of reconciled slots into a dense grid.

    Rows are the active roster plus every patient with events in the window
    (inactive or off-roster patients included so history is not lost from
    reports), one row per PatientKey, ordered by patient number. Every row
    has a cell for every day of the window.
    """
    roster = list(roster)
    event_kind = resolve_kind(events, kind)
    days = days_in(window)
    window_events = [e for e in for_window(events, window) if e.kind is event_kind]

    by_key: Dict[PatientKey, Patient] = {}
    for patient in roster:
        by_key.setdefault(patient.key, patient)

    row_keys = {p.key for p in active_patients(roster)} | {e.patient_key for e in window_events}
    ordered_keys = sorted(row_keys, key=lambda k: k.sort_key)
    slots = slots_for_keys(ordered_keys, window_events, days, event_kind)

    rows: List[MatrixRow] = []
    for key in ordered_keys:
        patient = by_key.get(key)
        rows.append(MatrixRow(
            patient_key=key,
            display_id=patient.display_id if patient else display_id(key),
            name=patient.name if patient else _name_from_events(key, window_events),
            cells={slot.day: _cell_value(slot, event_kind) for slot in slots[key]},
        ))

    off_roster = sum(1 for k in ordered_keys if k not in by_key)
    if off_roster:
        logger.info(f"({event_kind.value}) {off_roster} matrix rows for {window} belong to patients missing from the roster.")
    return PatientMatrix(window=window, kind=event_kind, days=tuple(days), rows=tuple(rows))


def matrix_to_frame(matrix: PatientMatrix) -> pd.DataFrame:
    """Patient ID, Patient Name, then one column per day of the window."""
    id_col, name_col = settings.EXPORT.id_column, settings.EXPORT.name_column
    columns = [id_col, name_col, *matrix.days]
    records = [
        {id_col: row.display_id, name_col: row.name, **{day: row.cells[day] for day in matrix.days}}
        for row in matrix.rows
    ]
    return pd.DataFrame(records, columns=columns)


def export_filename(matrix: PatientMatrix) -> str:
    return settings.EXPORT.filename_template.format(kind=matrix.kind.value, period=matrix.window.period)


def write_matrix_csv(matrix: PatientMatrix, output_dir: Optional[Union[str, Path]] = None) -> Path:
    """Writes the matrix as CSV under ``output_dir`` (settings.EXPORT_DIR by default)."""
    target_dir = Path(output_dir) if output_dir else Path(settings.EXPORT_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(matrix)
    matrix_to_frame(matrix).to_csv(path, index=False)
    logger.info(f"({matrix.kind.value}) Wrote {len(matrix.rows)} rows x {len(matrix.days)} days to {path}.")
    return path
