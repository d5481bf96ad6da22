# clinic_records/data_processing/models.py
# CANONICAL RECORD TYPES

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .dates import DayKey, DaySentinel
from .helpers import is_missing
from .identity import PatientKey

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r'[^a-z0-9]+')


def _token(raw: Any) -> str:
    return _NON_ALNUM.sub('', str(raw).lower())


# --- Enums ---
class EventKind(Enum):
    ATTENDANCE = "attendance"
    CALL = "call"
    HISTORY = "history"
    PAYMENT = "payment"

    @property
    def is_free_form(self) -> bool:
        """Free-form kinds hold zero-or-more entries per day instead of a single status."""
        return self is not EventKind.ATTENDANCE


class PatientStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISCHARGED = "Discharged"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, raw: Any) -> 'PatientStatus':
        # The patients table defaults status to 'Active'.
        if is_missing(raw):
            return cls.ACTIVE
        token = _token(raw)
        for member in cls:
            if member.value.lower() == token:
                return member
        logger.warning(f"Unknown patient status '{raw}'; treating the patient as Inactive.")
        return cls.INACTIVE


class AttendanceStatus(Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    NOT_MARKED = "NotMarked"

    @classmethod
    def parse(cls, raw: Any) -> 'AttendanceStatus':
        """Case and separator tolerant ("not marked", "NOT_MARKED"); unknown values reset to NotMarked."""
        if is_missing(raw):
            return cls.NOT_MARKED
        token = _token(raw)
        for member in cls:
            if member.value.lower() == token:
                return member
        logger.warning(f"Unknown attendance status '{raw}'; treating the record as NotMarked.")
        return cls.NOT_MARKED


# --- Dataclasses ---
@dataclass(frozen=True)
class Patient:
    key: PatientKey
    display_id: str
    name: str
    status: PatientStatus
    phone: str = ""
    total_fees: float = 0.0
    advance_paid: float = 0.0
    # The source row, passed through untouched for the presentation layer.
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_active(self) -> bool:
        return self.status is PatientStatus.ACTIVE


# Column names for EventRecord.sort_key when ordering records in a DataFrame.
SORT_COLUMNS = ('created_at', 'id_rank', 'id_number', 'id_text')


@dataclass(frozen=True)
class EventRecord:
    """
    One time-stamped record of a given kind, already mapped to canonical fields.

    ``created_at`` is epoch milliseconds (None when the source had no usable
    timestamp) and orders competing records for the same patient and day.
    ``status`` is only set for attendance; ``label`` carries the free-form
    status of other kinds (e.g. a test report's Pending/Completed).
    """
    id: Union[int, str]
    kind: EventKind
    patient_key: PatientKey
    day: Union[DayKey, DaySentinel]
    created_at: Optional[float] = None
    status: Optional[AttendanceStatus] = None
    label: Optional[str] = None
    amount: Optional[float] = None
    patient_name: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def sort_key(self) -> Tuple[float, int, int, str]:
        # Missing timestamps lose to any timestamped record; ids settle exact
        # ties, numeric ids by value (9 before 10) and ahead of text ids.
        created = self.created_at if self.created_at is not None else float('-inf')
        text = str(self.id).strip()
        if isinstance(self.id, int) and not isinstance(self.id, bool):
            return (created, 0, self.id, text)
        if text.isdigit():
            return (created, 0, int(text), text)
        return (created, 1, 0, text)


@dataclass(frozen=True)
class ReconciledSlot:
    """
    The single authoritative view of one patient on one day.

    ``events`` holds every matching record in ascending (created_at, id) order
    and ``latest_event`` is its last element. ``status`` is set for attendance
    slots only (NotMarked when nothing was recorded) and is None for free-form
    kinds, whose slots simply hold zero or more entries.
    """
    patient_key: PatientKey
    day: DayKey
    status: Optional[AttendanceStatus]
    latest_event: Optional[EventRecord] = None
    events: Tuple[EventRecord, ...] = ()

    @property
    def entry_count(self) -> int:
        return len(self.events)
