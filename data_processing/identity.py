# clinic_records/data_processing/identity.py
# PATIENT IDENTITY NORMALIZATION

"""
Canonical patient identity.

Patient identifiers reach the dashboard in three shapes: the numeric primary
key (``1``), the formatted display id (``"P0001"``), or nothing at all. Every
matching path in the application compares identities through
`normalize_patient_id`, never through the raw values, so that ``1``, ``"1"``,
``"P1"`` and ``"P0001"`` always denote the same patient.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Tuple, Union

import numpy as np

from config import settings
from .helpers import is_missing

logger = logging.getLogger(__name__)

_PREFIX = settings.IDENTITY.display_prefix
_FORMATTED_ID = re.compile(rf'^{re.escape(_PREFIX)}0*([1-9]\d*)$', re.IGNORECASE)
_NUMERIC_ID = re.compile(r'^(\d+)(?:\.0+)?$')


@dataclass(frozen=True)
class PatientKey:
    """
    Format-independent patient identity.

    ``value`` is the patient number for resolvable identifiers, or a sentinel
    string (``settings.IDENTITY.unresolved_marker`` + the raw text) when the
    identifier has no numeric component. Sentinel keys still compare and hash,
    so records carrying them stay visible in an "unmatched" bucket.
    """
    value: Union[int, str]

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.value, int)

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        # Resolved ids in numeric order first, then sentinels alphabetically.
        if self.is_resolved:
            return (0, self.value, '')
        return (1, 0, str(self.value))

    def __str__(self) -> str:
        return display_id(self)


def _unresolved(text: str) -> PatientKey:
    return PatientKey(f"{settings.IDENTITY.unresolved_marker}{text}")


def normalize_patient_id(raw: Any) -> PatientKey:
    """
    Converts any identifier representation into a PatientKey. Never raises.

    Args:
        raw: an int/float primary key, a numeric string, a ``P####`` string,
            an existing PatientKey, or a missing value.

    Returns:
        The canonical key. Unusable identifiers map to a stable sentinel key
        derived from their text; all missing values share the bare marker.
    """
    if isinstance(raw, PatientKey):
        return raw
    if is_missing(raw):
        return _unresolved('')

    # bool is an int subclass; True is not patient 1.
    if isinstance(raw, (bool, np.bool_)):
        return _unresolved(str(raw))

    if isinstance(raw, (int, np.integer)):
        return PatientKey(int(raw)) if raw > 0 else _unresolved(str(raw))

    if isinstance(raw, (float, np.floating)):
        if float(raw).is_integer() and raw > 0:
            return PatientKey(int(raw))
        return _unresolved(str(raw))

    text = str(raw).strip()
    numeric_match = _NUMERIC_ID.match(text)
    if numeric_match:
        number = int(numeric_match.group(1))
        return PatientKey(number) if number > 0 else _unresolved(text)

    formatted_match = _FORMATTED_ID.match(text)
    if formatted_match:
        return PatientKey(int(formatted_match.group(1)))

    logger.debug(f"Patient identifier '{text}' has no numeric component; using sentinel key.")
    return _unresolved(text)


def display_id(key_or_raw: Any) -> str:
    """Renders ``P`` + the patient number zero-padded to the configured width (P0001)."""
    key = normalize_patient_id(key_or_raw)
    if not key.is_resolved:
        return str(key.value)
    return f"{_PREFIX}{key.value:0{settings.IDENTITY.display_width}d}"


def same_patient(left: Any, right: Any) -> bool:
    """True when two raw identifiers normalize to the same PatientKey."""
    return normalize_patient_id(left) == normalize_patient_id(right)
