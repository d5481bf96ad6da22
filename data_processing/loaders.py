# clinic_records/data_processing/loaders.py
# SNAPSHOT LOADING FOR ROSTER & EVENT SOURCES

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, Field

from config import settings
from .adapters import adapt_events, adapt_roster, coerce_kind
from .helpers import DataPipeline, robust_json_load
from .models import EventKind, EventRecord, Patient

logger = logging.getLogger(__name__)

# --- Pydantic Models for Type-Safe Configuration ---

class SnapshotConfig(BaseModel):
    """Where a record snapshot lives and how its CSV form is read."""
    path_setting: str
    # Read every cell as text; identifiers like "0001" must not become ints.
    read_options: Dict[str, Any] = Field(default_factory=lambda: {'dtype': str, 'keep_default_na': False})

# --- Centralized Data Source Configuration ---

DATA_CONFIG: Dict[str, SnapshotConfig] = {
    'roster': SnapshotConfig(path_setting='ROSTER_PATH'),
    EventKind.ATTENDANCE.value: SnapshotConfig(path_setting='ATTENDANCE_RECORDS_PATH'),
    EventKind.CALL.value: SnapshotConfig(path_setting='CALL_RECORDS_PATH'),
    EventKind.HISTORY.value: SnapshotConfig(path_setting='HISTORY_RECORDS_PATH'),
    EventKind.PAYMENT.value: SnapshotConfig(path_setting='PAYMENT_RECORDS_PATH'),
}

# --- Raw Row Loading ---

def _unwrap_json_rows(payload: Union[Dict, List, None], config_key: str) -> List[Any]:
    """Accepts a bare list of rows or the API envelope {"success": ..., "data": [...]}."""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if payload.get('success') is False:
            logger.warning(f"({config_key}) Snapshot envelope reports success=false: {payload.get('message', 'no message')}")
        rows = payload.get('data')
        if isinstance(rows, list):
            return rows
    logger.error(f"({config_key}) JSON snapshot is neither a list nor a {{'data': [...]}} envelope.")
    return []


def _read_csv_rows(path: Path, config: SnapshotConfig, config_key: str) -> List[Dict[str, Any]]:
    try:
        df = pd.read_csv(path, **config.read_options)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
        logger.error(f"({config_key}) Could not read CSV snapshot {path}: {e}")
        return []
    return (DataPipeline(df)
            .clean_column_names()
            .strip_strings()
            .replace_missing_markers()
            .to_records())


def load_raw_rows(config_key: str, filepath_override: Optional[Union[str, Path]] = None) -> List[Any]:
    """
    Reads the raw rows of one snapshot (JSON or CSV, chosen by file suffix).

    Returns an empty list, after logging, when the source is unknown, missing
    or unreadable; snapshot loading never raises for bad files.
    """
    config = DATA_CONFIG.get(config_key)
    if config is None:
        logger.error(f"Invalid snapshot config key: '{config_key}'")
        return []

    path_to_load = Path(filepath_override) if filepath_override else Path(getattr(settings, config.path_setting))
    if not path_to_load.is_file():
        logger.error(f"({config_key}) Snapshot file not found at: {path_to_load}")
        return []

    if path_to_load.suffix.lower() == '.csv':
        rows = _read_csv_rows(path_to_load, config, config_key)
    else:
        rows = _unwrap_json_rows(robust_json_load(path_to_load), config_key)

    logger.info(f"({config_key}) Loaded {len(rows)} raw rows from {path_to_load.name}.")
    return rows

# --- Main Loading Functions ---

def load_roster(filepath_override: Optional[Union[str, Path]] = None) -> List[Patient]:
    """Loads the patient roster snapshot and adapts it to Patients (all statuses)."""
    return adapt_roster(load_raw_rows('roster', filepath_override))


def load_event_records(kind: Union[EventKind, str], filepath_override: Optional[Union[str, Path]] = None) -> List[EventRecord]:
    """Loads one kind's event snapshot and adapts it to EventRecords."""
    event_kind = coerce_kind(kind)
    return adapt_events(event_kind, load_raw_rows(event_kind.value, filepath_override))
