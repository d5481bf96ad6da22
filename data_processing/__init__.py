# clinic_records/data_processing/__init__.py
# EXPLICIT PACKAGE API

"""
Initializes the data_processing package, defining its public API.

Identity and date normalization, the canonical record types, source adapters
and loaders, record matching and the pure aggregation logic all live here;
the reconciliation engine that consumes them lives in `analytics`.
"""

# --- Core Utilities from helpers.py ---
from .helpers import (
    DataPipeline,
    convert_to_numeric,
    hash_dataframe,
    is_missing,
    robust_json_load
)

# --- Canonical Keys from identity.py and dates.py ---
from .identity import PatientKey, display_id, normalize_patient_id, same_patient
from .dates import (
    INVALID_DAY,
    DayKey,
    MonthWindow,
    days_in,
    is_valid_day,
    is_within,
    month_window_of,
    to_day,
    to_epoch_ms,
    to_month_window
)

# --- Record Types from models.py ---
from .models import AttendanceStatus, EventKind, EventRecord, Patient, PatientStatus, ReconciledSlot

# --- Source Adapters & Loaders ---
from .adapters import SOURCE_CONFIG, SourceConfig, adapt_events, adapt_roster
from .loaders import load_event_records, load_raw_rows, load_roster

# --- Record Matching from matching.py ---
from .matching import (
    active_patients,
    filter_by_status,
    for_patient,
    for_patient_on_day,
    for_window,
    search_roster,
    undated_events,
    unmatched_events,
    unresolved_events
)

# --- Pure, Non-cached Logic from logic.py (for backend use) ---
from .logic import (
    AggregateSummary,
    FinancialTotals,
    RecordDiagnostics,
    calculate_patient_balances,
    daily_status_counts,
    diagnose_events,
    flatten_slots,
    summarize,
    summarize_payments
)

# --- Cached Wrappers from cached.py ---
from .cached import get_cached_day_summary, get_cached_matrix_frame, get_cached_month_summary


# --- Define the canonical public API for the package ---
__all__ = [
    # helpers.py
    "DataPipeline",
    "convert_to_numeric",
    "hash_dataframe",
    "is_missing",
    "robust_json_load",

    # identity.py
    "PatientKey",
    "display_id",
    "normalize_patient_id",
    "same_patient",

    # dates.py
    "INVALID_DAY",
    "DayKey",
    "MonthWindow",
    "days_in",
    "is_valid_day",
    "is_within",
    "month_window_of",
    "to_day",
    "to_epoch_ms",
    "to_month_window",

    # models.py
    "AttendanceStatus",
    "EventKind",
    "EventRecord",
    "Patient",
    "PatientStatus",
    "ReconciledSlot",

    # adapters.py / loaders.py
    "SOURCE_CONFIG",
    "SourceConfig",
    "adapt_events",
    "adapt_roster",
    "load_event_records",
    "load_raw_rows",
    "load_roster",

    # matching.py
    "active_patients",
    "filter_by_status",
    "for_patient",
    "for_patient_on_day",
    "for_window",
    "search_roster",
    "undated_events",
    "unmatched_events",
    "unresolved_events",

    # logic.py (for backend)
    "AggregateSummary",
    "FinancialTotals",
    "RecordDiagnostics",
    "calculate_patient_balances",
    "daily_status_counts",
    "diagnose_events",
    "flatten_slots",
    "summarize",
    "summarize_payments",

    # cached.py (for dashboards)
    "get_cached_day_summary",
    "get_cached_matrix_frame",
    "get_cached_month_summary",
]
