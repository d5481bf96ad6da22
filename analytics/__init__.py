# clinic_records/analytics/__init__.py
# RECONCILIATION ENGINE PUBLIC API

"""
Initializes the analytics package, making the reconciliation engine, the
attendance state machine, the matrix exporter and the report pipeline
available at the top level for easier importing.
"""

# From reconciliation.py
from .reconciliation import ReconciledSlot, reconcile_day, reconcile_window, resolve_kind, slots_to_frame

# From attendance.py
from .attendance import (
    ALLOWED_TRANSITIONS,
    DeleteEvent,
    MarkAttendance,
    UpdateAttendanceStatus,
    apply_intents,
    can_transition,
    plan_mark_attendance,
    plan_reset_attendance,
    status_for_check_in
)

# From matrix_export.py
from .matrix_export import MatrixRow, PatientMatrix, export_filename, matrix_to_frame, to_matrix, write_matrix_csv

# From orchestrator.py
from .orchestrator import MonthlyReport, MonthlyReportBuilder, build_monthly_report

# --- Define the public API for the analytics package ---
__all__ = [
    # Reconciliation
    "ReconciledSlot",
    "reconcile_day",
    "reconcile_window",
    "resolve_kind",
    "slots_to_frame",

    # Attendance state machine
    "ALLOWED_TRANSITIONS",
    "DeleteEvent",
    "MarkAttendance",
    "UpdateAttendanceStatus",
    "apply_intents",
    "can_transition",
    "plan_mark_attendance",
    "plan_reset_attendance",
    "status_for_check_in",

    # Matrix export
    "MatrixRow",
    "PatientMatrix",
    "export_filename",
    "matrix_to_frame",
    "to_matrix",
    "write_matrix_csv",

    # Report pipeline
    "MonthlyReport",
    "MonthlyReportBuilder",
    "build_monthly_report",
]
