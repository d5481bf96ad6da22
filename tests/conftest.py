# clinic_records/tests/conftest.py
# PYTEST FIXTURES

import sys
from pathlib import Path

# --- Path Setup for Module Imports ---
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from typing import Any, Dict, List

import pytest

from data_processing import MonthWindow, adapt_events, adapt_roster

# --- Raw Snapshot Fixtures ---

@pytest.fixture(scope="session")
def raw_roster_rows() -> List[Dict[str, Any]]:
    """Roster rows as the patients API returns them: numeric ids, mixed status casing."""
    return [
        {'id': 1, 'patient_id': None, 'name': 'Asha Rao', 'status': 'Active', 'phone': '9876500001',
         'fees': '1500.00', 'bloodTest': 300, 'pickupCharge': '200', 'payAmount': 500},
        {'id': '2', 'patient_id': 'P0002', 'name': 'Bilal Khan', 'status': 'active', 'phone': '9876500002',
         'fees': 1000, 'bloodTest': None, 'pickupCharge': 0, 'payAmount': 0},
        {'id': 3, 'name': 'Chitra Nair', 'status': 'DISCHARGED', 'phone': '9876500003', 'fees': 800},
        {'id': 4, 'name': 'Dev Menon', 'phone': '9876500004', 'fees': 1200, 'payAmount': '1200'},
    ]


@pytest.fixture(scope="session")
def raw_attendance_rows() -> List[Dict[str, Any]]:
    """Attendance rows mixing identifier formats, date formats and duplicates."""
    return [
        {'id': 'a1', 'patient_id': '1', 'date': '2025-03-05', 'status': 'Present', 'createdAt': 100},
        {'id': 'a2', 'patient_id': 'P0001', 'date': '05-03-2025', 'status': 'Absent', 'createdAt': 200},
        {'id': 'a3', 'patientId': 2, 'attendance_date': '2025-03-05T00:00:00.000Z', 'status': 'late', 'created_at': '2025-03-05T09:30:00'},
        {'id': 'a4', 'patient_id': 'P0004', 'date': '2025-03-06', 'status': 'Present', 'createdAt': 300},
        {'id': 'a5', 'patient_id': 3, 'date': '2025-03-07', 'status': 'Present', 'createdAt': 400, 'patient_name': 'Chitra Nair'},
        {'id': 'a6', 'patient_id': 'P0099', 'date': '2025-03-08', 'status': 'Absent', 'createdAt': 500, 'patient_name': 'Walk In'},
        {'id': 'a7', 'patient_id': 'unknown', 'date': '2025-03-09', 'status': 'Present', 'createdAt': 600},
        {'id': 'a8', 'patient_id': 1, 'date': 'not a date', 'status': 'Present', 'createdAt': 700},
        {'id': 'a9', 'patient_id': 2, 'date': '2025-04-01', 'status': 'Present', 'createdAt': 800},
    ]


@pytest.fixture(scope="session")
def raw_payment_rows() -> List[Dict[str, Any]]:
    """Test-report rows as the billing API returns them (DECIMAL amounts as strings)."""
    return [
        {'id': 10, 'patient_id': 'P0001', 'test_type': 'CBC', 'test_date': '2025-03-02', 'amount': '250.00', 'status': 'Completed'},
        {'id': 11, 'patient_id': '1', 'test_type': 'Lipid', 'test_date': '2025-03-20', 'amount': 400, 'status': 'Pending'},
        {'id': 12, 'patient_id': 2, 'test_type': 'LFT', 'test_date': '2025-03-21', 'amount': '300', 'status': 'Cancelled'},
        {'id': 13, 'patient_id': 2, 'test_type': 'CBC', 'test_date': '2025-02-28', 'amount': 150, 'status': 'Completed'},
        {'id': 14, 'patient_id': 4, 'test_type': 'KFT', 'test_date': None, 'amount': 90, 'status': 'Completed'},
    ]

# --- Adapted Fixtures ---

@pytest.fixture(scope="session")
def roster(raw_roster_rows):
    return adapt_roster(raw_roster_rows)


@pytest.fixture(scope="session")
def attendance_events(raw_attendance_rows):
    return adapt_events('attendance', raw_attendance_rows)


@pytest.fixture(scope="session")
def payment_events(raw_payment_rows):
    return adapt_events('payment', raw_payment_rows)


@pytest.fixture(scope="session")
def march_2025() -> MonthWindow:
    return MonthWindow(month=3, year=2025)
