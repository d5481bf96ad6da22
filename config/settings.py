# clinic_records/config/settings.py
# CENTRALIZED CONFIGURATION HUB

import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

settings_logger = logging.getLogger(__name__)

# --- Nested Models for Structured Configuration ---
class IdentityConfig(BaseModel):
    display_prefix: str = "P"
    display_width: int = 4
    unresolved_marker: str = "?"

class DateConfig(BaseModel):
    min_year: int = 1900; max_year: int = 2100
    # Numeric dates at or above this are epoch milliseconds, below it epoch seconds.
    epoch_ms_threshold: float = 1e11

class AttendanceConfig(BaseModel):
    late_after: str = Field("10:00", description="Check-ins strictly after this HH:MM are marked Late")

class ExportConfig(BaseModel):
    no_event_marker: str = "-"
    filename_template: str = "patient-{kind}-{period}.csv"
    id_column: str = "Patient ID"; name_column: str = "Patient Name"

# --- Main Settings Class ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='CLINIC_', case_sensitive=False, env_file='.env', env_file_encoding='utf-8', extra='ignore')

    PROJECT_ROOT_DIR: Path = Path(__file__).resolve().parent.parent
    APP_NAME: str = "Clinic Records Reconciler"; APP_VERSION: str = "1.0.0"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DATA_SOURCES_DIR: Path; EXPORT_DIR: Path
    ROSTER_PATH: Path; ATTENDANCE_RECORDS_PATH: Path; CALL_RECORDS_PATH: Path
    HISTORY_RECORDS_PATH: Path; PAYMENT_RECORDS_PATH: Path

    @model_validator(mode='before')
    @classmethod
    def set_default_paths(cls, values: Any) -> Any:
        if isinstance(values, dict):
            root = Path(values.get('PROJECT_ROOT_DIR', Path(__file__).resolve().parent.parent))
            data = Path(values.get('DATA_SOURCES_DIR', root / "data_sources"))
            values.setdefault('DATA_SOURCES_DIR', data); values.setdefault('EXPORT_DIR', root / "exports")
            values.setdefault('ROSTER_PATH', data / "patients.json")
            values.setdefault('ATTENDANCE_RECORDS_PATH', data / "patient_attendance.json")
            values.setdefault('CALL_RECORDS_PATH', data / "patient_call_records.json")
            values.setdefault('HISTORY_RECORDS_PATH', data / "patient_history.json")
            values.setdefault('PAYMENT_RECORDS_PATH', data / "test_reports.json")
        return values

    IDENTITY: IdentityConfig = IdentityConfig(); DATES: DateConfig = DateConfig()
    ATTENDANCE: AttendanceConfig = AttendanceConfig(); EXPORT: ExportConfig = ExportConfig()

    WEB_CACHE_TTL_SECONDS: int = 3600

try:
    settings = Settings()
    settings_logger.info(f"Clinic settings loaded successfully. App: {settings.APP_NAME} v{settings.APP_VERSION}")
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize Pydantic settings. Error: {e}", exc_info=True)
    raise
