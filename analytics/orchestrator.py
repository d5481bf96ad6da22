# clinic_records/analytics/orchestrator.py
# MONTHLY REPORT PIPELINE

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from data_processing.dates import MonthWindow
from data_processing.identity import PatientKey
from data_processing.logic import (AggregateSummary, RecordDiagnostics, daily_status_counts,
                                   diagnose_events, summarize)
from data_processing.models import EventKind, EventRecord, Patient, ReconciledSlot
from .matrix_export import PatientMatrix, to_matrix
from .reconciliation import reconcile_window, resolve_kind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyReport:
    window: MonthWindow
    kind: EventKind
    slots: Dict[PatientKey, List[ReconciledSlot]]
    summary: Optional[AggregateSummary]
    daily_counts: pd.DataFrame
    matrix: Optional[PatientMatrix]
    diagnostics: Optional[RecordDiagnostics]


class MonthlyReportBuilder:
    """
    A pipeline class that turns one month of roster and event snapshots into a
    MonthlyReport: reconcile, summarize, build the export matrix, diagnose.
    A failing stage is logged and recorded in ``errors``; later stages still run
    on whatever the earlier ones produced.
    """
    def __init__(
        self,
        roster: Sequence[Patient],
        events: Sequence[EventRecord],
        window: MonthWindow,
        kind: Optional[Union[EventKind, str]] = None,
        source_context: str = "MonthlyReport",
        payments: Optional[Sequence[EventRecord]] = None
    ):
        self.roster = list(roster)
        self.events = list(events)
        self.window = window
        self.kind = resolve_kind(self.events, kind)
        self.payments = list(payments) if payments is not None else None
        self.source_context = source_context
        self.errors: List[str] = []

        self.slots: Dict[PatientKey, List[ReconciledSlot]] = {}
        self.summary: Optional[AggregateSummary] = None
        self.daily_counts = pd.DataFrame()
        self.matrix: Optional[PatientMatrix] = None
        self.diagnostics: Optional[RecordDiagnostics] = None

    def _reconcile(self) -> 'MonthlyReportBuilder':
        try:
            self.slots = reconcile_window(self.roster, self.events, self.window, self.kind)
            logger.info(f"({self.source_context}) Reconciled {sum(len(s) for s in self.slots.values())} slots for {self.window}.")
        except Exception as e:
            msg = "Reconciliation failed."
            self.errors.append(msg)
            logger.error(f"({self.source_context}) {msg}: {e}", exc_info=True)
        return self

    def _summarize(self) -> 'MonthlyReportBuilder':
        try:
            self.summary = summarize(self.slots, self.window, payments=self.payments)
            self.daily_counts = daily_status_counts(self.slots)
        except Exception as e:
            msg = "Summary computation failed."
            self.errors.append(msg)
            logger.error(f"({self.source_context}) {msg}: {e}", exc_info=True)
        return self

    def _build_matrix(self) -> 'MonthlyReportBuilder':
        try:
            self.matrix = to_matrix(self.roster, self.events, self.window, self.kind)
        except Exception as e:
            msg = "Export matrix construction failed."
            self.errors.append(msg)
            logger.error(f"({self.source_context}) {msg}: {e}", exc_info=True)
        return self

    def _diagnose(self) -> 'MonthlyReportBuilder':
        try:
            self.diagnostics = diagnose_events(self.roster, self.events)
        except Exception as e:
            msg = "Record diagnostics failed."
            self.errors.append(msg)
            logger.error(f"({self.source_context}) {msg}: {e}", exc_info=True)
        return self

    def run(self) -> Tuple[MonthlyReport, List[str]]:
        """Executes the full report pipeline in a fluent sequence."""
        logger.info(f"({self.source_context}) Building {self.kind.value} report for {self.window} "
                    f"from {len(self.roster)} roster rows and {len(self.events)} events.")
        (self
            ._reconcile()
            ._summarize()
            ._build_matrix()
            ._diagnose()
        )
        report = MonthlyReport(
            window=self.window, kind=self.kind, slots=self.slots, summary=self.summary,
            daily_counts=self.daily_counts, matrix=self.matrix, diagnostics=self.diagnostics,
        )
        logger.info(f"({self.source_context}) Report pipeline completed with {len(self.errors)} error(s).")
        return report, self.errors


def build_monthly_report(
    roster: Optional[Sequence[Patient]],
    events: Optional[Sequence[EventRecord]],
    window: MonthWindow,
    kind: Optional[Union[EventKind, str]] = None,
    source_context: str = "MonthlyReport",
    payments: Optional[Sequence[EventRecord]] = None
) -> Tuple[MonthlyReport, List[str]]:
    """
    Public factory for a monthly report. Missing snapshots are treated as
    empty and noted in the returned errors.
    """
    errors: List[str] = []
    if roster is None:
        errors.append("No roster snapshot was provided.")
        roster = []
    if events is None:
        errors.append("No event snapshot was provided.")
        events = []

    builder = MonthlyReportBuilder(roster, events, window, kind, source_context, payments)
    report, run_errors = builder.run()
    return report, errors + run_errors
