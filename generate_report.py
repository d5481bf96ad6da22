# clinic_records/generate_report.py
# COMMAND-LINE ENTRY POINT - MONTHLY RECONCILIATION REPORT

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

try:
    _project_root = Path(__file__).resolve().parent
    if str(_project_root) not in sys.path:
        sys.path.insert(0, str(_project_root))

    from config import settings
    from analytics import build_monthly_report, write_matrix_csv
    from data_processing import EventKind, load_event_records, load_roster, to_month_window

except ImportError as e:
    print("FATAL ERROR in generate_report.py: A core module failed to import.", file=sys.stderr)
    print("Install the project first (`pip install -e .`) and run from the project root.", file=sys.stderr)
    print(f"\nPython Path: {sys.path}\nOriginal ImportError: {e}", file=sys.stderr)
    sys.exit(1)

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format=settings.LOG_FORMAT,
        datefmt=settings.LOG_DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="generate_report",
        description=f"{settings.APP_NAME}: reconcile one month of patient records and export the patient x day matrix.",
    )
    parser.add_argument("--kind", choices=[k.value for k in EventKind], default=EventKind.ATTENDANCE.value,
                        help="Record kind to reconcile (default: attendance).")
    parser.add_argument("--month", type=int, required=True, help="Month number, 1-12.")
    parser.add_argument("--year", type=int, required=True, help="Four-digit year.")
    parser.add_argument("--roster", type=Path, default=None, help="Roster snapshot (JSON or CSV). Defaults to settings.ROSTER_PATH.")
    parser.add_argument("--events", type=Path, default=None, help="Event snapshot for --kind. Defaults to the configured path for that kind.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Export directory. Defaults to settings.EXPORT_DIR.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        window = to_month_window(args.month, args.year)
    except ValueError as e:
        logger.error(f"Invalid reporting window: {e}")
        return 2

    roster = load_roster(args.roster)
    if not roster:
        logger.critical("No roster could be loaded; nothing to report on.")
        return 1
    events = load_event_records(args.kind, args.events)

    report, errors = build_monthly_report(roster, events, window, args.kind, source_context="CLI")

    if report.summary is not None:
        counts = ", ".join(f"{status.value}={n}" for status, n in report.summary.counts.items()) or "none"
        logger.info(f"{window} {report.kind.value}: {report.summary.total_patients} patients, "
                    f"{report.summary.total_slots} slots, {report.summary.entry_count} entries; counts: {counts}.")
    if report.diagnostics is not None and report.diagnostics.has_issues:
        d = report.diagnostics
        logger.warning(f"{d.undated} undated, {d.unresolved} unresolved, {d.unmatched} off-roster "
                       f"and {d.superseded} superseded records out of {d.total}.")
    for error in errors:
        logger.error(f"Report stage error: {error}")

    if report.matrix is None:
        return 1
    try:
        path = write_matrix_csv(report.matrix, args.output_dir)
    except OSError as e:
        logger.critical(f"Could not write the export: {e}", exc_info=True)
        return 1
    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
