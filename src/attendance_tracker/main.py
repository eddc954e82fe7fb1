from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

PACKAGE_DIR = Path(__file__).resolve().parent
SRC_DIR = PACKAGE_DIR.parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from attendance_tracker.app import TrackerApp
from attendance_tracker.models import Situation
from attendance_tracker.remote import RemoteError
from attendance_tracker.services.reports import (
    FrequencyLevel,
    build_student_report,
    class_averages,
    dashboard_summary,
)
from attendance_tracker.services.sync_coordinator import SyncQueuedError

_LOGGER = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ALL_SITUATIONS = "all"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="attendance-tracker",
        description="Local-first school attendance tracker with spreadsheet sync.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override LOG_LEVEL.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create the local database and default bimesters.")
    init.add_argument("--sample", action="store_true", help="Seed a sample class when the store is empty.")

    subparsers.add_parser("pull", help="Replace local data with the remote snapshot.")
    subparsers.add_parser("push", help="Send the full local snapshot to the remote store.")
    subparsers.add_parser("drain", help="Retry every queued sync batch.")
    subparsers.add_parser("status", help="Show local counts and pending sync batches.")

    report = subparsers.add_parser("report", help="Per-student attendance report.")
    report.add_argument("--class", dest="class_id", default=None, help="Only students of this class id.")
    report.add_argument("--bimester", type=int, default=None, help="Restrict to bimester 1-4.")
    report.add_argument(
        "--situation",
        choices=[situation.value for situation in Situation] + [ALL_SITUATIONS],
        default=Situation.ENROLLED.value,
        help="Enrollment situation filter, or 'all'.",
    )
    report.add_argument(
        "--level",
        choices=[level.value for level in FrequencyLevel],
        default=None,
        help="Only rows at this frequency level.",
    )

    subparsers.add_parser("dashboard", help="School-wide totals and per-class averages.")
    return parser


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
def _cmd_init(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    created = app.repository.ensure_default_bimesters()
    seeded = app.repository.seed_sample_data() if args.sample else False
    print(f"Database ready at {app.database.path}")
    if created:
        print("Default bimesters created.")
    if seeded:
        print("Sample class and students created.")
    return 0


def _cmd_pull(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    hydrated = app.pull()
    if hydrated is None:
        print("Remote store has no classes; local data kept.")
    else:
        for key, count in hydrated.items():
            print(f"{key}: {count}")
    return 0


def _cmd_push(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    state = app.push()
    print(f"Snapshot {state.value}.")
    return 0


def _cmd_drain(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    result = app.drain()
    print(f"Drained {result.drained} batch(es), {result.remaining} remaining.")
    if result.error is not None:
        print(f"Remote store unavailable: {result.error}", file=sys.stderr)
        return 1
    return 0


def _cmd_status(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    app.context.refresh()
    context = app.context
    print(f"Database: {app.database.path}")
    print(f"Remote: {'configured' if app.remote.is_configured else 'not configured'}")
    print(f"Classes: {len(context.classes)}")
    print(f"Students: {len(context.students)}")
    print(f"Attendance records: {len(context.attendance)}")
    print(f"Holidays: {len(context.holidays)}")
    print(f"Pending sync batches: {app.pending_count()}")
    return 0


def _cmd_report(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    app.context.refresh()
    context = app.context

    bimester = None
    if args.bimester is not None:
        bimester = context.bimester_by_id(args.bimester)
        if bimester is None:
            print(f"Unknown bimester {args.bimester}", file=sys.stderr)
            return 2

    situation = None if args.situation == ALL_SITUATIONS else Situation(args.situation)
    rows = build_student_report(
        context.classes,
        context.students,
        context.attendance,
        class_id=args.class_id,
        bimester=bimester,
        situation=situation,
        level=FrequencyLevel(args.level) if args.level else None,
    )
    if not rows:
        print("No students match the selected filters.")
        return 0

    for row in rows:
        stats = row.stats
        print(
            f"{row.student.name:<30} {row.class_name:<15} "
            f"P={stats.present:<3} F={stats.absent:<3} J={stats.justified:<3} "
            f"{stats.attendance_rate:6.1f}% {row.level.value}"
        )
    return 0


def _cmd_dashboard(app: TrackerApp, args: argparse.Namespace) -> int:
    app.store.initialize()
    app.context.refresh()
    context = app.context
    summary = dashboard_summary(context.classes, context.students, context.attendance)
    print(f"Classes: {summary.total_classes}")
    print(f"Students: {summary.total_students}")
    print(f"Attendance records: {summary.total_records}")
    print(f"Average attendance: {summary.average_attendance:.1f}%")
    for average in class_averages(context.classes, context.students, context.attendance):
        print(f"  {average.class_name:<20} {average.average_rate:6.1f}% ({average.total_students} students)")
    return 0


COMMANDS = {
    "init": _cmd_init,
    "pull": _cmd_pull,
    "push": _cmd_push,
    "drain": _cmd_drain,
    "status": _cmd_status,
    "report": _cmd_report,
    "dashboard": _cmd_dashboard,
}


def _resolve_log_level(value: str) -> str:
    level = value.upper()
    if level not in LOG_LEVELS:
        # LOG_LEVEL comes from the environment, which argparse never sees.
        return "INFO"
    return level


def main(argv: Sequence[str] | None = None, *, app: TrackerApp | None = None) -> int:
    args = build_parser().parse_args(argv)

    if app is None:
        from attendance_tracker.config.settings import settings

        logging.basicConfig(
            level=_resolve_log_level(args.log_level or settings.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        app = TrackerApp(settings)

    try:
        return COMMANDS[args.command](app, args)
    except SyncQueuedError as exc:
        print(f"Saved locally; {exc}", file=sys.stderr)
        return 1
    except RemoteError as exc:
        _LOGGER.debug("Remote command failed", exc_info=True)
        print(f"Remote store error: {exc}", file=sys.stderr)
        return 1
    finally:
        app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
