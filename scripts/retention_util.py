#!/usr/bin/env python3
"""
Command-line utility for inspecting and driving saved-screening retention.
"""

import argparse
import json
import sys
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from screening_retention.core import dao
from screening_retention.core.scheduler import ReconciliationScheduler, ReconciliationReport
from screening_retention.core.stats import StatsAggregator
from screening_retention.core.store import RecordStore, StorageUnavailable


def format_report(report: ReconciliationReport) -> str:
    """Format a reconciliation report for display."""
    lines = []

    lines.append(f"Pass: {'forced' if report.forced else 'scheduled'}")
    if report.completed_at and report.started_at:
        duration = report.completed_at - report.started_at
        lines.append(f"Duration: {duration.total_seconds():.2f} seconds")

    if report.status == "aborted":
        lines.append(f"Status: ABORTED ({len(report.errors)} errors)")
    else:
        lines.append("Status: SUCCESS")

    lines.append(f"Records Renewed: {report.records_updated} of {report.total_records}")
    if report.malformed_records:
        lines.append(f"Malformed Records: {report.malformed_records}")
    lines.append(f"Collection Written: {report.collection_written}")
    lines.append(f"Log Written: {report.log_written}")

    if report.renewed_ids and len(report.renewed_ids) <= 10:  # Don't flood output
        lines.append("Renewed:")
        for record_id in report.renewed_ids:
            lines.append(f"  - {record_id}")

    if report.errors:
        lines.append("Errors:")
        for error in report.errors:
            lines.append(f"  - {error}")

    return "\n".join(lines)


def format_status(status: dict) -> str:
    """Format scheduler status for display."""
    lines = [
        f"Scheduler: {status['scheduler']} ({status['state']})",
        f"Last Check: {status['last_check_at'] or 'never'}",
        f"Next Check: {status['next_check_at'] or 'due now'}",
        f"Saved Drafts: {status['total']}",
        f"  urgent:  {status['urgent']}",
        f"  warning: {status['warning']}",
        f"  safe:    {status['safe']}",
    ]
    if status["malformed"]:
        lines.append(f"  malformed: {status['malformed']}")
    return "\n".join(lines)


def format_details(breakdown) -> str:
    """Format per-draft expiration details for display."""
    if not breakdown.details:
        return "No saved drafts"
    lines = []
    for detail in sorted(breakdown.details, key=lambda d: d.days_until_expiration):
        lines.append(f"{detail.id:<16} {detail.days_until_expiration:>3} days  {detail.status.value}")
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(
        description="Saved-screening retention utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --status             # Reconciliation log and expiration counts
  %(prog)s --details            # Days remaining for every saved draft
  %(prog)s --force              # Run a reconciliation pass now
  %(prog)s --stats --json       # Dashboard counts as JSON
  %(prog)s --export > dump.json # Export both collections
  %(prog)s --clear --yes        # Delete all stored screenings and the log
  %(prog)s --debug --json       # Full diagnostic snapshot

Environment variables:
- DB_PATH=./data/screenings.db (database location)
- SCHEMA_VALIDATION_STRICT=true (abort passes over malformed drafts)
        """
    )

    parser.add_argument("--status", "-s", action="store_true", help="Show reconciliation status")
    parser.add_argument("--details", "-d", action="store_true", help="Show per-draft expiration details")
    parser.add_argument("--force", "-f", action="store_true", help="Force a reconciliation pass")
    parser.add_argument("--stats", action="store_true", help="Show dashboard counts")
    parser.add_argument("--export", action="store_true", help="Export all stored screenings")
    parser.add_argument("--debug", action="store_true", help="Dump stats, expirations, log and keys")
    parser.add_argument("--clear", action="store_true", help="Delete all stored screenings and the log")
    parser.add_argument("--yes", action="store_true", help="Confirm destructive operations")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    parser.add_argument("--db-path", help="Override DB_PATH")

    args = parser.parse_args()

    if not any([args.status, args.details, args.force, args.stats, args.export, args.clear, args.debug]):
        parser.print_help()
        return 1

    store = RecordStore(args.db_path)
    scheduler = ReconciliationScheduler(store)
    stats = StatsAggregator(store)
    output = {}

    if args.force:
        report = scheduler.force_reconcile()
        output["reconciliation"] = report.to_dict()
        if not args.json:
            print(format_report(report))

    if args.status:
        status = scheduler.get_status()
        output["status"] = status
        if not args.json:
            print(format_status(status))

    if args.details:
        breakdown = stats.compute_expiration_breakdown()
        output["expirations"] = breakdown.to_dict()
        if not args.json:
            print(format_details(breakdown))

    if args.stats:
        counts = stats.compute_stats()
        output["stats"] = counts.to_dict()
        if not args.json:
            print(f"Completed: {counts.completed_count}\nSaved: {counts.saved_count}")

    if args.export:
        output["export"] = dao.export_data(store)
        if not args.json:
            print(json.dumps(output["export"], indent=2))

    if args.debug:
        output["debug"] = stats.debug_snapshot()
        if not args.json:
            print(json.dumps(output["debug"], indent=2))

    if args.clear:
        if not args.yes:
            print("Refusing to clear without --yes", file=sys.stderr)
            return 2
        try:
            output["cleared"] = dao.clear_all(store)
        except StorageUnavailable as e:
            print(f"Clear failed: {e}", file=sys.stderr)
            return 1
        if not args.json:
            print(f"Cleared: {', '.join(output['cleared']) or 'nothing'}")

    if args.json:
        print(json.dumps(output, indent=2, default=str))

    if output.get("reconciliation", {}).get("status") == "aborted":
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
