#!/usr/bin/env python3
"""
Run the reconciliation scheduler standalone.

Performs the startup pass when due, then keeps the renewal timer alive until
interrupted.
"""

import sys
import time
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from screening_retention.core.config import get_db_path, is_reconciliation_enabled, validate_scheduler_config
from screening_retention.core.scheduler import ReconciliationScheduler
from screening_retention.core.store import RecordStore


def main():
    """Main entry point for the scheduler script."""
    issues = validate_scheduler_config()
    if issues:
        print(f"❌ Invalid configuration: {issues}")
        sys.exit(1)

    if not is_reconciliation_enabled():
        print("❌ Reconciliation requires RECONCILIATION_ENABLED=true")
        sys.exit(1)

    store = RecordStore()
    scheduler = ReconciliationScheduler(store)

    print(f"🏃 Reconciling saved screenings in {get_db_path()}")
    report = scheduler.initialize()

    if report:
        print(f"✓ Startup pass {report.status}: {report.records_updated}/{report.total_records} renewed")
    else:
        print("📋 No pass due at startup")

    print(f"⏱️  Next passes every {scheduler.interval.days} days. Press Ctrl+C to stop")

    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n👋 Shutting down gracefully...")
    finally:
        scheduler.stop()


if __name__ == "__main__":
    main()
