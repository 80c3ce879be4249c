#!/usr/bin/env python3
"""
Seed an empty store with demo saved drafts spread across the status buckets.

Drafts are dated relative to today so that some are urgent, some warning and
the rest safe. Existing drafts are left alone unless --force is given.
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from screening_retention.core import dao
from screening_retention.core.config import SAVED_RECORDS_KEY
from screening_retention.core.policy import RetentionPolicy
from screening_retention.core.schema import SavedRecord, utcnow
from screening_retention.core.store import RecordStore, StorageUnavailable

# Days ago; with a 30 day threshold 26-28 are urgent, 21-25 warning, the rest safe
DEFAULT_OFFSETS = [28, 27, 26, 25, 23, 21, 19, 17, 15, 13, 11, 9, 7]
PROGRESS_LABELS = ["Step 1 of 4", "Step 2 of 4", "Step 3 of 4"]


def build_demo_records(offsets, now):
    records = []
    for index, days_ago in enumerate(offsets, start=1):
        records.append(SavedRecord(
            id=f"saved-{index:03d}",
            subject_name=f"Demo Patient {index:02d}",
            subject_id=f"{55550000 + index}",
            saved_at=now - timedelta(days=days_ago, hours=index % 5),
            progress_label=PROGRESS_LABELS[index % len(PROGRESS_LABELS)],
            technician="Demo Technician"
        ))
    return records


def main():
    parser = argparse.ArgumentParser(description="Seed demo saved screenings")
    parser.add_argument("--db-path", help="Override DB_PATH")
    parser.add_argument("--force", action="store_true", help="Replace existing saved drafts")
    parser.add_argument("--offsets", type=int, nargs="+", default=DEFAULT_OFFSETS,
                        help="Ages of the seeded drafts in days")
    args = parser.parse_args()

    store = RecordStore(args.db_path)
    now = utcnow()

    existing = dao.count_entries(store, SAVED_RECORDS_KEY)
    if existing and not args.force:
        print(f"📋 {existing} saved drafts already present; use --force to replace")
        return 0

    try:
        if args.force:
            store.put(SAVED_RECORDS_KEY, [])
        policy = RetentionPolicy()
        for record in build_demo_records(args.offsets, now):
            dao.add_saved_record(store, record, now=now)
            print(f"  {record.id}: {policy.days_until_expiration(record, now)} days left "
                  f"({policy.status(record, now).value})")
    except StorageUnavailable as e:
        print(f"❌ Seeding failed: {e}")
        return 1

    print(f"✅ Seeded {len(args.offsets)} saved drafts")
    return 0


if __name__ == "__main__":
    sys.exit(main())
