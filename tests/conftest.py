"""
Shared fixtures: a throwaway SQLite store per test and saved-entry builders.
"""

import pytest
from datetime import datetime, timedelta, timezone

from screening_retention.core.config import SAVED_RECORDS_KEY, COMPLETED_RECORDS_KEY
from screening_retention.core.store import RecordStore

NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


def saved_entry(record_id, days_ago, now=NOW, **extra):
    """Raw saved-collection entry as the host application writes it."""
    entry = {
        "id": record_id,
        "subject_name": f"Patient {record_id}",
        "subject_id": f"MRN-{record_id}",
        "saved_at": (now - timedelta(days=days_ago)).isoformat(),
        "progress_label": "Step 2 of 4",
        "technician": "J. Doe"
    }
    entry.update(extra)
    return entry


def completed_entry(record_id, days_ago=1, now=NOW):
    return {
        "id": record_id,
        "subject_name": f"Patient {record_id}",
        "subject_id": f"MRN-{record_id}",
        "completed_at": (now - timedelta(days=days_ago)).isoformat(),
        "technician": "J. Doe",
        "status": "completed"
    }


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    """Record store backed by a fresh database file."""
    return RecordStore(str(tmp_path / "screenings.db"))


@pytest.fixture
def broken_store(tmp_path):
    """Record store whose database path is a directory, so every access fails."""
    return RecordStore(str(tmp_path))


@pytest.fixture
def seed_saved(store):
    def _seed(*entries):
        store.put(SAVED_RECORDS_KEY, list(entries))
        return store
    return _seed


@pytest.fixture
def seed_completed(store):
    def _seed(*entries):
        store.put(COMPLETED_RECORDS_KEY, list(entries))
        return store
    return _seed
