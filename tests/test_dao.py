"""
Tests for collection access: degraded reads, collaborator writes, export and clear.
"""

import logging
import pytest
from datetime import timedelta
from unittest.mock import patch

from screening_retention.core import dao
from screening_retention.core.config import (
    SAVED_RECORDS_KEY,
    COMPLETED_RECORDS_KEY,
    RECONCILIATION_LOG_KEY,
)
from screening_retention.core.schema import SavedRecord, CompletedRecord, ReconciliationLog
from screening_retention.core.store import ReadStatus, StorageUnavailable, MalformedRecord

from conftest import NOW, saved_entry, completed_entry


def make_saved(record_id, days_ago=1):
    return SavedRecord.from_entry(saved_entry(record_id, days_ago))


class TestReadEntries:
    """Raw collection reads."""

    def test_non_list_document_is_corrupt(self, store):
        store.put(SAVED_RECORDS_KEY, {"id": "a"})
        result = dao.read_entries(store, SAVED_RECORDS_KEY)
        assert result.status is ReadStatus.CORRUPT
        assert "Expected a list" in result.error

    def test_missing_collection(self, store):
        assert dao.read_entries(store, SAVED_RECORDS_KEY).status is ReadStatus.NOT_FOUND

    def test_unavailable_raises(self, broken_store):
        with pytest.raises(StorageUnavailable):
            dao.read_entries(broken_store, SAVED_RECORDS_KEY)


class TestSavedReads:
    """Saved-draft reads degrade to empty instead of raising."""

    def test_missing_collection_is_empty(self, store):
        read = dao.read_saved_records(store)
        assert read.records == []
        assert read.status == "not_found"

    def test_unavailable_store_is_empty(self, broken_store):
        read = dao.read_saved_records(broken_store)
        assert read.records == []
        assert read.status == "unavailable"

    def test_corrupt_collection_is_empty(self, store):
        store.put(SAVED_RECORDS_KEY, "garbage")
        read = dao.read_saved_records(store)
        assert read.records == []
        assert read.status == "corrupt"

    def test_malformed_entries_skipped_and_counted(self, seed_saved):
        store = seed_saved(saved_entry("a", 1), {"id": "bad"}, "nope", saved_entry("b", 2))

        read = dao.read_saved_records(store)
        assert [r.id for r in read.records] == ["a", "b"]
        assert read.malformed == 2
        assert read.status == "ok"

    def test_get_saved_record(self, seed_saved):
        store = seed_saved(saved_entry("a", 1), saved_entry("b", 2))
        assert dao.get_saved_record(store, "b").id == "b"
        assert dao.get_saved_record(store, "zzz") is None

    def test_get_completed_record(self, seed_completed):
        store = seed_completed(completed_entry("c1"))
        assert dao.get_completed_record(store, "c1").subject_id == "MRN-c1"
        assert dao.get_completed_record(store, "c2") is None


class TestCountEntries:
    """Raw collection lengths used by the dashboard."""

    def test_counts_raw_length_including_malformed(self, seed_saved):
        store = seed_saved(saved_entry("a", 1), {"junk": True})
        assert dao.count_entries(store, SAVED_RECORDS_KEY) == 2

    def test_missing_is_zero(self, store):
        assert dao.count_entries(store, COMPLETED_RECORDS_KEY) == 0

    def test_corrupt_is_zero(self, store):
        store.put(COMPLETED_RECORDS_KEY, {"not": "a list"})
        assert dao.count_entries(store, COMPLETED_RECORDS_KEY) == 0

    def test_unavailable_is_zero(self, broken_store):
        assert dao.count_entries(broken_store, SAVED_RECORDS_KEY) == 0


class TestReconciliationLogAccess:
    """Reconciliation log load and save."""

    def test_missing_log_yields_default(self, store):
        read = dao.load_reconciliation_log(store, NOW, timedelta(days=5))
        assert read.found is False
        assert read.status == "not_found"
        assert read.log.last_check_at == NOW
        assert read.log.next_check_at == NOW + timedelta(days=5)

    def test_saved_log_round_trip(self, store):
        log = ReconciliationLog.after_pass(NOW, 3, 9, timedelta(days=5))
        dao.save_reconciliation_log(store, log)

        read = dao.load_reconciliation_log(store, NOW + timedelta(days=1))
        assert read.found is True
        assert read.log == log

    def test_malformed_log_yields_default(self, store):
        store.put(RECONCILIATION_LOG_KEY, {"last_check_at": "yesterday"})
        read = dao.load_reconciliation_log(store, NOW)
        assert read.status == "corrupt"
        assert read.log.records_updated_last_run == 0

    def test_unavailable_log_yields_default(self, broken_store):
        read = dao.load_reconciliation_log(broken_store, NOW)
        assert read.status == "unavailable"
        assert read.found is False


class TestAddSavedRecord:
    """Saving a screening for later."""

    def test_add_to_empty_store(self, store):
        assert dao.add_saved_record(store, make_saved("a"), now=NOW) == 1
        assert dao.add_saved_record(store, make_saved("b"), now=NOW) == 2
        assert [r.id for r in dao.load_saved_records(store)] == ["a", "b"]

    def test_duplicate_id_rejected(self, store):
        dao.add_saved_record(store, make_saved("a"), now=NOW)
        with pytest.raises(dao.DuplicateRecordError, match="already exists"):
            dao.add_saved_record(store, make_saved("a"), now=NOW)

    def test_duplicate_is_a_value_error(self):
        assert issubclass(dao.DuplicateRecordError, ValueError)

    def test_future_saved_at_rejected(self, store):
        record = SavedRecord.from_entry(saved_entry("a", -1))
        with pytest.raises(ValueError, match="in the future"):
            dao.add_saved_record(store, record, now=NOW)
        assert dao.count_entries(store, SAVED_RECORDS_KEY) == 0

    def test_corrupt_collection_not_overwritten(self, store):
        store.put(SAVED_RECORDS_KEY, "garbage")
        with pytest.raises(MalformedRecord):
            dao.add_saved_record(store, make_saved("a"), now=NOW)
        assert store.get(SAVED_RECORDS_KEY).data == "garbage"

    def test_malformed_entries_preserved_on_append(self, seed_saved):
        store = seed_saved({"junk": True})
        dao.add_saved_record(store, make_saved("a"), now=NOW)
        assert store.get(SAVED_RECORDS_KEY).data[0] == {"junk": True}

    def test_unavailable_store_raises(self, broken_store):
        with pytest.raises(StorageUnavailable):
            dao.add_saved_record(broken_store, make_saved("a"), now=NOW)

    def test_audit_event_carries_added_record(self, store):
        with patch('screening_retention.core.dao.audit_event') as mock_audit:
            dao.add_saved_record(store, make_saved("a"), now=NOW)

        event_type, identifiers = mock_audit.call_args[0]
        assert event_type == "saved_record.added"
        assert identifiers == {"record_id": "a", "saved_count": 1}
        assert mock_audit.call_args[1]["record"]["id"] == "a"

    def test_audit_log_masks_patient_identifiers(self, store, caplog):
        record = SavedRecord.from_entry(saved_entry("a", 1, subject_name="Jane Smith", subject_id="MRN-998877"))

        with caplog.at_level(logging.INFO, logger="screening_retention"):
            dao.add_saved_record(store, record, now=NOW)
            dao.remove_saved_record(store, "a")

        audit_lines = [r.getMessage() for r in caplog.records if "Status: audit" in r.getMessage()]
        assert len(audit_lines) == 2
        assert all("[REDACTED]" in line for line in audit_lines)
        assert "'record_id': 'a'" in audit_lines[1]
        assert "Jane Smith" not in caplog.text
        assert "MRN-998877" not in caplog.text

    def test_completed_audit_masks_patient_identifiers(self, store, caplog):
        record = CompletedRecord.from_entry(completed_entry("c1"))

        with caplog.at_level(logging.INFO, logger="screening_retention"):
            dao.add_completed_record(store, record)

        assert "completed_record_added" in caplog.text
        assert "Patient c1" not in caplog.text
        assert "MRN-c1" not in caplog.text


class TestRemoveSavedRecord:
    """Removing a completed or discarded draft."""

    def test_remove_existing(self, seed_saved):
        store = seed_saved(saved_entry("a", 1), saved_entry("b", 2))
        assert dao.remove_saved_record(store, "a") is True
        assert [r.id for r in dao.load_saved_records(store)] == ["b"]

    def test_remove_missing_id(self, seed_saved):
        store = seed_saved(saved_entry("a", 1))
        assert dao.remove_saved_record(store, "zzz") is False
        assert dao.count_entries(store, SAVED_RECORDS_KEY) == 1

    def test_remove_from_missing_collection(self, store):
        assert dao.remove_saved_record(store, "a") is False

    def test_remove_unavailable(self, broken_store):
        with pytest.raises(StorageUnavailable):
            dao.remove_saved_record(broken_store, "a")


class TestCompletedAndAdmin:
    """Completed archive, clear and export."""

    def test_add_completed(self, store):
        record = CompletedRecord.from_entry(completed_entry("c1"))
        assert dao.add_completed_record(store, record) == 1
        assert dao.load_completed_records(store)[0].id == "c1"

    def test_duplicate_completed_rejected(self, store):
        record = CompletedRecord.from_entry(completed_entry("c1"))
        dao.add_completed_record(store, record)
        with pytest.raises(dao.DuplicateRecordError):
            dao.add_completed_record(store, record)

    def test_clear_all(self, store):
        store.put(SAVED_RECORDS_KEY, [saved_entry("a", 1)])
        store.put(RECONCILIATION_LOG_KEY, {})
        store.put("unrelated", [])

        cleared = dao.clear_all(store)
        assert cleared == [SAVED_RECORDS_KEY, RECONCILIATION_LOG_KEY]
        assert store.keys() == ["unrelated"]

    def test_clear_unavailable(self, broken_store):
        with pytest.raises(StorageUnavailable):
            dao.clear_all(broken_store)

    def test_export(self, store):
        store.put(SAVED_RECORDS_KEY, [saved_entry("a", 1), {"junk": True}])
        store.put(COMPLETED_RECORDS_KEY, [completed_entry("c1")])

        exported = dao.export_data(store)
        assert [e["id"] for e in exported["saved"]] == ["a"]
        assert [e["id"] for e in exported["completed"]] == ["c1"]
        assert exported["stats"] == {"completed_count": 1, "saved_count": 2}

    def test_export_empty_store(self, store):
        assert dao.export_data(store) == {
            "completed": [],
            "saved": [],
            "stats": {"completed_count": 0, "saved_count": 0}
        }
