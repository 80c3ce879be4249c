"""
Typed access to the saved, completed and reconciliation-log keys.

Reads never raise: an unavailable or corrupt substrate degrades to an empty
collection or the default log, with a log line. Collaborator writes log and
re-raise StorageUnavailable so the caller can report the failed save.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .config import (
    SAVED_RECORDS_KEY,
    COMPLETED_RECORDS_KEY,
    RECONCILIATION_LOG_KEY,
    get_check_interval_days,
)
from .schema import SavedRecord, CompletedRecord, ReconciliationLog, utcnow, ensure_utc
from .store import RecordStore, StoreRead, ReadStatus, StorageUnavailable, MalformedRecord
from ..util.logging import logger, audit_event


class DuplicateRecordError(ValueError):
    """A record with the same id already exists in the collection."""
    pass


@dataclass
class SavedRecordsRead:
    """Valid saved records plus what could not be read."""
    records: List[SavedRecord]
    malformed: int = 0
    status: str = "ok"  # ok | not_found | corrupt | unavailable


@dataclass
class LogRead:
    """Reconciliation log; the default log when status is not ok."""
    log: ReconciliationLog
    status: str = "ok"  # ok | not_found | corrupt | unavailable

    @property
    def found(self) -> bool:
        return self.status == "ok"


def read_entries(store: RecordStore, key: str) -> StoreRead:
    """
    Read a collection key as a list of raw entries.

    A document that is not a list is reported as CORRUPT. Raises
    StorageUnavailable.
    """
    result = store.get(key)
    if result.ok and not isinstance(result.data, list):
        return StoreRead(key=key, status=ReadStatus.CORRUPT,
                         error=f"Expected a list, got {type(result.data).__name__}")
    return result


def _read_entries_or_empty(store: RecordStore, key: str):
    try:
        result = read_entries(store, key)
    except StorageUnavailable as e:
        logger.log_storage_failure("get", key, e)
        return [], "unavailable"

    if result.status is ReadStatus.NOT_FOUND:
        return [], "not_found"
    if result.status is ReadStatus.CORRUPT:
        logger.log_malformed_record(key, result.error)
        return [], "corrupt"
    return result.data, "ok"


def _parse_entries(key: str, entries: List[Any], model):
    records = []
    malformed = 0
    for index, entry in enumerate(entries):
        try:
            records.append(model.from_entry(entry))
        except MalformedRecord as e:
            malformed += 1
            logger.log_malformed_record(key, e, index=index)
    return records, malformed


def read_saved_records(store: RecordStore) -> SavedRecordsRead:
    entries, status = _read_entries_or_empty(store, SAVED_RECORDS_KEY)
    records, malformed = _parse_entries(SAVED_RECORDS_KEY, entries, SavedRecord)
    return SavedRecordsRead(records=records, malformed=malformed, status=status)


def load_saved_records(store: RecordStore) -> List[SavedRecord]:
    """Get all valid saved records (empty if unavailable)."""
    return read_saved_records(store).records


def get_saved_record(store: RecordStore, record_id: str) -> Optional[SavedRecord]:
    for record in load_saved_records(store):
        if record.id == record_id:
            return record
    return None


def load_completed_records(store: RecordStore) -> List[CompletedRecord]:
    """Get all valid completed records (empty if unavailable)."""
    entries, _ = _read_entries_or_empty(store, COMPLETED_RECORDS_KEY)
    records, _ = _parse_entries(COMPLETED_RECORDS_KEY, entries, CompletedRecord)
    return records


def get_completed_record(store: RecordStore, record_id: str) -> Optional[CompletedRecord]:
    for record in load_completed_records(store):
        if record.id == record_id:
            return record
    return None


def count_entries(store: RecordStore, key: str) -> int:
    """Length of a stored collection; 0 if absent, corrupt or unavailable."""
    entries, _ = _read_entries_or_empty(store, key)
    return len(entries)


def load_reconciliation_log(store: RecordStore, now: Optional[datetime] = None,
                            interval: Optional[timedelta] = None) -> LogRead:
    """Load the reconciliation log, synthesizing the default when it cannot be read."""
    now = now or utcnow()
    interval = interval or timedelta(days=get_check_interval_days())
    default = ReconciliationLog.default(now, interval)

    try:
        result = store.get(RECONCILIATION_LOG_KEY)
    except StorageUnavailable as e:
        logger.log_storage_failure("get", RECONCILIATION_LOG_KEY, e)
        return LogRead(log=default, status="unavailable")

    if result.status is ReadStatus.NOT_FOUND:
        return LogRead(log=default, status="not_found")
    if result.status is ReadStatus.CORRUPT:
        logger.log_malformed_record(RECONCILIATION_LOG_KEY, result.error)
        return LogRead(log=default, status="corrupt")

    try:
        return LogRead(log=ReconciliationLog.from_entry(result.data))
    except MalformedRecord as e:
        logger.log_malformed_record(RECONCILIATION_LOG_KEY, e)
        return LogRead(log=default, status="corrupt")


def save_reconciliation_log(store: RecordStore, log: ReconciliationLog) -> None:
    """Persist the reconciliation log. Raises StorageUnavailable."""
    store.put(RECONCILIATION_LOG_KEY, log.to_entry())


def _append_entry(store: RecordStore, key: str, entry: Dict[str, Any], record_id: str):
    with store.locked():
        try:
            result = read_entries(store, key)
            if result.status is ReadStatus.CORRUPT:
                # Refuse to overwrite data we could not read
                logger.log_malformed_record(key, result.error)
                raise MalformedRecord(f"Collection '{key}' is corrupt: {result.error}")
            entries = list(result.data) if result.ok else []

            if any(isinstance(e, dict) and e.get("id") == record_id for e in entries):
                raise DuplicateRecordError(f"Record '{record_id}' already exists in '{key}'")

            entries.append(entry)
            store.put(key, entries)
        except StorageUnavailable as e:
            logger.log_storage_failure("append", key, e)
            raise
    return len(entries)


def add_saved_record(store: RecordStore, record: SavedRecord, now: Optional[datetime] = None) -> int:
    """
    Save a screening for later.

    Returns the new saved-collection length. Raises DuplicateRecordError for
    a duplicate id, ValueError for a saved_at in the future, MalformedRecord if the stored
    collection is corrupt, StorageUnavailable if it cannot be written.
    """
    now = ensure_utc(now or utcnow())
    if record.saved_at > now:
        raise ValueError(f"saved_at of '{record.id}' is in the future")

    entry = record.to_entry()
    count = _append_entry(store, SAVED_RECORDS_KEY, entry, record.id)
    audit_event("saved_record.added", {"record_id": record.id, "saved_count": count}, record=entry)
    return count


def remove_saved_record(store: RecordStore, record_id: str) -> bool:
    """
    Remove a draft the user completed or discarded.

    Returns False when no such draft exists. Raises StorageUnavailable.
    """
    with store.locked():
        try:
            result = read_entries(store, SAVED_RECORDS_KEY)
            if not result.ok:
                return False

            removed = [e for e in result.data if isinstance(e, dict) and e.get("id") == record_id]
            if not removed:
                return False
            remaining = [e for e in result.data if not (isinstance(e, dict) and e.get("id") == record_id)]

            store.put(SAVED_RECORDS_KEY, remaining)
        except StorageUnavailable as e:
            logger.log_storage_failure("remove", SAVED_RECORDS_KEY, e)
            raise

    audit_event("saved_record.removed", {"record_id": record_id, "saved_count": len(remaining)},
                record=removed[0])
    return True


def add_completed_record(store: RecordStore, record: CompletedRecord) -> int:
    """Archive a completed screening. Returns the new completed-collection length."""
    count = _append_entry(store, COMPLETED_RECORDS_KEY, record.to_entry(), record.id)
    audit_event("completed_record.added", {"record_id": record.id, "completed_count": count},
                record=record.to_entry())
    return count


def clear_all(store: RecordStore) -> List[str]:
    """Delete the saved, completed and log keys. Returns the keys that existed."""
    cleared = []
    with store.locked():
        for key in (SAVED_RECORDS_KEY, COMPLETED_RECORDS_KEY, RECONCILIATION_LOG_KEY):
            try:
                if store.delete(key):
                    cleared.append(key)
            except StorageUnavailable as e:
                logger.log_storage_failure("delete", key, e)
                raise

    audit_event("store.cleared", {"keys": cleared})
    return cleared


def export_data(store: RecordStore) -> Dict[str, Any]:
    """Dump both collections with their counts."""
    completed = load_completed_records(store)
    saved = load_saved_records(store)
    return {
        "completed": [r.to_entry() for r in completed],
        "saved": [r.to_entry() for r in saved],
        "stats": {
            "completed_count": count_entries(store, COMPLETED_RECORDS_KEY),
            "saved_count": count_entries(store, SAVED_RECORDS_KEY)
        }
    }
