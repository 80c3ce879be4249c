"""
Key-value record store over SQLite.

Each logical key holds one JSON document. A put fully replaces the document
in a single committed statement, so writes are atomic per key. There are no
transactions across keys.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from .config import get_db_path
from .db import get_db, init_db
from ..util.logging import logger


class StorageUnavailable(Exception):
    """The persistence substrate could not be read or written."""
    pass


class MalformedRecord(Exception):
    """A stored value does not deserialize into the expected shape."""
    pass


class ReadStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"


@dataclass
class StoreRead:
    """Tagged result of a store read."""
    key: str
    status: ReadStatus
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.OK


class RecordStore:
    """
    Persistence abstraction used by every other component.

    get/put raise StorageUnavailable when SQLite cannot be opened, read or
    written. Read-modify-write sequences on a collection key must run inside
    locked() so that concurrent writers in this process are serialized.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_db_path()
        self._write_lock = threading.RLock()
        self._initialized = False

    def _ensure_schema(self):
        if self._initialized:
            return
        try:
            init_db(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Cannot initialize store at '{self.db_path}': {e}") from e
        self._initialized = True

    @contextmanager
    def locked(self):
        """Serialize read-modify-write sequences on this store."""
        with self._write_lock:
            yield self

    def get(self, key: str) -> StoreRead:
        """Read the document stored under key."""
        self._ensure_schema()
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT payload FROM records WHERE store_key = ?", (key,))
                row = cursor.fetchone()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Failed to read '{key}': {e}") from e

        if row is None:
            return StoreRead(key=key, status=ReadStatus.NOT_FOUND)

        try:
            data = json.loads(row[0])
        except (TypeError, ValueError) as e:
            return StoreRead(key=key, status=ReadStatus.CORRUPT, error=f"Invalid JSON: {e}")

        logger.log_store_operation("get", key)
        return StoreRead(key=key, status=ReadStatus.OK, data=data)

    def put(self, key: str, value: Any) -> None:
        """Replace the document stored under key."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise MalformedRecord(f"Value for '{key}' is not JSON serializable: {e}") from e

        self._ensure_schema()
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO records (store_key, payload, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(store_key)
                    DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at
                    """,
                    (key, payload)
                )
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Failed to write '{key}': {e}") from e

        logger.log_store_operation("put", key, details={"bytes": len(payload)})

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was deleted."""
        self._ensure_schema()
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM records WHERE store_key = ?", (key,))
                conn.commit()
                deleted = cursor.rowcount > 0
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Failed to delete '{key}': {e}") from e

        logger.log_store_operation("delete", key, details={"deleted": deleted})
        return deleted

    def keys(self) -> List[str]:
        """List stored keys."""
        self._ensure_schema()
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT store_key FROM records ORDER BY store_key")
                return [row[0] for row in cursor.fetchall()]
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Failed to list keys: {e}") from e
