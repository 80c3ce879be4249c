"""
Persisted record shapes and their (de)serialization contract.

Stored values are JSON documents; entries are validated on the way in and
anything that does not match the expected shape raises MalformedRecord.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .store import MalformedRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _display_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


class _StoredModel(BaseModel):

    @classmethod
    def from_entry(cls, entry: Any):
        """Validate a raw stored entry, raising MalformedRecord on mismatch."""
        if not isinstance(entry, dict):
            raise MalformedRecord(f"{cls.__name__} entry must be an object, got {type(entry).__name__}")
        try:
            return cls.model_validate(entry)
        except ValidationError as e:
            raise MalformedRecord(f"Invalid {cls.__name__}: {e.error_count()} validation error(s): {e.errors()[0]['msg']}") from e

    def to_entry(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class SavedRecord(_StoredModel):
    """
    A draft screening awaiting completion. Only saved_at is touched by the engine.

    Only id and saved_at can make an entry malformed. The display fields are
    opaque: any value is read as a string and a missing or null one as empty.
    """
    id: str
    saved_at: datetime
    subject_name: str = ""
    subject_id: str = ""
    progress_label: str = ""
    technician: Optional[str] = None

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('id cannot be empty')
        return v

    @field_validator('saved_at')
    @classmethod
    def saved_at_to_utc(cls, v):
        return ensure_utc(v)

    @field_validator('subject_name', 'subject_id', 'progress_label', mode='before')
    @classmethod
    def display_field_to_str(cls, v):
        return "" if v is None else _display_str(v)

    @field_validator('technician', mode='before')
    @classmethod
    def technician_to_str(cls, v):
        return None if v is None else _display_str(v)


class CompletedRecord(_StoredModel):
    """An archived screening. Write-once; only its count matters here."""
    model_config = ConfigDict(extra="allow")

    id: str
    subject_name: str
    subject_id: str
    completed_at: datetime
    technician: Optional[str] = None
    status: str = "completed"

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('id cannot be empty')
        return v

    @field_validator('completed_at')
    @classmethod
    def completed_at_to_utc(cls, v):
        return ensure_utc(v)


class ReconciliationLog(_StoredModel):
    """Outcome of the most recent reconciliation pass."""
    last_check_at: datetime
    next_check_at: datetime
    records_updated_last_run: int = 0
    total_records_last_run: int = 0

    @field_validator('last_check_at', 'next_check_at')
    @classmethod
    def timestamps_to_utc(cls, v):
        return ensure_utc(v)

    @classmethod
    def default(cls, now: datetime, interval: timedelta) -> "ReconciliationLog":
        return cls.after_pass(now, 0, 0, interval)

    @classmethod
    def after_pass(cls, now: datetime, records_updated: int, total_records: int,
                   interval: timedelta) -> "ReconciliationLog":
        now = ensure_utc(now)
        return cls(
            last_check_at=now,
            next_check_at=now + interval,
            records_updated_last_run=records_updated,
            total_records_last_run=total_records
        )

    def is_due(self, now: datetime) -> bool:
        return ensure_utc(now) >= self.next_check_at
