"""
Retention policy: age, days remaining and status of a saved draft.

Pure arithmetic over the record's saved_at and a caller-supplied "now".
No I/O and no errors.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .config import (
    AUTO_DELETE_THRESHOLD_DAYS,
    MIN_DAYS_REMAINING,
    EXTENSION_TARGET_DAYS,
    URGENT_BELOW_DAYS,
    WARNING_BELOW_DAYS,
)
from .schema import ensure_utc

SECONDS_PER_DAY = 24 * 60 * 60


class ExpirationStatus(str, Enum):
    URGENT = "urgent"
    WARNING = "warning"
    SAFE = "safe"


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Lease arithmetic for saved drafts.

    A draft is purged by the host once it is auto_delete_threshold_days old.
    Drafts with fewer than min_days_remaining days left need renewal; a
    renewal resets them to exactly extension_target_days remaining.
    """
    auto_delete_threshold_days: int = AUTO_DELETE_THRESHOLD_DAYS
    min_days_remaining: int = MIN_DAYS_REMAINING
    extension_target_days: int = EXTENSION_TARGET_DAYS
    urgent_below_days: int = URGENT_BELOW_DAYS
    warning_below_days: int = WARNING_BELOW_DAYS

    def __post_init__(self):
        if self.extension_target_days < self.min_days_remaining:
            # A renewed record would immediately need renewal again
            raise ValueError("extension_target_days must be >= min_days_remaining")
        if self.extension_target_days >= self.auto_delete_threshold_days:
            raise ValueError("extension_target_days must be < auto_delete_threshold_days")
        if self.urgent_below_days > self.warning_below_days:
            raise ValueError("urgent_below_days must be <= warning_below_days")

    def days_since_saved(self, record, now: datetime) -> int:
        """Whole days elapsed since the record was saved, never negative."""
        elapsed = (ensure_utc(now) - ensure_utc(record.saved_at)).total_seconds()
        return max(0, int(elapsed // SECONDS_PER_DAY))

    def days_until_expiration(self, record, now: datetime) -> int:
        return self.auto_delete_threshold_days - self.days_since_saved(record, now)

    def status_for_days_remaining(self, days_remaining: int) -> ExpirationStatus:
        if days_remaining < self.urgent_below_days:
            return ExpirationStatus.URGENT
        if days_remaining < self.warning_below_days:
            return ExpirationStatus.WARNING
        return ExpirationStatus.SAFE

    def status(self, record, now: datetime) -> ExpirationStatus:
        return self.status_for_days_remaining(self.days_until_expiration(record, now))

    def needs_renewal(self, record, now: datetime) -> bool:
        return self.days_until_expiration(record, now) < self.min_days_remaining

    def renewed_saved_at(self, now: datetime) -> datetime:
        """saved_at that leaves exactly extension_target_days remaining at now."""
        return ensure_utc(now) - timedelta(days=self.auto_delete_threshold_days - self.extension_target_days)

    def expires_at(self, record) -> datetime:
        return ensure_utc(record.saved_at) + timedelta(days=self.auto_delete_threshold_days)
