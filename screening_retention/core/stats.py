"""
Dashboard statistics derived from the stored collections.

Read-only and uncached: every call recomputes from the current store contents.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import SAVED_RECORDS_KEY, COMPLETED_RECORDS_KEY
from .dao import count_entries, read_saved_records, load_reconciliation_log
from .policy import RetentionPolicy, ExpirationStatus
from .schema import ensure_utc, utcnow
from .store import RecordStore, StorageUnavailable
from ..util.logging import logger


@dataclass
class DashboardStats:
    completed_count: int
    saved_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExpirationDetail:
    id: str
    subject_name: str
    days_until_expiration: int
    status: ExpirationStatus
    saved_at: datetime
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject_name": self.subject_name,
            "days_until_expiration": self.days_until_expiration,
            "status": self.status.value,
            "saved_at": self.saved_at.isoformat(),
            "expires_at": self.expires_at.isoformat()
        }


@dataclass
class ExpirationBreakdown:
    urgent_count: int = 0
    warning_count: int = 0
    safe_count: int = 0
    malformed_count: int = 0
    details: List[ExpirationDetail] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.urgent_count + self.warning_count + self.safe_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "urgent_count": self.urgent_count,
            "warning_count": self.warning_count,
            "safe_count": self.safe_count,
            "malformed_count": self.malformed_count,
            "total": self.total,
            "details": [d.to_dict() for d in self.details]
        }


class StatsAggregator:
    """Summary counts for the dashboard."""

    def __init__(self, store: RecordStore, policy: Optional[RetentionPolicy] = None):
        self.store = store
        self.policy = policy or RetentionPolicy()

    def compute_stats(self) -> DashboardStats:
        return DashboardStats(
            completed_count=count_entries(self.store, COMPLETED_RECORDS_KEY),
            saved_count=count_entries(self.store, SAVED_RECORDS_KEY)
        )

    def compute_expiration_breakdown(self, now: Optional[datetime] = None) -> ExpirationBreakdown:
        """Bucket every valid saved draft by days remaining before auto-deletion."""
        now = ensure_utc(now or utcnow())
        saved = read_saved_records(self.store)
        breakdown = ExpirationBreakdown(malformed_count=saved.malformed)

        for record in saved.records:
            days_remaining = self.policy.days_until_expiration(record, now)
            status = self.policy.status_for_days_remaining(days_remaining)

            if status is ExpirationStatus.URGENT:
                breakdown.urgent_count += 1
            elif status is ExpirationStatus.WARNING:
                breakdown.warning_count += 1
            else:
                breakdown.safe_count += 1

            breakdown.details.append(ExpirationDetail(
                id=record.id,
                subject_name=record.subject_name,
                days_until_expiration=days_remaining,
                status=status,
                saved_at=record.saved_at,
                expires_at=self.policy.expires_at(record)
            ))

        return breakdown

    def debug_snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Stats, breakdown and reconciliation log in one document."""
        now = ensure_utc(now or utcnow())
        log_read = load_reconciliation_log(self.store, now)
        return {
            "generated_at": now.isoformat(),
            "stats": self.compute_stats().to_dict(),
            "expirations": self.compute_expiration_breakdown(now).to_dict(),
            "reconciliation_log": log_read.log.to_entry() if log_read.found else None,
            "log_status": log_read.status,
            "keys": self._stored_keys()
        }

    def _stored_keys(self) -> List[str]:
        try:
            return self.store.keys()
        except StorageUnavailable as e:
            logger.log_storage_failure("keys", "*", e)
            return []
