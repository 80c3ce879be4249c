"""
Reconciliation scheduler - keeps saved drafts under the auto-delete threshold.

A pass loads the saved collection, renews every draft with fewer than the
minimum days remaining, writes the collection back if anything changed and
records the outcome in the reconciliation log. Passes run on startup (when
due) and then on a recurring timer owned by the scheduler object.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import (
    SAVED_RECORDS_KEY,
    RECONCILIATION_LOG_KEY,
    get_check_interval_days,
    is_reconciliation_enabled,
    is_schema_validation_strict,
    validate_scheduler_config,
)
from .dao import read_entries, load_reconciliation_log, save_reconciliation_log
from .policy import RetentionPolicy
from .schema import ReconciliationLog, SavedRecord, ensure_utc, utcnow
from .stats import StatsAggregator
from .store import RecordStore, ReadStatus, StorageUnavailable, MalformedRecord
from ..util.logging import logger, audit_event


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation pass."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str = "pending"  # completed | aborted
    records_updated: int = 0
    total_records: int = 0
    renewed_ids: List[str] = field(default_factory=list)
    malformed_records: int = 0
    collection_written: bool = False
    log_written: bool = False
    forced: bool = False
    errors: List[str] = field(default_factory=list)

    def abort(self, error: str):
        self.status = "aborted"
        self.errors.append(error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        data = {
            "started_at": self.started_at.isoformat(),
            "status": self.status,
            "records_updated": self.records_updated,
            "total_records": self.total_records,
            "renewed_ids": self.renewed_ids,
            "malformed_records": self.malformed_records,
            "collection_written": self.collection_written,
            "log_written": self.log_written,
            "forced": self.forced,
            "errors": self.errors
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data


class ReconciliationScheduler:
    """
    Owns the renewal timer and the reconciliation pass.

    Construct once at startup and call initialize(). Passes are serialized by
    an in-process lock, so at most one is ever in flight. None of the public
    methods raise on storage or data errors; failures are logged and reported
    in the returned ReconciliationReport.
    """

    def __init__(self, store: RecordStore, policy: Optional[RetentionPolicy] = None,
                 interval: Optional[timedelta] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.policy = policy or RetentionPolicy()
        self.interval = interval or timedelta(days=get_check_interval_days())
        self.clock = clock
        self.state = SchedulerState.IDLE
        self.last_report: Optional[ReconciliationReport] = None

        self._pass_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._shutdown_event: Optional[threading.Event] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def initialize(self, now: Optional[datetime] = None) -> Optional[ReconciliationReport]:
        """
        Run a pass if one is due, then arm the recurring timer.

        A pass is due when now >= next_check_at, or when the log is absent,
        corrupt or unreadable (treated as never checked).
        Returns the report of the startup pass, or None if none was due.
        """
        now = ensure_utc(now or self.clock())
        log_read = load_reconciliation_log(self.store, now, self.interval)

        report = None
        if not log_read.found or log_read.log.is_due(now):
            logger.log_scheduler_event("initialize", {"due": True, "log_status": log_read.status})
            report = self.reconcile(now)
        else:
            logger.log_scheduler_event("initialize", {
                "due": False,
                "next_check_at": log_read.log.next_check_at.isoformat()
            })

        if not self.is_running:
            self.start()
        return report

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """
        Arm the recurring timer. Returns False when reconciliation is disabled.

        Raises RuntimeError if the timer is already running and ValueError
        if the configuration is invalid.
        """
        if not is_reconciliation_enabled():
            logger.log_scheduler_event("start", {"reason": "RECONCILIATION_ENABLED=false"}, status="disabled")
            return False

        if self.is_running:
            raise RuntimeError("Reconciliation scheduler already running")

        issues = validate_scheduler_config()
        if issues:
            raise ValueError(f"Scheduler configuration invalid: {issues}")

        self._shutdown_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="reconciliation-scheduler",
            daemon=True
        )
        self._thread.start()

        logger.log_scheduler_event("start", {"interval_sec": self.interval.total_seconds()})
        return True

    def stop(self, timeout: float = 5.0):
        """Stop the recurring timer gracefully."""
        if not self.is_running:
            logger.log_scheduler_event("stop", status="not_running")
            return

        self._shutdown_event.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            # The loop exits once the in-flight pass returns; still counts as running
            logger.log_scheduler_event("stop", {"timeout_sec": timeout}, status="timeout", level=logging.WARNING)
            return
        self._thread = None

        logger.log_scheduler_event("stop")

    def _run_loop(self):
        # wait() returns True only once stop() sets the event
        while not self._shutdown_event.wait(self.interval.total_seconds()):
            self._tick()

    def _tick(self):
        try:
            self.reconcile(self.clock())
        except Exception as e:
            # Error isolation - keep the timer alive for the next tick
            logger.error(f"Reconciliation tick failed: {e}")

    # ------------------------------------------------------------------ #
    # Reconciliation
    # ------------------------------------------------------------------ #

    def reconcile(self, now: Optional[datetime] = None) -> ReconciliationReport:
        """Run one reconciliation pass at now."""
        return self._run_pass(ensure_utc(now or self.clock()), forced=False)

    def force_reconcile(self, now: Optional[datetime] = None) -> ReconciliationReport:
        """Run a pass immediately, regardless of when the next one is due."""
        now = ensure_utc(now or self.clock())
        audit_event("reconciliation.forced", {"requested_at": now.isoformat()})
        return self._run_pass(now, forced=True)

    def _run_pass(self, now: datetime, forced: bool) -> ReconciliationReport:
        report = ReconciliationReport(started_at=now, forced=forced)

        with self._pass_lock:
            self.state = SchedulerState.RUNNING
            try:
                self._reconcile_collection(now, report)
                if report.status != "aborted":
                    self._write_log(now, report)
            finally:
                self.state = SchedulerState.IDLE

        if report.status != "aborted":
            report.status = "completed"
        report.completed_at = self.clock()
        self.last_report = report

        logger.log_reconciliation_pass(report.to_dict())
        return report

    def _reconcile_collection(self, now: datetime, report: ReconciliationReport):
        with self.store.locked():
            try:
                result = read_entries(self.store, SAVED_RECORDS_KEY)
            except StorageUnavailable as e:
                logger.log_storage_failure("get", SAVED_RECORDS_KEY, e)
                report.abort(str(e))
                return

            if result.status is ReadStatus.CORRUPT:
                # Writing back would destroy a collection we cannot read
                logger.log_malformed_record(SAVED_RECORDS_KEY, result.error)
                report.abort(f"Saved collection is corrupt: {result.error}")
                return

            entries = result.data if result.ok else []
            report.total_records = len(entries)

            parsed = []
            for index, entry in enumerate(entries):
                try:
                    parsed.append((entry, SavedRecord.from_entry(entry)))
                except MalformedRecord as e:
                    report.malformed_records += 1
                    logger.log_malformed_record(SAVED_RECORDS_KEY, e, index=index)
                    parsed.append((entry, None))

            if report.malformed_records and is_schema_validation_strict():
                report.abort(f"{report.malformed_records} malformed saved record(s); strict validation enabled")
                return

            updated_entries = []
            renewals = []
            for entry, record in parsed:
                # Malformed entries are quarantined in place, carried through untouched
                if record is None or not self.policy.needs_renewal(record, now):
                    updated_entries.append(entry)
                    continue

                renewed = dict(entry)
                renewed["saved_at"] = self.policy.renewed_saved_at(now).isoformat()
                updated_entries.append(renewed)
                renewals.append((record.id, self.policy.days_until_expiration(record, now)))

            if not renewals:
                return

            try:
                self.store.put(SAVED_RECORDS_KEY, updated_entries)
            except StorageUnavailable as e:
                logger.log_storage_failure("put", SAVED_RECORDS_KEY, e)
                report.abort(str(e))
                return

            report.collection_written = True
            report.records_updated = len(renewals)
            for record_id, days_before in renewals:
                report.renewed_ids.append(record_id)
                logger.log_record_renewed(record_id, days_before, self.policy.extension_target_days)

    def _write_log(self, now: datetime, report: ReconciliationReport):
        log = ReconciliationLog.after_pass(now, report.records_updated, report.total_records, self.interval)
        try:
            save_reconciliation_log(self.store, log)
        except StorageUnavailable as e:
            # Collection changes stand; the next pass re-derives the same state
            logger.log_storage_failure("put", RECONCILIATION_LOG_KEY, e)
            report.errors.append(str(e))
            return
        report.log_written = True

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #

    def get_status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Return the persisted log plus the live expiration breakdown."""
        now = ensure_utc(now or self.clock())
        log_read = load_reconciliation_log(self.store, now, self.interval)
        breakdown = StatsAggregator(self.store, self.policy).compute_expiration_breakdown(now)

        if not is_reconciliation_enabled():
            scheduler_status = "disabled"
        else:
            scheduler_status = "running" if self.is_running else "stopped"

        return {
            "scheduler": scheduler_status,
            "state": self.state.value,
            "log_status": log_read.status,
            "log": log_read.log.to_entry() if log_read.found else None,
            "last_check_at": log_read.log.last_check_at.isoformat() if log_read.found else None,
            "next_check_at": log_read.log.next_check_at.isoformat() if log_read.found else None,
            "total": breakdown.total,
            "urgent": breakdown.urgent_count,
            "warning": breakdown.warning_count,
            "safe": breakdown.safe_count,
            "malformed": breakdown.malformed_count,
            "last_report": self.last_report.to_dict() if self.last_report else None
        }
