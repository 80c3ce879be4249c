"""
Structured logging for store, reconciliation and scheduler operations.

Patient identifiers are masked in audited records before they are logged.
"""

import logging
import os
from typing import Any, Dict

# Fields that identify a patient; masked wherever a record is logged
PATIENT_FIELDS = ("subject_name", "subject_id")

MAX_AUDIT_VALUE_LENGTH = 80


class StructuredLogger:
    """Structured logger for record store, reconciliation and scheduler operations."""

    def __init__(self, name: str = "screening_retention"):
        self.logger = logging.getLogger(name)
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        self.logger.setLevel(level if isinstance(level, int) else logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_store_operation(self, operation: str, key: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a record store read or write."""
        log_details = {"key": key}
        if details:
            log_details.update(details)

        self.log_operation(f"store.{operation}", status, log_details, level=logging.DEBUG)

    def log_storage_failure(self, operation: str, key: str, error: Any):
        """Log a substrate failure; callers continue with a safe default."""
        log_details = {"key": key, "error": str(error)[:200]}
        self.log_operation(f"store.{operation}", "unavailable", log_details, level=logging.ERROR)

    def log_malformed_record(self, key: str, error: Any, index: int = None):
        """Log a stored value that does not match its expected shape."""
        log_details = {"key": key, "error": str(error)[:200]}
        if index is not None:
            log_details["index"] = index

        self.log_operation("store.malformed", "skipped", log_details, level=logging.WARNING)

    def log_record_renewed(self, record_id: str, days_before: int, days_after: int):
        """Log a lease renewal. Only the record id is logged, never the patient."""
        log_details = {
            "record_id": record_id,
            "days_remaining_before": days_before,
            "days_remaining_after": days_after
        }
        self.log_operation("reconciliation.renewed", "success", log_details)

    def log_reconciliation_pass(self, report: Dict[str, Any]):
        """Log the outcome of a reconciliation pass."""
        status = report.get("status", "unknown")
        log_details = {
            "records_updated": report.get("records_updated", 0),
            "total_records": report.get("total_records", 0),
            "malformed_records": report.get("malformed_records", 0),
            "collection_written": report.get("collection_written", False),
            "log_written": report.get("log_written", False),
            "forced": report.get("forced", False)
        }
        if report.get("errors"):
            log_details["errors"] = report["errors"]

        level = logging.INFO if status == "completed" else logging.WARNING
        self.log_operation("reconciliation.pass", status, log_details, level=level)

    def log_scheduler_event(self, event: str, details: Dict[str, Any] = None, status: str = "success",
                            level: int = logging.INFO):
        """Log a scheduler lifecycle event."""
        self.log_operation(f"scheduler.{event}", status, details, level=level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], record: Dict[str, Any] = None):
    """Audit a collaborator write. The affected record is logged with patient identifiers masked."""
    log_details = dict(identifiers) if identifiers else {}

    if record is not None:
        log_details["record"] = redact_record(record)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def redact_record(entry: Any) -> Any:
    """Copy of a stored entry that is safe to log."""
    if isinstance(entry, dict):
        return {k: "[REDACTED]" if k in PATIENT_FIELDS else redact_record(v) for k, v in entry.items()}
    if isinstance(entry, list):
        return [redact_record(item) for item in entry]
    if isinstance(entry, str) and len(entry) > MAX_AUDIT_VALUE_LENGTH:
        return entry[:MAX_AUDIT_VALUE_LENGTH] + "..."
    return entry
