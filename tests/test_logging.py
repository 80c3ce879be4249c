"""
Tests for structured logging and audit redaction.
"""

import logging
from unittest.mock import patch

from screening_retention.util.logging import StructuredLogger, audit_event, redact_record, MAX_AUDIT_VALUE_LENGTH


class TestRedactRecord:
    """Patient identifiers never reach the logs."""

    def test_masks_patient_fields(self):
        entry = {"id": "r1", "subject_name": "Jane Smith", "subject_id": "12345678", "progress_label": "Step 1"}
        assert redact_record(entry) == {
            "id": "r1",
            "subject_name": "[REDACTED]",
            "subject_id": "[REDACTED]",
            "progress_label": "Step 1"
        }

    def test_masks_non_string_identifiers(self):
        assert redact_record({"subject_id": 55556666})["subject_id"] == "[REDACTED]"

    def test_nested_and_lists(self):
        entry = {"id": "c1", "guardians": [{"subject_name": "Jane"}]}
        assert redact_record(entry) == {"id": "c1", "guardians": [{"subject_name": "[REDACTED]"}]}

    def test_long_strings_clipped(self):
        clipped = redact_record({"notes": "x" * 150})["notes"]
        assert clipped == "x" * MAX_AUDIT_VALUE_LENGTH + "..."

    def test_original_untouched(self):
        entry = {"subject_name": "Jane"}
        redact_record(entry)
        assert entry == {"subject_name": "Jane"}


class TestStructuredLogger:

    def test_operation_format(self, caplog):
        log = StructuredLogger("screening_retention.test")
        with caplog.at_level(logging.INFO, logger="screening_retention.test"):
            log.log_operation("reconciliation.pass", "completed", {"records_updated": 2})

        assert "Operation: reconciliation.pass, Status: completed" in caplog.text
        assert "'records_updated': 2" in caplog.text

    def test_failed_pass_logged_as_warning(self, caplog):
        log = StructuredLogger("screening_retention.test")
        with caplog.at_level(logging.INFO, logger="screening_retention.test"):
            log.log_reconciliation_pass({"status": "aborted", "errors": ["disk full"]})

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "disk full" in record.getMessage()

    def test_renewal_logs_only_record_id(self, caplog):
        log = StructuredLogger("screening_retention.test")
        with caplog.at_level(logging.INFO, logger="screening_retention.test"):
            log.log_record_renewed("r1", 4, 10)

        assert "'record_id': 'r1'" in caplog.text
        assert "'days_remaining_after': 10" in caplog.text

    def test_audit_event_redacts_record(self):
        with patch('screening_retention.util.logging.logger') as mock_logger:
            audit_event("saved_record.added", {"record_id": "r1"}, record={"id": "r1", "subject_name": "Jane"})

        operation, status, details = mock_logger.log_operation.call_args[0]
        assert operation == "saved_record_added"
        assert status == "audit"
        assert details == {"record_id": "r1", "record": {"id": "r1", "subject_name": "[REDACTED]"}}

    def test_audit_event_without_record(self):
        with patch('screening_retention.util.logging.logger') as mock_logger:
            audit_event("store.cleared", {"keys": []})

        assert mock_logger.log_operation.call_args[0][2] == {"keys": []}
