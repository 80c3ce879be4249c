"""
Configuration for the screening retention engine.

Runtime switches come from the environment (optionally via a .env file).
Retention constants are fixed at import time and are not runtime-configurable.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/screenings.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Reconciliation scheduler (recurring timer armed by initialize())
RECONCILIATION_ENABLED = os.getenv("RECONCILIATION_ENABLED", "true").lower() == "true"

# When true, a pass over a collection containing malformed entries is aborted
SCHEMA_VALIDATION_STRICT = os.getenv("SCHEMA_VALIDATION_STRICT", "false").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Retention policy constants
AUTO_DELETE_THRESHOLD_DAYS = 30
MIN_DAYS_REMAINING = 5
EXTENSION_TARGET_DAYS = MIN_DAYS_REMAINING + 5
CHECK_INTERVAL_DAYS = 5

# Status buckets: < URGENT_BELOW_DAYS urgent, < WARNING_BELOW_DAYS warning, else safe
URGENT_BELOW_DAYS = 5
WARNING_BELOW_DAYS = 10

# Logical persistence keys
SAVED_RECORDS_KEY = "saved-records"
COMPLETED_RECORDS_KEY = "completed-records"
RECONCILIATION_LOG_KEY = "reconciliation-log"

VERSION = "1.0.0"


def get_db_path():
    """Get the configured SQLite path."""
    return DB_PATH


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path=None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def is_reconciliation_enabled():
    """Check if the recurring reconciliation timer may be armed."""
    return RECONCILIATION_ENABLED


def is_schema_validation_strict():
    """Check if malformed saved entries should abort a reconciliation pass."""
    return SCHEMA_VALIDATION_STRICT


def get_check_interval_days():
    """Get the reconciliation interval in days."""
    return CHECK_INTERVAL_DAYS


def validate_scheduler_config():
    """Validate scheduler and retention configuration and return any issues."""
    issues = []

    if not DB_PATH or not DB_PATH.strip():
        issues.append("DB_PATH must not be empty")

    if CHECK_INTERVAL_DAYS < 1:
        issues.append("CHECK_INTERVAL_DAYS must be >= 1")

    if EXTENSION_TARGET_DAYS < MIN_DAYS_REMAINING:
        issues.append("EXTENSION_TARGET_DAYS must be >= MIN_DAYS_REMAINING")

    if EXTENSION_TARGET_DAYS >= AUTO_DELETE_THRESHOLD_DAYS:
        issues.append("EXTENSION_TARGET_DAYS must be < AUTO_DELETE_THRESHOLD_DAYS")

    if not URGENT_BELOW_DAYS <= WARNING_BELOW_DAYS:
        issues.append("URGENT_BELOW_DAYS must be <= WARNING_BELOW_DAYS")

    if LOG_LEVEL not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        issues.append(f"Invalid LOG_LEVEL: {LOG_LEVEL}")

    return issues
