"""
Retention core - record store, retention policy, reconciliation and stats.
"""

# Package initialization for the retention core
from .store import RecordStore, StorageUnavailable, MalformedRecord, ReadStatus, StoreRead
from .schema import SavedRecord, CompletedRecord, ReconciliationLog
from .policy import RetentionPolicy, ExpirationStatus
from .scheduler import ReconciliationScheduler, ReconciliationReport, SchedulerState
from .stats import StatsAggregator, DashboardStats, ExpirationBreakdown, ExpirationDetail

__all__ = [
    'RecordStore',
    'StorageUnavailable',
    'MalformedRecord',
    'ReadStatus',
    'StoreRead',
    'SavedRecord',
    'CompletedRecord',
    'ReconciliationLog',
    'RetentionPolicy',
    'ExpirationStatus',
    'ReconciliationScheduler',
    'ReconciliationReport',
    'SchedulerState',
    'StatsAggregator',
    'DashboardStats',
    'ExpirationBreakdown',
    'ExpirationDetail'
]
