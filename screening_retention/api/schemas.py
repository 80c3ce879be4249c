"""
Request and response models for the screening retention API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator


class SavedRecordCreateRequest(BaseModel):
    id: str
    subject_name: str
    subject_id: str
    progress_label: str = ""
    technician: Optional[str] = None
    saved_at: Optional[datetime] = None  # defaults to now

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('id cannot be empty')
        return v

    @field_validator('subject_name')
    @classmethod
    def subject_name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('subject_name cannot be empty')
        return v


class SavedRecordResponse(BaseModel):
    id: str
    subject_name: str
    subject_id: str
    saved_at: datetime
    progress_label: str
    technician: Optional[str] = None


class SavedRecordListResponse(BaseModel):
    records: List[SavedRecordResponse]


class CompletedRecordCreateRequest(BaseModel):
    id: str
    subject_name: str
    subject_id: str
    completed_at: Optional[datetime] = None  # defaults to now
    technician: Optional[str] = None
    status: str = "completed"
    remove_saved_id: Optional[str] = None  # draft this screening completes

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('id cannot be empty')
        return v


class CompletedRecordResponse(BaseModel):
    id: str
    subject_name: str
    subject_id: str
    completed_at: datetime
    technician: Optional[str] = None
    status: str


class CompletedRecordListResponse(BaseModel):
    records: List[CompletedRecordResponse]


class WriteResponse(BaseModel):
    success: bool
    id: str
    count: int


class StatsResponse(BaseModel):
    completed_count: int
    saved_count: int


class ExpirationDetailResponse(BaseModel):
    id: str
    subject_name: str
    days_until_expiration: int
    status: str
    saved_at: datetime
    expires_at: datetime


class ExpirationBreakdownResponse(BaseModel):
    urgent_count: int
    warning_count: int
    safe_count: int
    malformed_count: int
    total: int
    details: List[ExpirationDetailResponse]


class ReconciliationLogResponse(BaseModel):
    last_check_at: datetime
    next_check_at: datetime
    records_updated_last_run: int
    total_records_last_run: int


class ReconciliationReportResponse(BaseModel):
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    records_updated: int
    total_records: int
    renewed_ids: List[str]
    malformed_records: int
    collection_written: bool
    log_written: bool
    forced: bool
    errors: List[str]


class ReconciliationStatusResponse(BaseModel):
    scheduler: str
    state: str
    log_status: str
    log: Optional[ReconciliationLogResponse] = None
    last_check_at: Optional[datetime] = None
    next_check_at: Optional[datetime] = None
    total: int
    urgent: int
    warning: int
    safe: int
    malformed: int
    last_report: Optional[ReconciliationReportResponse] = None


class ExportResponse(BaseModel):
    completed: List[Dict[str, Any]]
    saved: List[Dict[str, Any]]
    stats: StatsResponse


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    saved_count: int
    completed_count: int
