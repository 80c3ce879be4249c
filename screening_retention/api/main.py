"""
HTTP surface for the host application: dashboard stats, draft CRUD and
reconciliation diagnostics.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware

from .schemas import (
    SavedRecordCreateRequest,
    SavedRecordResponse,
    SavedRecordListResponse,
    CompletedRecordCreateRequest,
    CompletedRecordResponse,
    CompletedRecordListResponse,
    WriteResponse,
    StatsResponse,
    ExpirationBreakdownResponse,
    ReconciliationReportResponse,
    ReconciliationStatusResponse,
    ExportResponse,
    HealthResponse,
)
from ..core import dao
from ..core.config import VERSION, SAVED_RECORDS_KEY, debug_enabled
from ..core.db import health_check
from ..core.scheduler import ReconciliationScheduler
from ..core.schema import SavedRecord, CompletedRecord, utcnow
from ..core.stats import StatsAggregator
from ..core.store import RecordStore, StorageUnavailable, MalformedRecord
from ..util.logging import logger

_store = None
_scheduler = None


def get_store() -> RecordStore:
    """Process-wide record store."""
    global _store
    if _store is None:
        _store = RecordStore()
    return _store


def get_scheduler() -> ReconciliationScheduler:
    """Process-wide reconciliation scheduler, constructed once."""
    global _scheduler
    if _scheduler is None:
        _scheduler = ReconciliationScheduler(get_store())
    return _scheduler


def get_stats(store: RecordStore = Depends(get_store)) -> StatsAggregator:
    return StatsAggregator(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = get_scheduler()
    scheduler.initialize()
    yield
    scheduler.stop()


# Initialize the FastAPI application
app = FastAPI(
    title="Screening Retention API",
    version=VERSION,
    description="Saved screening drafts, dashboard stats and lease reconciliation",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _storage_error(e: Exception) -> HTTPException:
    logger.error(f"Request failed on storage: {e}")
    return HTTPException(status_code=503, detail=f"Storage unavailable: {e}")


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(store: RecordStore = Depends(get_store),
                          stats: StatsAggregator = Depends(get_stats)):
    """Check system health."""
    db_health = health_check(store.db_path)
    counts = stats.compute_stats()

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        saved_count=counts.saved_count,
        completed_count=counts.completed_count
    )


@app.get("/stats", response_model=StatsResponse)
def stats_endpoint(stats: StatsAggregator = Depends(get_stats)):
    """Completed and saved screening counts for the dashboard."""
    return StatsResponse(**stats.compute_stats().to_dict())


@app.get("/expirations", response_model=ExpirationBreakdownResponse)
def expirations_endpoint(stats: StatsAggregator = Depends(get_stats)):
    """Urgent / warning / safe breakdown of saved drafts."""
    return ExpirationBreakdownResponse(**stats.compute_expiration_breakdown().to_dict())


# Saved drafts
@app.get("/saved", response_model=SavedRecordListResponse)
def list_saved_endpoint(store: RecordStore = Depends(get_store)):
    records = dao.load_saved_records(store)
    return SavedRecordListResponse(records=[SavedRecordResponse(**r.model_dump()) for r in records])


@app.get("/saved/{record_id}", response_model=SavedRecordResponse)
def get_saved_endpoint(record_id: str, store: RecordStore = Depends(get_store)):
    record = dao.get_saved_record(store, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Saved record not found")
    return SavedRecordResponse(**record.model_dump())


@app.post("/saved", response_model=WriteResponse, status_code=201)
def add_saved_endpoint(request: SavedRecordCreateRequest, store: RecordStore = Depends(get_store)):
    """Save a screening for later."""
    now = utcnow()
    record = SavedRecord(
        id=request.id,
        subject_name=request.subject_name,
        subject_id=request.subject_id,
        saved_at=request.saved_at or now,
        progress_label=request.progress_label,
        technician=request.technician
    )

    try:
        count = dao.add_saved_record(store, record, now=now)
    except dao.DuplicateRecordError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (StorageUnavailable, MalformedRecord) as e:
        raise _storage_error(e)

    return WriteResponse(success=True, id=record.id, count=count)


@app.delete("/saved/{record_id}", response_model=WriteResponse)
def remove_saved_endpoint(record_id: str, store: RecordStore = Depends(get_store)):
    """Remove a draft the user completed or discarded."""
    try:
        removed = dao.remove_saved_record(store, record_id)
    except StorageUnavailable as e:
        raise _storage_error(e)

    if not removed:
        raise HTTPException(status_code=404, detail="Saved record not found")

    return WriteResponse(success=True, id=record_id, count=dao.count_entries(store, SAVED_RECORDS_KEY))


# Completed archive
@app.get("/completed", response_model=CompletedRecordListResponse)
def list_completed_endpoint(store: RecordStore = Depends(get_store)):
    records = dao.load_completed_records(store)
    return CompletedRecordListResponse(records=[CompletedRecordResponse(**r.model_dump()) for r in records])


@app.get("/completed/{record_id}", response_model=CompletedRecordResponse)
def get_completed_endpoint(record_id: str, store: RecordStore = Depends(get_store)):
    record = dao.get_completed_record(store, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Completed record not found")
    return CompletedRecordResponse(**record.model_dump())


@app.post("/completed", response_model=WriteResponse, status_code=201)
def add_completed_endpoint(request: CompletedRecordCreateRequest, store: RecordStore = Depends(get_store)):
    """Archive a completed screening, optionally removing the draft it completes."""
    record = CompletedRecord(
        id=request.id,
        subject_name=request.subject_name,
        subject_id=request.subject_id,
        completed_at=request.completed_at or utcnow(),
        technician=request.technician,
        status=request.status
    )

    try:
        count = dao.add_completed_record(store, record)
        if request.remove_saved_id:
            dao.remove_saved_record(store, request.remove_saved_id)
    except dao.DuplicateRecordError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (StorageUnavailable, MalformedRecord) as e:
        raise _storage_error(e)

    return WriteResponse(success=True, id=record.id, count=count)


@app.get("/export", response_model=ExportResponse)
def export_endpoint(store: RecordStore = Depends(get_store)):
    return ExportResponse(**dao.export_data(store))


# Reconciliation diagnostics
@app.get("/reconciliation/status", response_model=ReconciliationStatusResponse)
def reconciliation_status_endpoint(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    """Reconciliation log plus live expiration counts."""
    return ReconciliationStatusResponse(**scheduler.get_status())


@app.post("/reconciliation/force", response_model=ReconciliationReportResponse)
def force_reconciliation_endpoint(scheduler: ReconciliationScheduler = Depends(get_scheduler)):
    """Run a reconciliation pass now, bypassing the due check."""
    report = scheduler.force_reconcile()
    return ReconciliationReportResponse(**report.to_dict())
