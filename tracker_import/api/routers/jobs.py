"""
Endpoints for creating, starting, and tracking import jobs.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import sessionmaker

from tracker_import.api.dependencies import (
    build_store,
    build_tracker,
    get_records_cache,
    get_session_factory,
    parse_with_cache,
)
from tracker_import.api.schemas.imports import (
    CreateImportJobRequest,
    ImportJobListResponse,
    ImportJobResponse,
    ImportStatusResponse,
    StartImportResponse,
)
from tracker_import.core.config import settings
from tracker_import.domain.imports.errors import ImportJobNotFoundError, InvalidJobTransitionError
from tracker_import.domain.imports.importer import run_import_job, start_import
from tracker_import.utils.cache import RecordsCache

router = APIRouter(prefix="/import-jobs", tags=["import-jobs"])

logger = logging.getLogger(__name__)


@router.post("", response_model=ImportJobResponse, status_code=201)
def create_import_job_endpoint(
    request: CreateImportJobRequest,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    tracker = build_tracker(session_factory)
    job = tracker.create_job(
        entity_type=request.entity_type,
        csv_data=request.csv_data,
        field_mapping=request.field_mapping,
        file_name=request.file_name,
        requested_by=request.requested_by,
    )
    return ImportJobResponse(success=True, job=job)


@router.post("/{job_id}/start", response_model=StartImportResponse, status_code=202)
def start_import_endpoint(
    job_id: str,
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
    cache: RecordsCache = Depends(get_records_cache),
):
    """
    Mark the job as importing and process its rows in the background.

    Returns as soon as the job is marked; poll ``GET /import-jobs/{job_id}``
    for progress.
    """
    tracker = build_tracker(session_factory)
    job = tracker.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Import job not found")

    try:
        result = start_import(tracker, job_id)
    except ImportJobNotFoundError:
        raise HTTPException(status_code=404, detail="Import job not found")
    except InvalidJobTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    table = parse_with_cache(job["csv_data"], cache)
    background_tasks.add_task(
        run_import_job,
        job_id,
        tracker,
        build_store(session_factory),
        raw_table=table,
    )
    logger.info("Import job %s accepted", job_id)
    return StartImportResponse(accepted=result.accepted, job_id=result.job_id)


@router.get("/{job_id}", response_model=ImportStatusResponse)
def get_import_status_endpoint(
    job_id: str,
    limit: Optional[int] = None,
    offset: int = 0,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    page_limit = settings.job_error_page_limit if limit is None else max(0, min(limit, settings.job_error_page_limit))
    offset = max(0, offset)
    tracker = build_tracker(session_factory)
    try:
        status = tracker.get_status(job_id, limit=page_limit, offset=offset)
    except ImportJobNotFoundError:
        raise HTTPException(status_code=404, detail="Import job not found")

    return ImportStatusResponse(
        success=True,
        job=status["job"],
        errors=status["errors"],
        error_count=status["error_count"],
        limit=page_limit,
        offset=offset,
    )


@router.get("", response_model=ImportJobListResponse)
def list_import_jobs_endpoint(
    limit: int = settings.import_history_limit,
    offset: int = 0,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    limit = max(0, min(limit, settings.import_history_limit))
    offset = max(0, offset)
    tracker = build_tracker(session_factory)
    jobs, total = tracker.list_jobs(limit=limit, offset=offset)
    return ImportJobListResponse(
        success=True,
        jobs=jobs,
        total_count=total,
        limit=limit,
        offset=offset,
    )
