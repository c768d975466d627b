"""
Persistent tracking for long-running import jobs.

The importer is the only writer for a job while it runs; callers poll
``get_status``. Status changes are monotonic:
pending -> validating -> importing -> completed | failed.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import sessionmaker

from tracker_import.core.config import settings
from tracker_import.db.models import ImportErrorRecord, ImportJob
from tracker_import.domain.imports.errors import ImportJobNotFoundError, InvalidJobTransitionError
from tracker_import.domain.imports.parser import count_csv_rows
from tracker_import.domain.imports.types import ImportStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ImportStatus.PENDING: {ImportStatus.VALIDATING, ImportStatus.IMPORTING, ImportStatus.FAILED},
    ImportStatus.VALIDATING: {ImportStatus.IMPORTING, ImportStatus.FAILED},
    ImportStatus.IMPORTING: {ImportStatus.COMPLETED, ImportStatus.FAILED},
    ImportStatus.COMPLETED: set(),
    ImportStatus.FAILED: set(),
}

TERMINAL_STATUSES = {ImportStatus.COMPLETED, ImportStatus.FAILED}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_job(job: ImportJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "entity_type": job.entity_type,
        "file_name": job.file_name,
        "field_mapping": dict(job.field_mapping or {}),
        "csv_data": job.csv_data,
        "total_records": job.total_records,
        "status": job.status,
        "processed_records": job.processed_records,
        "successful_records": job.successful_records,
        "failed_records": job.failed_records,
        "error_message": job.error_message,
        "requested_by": job.requested_by,
        "started_at": job.started_at,
        "completed_at": job.completed_at,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
    }


def _row_to_error(record: ImportErrorRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "job_id": record.job_id,
        "row_number": record.row_number,
        "field_name": record.field_name,
        "error_type": record.error_type,
        "error_message": record.error_message,
        "original_value": record.original_value,
        "created_at": record.created_at,
    }


class ImportJobTracker:
    """Read/write facade over persisted import jobs and their error log."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create_job(
        self,
        *,
        entity_type: str,
        csv_data: str,
        field_mapping: Dict[str, str],
        file_name: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create and persist a new job in the ``pending`` state."""
        with self._session_factory() as session:
            job = ImportJob(
                entity_type=entity_type,
                csv_data=csv_data,
                field_mapping=dict(field_mapping),
                file_name=file_name,
                requested_by=requested_by,
                total_records=count_csv_rows(csv_data),
                status=ImportStatus.PENDING.value,
            )
            session.add(job)
            session.commit()
            logger.info("Created import job %s (%s, %d records)", job.id, entity_type, job.total_records)
            return _row_to_job(job)

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            job = session.get(ImportJob, job_id)
            return _row_to_job(job) if job else None

    def advance_state(
        self,
        job_id: str,
        status: ImportStatus,
        *,
        error_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move a job to ``status``.

        Raises:
            ImportJobNotFoundError: If the job does not exist
            InvalidJobTransitionError: If the change would not be monotonic
        """
        with self._session_factory() as session:
            job = session.get(ImportJob, job_id)
            if job is None:
                raise ImportJobNotFoundError(job_id)

            current = ImportStatus(job.status)
            if status not in ALLOWED_TRANSITIONS[current]:
                raise InvalidJobTransitionError(job_id, current.value, status.value)

            values: Dict[str, Any] = {"status": status.value}
            if status == ImportStatus.IMPORTING:
                values["started_at"] = _utcnow()
            if status in TERMINAL_STATUSES:
                values["completed_at"] = _utcnow()
            if error_message is not None:
                values["error_message"] = error_message

            # Only applies if no other writer moved the job since it was read.
            stmt = (
                update(ImportJob)
                .where(ImportJob.id == job_id, ImportJob.status == current.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount == 0:
                latest = session.scalar(select(ImportJob.status).where(ImportJob.id == job_id))
                session.rollback()
                raise InvalidJobTransitionError(job_id, latest or current.value, status.value)

            session.commit()
            session.refresh(job)
            logger.info("Import job %s: %s -> %s", job_id, current.value, status.value)
            return _row_to_job(job)

    def checkpoint_progress(self, job_id: str, processed: int, successful: int, failed: int) -> None:
        with self._session_factory() as session:
            job = session.get(ImportJob, job_id)
            if job is None:
                raise ImportJobNotFoundError(job_id)
            job.processed_records = processed
            job.successful_records = successful
            job.failed_records = failed
            session.commit()
        logger.debug("Import job %s checkpoint: processed=%d ok=%d failed=%d", job_id, processed, successful, failed)

    def append_error(
        self,
        job_id: str,
        *,
        row_number: int,
        field_name: Optional[str],
        error_type: str,
        error_message: str,
        original_value: Optional[str] = None,
    ) -> None:
        with self._session_factory() as session:
            session.add(
                ImportErrorRecord(
                    job_id=job_id,
                    row_number=row_number,
                    field_name=field_name,
                    error_type=error_type,
                    error_message=error_message,
                    original_value=original_value,
                )
            )
            session.commit()

    def complete_job(self, job_id: str, *, successful: int, failed: int) -> Dict[str, Any]:
        """Record final counts and mark the job completed, even when rows failed."""
        self.checkpoint_progress(job_id, successful + failed, successful, failed)
        return self.advance_state(job_id, ImportStatus.COMPLETED)

    def fail_job(self, job_id: str, error_message: str) -> Dict[str, Any]:
        return self.advance_state(job_id, ImportStatus.FAILED, error_message=error_message)

    def get_status(self, job_id: str, *, limit: Optional[int] = None, offset: int = 0) -> Dict[str, Any]:
        """
        Return the job plus one page of its error log ordered by row number.

        ``limit`` is clamped to ``settings.job_error_page_limit``.

        Raises:
            ImportJobNotFoundError: If the job does not exist
        """
        page_limit = settings.job_error_page_limit
        if limit is not None:
            page_limit = max(0, min(limit, settings.job_error_page_limit))
        offset = max(0, offset)

        with self._session_factory() as session:
            job = session.get(ImportJob, job_id)
            if job is None:
                raise ImportJobNotFoundError(job_id)

            stmt = (
                select(ImportErrorRecord)
                .where(ImportErrorRecord.job_id == job_id)
                .order_by(ImportErrorRecord.row_number, ImportErrorRecord.id)
                .limit(page_limit)
                .offset(offset)
            )
            errors = [_row_to_error(record) for record in session.scalars(stmt)]
            error_count = session.scalar(
                select(func.count()).select_from(ImportErrorRecord).where(ImportErrorRecord.job_id == job_id)
            ) or 0

            return {"job": _row_to_job(job), "errors": errors, "error_count": error_count}

    def list_jobs(self, *, limit: Optional[int] = None, offset: int = 0) -> Tuple[List[Dict[str, Any]], int]:
        """List jobs, most recent first. ``limit`` is clamped to ``settings.import_history_limit``."""
        limit = settings.import_history_limit if limit is None else max(0, min(limit, settings.import_history_limit))
        offset = max(0, offset)
        with self._session_factory() as session:
            stmt = (
                select(ImportJob)
                .order_by(ImportJob.created_at.desc(), ImportJob.id)
                .limit(limit)
                .offset(offset)
            )
            jobs = [_row_to_job(job) for job in session.scalars(stmt)]
            total = session.scalar(select(func.count()).select_from(ImportJob)) or 0
            return jobs, total
