"""
Row-by-row import execution for a tracked job.

Rows are processed strictly in input order so that recorded row numbers
match the physical lines of the source text. A rejected row is recorded in
the job's error log and the loop moves on; only failures outside row
processing (e.g. an unsupported entity type) fail the job as a whole.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from tracker_import.core.config import settings
from tracker_import.db.repositories import Repositories
from tracker_import.domain.imports.errors import RowImportError
from tracker_import.domain.imports.jobs import ImportJobTracker
from tracker_import.domain.imports.lookup import LookupCache
from tracker_import.domain.imports.mapping import map_row
from tracker_import.domain.imports.parser import parse_csv
from tracker_import.domain.imports.rules import EntityRuleSet, get_rule_set
from tracker_import.domain.imports.types import (
    EntityType,
    ErrorKind,
    ImportStatus,
    MappedRow,
    RawTable,
    row_number_for_index,
)
from tracker_import.domain.imports.validation import validate_row
from tracker_import.domain.imports.validators import parse_number
from tracker_import.utils.date import parse_flexible_date

logger = logging.getLogger(__name__)

LABEL_SEPARATORS = re.compile(r"[;,]")


@dataclass
class StartImportResult:
    accepted: bool
    job_id: str


@dataclass
class ImportProgress:
    successful: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.successful + self.failed


def _serialize_row(mapped: MappedRow) -> str:
    return json.dumps(mapped, sort_keys=True)


class RowProcessor:
    """Turns one mapped row into one persistence write."""

    def __init__(self, repositories: Repositories, lookup: LookupCache, requested_by: Optional[str] = None):
        self.repositories = repositories
        self.lookup = lookup
        self.requested_by = requested_by

    def process(self, mapped: MappedRow) -> None:
        """
        Raises:
            RowImportError: If the row is rejected
        """
        raise NotImplementedError


class WorkItemRowProcessor(RowProcessor):
    def process(self, mapped: MappedRow) -> None:
        project_key = (mapped.get("project_key") or "").upper()
        project_id = self.lookup.resolve_project(project_key)
        if not project_id:
            raise RowImportError(
                ErrorKind.REFERENCE,
                "project_key",
                f'Project "{project_key}" not found',
                project_key,
            )

        result = self.repositories.work_items.insert(self.build_values(mapped, project_id))
        if not result.ok:
            raise RowImportError(ErrorKind.SYSTEM, "system", result.message or "Insert failed", _serialize_row(mapped))

    def build_values(self, mapped: MappedRow, project_id: str) -> Dict[str, Any]:
        story_points = parse_number(mapped["story_points"]) if mapped.get("story_points") else None
        due_date = parse_flexible_date(mapped["due_date"], log_context="due_date") if mapped.get("due_date") else None

        labels = None
        if mapped.get("labels"):
            labels = [label.strip() for label in LABEL_SEPARATORS.split(mapped["labels"]) if label.strip()]

        return {
            "project_id": project_id,
            "summary": mapped.get("summary"),
            "description": mapped.get("description") or None,
            "issue_type_id": self.lookup.resolve_type(mapped.get("issue_type")),
            "priority_id": self.lookup.resolve_priority(mapped.get("priority")),
            "status_id": self.lookup.resolve_status(mapped.get("status")),
            "assignee_id": self.lookup.resolve_user(mapped.get("assignee_email")),
            "reporter_id": self.lookup.resolve_user(mapped.get("reporter_email")) or self.requested_by,
            "story_points": story_points,
            "due_date": due_date,
            "labels": labels,
            "epic_key": (mapped.get("epic_key") or "").upper() or None,
        }


class ProjectRowProcessor(RowProcessor):
    def process(self, mapped: MappedRow) -> None:
        values = {
            "name": mapped.get("name"),
            "key": (mapped.get("key") or "").upper(),
            "description": mapped.get("description") or None,
            "project_type": mapped.get("project_type") or "software",
            "template": mapped.get("template") or "scrum",
            "lead_id": self.lookup.resolve_user(mapped.get("lead_email")) or self.requested_by,
        }
        result = self.repositories.projects.insert(values)
        if not result.ok:
            message = result.message or "Insert failed"
            field_name = "key" if "key" in message.lower() else "system"
            raise RowImportError(ErrorKind.SYSTEM, field_name, message, _serialize_row(mapped))


class UserRowProcessor(RowProcessor):
    """Updates profiles of existing accounts; never creates accounts."""

    def process(self, mapped: MappedRow) -> None:
        email = mapped.get("email") or ""
        profile = self.repositories.users.find_by_email(email)
        if profile is None:
            raise RowImportError(
                ErrorKind.REFERENCE,
                "email",
                f'User with email "{email}" does not exist. Users must sign up first.',
                email,
            )

        result = self.repositories.users.update(profile.id, mapped)
        if not result.ok:
            raise RowImportError(ErrorKind.SYSTEM, "system", result.message or "Update failed", _serialize_row(mapped))


ROW_PROCESSORS: Dict[EntityType, Type[RowProcessor]] = {
    EntityType.WORK_ITEM: WorkItemRowProcessor,
    EntityType.PROJECT: ProjectRowProcessor,
    EntityType.USER: UserRowProcessor,
}


def _reject_invalid_row(mapped: MappedRow, rule_set: EntityRuleSet, row_number: int) -> None:
    errors = validate_row(mapped, rule_set, row_number)
    if errors:
        first = errors[0]
        raise RowImportError(ErrorKind.VALIDATION, first.field, first.message, first.original_value)


def import_rows(
    job: Dict[str, Any],
    tracker: ImportJobTracker,
    repositories: Repositories,
    *,
    raw_table: Optional[RawTable] = None,
) -> ImportProgress:
    """
    Process every row of a job sequentially, checkpointing progress.

    Raises:
        UnknownEntityTypeError: If the job's entity type is not supported
    """
    job_id = job["id"]
    rule_set = get_rule_set(job["entity_type"])
    table = raw_table if raw_table is not None else parse_csv(job["csv_data"])
    mapping = job["field_mapping"]

    lookup = LookupCache.build(repositories.references)
    processor = ROW_PROCESSORS[rule_set.entity_type](repositories, lookup, job.get("requested_by"))
    interval = max(1, settings.import_checkpoint_interval)

    progress = ImportProgress()
    for index, row in enumerate(table.rows):
        row_number = row_number_for_index(index)
        mapped = map_row(row, table.headers, mapping)
        try:
            _reject_invalid_row(mapped, rule_set, row_number)
            processor.process(mapped)
            progress.successful += 1
        except RowImportError as err:
            progress.failed += 1
            logger.warning("Import job %s row %d rejected (%s): %s", job_id, row_number, err.kind.value, err.message)
            tracker.append_error(
                job_id,
                row_number=row_number,
                field_name=err.field,
                error_type=err.kind.value,
                error_message=err.message,
                original_value=err.original_value,
            )

        if progress.processed % interval == 0:
            tracker.checkpoint_progress(job_id, progress.processed, progress.successful, progress.failed)

    return progress


def start_import(tracker: ImportJobTracker, job_id: str) -> StartImportResult:
    """
    Mark a pending job as importing; the caller schedules ``run_import_job``.

    Raises:
        ImportJobNotFoundError: If the job does not exist
        InvalidJobTransitionError: If the job already started or finished
    """
    tracker.advance_state(job_id, ImportStatus.IMPORTING)
    return StartImportResult(accepted=True, job_id=job_id)


def run_import_job(
    job_id: str,
    tracker: ImportJobTracker,
    repositories: Repositories,
    *,
    raw_table: Optional[RawTable] = None,
) -> Optional[Dict[str, Any]]:
    """
    Execute an already-started job to completion and return the final job.

    Any exception escaping the row loop is fatal: the job is marked failed
    with the exception message. There is no resume; an interrupted process
    leaves the job in ``importing``.
    """
    job = tracker.get_job(job_id)
    if job is None:
        logger.error("Import job %s not found", job_id)
        return None

    logger.info("Import job %s started (%s)", job_id, job["entity_type"])
    try:
        progress = import_rows(job, tracker, repositories, raw_table=raw_table)
    except Exception as exc:
        logger.exception("Import job %s failed: %s", job_id, exc)
        return tracker.fail_job(job_id, str(exc) or exc.__class__.__name__)

    final = tracker.complete_job(job_id, successful=progress.successful, failed=progress.failed)
    logger.info(
        "Import job %s completed: %d success, %d failed",
        job_id,
        progress.successful,
        progress.failed,
    )
    return final
