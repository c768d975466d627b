"""
Exceptions raised by the import pipeline.
"""
from typing import Optional

from tracker_import.domain.imports.types import ErrorKind


class ImportPipelineError(Exception):
    """Base class for import pipeline failures."""


class UnknownEntityTypeError(ImportPipelineError, ValueError):
    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"Unknown import type: {entity_type}")


class ImportJobNotFoundError(ImportPipelineError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Import job not found: {job_id}")


class InvalidJobTransitionError(ImportPipelineError):
    def __init__(self, job_id: str, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(f"Import job {job_id} cannot move from '{current}' to '{requested}'")


class RowImportError(ImportPipelineError):
    """A single row was rejected; the batch continues with the next row."""

    def __init__(
        self,
        kind: ErrorKind,
        field: str,
        message: str,
        original_value: Optional[str] = None,
    ):
        self.kind = kind
        self.field = field
        self.message = message
        self.original_value = original_value
        super().__init__(message)
