from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from tracker_import.domain.imports.types import ErrorKind, ImportStatus


class ValidateImportRequest(BaseModel):
    """Raw CSV text plus the mapping of target fields to source columns."""
    entity_type: str
    csv_data: str
    field_mapping: Dict[str, str] = Field(default_factory=dict)


class ValidationErrorInfo(BaseModel):
    row: int
    field: str
    kind: ErrorKind
    message: str
    original_value: Optional[str] = None


class ValidationReportResponse(BaseModel):
    is_valid: bool
    total_rows: int
    valid_rows: int
    errors: List[ValidationErrorInfo]
    preview: List[Dict[str, Any]]
    headers: List[str]


class EntityFieldsResponse(BaseModel):
    entity_type: str
    required: List[str]
    optional: List[str]


class CreateImportJobRequest(BaseModel):
    # Not restricted to known entity types; an unsupported type fails the job.
    entity_type: str
    csv_data: str
    field_mapping: Dict[str, str] = Field(default_factory=dict)
    file_name: Optional[str] = None
    requested_by: Optional[str] = None


class ImportJobInfo(BaseModel):
    """Metadata about a long-running import job."""
    id: str
    entity_type: str
    file_name: Optional[str] = None
    field_mapping: Dict[str, str] = Field(default_factory=dict)
    status: ImportStatus
    total_records: int = 0
    processed_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    error_message: Optional[str] = None
    requested_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImportErrorInfo(BaseModel):
    """A persisted row-level failure recorded while importing."""
    id: int
    job_id: str
    row_number: int
    field_name: Optional[str] = None
    error_type: ErrorKind
    error_message: str
    original_value: Optional[str] = None
    created_at: Optional[datetime] = None


class ImportJobResponse(BaseModel):
    """Response wrapper for a single import job."""
    success: bool
    job: ImportJobInfo


class StartImportResponse(BaseModel):
    accepted: bool
    job_id: str
    message: str = "Import started"


class ImportStatusResponse(BaseModel):
    """Job state plus one page of its error log, ordered by row number."""
    success: bool
    job: ImportJobInfo
    errors: List[ImportErrorInfo]
    error_count: int
    limit: int
    offset: int


class ImportJobListResponse(BaseModel):
    """Response wrapper for a list of import jobs."""
    success: bool
    jobs: List[ImportJobInfo]
    total_count: int
    limit: int
    offset: int


class AutoMapRequest(BaseModel):
    """Headers to map, given directly or read from the first line of ``csv_data``."""
    entity_type: str
    headers: List[str] = Field(default_factory=list)
    csv_data: Optional[str] = None


class AutoMapResponse(BaseModel):
    entity_type: str
    field_mapping: Dict[str, str]
    unmapped_headers: List[str]
