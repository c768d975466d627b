"""
Endpoints that help a caller prepare an import: validation, CSV templates
and suggested field mappings.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import sessionmaker

from tracker_import.api.dependencies import build_store, get_records_cache, get_session_factory, parse_with_cache
from tracker_import.api.schemas.imports import (
    AutoMapRequest,
    AutoMapResponse,
    EntityFieldsResponse,
    ValidateImportRequest,
    ValidationReportResponse,
)
from tracker_import.domain.imports.errors import UnknownEntityTypeError
from tracker_import.domain.imports.parser import parse_csv_headers
from tracker_import.domain.imports.rules import list_entity_fields
from tracker_import.domain.imports.templates import (
    auto_map_headers,
    generate_empty_template,
    generate_template,
    template_file_name,
)
from tracker_import.domain.imports.validation import validate_csv
from tracker_import.utils.cache import RecordsCache

router = APIRouter(prefix="/imports", tags=["imports"])

logger = logging.getLogger(__name__)


@router.post("/validate", response_model=ValidationReportResponse)
def validate_import_endpoint(
    request: ValidateImportRequest,
    session_factory: sessionmaker = Depends(get_session_factory),
    cache: RecordsCache = Depends(get_records_cache),
):
    """
    Validate CSV text for an entity type before any job is started.

    The report is returned even when rows are invalid so the caller can show
    the first errors and a preview before committing to an import.
    """
    logger.info("Received /imports/validate request for entity type '%s'", request.entity_type)
    try:
        table = parse_with_cache(request.csv_data, cache)
        store = build_store(session_factory)
        report = validate_csv(
            request.csv_data,
            request.entity_type,
            request.field_mapping,
            store.projects,
            raw_table=table,
        )
    except UnknownEntityTypeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ValidationReportResponse(**report.to_dict())


@router.get("/fields/{entity_type}", response_model=EntityFieldsResponse)
def list_entity_fields_endpoint(entity_type: str):
    """Required and optional target fields an entity type accepts."""
    try:
        fields = list_entity_fields(entity_type)
    except UnknownEntityTypeError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return EntityFieldsResponse(entity_type=entity_type, **fields)


@router.get("/templates/{entity_type}")
def download_template_endpoint(entity_type: str, include_examples: bool = True, jira_headers: bool = False):
    """CSV template for an entity type, optionally with sample rows and Jira-style headers."""
    try:
        if include_examples:
            content = generate_template(entity_type, jira_headers=jira_headers)
        else:
            content = generate_empty_template(entity_type, jira_headers=jira_headers)
        filename = template_file_name(entity_type, include_examples=include_examples, jira_headers=jira_headers)
    except UnknownEntityTypeError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/auto-map", response_model=AutoMapResponse)
def auto_map_endpoint(request: AutoMapRequest):
    """Suggest a field mapping from an uploaded file's headers."""
    headers = request.headers
    if not headers and request.csv_data:
        headers = parse_csv_headers(request.csv_data)

    try:
        mapping = auto_map_headers(headers, request.entity_type)
    except UnknownEntityTypeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    mapped_columns = set(mapping.values())
    return AutoMapResponse(
        entity_type=request.entity_type,
        field_mapping=mapping,
        unmapped_headers=[header for header in headers if header.strip() not in mapped_columns],
    )
