"""
Synchronous validation of CSV input against an entity rule set.

Validation is stateless request/response: it never touches job state. It
collects every failure of every row (errors accumulate per field, never
short-circuit per row), then runs one bulk uniqueness query against the
store for entity types that declare a globally unique field.
"""
import logging
from typing import Dict, List, Optional, Set, Union

from tracker_import.core.config import settings
from tracker_import.db.repositories import ProjectRepository
from tracker_import.domain.imports.mapping import build_preview, map_row
from tracker_import.domain.imports.parser import parse_csv
from tracker_import.domain.imports.rules import EntityRuleSet, get_rule_set
from tracker_import.domain.imports.types import (
    EntityType,
    ErrorKind,
    FieldMapping,
    MappedRow,
    RawTable,
    ValidationErrorDetail,
    ValidationReport,
    row_number_for_index,
)

logger = logging.getLogger(__name__)


def check_required_fields(
    mapped: MappedRow,
    rule_set: EntityRuleSet,
    row_number: int,
) -> List[ValidationErrorDetail]:
    errors = []
    for field_name in rule_set.required:
        value = mapped.get(field_name)
        if value is None or not value.strip():
            errors.append(
                ValidationErrorDetail(
                    row=row_number,
                    field=field_name,
                    kind=ErrorKind.VALIDATION,
                    message=f'Required field "{field_name}" is missing or empty',
                    original_value=value,
                )
            )
    return errors


def check_field_values(
    mapped: MappedRow,
    rule_set: EntityRuleSet,
    row_number: int,
) -> List[ValidationErrorDetail]:
    """Run semantic checks against whichever fields the row provided."""
    errors = []
    for check in rule_set.checks:
        value = mapped.get(check.field)
        if value and not check.predicate(value):
            errors.append(
                ValidationErrorDetail(
                    row=row_number,
                    field=check.field,
                    kind=ErrorKind.VALIDATION,
                    message=check.message,
                    original_value=value,
                )
            )
    return errors


def validate_row(mapped: MappedRow, rule_set: EntityRuleSet, row_number: int) -> List[ValidationErrorDetail]:
    return check_required_fields(mapped, rule_set, row_number) + check_field_values(mapped, rule_set, row_number)


def find_duplicate_errors(
    mapped_rows: List[MappedRow],
    rule_set: EntityRuleSet,
    projects: ProjectRepository,
) -> List[ValidationErrorDetail]:
    """
    Flag every row whose unique field collides with data already in the store.

    Candidate values from all rows are looked up in a single bulk read, then
    matched back to rows, so the store is queried once regardless of row count.
    """
    field_name = rule_set.unique_field
    if not field_name:
        return []

    candidates: Dict[int, str] = {}
    for index, mapped in enumerate(mapped_rows):
        value = mapped.get(field_name)
        if value:
            candidates[index] = value.upper()

    if not candidates:
        return []

    existing = projects.find_by_unique_keys(set(candidates.values()))
    if not existing:
        return []

    errors = []
    for index, value in candidates.items():
        if value in existing:
            errors.append(
                ValidationErrorDetail(
                    row=row_number_for_index(index),
                    field=field_name,
                    kind=ErrorKind.DUPLICATE,
                    message=f'Project key "{value}" already exists',
                    original_value=value,
                )
            )
    return errors


def validate_csv(
    csv_data: str,
    entity_type: Union[str, EntityType],
    field_mapping: FieldMapping,
    projects: ProjectRepository,
    *,
    raw_table: Optional[RawTable] = None,
) -> ValidationReport:
    """
    Validate raw CSV text for one entity type and produce a report.

    ``total_rows`` and ``valid_rows`` cover the whole input; the error list is
    capped at ``settings.validation_error_limit`` and ordered by row number.
    A capped list still yields ``is_valid == False`` since any error
    invalidates the report.

    Raises:
        UnknownEntityTypeError: If ``entity_type`` is not supported
    """
    rule_set = get_rule_set(entity_type)
    table = raw_table if raw_table is not None else parse_csv(csv_data)

    errors: List[ValidationErrorDetail] = []
    mapped_rows: List[MappedRow] = []
    for index, row in enumerate(table.rows):
        mapped = map_row(row, table.headers, field_mapping)
        mapped_rows.append(mapped)
        errors.extend(validate_row(mapped, rule_set, row_number_for_index(index)))

    errors.extend(find_duplicate_errors(mapped_rows, rule_set, projects))
    errors.sort(key=lambda error: error.row)

    failing_rows: Set[int] = {error.row for error in errors}
    total_rows = len(table.rows)
    valid_rows = total_rows - len(failing_rows)

    logger.info(
        "Validated %d %s rows: %d valid, %d errors",
        total_rows,
        rule_set.entity_type.value,
        valid_rows,
        len(errors),
    )

    return ValidationReport(
        is_valid=not errors,
        total_rows=total_rows,
        valid_rows=valid_rows,
        errors=errors[:settings.validation_error_limit],
        preview=build_preview(table.rows, table.headers, field_mapping, limit=settings.preview_row_count),
        headers=table.headers,
    )
