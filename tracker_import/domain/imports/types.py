"""
Shared value types for the import pipeline.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EntityType(str, Enum):
    WORK_ITEM = "work_item"
    PROJECT = "project"
    USER = "user"


class ImportStatus(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    REFERENCE = "reference"
    SYSTEM = "system"


# Target field -> value. A missing key means "not provided".
MappedRow = Dict[str, str]
FieldMapping = Dict[str, str]


@dataclass
class RawTable:
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)


@dataclass
class ValidationErrorDetail:
    row: int
    field: str
    kind: ErrorKind
    message: str
    original_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "field": self.field,
            "kind": self.kind.value,
            "message": self.message,
            "original_value": self.original_value,
        }


@dataclass
class ValidationReport:
    is_valid: bool
    total_rows: int
    valid_rows: int
    errors: List[ValidationErrorDetail]
    preview: List[Dict[str, Any]]
    headers: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "errors": [error.to_dict() for error in self.errors],
            "preview": self.preview,
            "headers": self.headers,
        }


def row_number_for_index(index: int) -> int:
    """Physical line number of a data row (header is line 1, rows are 0-based)."""
    return index + 2
