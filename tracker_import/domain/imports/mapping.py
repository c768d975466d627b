"""
Project raw CSV rows onto logical target fields.
"""
from typing import Any, Dict, List, Optional, Sequence

from tracker_import.domain.imports.types import FieldMapping, MappedRow


def _column_index(headers: Sequence[str], source_column: str) -> Optional[int]:
    try:
        return list(headers).index(source_column)
    except ValueError:
        return None


def map_row(row: Sequence[str], headers: Sequence[str], mapping: FieldMapping) -> MappedRow:
    """
    Build a ``target field -> value`` record for one row.

    A target is only set when its source column exists and the cell is
    non-empty; otherwise the key is absent, meaning "not provided".
    """
    mapped: MappedRow = {}
    for target_field, source_column in mapping.items():
        index = _column_index(headers, source_column)
        if index is None or index >= len(row):
            continue
        value = row[index]
        if value:
            mapped[target_field] = value
    return mapped


def build_preview(
    rows: List[List[str]],
    headers: Sequence[str],
    mapping: FieldMapping,
    limit: int = 5,
) -> List[Dict[str, Any]]:
    """
    Mapped values of the first ``limit`` rows, valid or not.

    Empty cells are kept as empty strings so the caller sees exactly what
    the row contains.
    """
    preview: List[Dict[str, Any]] = []
    for row in rows[:limit]:
        preview_row: Dict[str, Any] = {}
        for target_field, source_column in mapping.items():
            index = _column_index(headers, source_column)
            if index is not None and index < len(row):
                preview_row[target_field] = row[index]
        preview.append(preview_row)
    return preview
