from typing import List
import logging

from tracker_import.domain.imports.types import RawTable

logger = logging.getLogger(__name__)

QUOTE = '"'
DELIMITER = ","


def parse_csv_line(line: str) -> List[str]:
    """
    Split one physical line into fields.

    A double quote toggles the "inside quotes" state unless it is an escaped
    pair (``""``) inside a quoted section, which emits a single literal quote.
    Commas only terminate a field outside of quotes. Every field is stripped
    of surrounding whitespace.

    Malformed quoting never raises: an unterminated quote simply keeps the
    rest of the line in the current field.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == QUOTE:
            if in_quotes and i + 1 < length and line[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == DELIMITER and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def _split_lines(csv_data: str) -> List[str]:
    # Leading/trailing blank lines are dropped; interior blank lines stay so
    # that row numbers keep matching physical lines.
    stripped = csv_data.strip()
    if not stripped:
        return []
    return stripped.split("\n")


def parse_csv(csv_data: str) -> RawTable:
    """
    Parse delimited text into a header row and data rows.

    Quoted fields may not span physical lines.
    """
    lines = _split_lines(csv_data)
    if not lines:
        return RawTable(headers=[], rows=[])

    headers = parse_csv_line(lines[0])
    rows = [parse_csv_line(line) for line in lines[1:]]
    logger.debug("Parsed CSV input: %d columns, %d data rows", len(headers), len(rows))
    return RawTable(headers=headers, rows=rows)


def parse_csv_headers(csv_data: str) -> List[str]:
    lines = _split_lines(csv_data)
    if not lines:
        return []
    return parse_csv_line(lines[0])


def count_csv_rows(csv_data: str) -> int:
    """Number of data rows, excluding the header."""
    return max(0, len(_split_lines(csv_data)) - 1)
