"""
Date parsing utilities for flexible date format handling.

Due dates arrive in whatever format the exporting tool produced. This module
parses them leniently and standardizes them to ISO 8601 calendar dates.
"""

import logging
import re
from datetime import date
from typing import Any, Optional

import pandas as pd

from tracker_import.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

# Accepted by pandas but resolved against the clock at parse time.
RELATIVE_DATE_KEYWORDS = {"now", "today", "tomorrow", "yesterday"}

_failure_stats: dict = {}


def _record_parse_failure(value: Any, context: Optional[str], error: Exception) -> None:
    """
    Collect failure stats and emit limited logs (sampled warnings + periodic summaries).
    """
    key = context or "default"
    stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
    stats["count"] += 1
    count = stats["count"]

    if len(stats["samples"]) < FAILED_SAMPLE_LIMIT:
        stats["samples"].append(value)
        logger.warning("Failed to parse date%s value '%s': %s", f" ({key})" if context else "", value, error)
        return

    # Emit a single summary when suppression starts, then periodically.
    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse warnings after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            stats["samples"],
        )


def _prefers_dayfirst(value: str) -> Optional[bool]:
    numeric_match = re.match(r'^(\d{1,2})[/.-](\d{1,2})[/.-]\d{2,4}', value)
    if not numeric_match:
        return None

    first = int(numeric_match.group(1))
    second = int(numeric_match.group(2))
    if first > 12 and second <= 31:
        return True
    if second > 12 and first <= 12:
        return False
    return settings.date_default_dayfirst


def parse_flexible_date(value: Any, *, log_context: Optional[str] = None, log_failures: bool = True) -> Optional[date]:
    """
    Parse a date value from various formats.

    Supports formats:
    - ISO 8601: "2024-09-04T23:09:18Z"
    - DD/MM/YYYY: "20/10/2025"
    - MM/DD/YYYY: "10/20/2025"
    - YYYY-MM-DD: "2025-10-20"
    - And many others via pandas inference

    Returns:
        The calendar date, or None if parsing fails
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
        if value.lower() in RELATIVE_DATE_KEYWORDS:
            if log_failures:
                _record_parse_failure(value, log_context, ValueError("Relative dates are not accepted"))
            return None

    parse_attempts = []
    dayfirst = _prefers_dayfirst(value) if isinstance(value, str) else None
    if dayfirst is not None:
        parse_attempts.append(lambda v, df=dayfirst: pd.to_datetime(v, utc=True, dayfirst=df, errors='raise'))
        # Always try the alternate interpretation as a fallback
        parse_attempts.append(lambda v, df=not dayfirst: pd.to_datetime(v, utc=True, dayfirst=df, errors='raise'))

    # Fallback: let pandas infer the format
    parse_attempts.append(lambda v: pd.to_datetime(v, utc=True, errors='raise'))

    last_error = None
    for attempt in parse_attempts:
        try:
            parsed = attempt(value)
        except (ValueError, TypeError, OverflowError) as exc:
            last_error = exc
            continue
        if pd.isna(parsed):
            last_error = ValueError("Parsed to NaT")
            continue
        return parsed.date()

    if log_failures:
        _record_parse_failure(value, log_context, last_error or ValueError("Unable to determine format"))
    return None
