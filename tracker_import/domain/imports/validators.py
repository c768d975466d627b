"""
Preset validators for field-shape checks during imports.

Every regex here uses bounded quantifiers, and callers cap input length
before matching, so adversarial values cannot trigger catastrophic
backtracking.
"""

import math
import re
from typing import Optional

from tracker_import.core.config import settings
from tracker_import.utils.date import parse_flexible_date


PRESET_PATTERNS = {
    # Local part 1-64 chars, domain 1-253 chars, TLD 2-63 chars
    "email": r"^[^\s@]{1,64}@[^\s@]{1,253}\.[^\s@]{2,63}$",
    # Applied to the upper-cased value
    "project_key": r"^[A-Z][A-Z0-9]{1,9}$",
}

# Upper bound on input length per preset, checked before the regex runs.
PRESET_MAX_LENGTHS = {
    "email": settings.email_max_length,
    "project_key": 10,
}

_COMPILED = {name: re.compile(pattern) for name, pattern in PRESET_PATTERNS.items()}


def matches_preset(value: str, preset_name: str) -> bool:
    """
    Check a value against a preset pattern, rejecting overlong input first.

    Raises:
        KeyError: If the preset does not exist
    """
    compiled = _COMPILED[preset_name]
    max_length = PRESET_MAX_LENGTHS.get(preset_name)
    if max_length is not None and len(value) > max_length:
        return False
    return compiled.fullmatch(value) is not None


def is_valid_email(value: str) -> bool:
    return matches_preset(value, "email")


def is_valid_project_key(value: str) -> bool:
    return matches_preset(value.upper(), "project_key")


def parse_number(value: str) -> Optional[float]:
    """Parse a finite number, returning None when the value is not numeric."""
    try:
        number = float(value.strip())
    except (ValueError, AttributeError):
        return None
    if not math.isfinite(number):
        return None
    return number


def is_valid_number(value: str) -> bool:
    return parse_number(value) is not None


def is_valid_date(value: str) -> bool:
    return parse_flexible_date(value, log_context="due_date", log_failures=False) is not None
