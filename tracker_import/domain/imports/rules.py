"""
Per-entity rule sets: which fields are required, which are optional, and the
semantic checks applied to provided values.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from tracker_import.domain.imports.errors import UnknownEntityTypeError
from tracker_import.domain.imports.types import EntityType
from tracker_import.domain.imports.validators import (
    is_valid_date,
    is_valid_email,
    is_valid_number,
    is_valid_project_key,
)


@dataclass(frozen=True)
class FieldCheck:
    field: str
    predicate: Callable[[str], bool]
    message: str


@dataclass(frozen=True)
class EntityRuleSet:
    entity_type: EntityType
    required: Tuple[str, ...]
    optional: Tuple[str, ...]
    checks: Tuple[FieldCheck, ...] = ()
    # Field whose values must be unique across the persisted store.
    unique_field: Optional[str] = None


RULE_SETS: Dict[EntityType, EntityRuleSet] = {
    EntityType.WORK_ITEM: EntityRuleSet(
        entity_type=EntityType.WORK_ITEM,
        required=("summary", "issue_type", "project_key"),
        optional=(
            "description",
            "priority",
            "status",
            "assignee_email",
            "reporter_email",
            "story_points",
            "due_date",
            "labels",
            "epic_key",
        ),
        checks=(
            FieldCheck("story_points", is_valid_number, "Story points must be a number"),
            FieldCheck("due_date", is_valid_date, "Due date must be a valid date"),
        ),
    ),
    EntityType.PROJECT: EntityRuleSet(
        entity_type=EntityType.PROJECT,
        required=("name", "key"),
        optional=("description", "lead_email", "project_type", "template"),
        checks=(
            FieldCheck(
                "key",
                is_valid_project_key,
                "Project key must be 2-10 uppercase alphanumeric characters starting with a letter",
            ),
        ),
        unique_field="key",
    ),
    EntityType.USER: EntityRuleSet(
        entity_type=EntityType.USER,
        required=("email",),
        optional=("display_name", "department", "job_title", "location"),
        checks=(FieldCheck("email", is_valid_email, "Invalid email format"),),
    ),
}


def resolve_entity_type(entity_type: Union[str, EntityType]) -> EntityType:
    """
    Raises:
        UnknownEntityTypeError: If the value names no supported entity type
    """
    if isinstance(entity_type, EntityType):
        return entity_type
    try:
        return EntityType(entity_type)
    except ValueError:
        raise UnknownEntityTypeError(str(entity_type)) from None


def get_rule_set(entity_type: Union[str, EntityType]) -> EntityRuleSet:
    return RULE_SETS[resolve_entity_type(entity_type)]


def list_entity_fields(entity_type: Union[str, EntityType]) -> Dict[str, List[str]]:
    rule_set = get_rule_set(entity_type)
    return {"required": list(rule_set.required), "optional": list(rule_set.optional)}
