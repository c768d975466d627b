"""
Downloadable CSV templates and header auto-mapping.

Templates come in two header styles: the target field names themselves, or
the column names a Jira Data Center export uses. ``auto_map_headers`` goes the
other way and suggests a field mapping for an uploaded file's headers.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from tracker_import.domain.imports.rules import get_rule_set, resolve_entity_type
from tracker_import.domain.imports.types import EntityType, FieldMapping


@dataclass(frozen=True)
class TemplateConfig:
    headers: Tuple[str, ...]
    jira_headers: Tuple[str, ...]
    sample_rows: Tuple[Tuple[str, ...], ...]


TEMPLATE_CONFIGS: Dict[EntityType, TemplateConfig] = {
    EntityType.WORK_ITEM: TemplateConfig(
        headers=(
            "summary", "issue_type", "project_key", "description", "priority", "status",
            "assignee_email", "reporter_email", "story_points", "due_date", "labels", "epic_key",
        ),
        jira_headers=(
            "Summary", "Issue Type", "Project key", "Description", "Priority", "Status",
            "Assignee", "Reporter", "Story Points", "Due Date", "Labels", "Epic Link",
        ),
        sample_rows=(
            (
                "User login fails with error 500", "Bug", "PROJ",
                "When attempting to login, users receive a 500 error. Steps to reproduce: "
                "1. Go to login page 2. Enter credentials 3. Click submit",
                "High", "To Do", "john.doe@company.com", "jane.smith@company.com", "3", "2025-01-15",
                "bug,urgent", "PROJ-100",
            ),
            (
                "Implement password reset flow", "Story", "PROJ",
                "As a user, I want to reset my password so I can regain access to my account",
                "Medium", "In Progress", "alice.jones@company.com", "bob.wilson@company.com", "5", "2025-01-20",
                "feature,auth", "",
            ),
            (
                "Update API documentation", "Task", "PROJ",
                "Review and update all API endpoint documentation to reflect recent changes",
                "Low", "To Do", "", "jane.smith@company.com", "2", "2025-02-01",
                "documentation", "",
            ),
        ),
    ),
    EntityType.PROJECT: TemplateConfig(
        headers=("name", "key", "description", "lead_email", "project_type", "template"),
        jira_headers=("Project Name", "Project Key", "Description", "Lead", "Project Type", "Template"),
        sample_rows=(
            ("Customer Portal", "CUST", "Customer-facing web portal for order management and support",
             "admin@company.com", "software", "scrum"),
            ("Internal Tools", "INTL", "Internal tooling and automation projects",
             "devops@company.com", "software", "kanban"),
            ("Marketing Website", "MKTG", "Company marketing website redesign project",
             "marketing@company.com", "business", "basic"),
        ),
    ),
    EntityType.USER: TemplateConfig(
        headers=("email", "display_name", "department", "job_title", "location"),
        jira_headers=("Email", "Display Name", "Department", "Job Title", "Location"),
        sample_rows=(
            ("john.doe@company.com", "John Doe", "Engineering", "Senior Developer", "New York"),
            ("jane.smith@company.com", "Jane Smith", "Engineering", "Tech Lead", "San Francisco"),
            ("bob.wilson@company.com", "Bob Wilson", "Product", "Product Manager", "Chicago"),
        ),
    ),
}

# Jira Data Center export columns -> target fields. A target only applies when
# the entity type being imported declares it.
JIRA_HEADER_MAPPINGS: Dict[str, str] = {
    # Work items
    "Summary": "summary",
    "Issue Type": "issue_type",
    "Issue key": "issue_key",  # recognized, never imported
    "Project key": "project_key",
    "Project": "project_key",
    "Description": "description",
    "Priority": "priority",
    "Status": "status",
    "Assignee": "assignee_email",
    "Reporter": "reporter_email",
    "Story Points": "story_points",
    "Story points": "story_points",
    "Due Date": "due_date",
    "Due date": "due_date",
    "Labels": "labels",
    "Epic Link": "epic_key",
    "Epic Name": "epic_key",
    "Parent": "epic_key",
    # Projects
    "Project Name": "name",
    "Project Key": "key",
    "Lead": "lead_email",
    "Project Lead": "lead_email",
    "Project Type": "project_type",
    "Template": "template",
    # Users
    "Email": "email",
    "Email Address": "email",
    "Display Name": "display_name",
    "Full Name": "display_name",
    "Name": "display_name",
    "Department": "department",
    "Job Title": "job_title",
    "Title": "job_title",
    "Location": "location",
    "Office": "location",
}

# Human-readable labels, used as the last resort when matching headers.
FIELD_LABELS: Dict[EntityType, Dict[str, str]] = {
    EntityType.WORK_ITEM: {
        "summary": "Summary",
        "issue_type": "Issue Type",
        "project_key": "Project Key",
        "description": "Description",
        "priority": "Priority",
        "status": "Status",
        "assignee_email": "Assignee Email",
        "reporter_email": "Reporter Email",
        "story_points": "Story Points",
        "due_date": "Due Date",
        "labels": "Labels",
        "epic_key": "Epic Key",
    },
    EntityType.PROJECT: {
        "name": "Project Name",
        "key": "Project Key",
        "description": "Description",
        "lead_email": "Lead Email",
        "project_type": "Project Type",
        "template": "Template",
    },
    EntityType.USER: {
        "email": "Email",
        "display_name": "Display Name",
        "department": "Department",
        "job_title": "Job Title",
        "location": "Location",
    },
}

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


def escape_csv_field(field: str) -> str:
    """Quote a field containing a delimiter, quote, or newline; double inner quotes."""
    if "," in field or '"' in field or "\n" in field:
        return '"' + field.replace('"', '""') + '"'
    return field


def _csv_line(fields: Sequence[str]) -> str:
    return ",".join(escape_csv_field(field) for field in fields)


def _template_headers(config: TemplateConfig, jira_headers: bool) -> Tuple[str, ...]:
    return config.jira_headers if jira_headers else config.headers


def generate_template(entity_type: Union[str, EntityType], *, jira_headers: bool = False) -> str:
    """
    Header line plus sample rows for an entity type.

    Raises:
        UnknownEntityTypeError: If the entity type is not supported
    """
    config = TEMPLATE_CONFIGS[resolve_entity_type(entity_type)]
    lines = [_csv_line(_template_headers(config, jira_headers))]
    lines.extend(_csv_line(row) for row in config.sample_rows)
    return "\n".join(lines)


def generate_empty_template(entity_type: Union[str, EntityType], *, jira_headers: bool = False) -> str:
    """
    Header line only.

    Raises:
        UnknownEntityTypeError: If the entity type is not supported
    """
    config = TEMPLATE_CONFIGS[resolve_entity_type(entity_type)]
    return _csv_line(_template_headers(config, jira_headers))


def template_file_name(
    entity_type: Union[str, EntityType], *, include_examples: bool = True, jira_headers: bool = False
) -> str:
    resolved = resolve_entity_type(entity_type)
    suffix = "_jira_format" if jira_headers else ""
    examples = "_with_examples" if include_examples else "_empty"
    return f"{resolved.value}_template{suffix}{examples}.csv"


def _normalize_header(value: str) -> str:
    return _NON_ALPHANUMERIC.sub("_", value.lower())


def _match_header(header: str, entity_type: EntityType, fields: List[str]) -> Optional[str]:
    jira_target = JIRA_HEADER_MAPPINGS.get(header)
    if jira_target in fields:
        return jira_target

    normalized = _normalize_header(header)
    if normalized in fields:
        return normalized

    for field_name, label in FIELD_LABELS[entity_type].items():
        label_normalized = _normalize_header(label)
        if normalized == label_normalized or label_normalized in normalized or normalized in label_normalized:
            return field_name
    return None


def auto_map_headers(headers: Sequence[str], entity_type: Union[str, EntityType]) -> FieldMapping:
    """
    Suggest a ``target field -> source column`` mapping for raw CSV headers.

    Each header is tried against the Jira column names, then the field names
    themselves, then a fuzzy match on field labels. Unrecognized headers are
    left out; when two headers resolve to the same field the first one wins.

    Raises:
        UnknownEntityTypeError: If the entity type is not supported
    """
    rule_set = get_rule_set(entity_type)
    fields = list(rule_set.required) + list(rule_set.optional)

    mapping: FieldMapping = {}
    for raw_header in headers:
        header = raw_header.strip()
        if not header:
            continue
        target = _match_header(header, rule_set.entity_type, fields)
        if target is not None and target not in mapping:
            mapping[target] = header
    return mapping
