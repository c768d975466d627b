import pytest

from tracker_import.domain.imports.errors import UnknownEntityTypeError
from tracker_import.domain.imports.parser import parse_csv
from tracker_import.domain.imports.templates import (
    JIRA_HEADER_MAPPINGS,
    TEMPLATE_CONFIGS,
    auto_map_headers,
    escape_csv_field,
    generate_empty_template,
    generate_template,
    template_file_name,
)
from tracker_import.domain.imports.types import EntityType
from tracker_import.domain.imports.validation import validate_csv


class EmptyProjects:
    def find_by_unique_keys(self, keys):
        return set()


class TestEscapeCsvField:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("plain", "plain"),
            ("a,b", '"a,b"'),
            ('say "hi"', '"say ""hi"""'),
            ("two\nlines", '"two\nlines"'),
        ],
    )
    def test_escaping(self, value, expected):
        assert escape_csv_field(value) == expected


class TestGenerateTemplate:
    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_sample_rows_parse_back_unchanged(self, entity_type):
        config = TEMPLATE_CONFIGS[entity_type]

        table = parse_csv(generate_template(entity_type))

        assert table.headers == list(config.headers)
        assert table.rows == [list(row) for row in config.sample_rows]

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_header_styles_line_up(self, entity_type):
        config = TEMPLATE_CONFIGS[entity_type]
        assert len(config.headers) == len(config.jira_headers)
        assert all(len(row) == len(config.headers) for row in config.sample_rows)

    def test_jira_headers(self):
        header_line = generate_template("work_item", jira_headers=True).split("\n")[0]
        assert header_line.startswith("Summary,Issue Type,Project key")

    def test_empty_template_is_header_only(self):
        assert generate_empty_template("user") == "email,display_name,department,job_title,location"
        assert "\n" not in generate_empty_template("project", jira_headers=True)

    def test_unknown_entity_type(self):
        with pytest.raises(UnknownEntityTypeError, match="Unknown import type"):
            generate_template("epic")

    def test_file_names(self):
        assert template_file_name("project") == "project_template_with_examples.csv"
        assert template_file_name("user", include_examples=False, jira_headers=True) == (
            "user_template_jira_format_empty.csv"
        )

    @pytest.mark.parametrize("jira_headers", [False, True])
    def test_project_template_validates_with_suggested_mapping(self, jira_headers):
        csv_data = generate_template("project", jira_headers=jira_headers)
        mapping = auto_map_headers(parse_csv(csv_data).headers, "project")

        report = validate_csv(csv_data, "project", mapping, EmptyProjects())

        assert report.is_valid
        assert report.valid_rows == 3


class TestAutoMapHeaders:
    def test_jira_headers(self):
        mapping = auto_map_headers(["Summary", "Issue Type", "Project key", "Description"], "work_item")
        assert mapping == {
            "summary": "Summary",
            "issue_type": "Issue Type",
            "project_key": "Project key",
            "description": "Description",
        }

    def test_field_names_map_directly(self):
        assert auto_map_headers(["summary", "issue_type"], "work_item") == {
            "summary": "summary",
            "issue_type": "issue_type",
        }

    def test_project_headers(self):
        mapping = auto_map_headers(["Project Name", "Project Key", "Lead"], "project")
        assert mapping == {"name": "Project Name", "key": "Project Key", "lead_email": "Lead"}

    def test_jira_target_outside_entity_falls_back_to_field_name(self):
        # "Name" is a user column in Jira exports but a field of its own for projects.
        assert auto_map_headers(["Name"], "project") == {"name": "Name"}
        assert auto_map_headers(["Name"], "user") == {"display_name": "Name"}

    def test_label_match(self):
        assert auto_map_headers(["Assignee Email Address"], "work_item") == {"assignee_email": "Assignee Email Address"}

    def test_unrecognized_and_blank_headers_are_skipped(self):
        assert auto_map_headers(["Unknown Header", "  ", "Priority"], "work_item") == {"priority": "Priority"}

    def test_first_header_wins(self):
        assert auto_map_headers(["Story Points", "Story points"], "work_item") == {"story_points": "Story Points"}

    def test_issue_key_is_never_mapped(self):
        assert JIRA_HEADER_MAPPINGS["Issue key"] == "issue_key"
        assert auto_map_headers(["Issue key"], "work_item") == {}
