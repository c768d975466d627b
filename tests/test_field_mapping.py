from tracker_import.domain.imports.mapping import build_preview, map_row


HEADERS = ["Name", "Key", "Notes"]


def test_map_row_sets_non_empty_values():
    mapped = map_row(["Alpha", "AL1", "first"], HEADERS, {"name": "Name", "key": "Key"})
    assert mapped == {"name": "Alpha", "key": "AL1"}


def test_empty_cell_is_absent_not_empty_string():
    mapped = map_row(["Alpha", "", "x"], HEADERS, {"name": "Name", "key": "Key"})
    assert "key" not in mapped


def test_unknown_source_column_is_absent():
    mapped = map_row(["Alpha", "AL1", "x"], HEADERS, {"name": "Name", "lead_email": "Lead"})
    assert mapped == {"name": "Alpha"}


def test_short_row_is_tolerated():
    mapped = map_row(["Alpha"], HEADERS, {"name": "Name", "key": "Key"})
    assert mapped == {"name": "Alpha"}


def test_preview_limits_rows_and_keeps_empty_cells():
    rows = [[f"P{i}", "", ""] for i in range(8)]
    preview = build_preview(rows, HEADERS, {"name": "Name", "key": "Key"}, limit=5)
    assert len(preview) == 5
    assert preview[0] == {"name": "P0", "key": ""}
