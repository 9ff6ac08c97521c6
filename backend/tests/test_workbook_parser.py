"""Tests for workbook parsing: header detection, column mapping, row extraction."""
import io
import re
import zipfile

import pytest

from app.imports.entities.category import CATEGORY_IMPORT
from app.imports.entities.employee import EMPLOYEE_IMPORT
from app.imports.errors import StructuralImportError
from app.imports.schema import EntityImportConfig, FieldDefinition
from app.imports.template import generate_sample
from app.imports.workbook import cell_value, parse_workbook

from tests.conftest import make_workbook

EMPLOYEE_HEADER = ["Email*", "Name*", "Role Names*", "Branch Names*"]


# ─── Header detection ─────────────────────────────────────────────────────────

def test_header_found_below_title_rows():
    content = make_workbook([
        ["Staff list — March"],
        [],
        EMPLOYEE_HEADER,
        ["jane@example.com", "Jane", "Manager", "Main Branch"],
    ])
    sheet = parse_workbook(content, EMPLOYEE_IMPORT)

    assert sheet.header_row == 3
    assert len(sheet.rows) == 1
    assert sheet.rows[0].row_number == 4
    assert sheet.rows[0].values["email"] == "jane@example.com"


def test_header_matches_field_names_case_insensitively():
    content = make_workbook([
        ["EMAIL", "name", "roleNames", "BranchNames", "Phone"],
        ["a@example.com", "A", "Manager", "Main Branch", "555"],
    ])
    sheet = parse_workbook(content, EMPLOYEE_IMPORT)

    assert set(sheet.columns) == {"email", "name", "roleNames", "branchNames", "phone"}
    assert sheet.rows[0].values["phone"] == "555"


def test_unknown_columns_are_ignored():
    content = make_workbook([
        ["Name*", "Notes", "Description"],
        ["Drinks", "ignore me", "Cold and hot"],
    ])
    sheet = parse_workbook(content, CATEGORY_IMPORT)

    assert sheet.rows[0].values == {"name": "Drinks", "description": "Cold and hot"}


def test_fully_qualifying_header_preferred_over_earlier_partial_match():
    small = EntityImportConfig(
        entity_type="thing",
        natural_key="code",
        fields=(FieldDefinition("code", "Code", required=True), FieldDefinition("label", "Label")),
    )
    content = make_workbook([
        ["Code"],
        ["Code", "Label"],
        ["A1", "First"],
    ])
    sheet = parse_workbook(content, small)

    assert sheet.header_row == 2
    assert [r.values["code"] for r in sheet.rows] == ["A1"]


def test_missing_required_columns_is_structural():
    content = make_workbook([
        ["Email", "Name"],
        ["a@example.com", "A"],
    ])
    with pytest.raises(StructuralImportError) as exc:
        parse_workbook(content, EMPLOYEE_IMPORT)
    assert str(exc.value) == "Missing required columns: Role Names, Branch Names"


def test_no_header_within_scan_window():
    rows = [["filler"]] * 12 + [EMPLOYEE_HEADER]
    with pytest.raises(StructuralImportError, match="No header row found"):
        parse_workbook(make_workbook(rows), EMPLOYEE_IMPORT, scan_rows=10)


def test_unreadable_file_is_structural():
    with pytest.raises(StructuralImportError, match="Unable to read workbook"):
        parse_workbook(b"this is not a spreadsheet", EMPLOYEE_IMPORT)


# ─── Row extraction ───────────────────────────────────────────────────────────

def test_blank_rows_skipped_but_row_numbers_kept():
    content = make_workbook([
        EMPLOYEE_HEADER,
        ["a@example.com", "A", "Manager", "Main Branch"],
        [None, None, None, None],
        ["b@example.com", "B", "Cashier", "Main Branch"],
    ])
    sheet = parse_workbook(content, EMPLOYEE_IMPORT)

    assert [r.row_number for r in sheet.rows] == [2, 4]


def _with_dimension(content: bytes, ref: str) -> bytes:
    """Rewrite the first sheet's stored <dimension>, as some producers leave it stale."""
    src = zipfile.ZipFile(io.BytesIO(content))
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as dst:
        for item in src.infolist():
            data = src.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                data = re.sub(rb'<dimension ref="[^"]*"\s*/>', f'<dimension ref="{ref}"/>'.encode(), data)
            dst.writestr(item, data)
    return out.getvalue()


def test_stale_sheet_dimension_does_not_drop_rows():
    content = _with_dimension(make_workbook([
        EMPLOYEE_HEADER,
        ["a@example.com", "A", "Manager", "Main Branch"],
        ["b@example.com", "B", "Cashier", "Main Branch"],
        ["c@example.com", "C", "Cashier", "Airport Kiosk"],
    ]), "A1:D2")
    sheet = parse_workbook(content, EMPLOYEE_IMPORT)

    assert [r.row_number for r in sheet.rows] == [2, 3, 4]


def test_short_rows_pad_missing_cells():
    content = make_workbook([
        EMPLOYEE_HEADER,
        ["a@example.com", "A"],
    ])
    sheet = parse_workbook(content, EMPLOYEE_IMPORT)
    row = sheet.rows[0]

    # required array columns present in the header but empty in the row
    assert row.values["email"] == "a@example.com"
    assert not row.values["roleNames"]


def test_coercion_failure_recorded_on_row():
    content = make_workbook([
        EMPLOYEE_HEADER + ["Salary"],
        ["a@example.com", "A", "Manager", "Main Branch", "lots"],
    ])
    sheet = parse_workbook(content, EMPLOYEE_IMPORT)
    row = sheet.rows[0]

    assert row.values["salary"] is None
    assert row.errors == ["Salary: 'lots' is not a valid number"]


def test_template_instruction_and_example_rows():
    """A freshly generated template parses to exactly its example row."""
    sheet = parse_workbook(generate_sample(CATEGORY_IMPORT), CATEGORY_IMPORT)

    assert sheet.header_row == 1
    assert len(sheet.rows) == 1
    assert sheet.rows[0].row_number == 3
    assert sheet.rows[0].values["name"] == "Main Dishes"


# ─── Cell values ──────────────────────────────────────────────────────────────

class _RichText:
    text = "Rendered"


class _Broken:
    @property
    def text(self):
        raise ValueError("corrupt")

    def __str__(self):
        raise ValueError("corrupt")


def test_cell_value_renders_structured_values():
    assert cell_value(_RichText()) == "Rendered"
    assert cell_value(12) == 12


def test_unreadable_cell_becomes_empty():
    assert cell_value(_Broken()) is None
