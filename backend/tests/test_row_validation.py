"""Tests for row validation and normalization."""
import uuid

import pytest

from app.imports.coercion import MISSING
from app.imports.entities.category import CategoryImportHandler
from app.imports.entities.employee import EmployeeImportHandler
from app.imports.errors import RowError
from app.imports.references import ReferenceCatalog, ReferenceEntry
from app.imports.validation import validate_row, validate_rows
from app.imports.workbook import RawRow

MANAGER_ID = uuid.uuid4()
CASHIER_ID = uuid.uuid4()
MAIN_BRANCH_ID = uuid.uuid4()
EXISTING_USER_ID = uuid.uuid4()
DRINKS_ID = uuid.uuid4()


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _catalog() -> ReferenceCatalog:
    catalog = ReferenceCatalog()
    catalog.add_source("roles", [
        ReferenceEntry(MANAGER_ID, "manager", alias="Manager"),
        ReferenceEntry(CASHIER_ID, "cashier", alias="Cashier"),
    ])
    catalog.add_source("branches", [ReferenceEntry(MAIN_BRANCH_ID, "Main Branch")])
    catalog.add_source("categories", [ReferenceEntry(DRINKS_ID, "Drinks")])
    catalog.existing = {"known@example.com": EXISTING_USER_ID, "drinks": DRINKS_ID}
    return catalog


def _employee(row_number: int = 2, errors: list[str] | None = None, **overrides) -> RawRow:
    values = {
        "email": "new@example.com",
        "name": "New Person",
        "roleNames": ["Manager"],
        "branchNames": ["Main Branch"],
    }
    values.update(overrides)
    return RawRow(row_number=row_number, values=values, errors=errors or [])


# ─── validate_row ─────────────────────────────────────────────────────────────

def test_valid_row_resolves_references_to_ids():
    intent = validate_row(_employee(roleNames=["manager", "Cashier"]), EmployeeImportHandler(), _catalog())

    assert intent.is_update is False
    assert intent.target_id is None
    assert intent.natural_key == "new@example.com"
    assert intent.resolved_fields["roleIds"] == [MANAGER_ID, CASHIER_ID]
    assert intent.resolved_fields["branchIds"] == [MAIN_BRANCH_ID]


def test_existing_natural_key_classifies_as_update():
    intent = validate_row(_employee(email="KNOWN@example.com"), EmployeeImportHandler(), _catalog())

    assert intent.is_update is True
    assert intent.target_id == EXISTING_USER_ID


def test_missing_required_field():
    with pytest.raises(RowError, match="^Name is required$"):
        validate_row(_employee(name=MISSING), EmployeeImportHandler(), _catalog())


def test_coercion_errors_reported_first():
    row = _employee(name=MISSING, errors=["Salary: 'x' is not a valid number", "Joining Date: 'y' is not a valid date"])
    with pytest.raises(RowError) as exc:
        validate_row(row, EmployeeImportHandler(), _catalog())
    assert str(exc.value) == "Salary: 'x' is not a valid number; Joining Date: 'y' is not a valid date"


def test_invalid_choice_lists_allowed_values():
    with pytest.raises(RowError) as exc:
        validate_row(_employee(employmentType="seasonal"), EmployeeImportHandler(), _catalog())
    assert str(exc.value) == "Invalid Employment Type 'seasonal'. Must be one of: full_time, part_time, contract"


def test_choice_is_canonicalised():
    intent = validate_row(_employee(employmentType="Part_Time"), EmployeeImportHandler(), _catalog())
    assert intent.resolved_fields["employmentType"] == "part_time"


def test_unknown_reference_names_listed():
    with pytest.raises(RowError, match=r"^Role\(s\) not found: Sommelier, Bouncer$"):
        validate_row(_employee(roleNames=["Manager", "Sommelier", "Bouncer"]), EmployeeImportHandler(), _catalog())


def test_invalid_email_rejected():
    with pytest.raises(RowError, match="Invalid email format: not-an-email"):
        validate_row(_employee(email="not-an-email"), EmployeeImportHandler(), _catalog())


def test_auth_account_needs_password():
    with pytest.raises(RowError, match="Password of at least 8 characters"):
        validate_row(_employee(createAuthAccount=True, password="short"), EmployeeImportHandler(), _catalog())


def test_absent_reference_column_leaves_target_unset():
    row = RawRow(row_number=2, values={"name": "Soups"})
    intent = validate_row(row, CategoryImportHandler(), _catalog())

    assert "parentId" not in intent.resolved_fields


def test_blank_optional_reference_clears_target():
    row = RawRow(row_number=2, values={"name": "Soups", "parentName": None})
    intent = validate_row(row, CategoryImportHandler(), _catalog())

    assert intent.resolved_fields["parentId"] is None


def test_single_reference_resolves_to_one_id():
    row = RawRow(row_number=2, values={"name": "Juices", "parentName": "drinks"})
    intent = validate_row(row, CategoryImportHandler(), _catalog())

    assert intent.resolved_fields["parentId"] == DRINKS_ID


def test_category_cannot_parent_itself():
    row = RawRow(row_number=2, values={"name": "Drinks", "parentName": "DRINKS"})
    with pytest.raises(RowError, match="cannot be its own parent"):
        validate_row(row, CategoryImportHandler(), _catalog())


def test_category_display_order_must_be_whole():
    row = RawRow(row_number=2, values={"name": "Soups", "displayOrder": 1.5})
    with pytest.raises(RowError, match="Display Order must be a whole number"):
        validate_row(row, CategoryImportHandler(), _catalog())


# ─── validate_rows ────────────────────────────────────────────────────────────

def test_errors_are_row_tagged_and_valid_rows_kept():
    rows = [
        _employee(row_number=2, email="a@example.com"),
        _employee(row_number=3, email="b@example.com", name=MISSING),
        _employee(row_number=4, email="c@example.com"),
    ]
    result = validate_rows(rows, EmployeeImportHandler(), _catalog())

    assert [i.row_number for i in result.intents] == [2, 4]
    assert result.errors == ["Row 3: Name is required"]


def test_duplicate_natural_key_rejects_later_row():
    rows = [
        _employee(row_number=2, email="dup@example.com"),
        _employee(row_number=5, email="DUP@example.com", name="Second"),
    ]
    result = validate_rows(rows, EmployeeImportHandler(), _catalog())

    assert [i.row_number for i in result.intents] == [2]
    assert result.errors == ["Row 5: Duplicate Email 'DUP@example.com' (first seen on row 2)"]


def test_invalid_first_occurrence_does_not_block_later_row():
    rows = [
        _employee(row_number=2, email="dup@example.com", roleNames=["Ghost"]),
        _employee(row_number=3, email="dup@example.com"),
    ]
    result = validate_rows(rows, EmployeeImportHandler(), _catalog())

    assert [i.row_number for i in result.intents] == [3]
    assert result.errors == ["Row 2: Role(s) not found: Ghost"]
