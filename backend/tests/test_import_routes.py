"""Tests for the /api/v1/import endpoints."""
import io
import uuid
from unittest.mock import patch

import pytest
from httpx import AsyncClient, ASGITransport
from openpyxl import load_workbook

from app.api.v1.import_routes import XLSX_MEDIA_TYPE, get_enrichment_dispatcher, get_import_store
from app.core.config import settings
from app.core.deps import get_current_user
from app.core.limiter import limiter
from app.main import app

from tests.conftest import TENANT_ID, FakeImportStore, RecordingDispatcher, make_workbook


# ─── Fixtures ─────────────────────────────────────────────────────────────────

class FakeUser:
    """Minimal user stub for dependency overrides."""

    def __init__(self, role: str = "manager"):
        self.id = uuid.UUID("f96955d0-752f-4e0c-b1dc-d26d8dd1460e")
        self.tenant_id = TENANT_ID
        self.email = "manager@example.com"
        self.name = "Shift Manager"
        self.role = role
        self.is_active = True
        self.deleted_at = None


@pytest.fixture
def overrides(seeded_store: FakeImportStore):
    """Route dependencies wired to in-memory fakes; yields (store, dispatcher, set_role)."""
    dispatcher = RecordingDispatcher()
    user = FakeUser()

    def set_role(role: str) -> None:
        user.role = role

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_import_store] = lambda: seeded_store
    app.dependency_overrides[get_enrichment_dispatcher] = lambda: dispatcher
    limiter.reset()
    try:
        yield seeded_store, dispatcher, set_role
    finally:
        app.dependency_overrides.clear()


def _upload(content: bytes, filename: str = "staff.xlsx") -> dict:
    return {"file": (filename, content, XLSX_MEDIA_TYPE)}


def _staff_workbook() -> bytes:
    return make_workbook([
        ["Email*", "Name*", "Role Names*", "Branch Names*"],
        ["a@example.com", "Alice", "Manager", "Main Branch"],
        ["b@example.com", "", "Cashier", "Main Branch"],
        ["c@example.com", "Carol", "Cashier", "Airport Kiosk"],
    ])


# ─── GET /import/entities ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_entities(overrides):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/import/entities")

    assert response.status_code == 200
    data = {e["entity_type"]: e for e in response.json()}
    assert set(data) == {"employee", "category"}
    assert data["employee"]["natural_key"] == "email"
    assert data["category"]["reference_sheets"] == ["Categories"]
    name = next(f for f in data["category"]["fields"] if f["name"] == "name")
    assert name["required"] is True
    assert name["translate"] is True


@pytest.mark.asyncio
async def test_role_not_permitted_returns_403(overrides):
    _, _, set_role = overrides
    set_role("cashier")
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/import/employee", files=_upload(_staff_workbook()))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_token_returns_401():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/import/entities")

    assert response.status_code == 401


# ─── POST /import/{entity_type} ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_import_returns_outcome(overrides):
    store, dispatcher, _ = overrides
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/import/employee", files=_upload(_staff_workbook()))

    assert response.status_code == 200
    assert response.json() == {"success": 2, "failed": 1, "errors": ["Row 3: Name is required"]}
    assert len(store.rows("users")) == 2
    assert len(dispatcher.jobs) == 1


@pytest.mark.asyncio
async def test_dry_run_does_not_write(overrides):
    store, dispatcher, _ = overrides
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            "/api/v1/import/employee", params={"dry_run": "true"}, files=_upload(_staff_workbook()),
        )

    assert response.status_code == 200
    assert response.json()["success"] == 2
    assert store.rows("users") == {}
    assert dispatcher.jobs == []


@pytest.mark.asyncio
async def test_unknown_entity_returns_404(overrides):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/import/invoice", files=_upload(_staff_workbook()))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_structural_error_returns_422(overrides):
    content = make_workbook([["Email", "Name"], ["a@example.com", "A"]])
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/import/employee", files=_upload(content))

    assert response.status_code == 422
    assert response.json()["detail"] == "Missing required columns: Role Names, Branch Names"


@pytest.mark.asyncio
async def test_not_a_workbook_returns_422(overrides):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/import/employee", files=_upload(b"a,b,c\n1,2,3", "staff.csv"))

    assert response.status_code == 422
    assert response.json()["detail"].startswith("Unable to read workbook")


@pytest.mark.asyncio
async def test_oversize_file_returns_413(overrides):
    store, _, _ = overrides
    with patch.object(settings, "IMPORT_MAX_FILE_BYTES", 100):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/v1/import/employee", files=_upload(_staff_workbook()))

    assert response.status_code == 413
    assert store.reference_reads == {}


# ─── GET template / export ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_download_template(overrides):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/import/employee/template")

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert 'filename="employee_import_template.xlsx"' in response.headers["content-disposition"]
    wb = load_workbook(io.BytesIO(response.content))
    assert [r[0] for r in wb["Roles"].iter_rows(min_row=2, values_only=True)] == ["cashier", "chef", "manager"]


@pytest.mark.asyncio
async def test_download_export(overrides):
    store, _, _ = overrides
    store.export_rows = [{"name": "Drinks", "categoryType": "beverage", "displayOrder": 1, "isActive": True}]
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/import/category/export")

    assert response.status_code == 200
    ws = load_workbook(io.BytesIO(response.content)).worksheets[0]
    assert ws["A2"].value == "Drinks"


@pytest.mark.asyncio
async def test_template_unknown_entity_returns_404(overrides):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/import/invoice/template")

    assert response.status_code == 404
