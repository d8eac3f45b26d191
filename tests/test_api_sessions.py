"""
API tests for the session and sync routes.

The catalog service dependency is replaced by the in-memory fake.
"""

import base64

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from io import BytesIO

import services.session_service as session_module
import services.sync_service as sync_module
from main import app
from routes.catalog import catalog_service
from services.session_service import SessionStore


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


SESSION_BODY = {
    "supplier": "emile_et_ida",
    "records": [
        {"reference_code": "AD001", "variant_code": "CREME", "display_name": "Robe AD001 Creme"},
        {"reference_code": "AD002", "variant_code": "CREME", "display_name": "Robe AD002 Creme"},
        {"reference_code": "AD003", "variant_code": "ROSE", "display_name": "Blouse AD003 Rose"},
    ],
    "assets": [
        {"filename": "AD001-creme-1.jpg", "content_base64": _b64(b"one")},
        {"filename": "AD001-creme-2.jpg", "content_base64": _b64(b"two")},
        {"filename": "AD002-creme-1.jpg", "content_base64": _b64(b"three")},
        {"filename": "AD777-creme-1.jpg", "content_base64": _b64(b"orphan")},
    ],
}


@pytest.fixture(autouse=True)
def fresh_services(monkeypatch):
    """Each test gets its own session store and sync service."""
    monkeypatch.setattr(session_module, "_session_store", SessionStore(ttl_minutes=60))
    monkeypatch.setattr(sync_module, "_sync_service", None)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def catalog(fake_catalog):
    fake_catalog.add_product("AD001", "Creme")
    fake_catalog.add_product("AD002", "Creme")
    app.dependency_overrides[catalog_service] = lambda: fake_catalog
    return fake_catalog


class TestSessions:

    def test_create_session(self, client, catalog):
        # Act
        response = client.post("/api/sessions", json=SESSION_BODY)

        # Assert
        assert response.status_code == 201
        body = response.json()
        records = {r["key"]: r for r in body["records"]}
        assert [a["filename"] for a in records["AD001_CREME"]["assets"]] == [
            "AD001-creme-1.jpg",
            "AD001-creme-2.jpg",
        ]
        assert records["AD001_CREME"]["selected"] is True
        assert records["AD003_ROSE"]["assets"] == []
        assert [a["filename"] for a in body["unmatched"]] == ["AD777-creme-1.jpg"]
        assert body["stats"]["with_assets"] == 2
        assert "payload" not in records["AD001_CREME"]["assets"][0]

    def test_create_without_credentials_leaves_records_unchecked(self, client):
        response = client.post("/api/sessions", json=SESSION_BODY)

        assert response.status_code == 201
        statuses = {r["external"]["status"] for r in response.json()["records"]}
        assert statuses == {"unchecked"}

    def test_invalid_base64(self, client):
        body = {**SESSION_BODY, "assets": [{"filename": "AD001-creme-1.jpg", "content_base64": "***"}]}

        response = client.post("/api/sessions", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_ASSET_PAYLOAD"

    def test_unknown_supplier(self, client):
        response = client.post("/api/sessions", json={**SESSION_BODY, "supplier": "nobody"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SUPPLIER_PROFILE_NOT_FOUND"

    def test_unknown_session_error_format(self, client):
        response = client.get("/api/sessions/does-not-exist")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "SESSION_NOT_FOUND"
        assert "timestamp" in error

    def test_toggle_and_undo(self, client, catalog):
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        toggled = client.post(f"/api/sessions/{session_id}/records/AD001_CREME/toggle").json()
        undone = client.post(f"/api/sessions/{session_id}/undo").json()

        assert {r["key"]: r["selected"] for r in toggled["records"]}["AD001_CREME"] is False
        assert {r["key"]: r["selected"] for r in undone["records"]}["AD001_CREME"] is True

    def test_record_filters(self, client, catalog):
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        without = client.get(f"/api/sessions/{session_id}/records", params={"match_status": "without_assets"})
        searched = client.get(f"/api/sessions/{session_id}/records", params={"q": "blouse"})

        assert [r["key"] for r in without.json()["data"]] == ["AD003_ROSE"]
        assert searched.json()["total"] == 1

    def test_upload_non_image_rejected(self, client, catalog):
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        response = client.post(
            f"/api/sessions/{session_id}/records/AD003_ROSE/assets",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UNSUPPORTED_FILE_TYPE"

    def test_delete_session(self, client, catalog):
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        assert client.delete(f"/api/sessions/{session_id}").status_code == 204
        assert client.get(f"/api/sessions/{session_id}").status_code == 404


class TestSync:

    def test_sync_requires_credentials(self, client):
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        response = client.post(f"/api/sessions/{session_id}/sync")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "MISSING_CREDENTIALS"

    def test_sync_and_export(self, client, catalog):
        # Arrange
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        # Act
        summary = client.post(f"/api/sessions/{session_id}/sync").json()
        results = client.get(f"/api/sessions/{session_id}/sync/results").json()
        export = client.get(f"/api/sessions/{session_id}/sync/results/export")

        # Assert
        assert summary["status"] == "done"
        assert summary["succeeded"] == 2
        assert summary["assets_uploaded"] == 3
        assert [r["record_key"] for r in results] == ["AD001_CREME", "AD002_CREME"]
        assert len(catalog.uploads) == 3

        assert export.status_code == 200
        assert export.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "sync_results_emile_et_ida_" in export.headers["content-disposition"]
        ws = load_workbook(BytesIO(export.content))["Results"]
        assert ws["A6"].value == "AD001_CREME"

    def test_overwrite_needs_confirmation(self, client, fake_catalog):
        # Arrange
        fake_catalog.add_product("AD001", "Creme", existing=2)
        app.dependency_overrides[catalog_service] = lambda: fake_catalog
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]
        client.post(f"/api/sessions/{session_id}/records/AD001_CREME/toggle")

        # Act
        gated = client.post(f"/api/sessions/{session_id}/sync").json()
        blocked = client.post(f"/api/sessions/{session_id}/records/AD001_CREME/toggle")
        confirmed = client.post(f"/api/sessions/{session_id}/sync/confirm").json()

        # Assert
        assert gated["status"] == "confirming"
        assert gated["overwrite_keys"] == ["AD001_CREME"]
        assert blocked.status_code == 409
        assert confirmed["status"] == "done"
        assert confirmed["succeeded"] == 1

    def test_cancel_when_idle(self, client, catalog):
        session_id = client.post("/api/sessions", json=SESSION_BODY).json()["session_id"]

        response = client.post(f"/api/sessions/{session_id}/sync/cancel")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


def test_list_suppliers(client):
    response = client.get("/api/catalog/suppliers")

    names = [s["name"] for s in response.json()["data"]]
    assert "emile_et_ida" in names
