"""
ANWAR CRM - HTTP API tests (FastAPI TestClient, in-memory database)
Run: pytest tests/test_routes.py -v
"""

import pytest
from fastapi.testclient import TestClient

from anwar_crm import config
from anwar_crm.server import app
from anwar_crm.schema import DEMAND_GENERATION_REQUESTS, VISITS
from tests.helpers import _db_op, seed_employees, seed_rows, SR


@pytest.fixture
def client():
    return TestClient(app)


class TestRoutes:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["name"] == "Anwar Sales CRM API"
        assert body["status"] == "running"

    def test_version(self, client):
        assert client.get("/api/system/version").json()["tag"] == "anwar-crm-workflow"

    def test_health(self, client):
        response = client.get("/api/system/health")
        assert response.status_code == 200
        assert response.json()["status"] == "Critical"
        assert set(response.json()["modules"]) == {"configuration", "spreadsheets", "apis", "functions", "data"}

    def test_latest_health_report(self, client):
        assert client.get("/api/system/health/latest").status_code == 404

        client.get("/api/system/health")
        latest = client.get("/api/system/health/latest")
        assert latest.status_code == 200
        assert latest.json()["overall_status"] == "Critical"
        assert "_id" not in latest.json()

    def test_forms(self, client):
        forms = client.get("/api/forms").json()["forms"]
        assert "order" in forms
        assert "demand_generation" in forms

    def test_unknown_form(self, client):
        response = client.post("/api/forms/nope/submit", json={"values": []})
        assert response.status_code == 422

    def test_unknown_approval_entity(self, client):
        response = client.post("/api/approvals/nope/X-1/approve", json={})
        assert response.status_code == 404

    def test_unknown_approval_record(self, client):
        _db_op(seed_rows(DEMAND_GENERATION_REQUESTS, {"Request ID": "DGR-20250115-001"}))
        response = client.post("/api/approvals/demand_generation/DGR-20990101-001/approve", json={})
        assert response.status_code == 404

    def test_reject_requires_reason(self, client):
        response = client.post("/api/approvals/demand_generation/DGR-20250115-001/reject", json={})
        assert response.status_code == 422

    def test_missing_sheet(self, client):
        assert client.get("/api/sheets/Nope/rows").status_code == 404

    def test_sheet_rows_for_submitter(self, client):
        _db_op(seed_rows(DEMAND_GENERATION_REQUESTS,
                         {"Request ID": "DGR-20250115-001", "Email Address": SR.email},
                         {"Request ID": "DGR-20250115-002", "Email Address": "other@anwargroup.com"}))
        body = client.get(
            f"/api/sheets/{DEMAND_GENERATION_REQUESTS}/rows", params={"submitter": SR.email}
        ).json()
        assert body["count"] == 1
        assert body["rows"][0]["Request ID"] == "DGR-20250115-001"
        assert body["rows"][0]["row"] == 2

    def test_visit_followup(self, client):
        _db_op(seed_rows(VISITS, {"Visit ID": "V-20250115-001", "Status": "Submitted"}))
        response = client.post(
            "/api/visits/V-20250115-001/followup", json={"reason": "Client asked for samples", "actor": SR.email}
        )
        assert response.status_code == 200
        assert response.json()["record"]["Follow-up Required"] == "Yes"

        missing = client.post("/api/visits/V-20990101-001/followup", json={"reason": "x"})
        assert missing.status_code == 404

    def test_employees(self, client):
        _db_op(seed_employees(SR))
        body = client.get("/api/employees", params={"role": "sr"}).json()
        assert body["count"] == 1
        assert body["employees"][0]["email"] == SR.email

    def test_webhook_wrong_product(self, client, monkeypatch):
        monkeypatch.setattr(config, "MAYTAPI_PRODUCT_ID", "prod-123")
        response = client.post("/api/webhooks/maytapi", json={"product_id": "x", "phone_id": "1", "type": "ack"})
        assert response.status_code == 200
        assert response.json() == {"result": "UNAUTHORIZED"}
