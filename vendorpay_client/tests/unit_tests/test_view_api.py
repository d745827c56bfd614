import pytest
from fastapi.testclient import TestClient

from shared.config.settings import settings
from shared.models.invoice import InvoiceStatus
from shared.models.user import UserRole
from shared.utils.logging_config import get_logger, setup_logging
from vendorpay_client.application.interfaces.di_container import DIContainer
from vendorpay_client.infrastructure.http.auth_session import AuthSession
from vendorpay_client.infrastructure.repositories.in_memory_api_client import InMemoryApiClient
from vendorpay_client.main import app

setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)


class TestViewApi:

    @pytest.fixture
    def backend(self):
        backend = InMemoryApiClient(AuthSession())
        backend.add_user("admin", "pw-admin", UserRole.ADMIN)
        employee = backend.add_user("employee", "pw-employee", UserRole.USER)
        vendor = backend.add_vendor("Acme Office Supplies", "Office")
        backend.add_invoice(employee, vendor, "120.00", "Printer toner cartridges", invoice_id=1)
        backend.add_invoice(employee, vendor, "60.00", "Stapler and staples", invoice_id=2,
                            status=InvoiceStatus.APPROVED)
        return backend

    @pytest.fixture
    def client(self, backend):
        app.state.container = DIContainer(settings, api_client=backend)
        with TestClient(app) as client:
            yield client

    def _login(self, client: TestClient, username: str, password: str) -> None:
        response = client.post("/api/v1/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200

    def test_health(self, client):
        response = client.get("/api/v1/health/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_checks_backend(self, client):
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["services"]["remote_api"] is True

    def test_login_and_me(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "admin", "password": "pw-admin"})
        assert response.status_code == 200
        assert response.json()["role"] == "Admin"

        assert client.get("/api/v1/auth/me").json()["username"] == "admin"

    def test_bad_credentials(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "admin", "password": "wrong"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid username or password"

    def test_missing_credentials_are_rejected_locally(self, client, backend):
        response = client.post("/api/v1/auth/login", json={"username": "", "password": ""})
        assert response.status_code == 422
        assert set(response.json()["detail"]["errors"]) == {"username", "password"}
        assert backend.request_log == []

    def test_unauthenticated_read_expires_session(self, client):
        response = client.get("/api/v1/invoices/")
        assert response.status_code == 401

        shown = client.get("/api/v1/notifications/").json()
        assert shown[-1]["title"] == "Session Expired"

    def test_list_and_filter_invoices(self, client):
        self._login(client, "admin", "pw-admin")

        everything = client.get("/api/v1/invoices/").json()
        pending = client.get("/api/v1/invoices/", params={"status": "Pending"}).json()

        assert {invoice["id"] for invoice in everything} == {1, 2}
        assert [invoice["id"] for invoice in pending] == [1]
        assert everything[0]["vendorName"] == "Acme Office Supplies"

    def test_reject_without_reason_is_422(self, client, backend):
        self._login(client, "admin", "pw-admin")
        calls_before = len(backend.request_log)

        response = client.patch("/api/v1/invoices/1/status", json={"status": "Rejected", "rejection_reason": " "})

        assert response.status_code == 422
        assert len(backend.request_log) == calls_before

    def test_approve_invoice(self, client):
        self._login(client, "admin", "pw-admin")
        client.get("/api/v1/invoices/1")

        response = client.patch("/api/v1/invoices/1/status", json={"status": "Approved"})

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "settled_success"
        assert body["data"]["status"] == "Approved"
        assert client.get("/api/v1/invoices/1", params={"force": True}).json()["status"] == "Approved"

        activity = client.get("/api/v1/invoices/1/activity").json()
        assert activity[0]["action"] == "Approved"
        logger.info("✓ test_approve_invoice passed")

    def test_employee_approval_is_forbidden(self, client):
        self._login(client, "employee", "pw-employee")
        client.get("/api/v1/invoices/")

        response = client.patch("/api/v1/invoices/1/status", json={"status": "Approved"})

        assert response.status_code == 403
        assert response.json()["detail"] == "Only Management and Admin can update invoice status"
        assert client.get("/api/v1/invoices/1").json()["status"] == "Pending"
        errors = [n for n in client.get("/api/v1/notifications/").json() if n["level"] == "error"]
        assert [n["title"] for n in errors] == ["Update Failed"]

    def test_delete_cached_approved_invoice_is_409(self, client):
        self._login(client, "employee", "pw-employee")
        client.get("/api/v1/invoices/")

        response = client.delete("/api/v1/invoices/2")

        assert response.status_code == 409

    def test_create_and_withdraw(self, client):
        self._login(client, "employee", "pw-employee")

        created = client.post("/api/v1/invoices/", json={
            "amount": "35.50",
            "description": "Parking at client site",
            "vendor_name": "City Parking",
        })
        assert created.status_code == 200
        invoice_id = created.json()["data"]["id"]

        withdrawn = client.post(f"/api/v1/invoices/{invoice_id}/withdraw")
        assert withdrawn.status_code == 200
        assert withdrawn.json()["data"]["status"] == "Withdrawn"

    def test_bulk_status(self, client):
        self._login(client, "admin", "pw-admin")

        response = client.post("/api/v1/invoices/bulk-status", json={"invoice_ids": [1, 2], "status": "Approved"})

        assert response.status_code == 200
        assert response.json()["data"] == {"message": "1 invoice(s) updated to Approved", "count": 1}

    def test_vendor_duplicate_name_is_422(self, client):
        self._login(client, "admin", "pw-admin")
        assert len(client.get("/api/v1/vendors/").json()) == 1

        response = client.post("/api/v1/vendors/", json={"name": "ACME Office Supplies", "category": "Office"})

        assert response.status_code == 422
        assert "name" in response.json()["detail"]["errors"]
