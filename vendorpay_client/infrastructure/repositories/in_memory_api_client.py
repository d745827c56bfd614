"""
In-memory emulation of the VendorPay REST backend.

Selected with ``api_client_type = "in_memory"``. It answers the same routes
with the same JSON shapes and enforces the backend rules the client relies on
(ownership, role checks, pending-only edits, append-only activity log), so
the cache and mutation layers can run end to end without a server.
"""
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from shared.models.activity import ActivityAction
from shared.models.invoice import InvoiceStatus
from shared.models.user import UserRole
from shared.models.vendor import VendorStatus
from shared.utils.exceptions import NetworkException, ServerRejectedException, UnauthorizedException
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.infrastructure.http.auth_session import AuthSession

logger = get_logger(__name__)

SORT_FIELDS = {
    "amount": "amount",
    "createdat": "createdAt",
    "updatedat": "updatedAt",
    "vendorname": "vendorName",
    "status": "status",
    "description": "description",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _reject(status_code: int, message: str):
    raise ServerRejectedException(message, status_code=status_code, payload={"message": message})


class InMemoryApiClient(ApiClientInterface):

    def __init__(self, session: AuthSession):
        self.session = session
        self.users: Dict[int, dict] = {}
        self.vendors: Dict[int, dict] = {}
        self.invoices: Dict[int, dict] = {}
        self.activities: List[dict] = []
        self.request_log: List[Tuple[str, str]] = []
        self._tokens: Dict[str, int] = {}
        self._sequences = {"user": 0, "vendor": 0, "invoice": 0, "activity": 0}
        self._pending_failure: Optional[Tuple[int, Optional[str]]] = None
        self._routes: List[Tuple[str, re.Pattern, Callable]] = [
            ("GET", re.compile(r"/health"), self._health),
            ("POST", re.compile(r"/auth/login"), self._login),
            ("POST", re.compile(r"/auth/register"), self._register),
            ("GET", re.compile(r"/auth/me"), self._me),
            ("GET", re.compile(r"/invoice"), self._list_invoices),
            ("POST", re.compile(r"/invoice"), self._create_invoice),
            ("POST", re.compile(r"/invoice/bulk-status"), self._bulk_status),
            ("GET", re.compile(r"/invoice/(\d+)"), self._get_invoice),
            ("PUT", re.compile(r"/invoice/(\d+)"), self._update_invoice),
            ("DELETE", re.compile(r"/invoice/(\d+)"), self._delete_invoice),
            ("GET", re.compile(r"/invoice/(\d+)/activity"), self._get_activity),
            ("PATCH", re.compile(r"/invoice/(\d+)/status"), self._update_status),
            ("POST", re.compile(r"/invoice/(\d+)/withdraw"), self._withdraw),
            ("GET", re.compile(r"/vendor"), self._list_vendors),
            ("POST", re.compile(r"/vendor"), self._create_vendor),
            ("GET", re.compile(r"/vendor/(\d+)"), self._get_vendor),
            ("PUT", re.compile(r"/vendor/(\d+)"), self._update_vendor),
            ("DELETE", re.compile(r"/vendor/(\d+)"), self._delete_vendor),
        ]

    # ========== SEEDING ==========

    def _next_id(self, sequence: str) -> int:
        self._sequences[sequence] += 1
        return self._sequences[sequence]

    def add_user(self, username: str, password: str, role: UserRole = UserRole.USER) -> dict:
        user = {"id": self._next_id("user"), "username": username, "password": password, "role": role}
        self.users[user["id"]] = user
        return user

    def add_vendor(self, name: str, category: str = "General", status: VendorStatus = VendorStatus.ACTIVE) -> dict:
        vendor = {
            "id": self._next_id("vendor"),
            "name": name,
            "category": category,
            "status": status,
            "email": None,
            "phone": None,
            "address": None,
            "createdAt": _now(),
            "updatedAt": _now(),
        }
        self.vendors[vendor["id"]] = vendor
        return vendor

    def add_invoice(self, owner: dict, vendor: dict, amount, description: str,
                    status: InvoiceStatus = InvoiceStatus.PENDING, rejection_reason: Optional[str] = None,
                    invoice_id: Optional[int] = None) -> dict:
        if invoice_id is None:
            invoice_id = self._next_id("invoice")
        else:
            self._sequences["invoice"] = max(self._sequences["invoice"], invoice_id)
        invoice = {
            "id": invoice_id,
            "amount": Decimal(str(amount)),
            "description": description,
            "notes": None,
            "status": status,
            "rejectionReason": rejection_reason,
            "vendorId": vendor["id"],
            "userId": owner["id"],
            "createdAt": _now(),
            "updatedAt": _now(),
        }
        self.invoices[invoice_id] = invoice
        self._log_activity(invoice_id, ActivityAction.CREATED, owner)
        return invoice

    def simulate_failure(self, status_code: int = 0, message: Optional[str] = None) -> None:
        """Make the next request fail. status_code 0 emulates an unreachable server."""
        self._pending_failure = (status_code, message)

    # ========== DISPATCH ==========

    async def request(self, method: str, path: str, json: Optional[dict] = None, params: Optional[dict] = None) -> Any:
        self.request_log.append((method, path))

        if self._pending_failure is not None:
            status_code, message = self._pending_failure
            self._pending_failure = None
            if status_code == 0:
                raise NetworkException()
            if status_code == 401:
                self.session.teardown()
                raise UnauthorizedException(message or "Unauthorized", status_code=401)
            raise ServerRejectedException(message or "", status_code=status_code,
                                          payload={"message": message} if message else None)

        route_path = path.split("?")[0].rstrip("/") or "/"
        for route_method, pattern, handler in self._routes:
            match = pattern.fullmatch(route_path)
            if match and route_method == method.upper():
                return handler(*match.groups(), body=json or {}, params=params or {})
        _reject(404, f"No route for {method} {path}")

    async def close(self) -> None:
        pass

    # ========== HELPERS ==========

    def _current_user(self) -> dict:
        user_id = self._tokens.get(self.session.token or "")
        if user_id is None:
            self.session.teardown()
            raise UnauthorizedException("Unauthorized", status_code=401)
        return self.users[user_id]

    def _log_activity(self, invoice_id: int, action: ActivityAction, user: dict, metadata: Optional[str] = None) -> None:
        self.activities.append({
            "id": self._next_id("activity"),
            "invoiceId": invoice_id,
            "action": action.value,
            "performedById": user["id"],
            "performedByUsername": user["username"],
            "performedByRole": user["role"].value,
            "metadata": metadata,
            "timestamp": _now(),
        })

    def _user_dto(self, user: dict) -> dict:
        return {"id": user["id"], "username": user["username"], "role": user["role"].value}

    def _invoice_dto(self, invoice: dict) -> dict:
        vendor = self.vendors.get(invoice["vendorId"], {})
        owner = self.users.get(invoice["userId"], {})
        return {
            "id": invoice["id"],
            "amount": float(invoice["amount"]),
            "description": invoice["description"],
            "notes": invoice["notes"],
            "status": invoice["status"].value,
            "rejectionReason": invoice["rejectionReason"],
            "vendorId": invoice["vendorId"],
            "vendorName": vendor.get("name", ""),
            "vendorCategory": vendor.get("category", ""),
            "userId": invoice["userId"],
            "username": owner.get("username", ""),
            "createdAt": invoice["createdAt"],
            "updatedAt": invoice["updatedAt"],
        }

    def _vendor_dto(self, vendor: dict) -> dict:
        return {**vendor, "status": vendor["status"].value}

    def _accessible_invoice(self, invoice_id: str, user: dict) -> dict:
        invoice = self.invoices.get(int(invoice_id))
        if invoice is None or (not user["role"].is_privileged and invoice["userId"] != user["id"]):
            _reject(404, f"Invoice with ID {invoice_id} not found or access denied")
        return invoice

    def _resolve_vendor(self, body: dict) -> dict:
        vendor_id = body.get("vendorId")
        if vendor_id is not None:
            vendor = self.vendors.get(int(vendor_id))
            if vendor is None:
                _reject(400, f"Vendor with ID {vendor_id} not found")
            return vendor
        vendor_name = (body.get("vendorName") or "").strip()
        if not vendor_name:
            _reject(400, "Either vendorId or vendorName is required")
        for vendor in self.vendors.values():
            if vendor["status"] == VendorStatus.ACTIVE and vendor["name"].lower() == vendor_name.lower():
                return vendor
        return self.add_vendor(vendor_name)

    def _parse_invoice_body(self, body: dict) -> Tuple[Decimal, str]:
        try:
            amount = Decimal(str(body.get("amount")))
        except InvalidOperation:
            _reject(400, "Amount is required")
        if amount <= 0:
            _reject(400, "Amount must be greater than zero")
        description = (body.get("description") or "").strip()
        if not 5 <= len(description) <= 500:
            _reject(400, "Description must be between 5 and 500 characters")
        return amount, description

    def _apply_status(self, invoice: dict, status: InvoiceStatus, reason: Optional[str], user: dict) -> None:
        invoice["status"] = status
        invoice["rejectionReason"] = reason if status == InvoiceStatus.REJECTED else None
        invoice["updatedAt"] = _now()
        action = ActivityAction.APPROVED if status == InvoiceStatus.APPROVED else ActivityAction.REJECTED
        self._log_activity(invoice["id"], action, user, metadata=invoice["rejectionReason"])

    # ========== AUTH ==========

    def _health(self, body: dict, params: dict) -> dict:
        return {"status": "healthy", "timestamp": _now()}

    def _issue_session(self, user: dict) -> dict:
        token = f"in-memory-{uuid.uuid4().hex}"
        self._tokens[token] = user["id"]
        return {"token": token, "user": self._user_dto(user)}

    def _login(self, body: dict, params: dict) -> dict:
        for user in self.users.values():
            if user["username"] == body.get("username") and user["password"] == body.get("password"):
                return self._issue_session(user)
        _reject(400, "Invalid username or password")

    def _register(self, body: dict, params: dict) -> dict:
        username = (body.get("username") or "").strip()
        if not 3 <= len(username) <= 50:
            _reject(400, "Username must be between 3 and 50 characters")
        if any(user["username"] == username for user in self.users.values()):
            _reject(400, "Username already exists")
        role = UserRole.parse(body.get("role", UserRole.USER.value))
        user = self.add_user(username, body.get("password") or "", role)
        return self._issue_session(user)

    def _me(self, body: dict, params: dict) -> dict:
        return self._user_dto(self._current_user())

    # ========== INVOICES ==========

    def _list_invoices(self, body: dict, params: dict) -> List[dict]:
        user = self._current_user()
        invoices = [
            invoice for invoice in self.invoices.values()
            if user["role"].is_privileged or invoice["userId"] == user["id"]
        ]
        if params.get("status") is not None:
            status = InvoiceStatus.parse(params["status"])
            invoices = [invoice for invoice in invoices if invoice["status"] == status]

        rows = [self._invoice_dto(invoice) for invoice in invoices]

        search = (params.get("search") or "").strip().lower()
        if search:
            rows = [
                row for row in rows
                if search in row["description"].lower()
                or search in row["vendorName"].lower()
                or search in row["username"].lower()
            ]
        if params.get("fromDate"):
            rows = [row for row in rows if row["createdAt"][:10] >= str(params["fromDate"])[:10]]
        if params.get("toDate"):
            rows = [row for row in rows if row["createdAt"][:10] <= str(params["toDate"])[:10]]

        sort_field = SORT_FIELDS.get(str(params.get("sortBy") or "createdAt").lower(), "createdAt")
        descending = str(params.get("sortOrder") or "desc").lower() != "asc"
        rows.sort(key=lambda row: (row[sort_field], row["id"]), reverse=descending)
        return rows

    def _get_invoice(self, invoice_id: str, body: dict, params: dict) -> dict:
        return self._invoice_dto(self._accessible_invoice(invoice_id, self._current_user()))

    def _get_activity(self, invoice_id: str, body: dict, params: dict) -> List[dict]:
        self._accessible_invoice(invoice_id, self._current_user())
        entries = [entry for entry in self.activities if entry["invoiceId"] == int(invoice_id)]
        return sorted(entries, key=lambda entry: entry["id"], reverse=True)

    def _create_invoice(self, body: dict, params: dict) -> dict:
        user = self._current_user()
        amount, description = self._parse_invoice_body(body)
        vendor = self._resolve_vendor(body)
        invoice = self.add_invoice(user, vendor, amount, description)
        invoice["notes"] = body.get("notes")
        return self._invoice_dto(invoice)

    def _update_invoice(self, invoice_id: str, body: dict, params: dict) -> dict:
        user = self._current_user()
        invoice = self._accessible_invoice(invoice_id, user)
        if invoice["userId"] != user["id"]:
            _reject(403, "You can only edit your own invoices")
        if invoice["status"] != InvoiceStatus.PENDING:
            _reject(400, "Only pending invoices can be edited")
        amount, description = self._parse_invoice_body(body)
        vendor = self._resolve_vendor(body)
        invoice.update({
            "amount": amount,
            "description": description,
            "vendorId": vendor["id"],
            "notes": body.get("notes"),
            "updatedAt": _now(),
        })
        self._log_activity(invoice["id"], ActivityAction.UPDATED, user)
        return self._invoice_dto(invoice)

    def _update_status(self, invoice_id: str, body: dict, params: dict) -> dict:
        user = self._current_user()
        if not user["role"].is_privileged:
            _reject(403, "Only Management and Admin can update invoice status")
        invoice = self._accessible_invoice(invoice_id, user)
        status = InvoiceStatus.parse(body.get("status"))
        reason = (body.get("rejectionReason") or "").strip() or None
        if status not in (InvoiceStatus.APPROVED, InvoiceStatus.REJECTED):
            _reject(400, "Status can only be set to Approved or Rejected")
        if invoice["status"] != InvoiceStatus.PENDING:
            _reject(400, "Only pending invoices can change status")
        if status == InvoiceStatus.REJECTED and not reason:
            _reject(400, "Rejection reason is required when rejecting an invoice")
        self._apply_status(invoice, status, reason, user)
        return self._invoice_dto(invoice)

    def _withdraw(self, invoice_id: str, body: dict, params: dict) -> dict:
        user = self._current_user()
        invoice = self._accessible_invoice(invoice_id, user)
        if invoice["userId"] != user["id"]:
            _reject(403, "You can only withdraw your own invoices")
        if invoice["status"] != InvoiceStatus.PENDING:
            _reject(400, "Only pending invoices can be withdrawn")
        invoice["status"] = InvoiceStatus.WITHDRAWN
        invoice["updatedAt"] = _now()
        self._log_activity(invoice["id"], ActivityAction.UPDATED, user, metadata="Withdrawn")
        return self._invoice_dto(invoice)

    def _delete_invoice(self, invoice_id: str, body: dict, params: dict) -> None:
        user = self._current_user()
        invoice = self._accessible_invoice(invoice_id, user)
        if user["role"] != UserRole.ADMIN and invoice["userId"] != user["id"]:
            _reject(403, "You can only delete your own invoices")
        if invoice["status"] == InvoiceStatus.APPROVED:
            _reject(400, "Approved invoices cannot be deleted")
        del self.invoices[invoice["id"]]
        self._log_activity(invoice["id"], ActivityAction.DELETED, user)
        return None

    def _bulk_status(self, body: dict, params: dict) -> dict:
        user = self._current_user()
        if not user["role"].is_privileged:
            _reject(403, "Only Management and Admin can update invoice status")
        status = InvoiceStatus.parse(body.get("status"))
        reason = (body.get("rejectionReason") or "").strip() or None
        if status == InvoiceStatus.REJECTED and not reason:
            _reject(400, "Rejection reason is required when rejecting invoices")
        count = 0
        for invoice_id in body.get("invoiceIds") or []:
            invoice = self.invoices.get(int(invoice_id))
            if invoice is not None and invoice["status"] == InvoiceStatus.PENDING:
                self._apply_status(invoice, status, reason, user)
                count += 1
        return {"message": f"{count} invoice(s) updated to {status.value}", "count": count}

    # ========== VENDORS ==========

    def _require_admin(self) -> dict:
        user = self._current_user()
        if user["role"] != UserRole.ADMIN:
            _reject(403, "Only administrators can manage vendors")
        return user

    def _check_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        for vendor in self.vendors.values():
            if (vendor["id"] != exclude_id and vendor["status"] == VendorStatus.ACTIVE
                    and vendor["name"].lower() == name.lower()):
                _reject(400, f"A vendor named '{name}' already exists")

    def _list_vendors(self, body: dict, params: dict) -> List[dict]:
        self._current_user()
        return [self._vendor_dto(vendor) for vendor in sorted(self.vendors.values(), key=lambda v: v["name"].lower())]

    def _get_vendor(self, vendor_id: str, body: dict, params: dict) -> dict:
        self._current_user()
        vendor = self.vendors.get(int(vendor_id))
        if vendor is None:
            _reject(404, f"Vendor with ID {vendor_id} not found")
        return self._vendor_dto(vendor)

    def _create_vendor(self, body: dict, params: dict) -> dict:
        self._require_admin()
        name = (body.get("name") or "").strip()
        self._check_unique_name(name)
        vendor = self.add_vendor(name, body.get("category") or "")
        for contact_field in ("email", "phone", "address"):
            vendor[contact_field] = body.get(contact_field)
        return self._vendor_dto(vendor)

    def _update_vendor(self, vendor_id: str, body: dict, params: dict) -> dict:
        self._require_admin()
        vendor = self.vendors.get(int(vendor_id))
        if vendor is None:
            _reject(404, f"Vendor with ID {vendor_id} not found")
        name = (body.get("name") or "").strip()
        self._check_unique_name(name, exclude_id=vendor["id"])
        vendor.update({"name": name, "category": body.get("category") or "", "updatedAt": _now()})
        if body.get("status") is not None:
            vendor["status"] = VendorStatus.parse(body["status"])
        for contact_field in ("email", "phone", "address"):
            if contact_field in body:
                vendor[contact_field] = body[contact_field]
        return self._vendor_dto(vendor)

    def _delete_vendor(self, vendor_id: str, body: dict, params: dict) -> None:
        self._require_admin()
        vendor = self.vendors.get(int(vendor_id))
        if vendor is None:
            _reject(404, f"Vendor with ID {vendor_id} not found")
        if any(invoice["vendorId"] == vendor["id"] for invoice in self.invoices.values()):
            _reject(400, "Cannot delete a vendor that has invoices")
        del self.vendors[vendor["id"]]
        return None
