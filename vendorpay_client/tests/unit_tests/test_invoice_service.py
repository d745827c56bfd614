from decimal import Decimal

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from shared.config.settings import settings
from shared.models.activity import ActivityAction
from shared.models.invoice import InvoiceStatus
from shared.models.schemas import BulkStatusResult
from shared.models.user import UserRole
from shared.utils.constants import InvoiceKeys
from shared.utils.exceptions import (
    ClientValidationException,
    InvalidInvoiceStateException,
    NetworkException,
    ServerRejectedException,
    UnauthorizedException,
)
from shared.utils.logging_config import get_logger, setup_logging
from vendorpay_client.application.interfaces.di_container import DIContainer
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface, NotifierInterface
from vendorpay_client.application.services.auth_service import AuthService
from vendorpay_client.application.services.invoice_query_service import InvoiceQueryService
from vendorpay_client.application.services.invoice_service import InvoiceService
from vendorpay_client.application.services.mutation_coordinator import MutationCoordinator, MutationState
from vendorpay_client.application.services.query_cache import QueryCache
from vendorpay_client.domain.requests import InvoiceFilters, InvoiceRequest
from vendorpay_client.infrastructure.http.auth_session import AuthSession
from vendorpay_client.infrastructure.notifications.notification_center import NotificationCenter
from vendorpay_client.infrastructure.repositories.in_memory_api_client import InMemoryApiClient

setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)


class TestInvoiceService:

    @pytest_asyncio.fixture
    async def mock_api_client(self):
        """Create a mock remote API client."""
        return AsyncMock(spec=ApiClientInterface)

    @pytest_asyncio.fixture
    async def cache(self, invoices):
        cache = QueryCache()
        cache.write(InvoiceKeys.list(()), invoices)
        cache.write(InvoiceKeys.detail(101), invoices[0])
        cache.write(InvoiceKeys.detail(103), invoices[2])
        yield cache
        await cache.drain()

    @pytest.fixture
    def notifications(self):
        return NotificationCenter(history_size=10)

    @pytest.fixture
    def invoice_service(self, mock_api_client, cache, notifications):
        coordinator = MutationCoordinator(cache, notifications)
        return InvoiceService(api_client=mock_api_client, coordinator=coordinator)

    @pytest.fixture
    def query_service(self, mock_api_client, cache):
        return InvoiceQueryService(mock_api_client, cache)

    def _snapshot(self, cache: QueryCache) -> dict:
        return {key: cache.read(key) for key in cache.keys()}

    # ========== PRE-FLIGHT ==========

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   ", None])
    async def test_reject_without_reason_issues_no_request(self, invoice_service, mock_api_client, cache, reason):
        before = self._snapshot(cache)

        with pytest.raises(ClientValidationException) as exc_info:
            await invoice_service.reject(101, reason)

        assert exc_info.value.errors
        mock_api_client.patch.assert_not_called()
        mock_api_client.request.assert_not_called()
        assert self._snapshot(cache) == before
        logger.info("✓ test_reject_without_reason_issues_no_request passed")

    @pytest.mark.asyncio
    async def test_status_update_to_pending_is_refused(self, invoice_service, mock_api_client):
        with pytest.raises(ClientValidationException):
            await invoice_service.update_status(101, InvoiceStatus.PENDING)
        mock_api_client.patch.assert_not_called()

    @pytest.mark.asyncio
    async def test_terminal_cached_invoice_cannot_be_approved(self, invoice_service, mock_api_client):
        with pytest.raises(InvalidInvoiceStateException):
            await invoice_service.approve(103)
        mock_api_client.patch.assert_not_called()

    @pytest.mark.asyncio
    async def test_terminal_cached_invoice_cannot_be_edited_or_withdrawn(self, invoice_service, mock_api_client):
        request = InvoiceRequest(amount=Decimal("10.00"), description="Corrected amount", vendor_id=1)

        with pytest.raises(InvalidInvoiceStateException):
            await invoice_service.update_invoice(104, request)
        with pytest.raises(InvalidInvoiceStateException):
            await invoice_service.withdraw(105)

        mock_api_client.put.assert_not_called()
        mock_api_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_cached_approved_invoice_cannot_be_deleted(self, invoice_service, mock_api_client):
        with pytest.raises(InvalidInvoiceStateException):
            await invoice_service.delete_invoice(103)
        mock_api_client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_bulk_with_no_ids_is_refused(self, invoice_service, mock_api_client):
        with pytest.raises(ClientValidationException):
            await invoice_service.bulk_update_status([], InvoiceStatus.APPROVED)
        mock_api_client.post.assert_not_called()

    # ========== STATUS UPDATES ==========

    @pytest.mark.asyncio
    async def test_forbidden_status_update_reverts_and_notifies_once(
        self, invoice_service, mock_api_client, cache, notifications
    ):
        before = self._snapshot(cache)
        mock_api_client.patch.side_effect = ServerRejectedException(
            "Only Management and Admin can update invoice status", status_code=403
        )

        result = await invoice_service.approve(101)

        assert result.state == MutationState.SETTLED_FAILURE
        assert result.error.status_code == 403
        assert self._snapshot(cache) == before
        assert cache.read(InvoiceKeys.detail(101)).status == InvoiceStatus.PENDING

        shown = notifications.drain()
        assert len(shown) == 1
        assert shown[0].level == "error"
        assert shown[0].title == "Update Failed"
        assert shown[0].message == "Only Management and Admin can update invoice status"
        logger.info("✓ test_forbidden_status_update_reverts_and_notifies_once passed")

    @pytest.mark.asyncio
    async def test_approve_prediction_matches_refetch(
        self, invoice_service, query_service, mock_api_client, cache, invoice_payloads
    ):
        approved_payload = {**invoice_payloads[0], "status": "Approved", "updatedAt": "2026-09-02T10:00:00Z"}
        refreshed = [approved_payload] + invoice_payloads[1:]
        predicted = {}

        async def patch(path, json=None):
            predicted["list"] = cache.read(InvoiceKeys.list(()))[0].status
            predicted["detail"] = cache.read(InvoiceKeys.detail(101)).status
            return approved_payload

        mock_api_client.patch.side_effect = patch
        mock_api_client.get.return_value = refreshed
        query_service.watch_invoices()

        result = await invoice_service.approve(101)

        assert result.succeeded
        assert result.data.status == InvoiceStatus.APPROVED
        mock_api_client.patch.assert_awaited_once_with("/invoice/101/status", json={"status": 1})
        refetched = cache.read(InvoiceKeys.list(()))[0]
        assert predicted == {"list": refetched.status, "detail": refetched.status}
        assert refetched.status == InvoiceStatus.APPROVED
        assert not cache.is_stale(InvoiceKeys.list(()))
        logger.info("✓ test_approve_prediction_matches_refetch passed")

    @pytest.mark.asyncio
    async def test_reject_sends_reason_and_predicts_it(self, invoice_service, mock_api_client, cache, invoice_payloads):
        predicted = {}

        async def patch(path, json=None):
            predicted["invoice"] = cache.read(InvoiceKeys.detail(101))
            return {**invoice_payloads[0], "status": "Rejected", "rejectionReason": "Duplicate submission"}

        mock_api_client.patch.side_effect = patch

        result = await invoice_service.reject(101, "  Duplicate submission ")

        assert result.succeeded
        mock_api_client.patch.assert_awaited_once_with(
            "/invoice/101/status", json={"status": 2, "rejectionReason": "Duplicate submission"}
        )
        assert predicted["invoice"].status == InvoiceStatus.REJECTED
        assert predicted["invoice"].rejection_reason == "Duplicate submission"

    @pytest.mark.asyncio
    async def test_malformed_response_rolls_back(self, invoice_service, mock_api_client, cache, notifications):
        before = self._snapshot(cache)
        mock_api_client.patch.return_value = {"id": 101, "status": "Approved"}

        result = await invoice_service.approve(101)

        assert result.state == MutationState.SETTLED_FAILURE
        assert self._snapshot(cache) == before
        assert [n.message for n in notifications.drain()] == ["Failed to approve invoice"]

    # ========== WITHDRAW / EDIT / CREATE / DELETE ==========

    @pytest.mark.asyncio
    async def test_withdraw_shows_withdrawn_before_and_after_settle(
        self, invoice_service, query_service, mock_api_client, cache, invoice_payloads
    ):
        withdrawn_payload = {**invoice_payloads[0], "status": "Withdrawn"}
        seen = {}

        async def post(path, json=None):
            seen["before_settle"] = cache.read(InvoiceKeys.detail(101)).status
            return withdrawn_payload

        mock_api_client.post.side_effect = post
        mock_api_client.get.return_value = withdrawn_payload
        query_service.watch_invoice(101)

        result = await invoice_service.withdraw(101)

        assert result.succeeded
        mock_api_client.post.assert_awaited_once_with("/invoice/101/withdraw")
        assert seen["before_settle"] == InvoiceStatus.WITHDRAWN
        assert cache.read(InvoiceKeys.detail(101)).status == InvoiceStatus.WITHDRAWN
        assert cache.read(InvoiceKeys.list(()))[0].status == InvoiceStatus.WITHDRAWN

    @pytest.mark.asyncio
    async def test_withdraw_network_failure_restores(self, invoice_service, mock_api_client, cache, notifications):
        before = self._snapshot(cache)
        mock_api_client.post.side_effect = NetworkException()

        result = await invoice_service.withdraw(101)

        assert not result.succeeded
        assert isinstance(result.error, NetworkException)
        assert self._snapshot(cache) == before
        shown = notifications.drain()
        assert [(n.title, n.message) for n in shown] == [("Withdraw Failed", NetworkException().message)]

    @pytest.mark.asyncio
    async def test_update_invoice_replaces_fields_optimistically(self, invoice_service, mock_api_client, cache,
                                                                 invoice_payloads):
        request = InvoiceRequest(amount=Decimal("199.50"), description="Toner only", vendor_id=1, notes="Split order")
        predicted = {}

        async def put(path, json=None):
            predicted["invoice"] = cache.read(InvoiceKeys.detail(101))
            return {**invoice_payloads[0], "amount": 199.5, "description": "Toner only", "notes": "Split order"}

        mock_api_client.put.side_effect = put

        result = await invoice_service.update_invoice(101, request)

        assert result.succeeded
        mock_api_client.put.assert_awaited_once_with(
            "/invoice/101",
            json={"amount": 199.5, "description": "Toner only", "vendorId": 1, "notes": "Split order"},
        )
        assert predicted["invoice"].amount == result.data.amount
        assert predicted["invoice"].description == result.data.description
        assert predicted["invoice"].notes == result.data.notes
        assert cache.is_stale(InvoiceKeys.detail(101))

    @pytest.mark.asyncio
    async def test_update_invoice_keeps_vendor_until_refetch(self, invoice_service, mock_api_client, cache,
                                                            invoices, invoice_payloads):
        original = invoices[0]
        request = InvoiceRequest(amount=Decimal("10.00"), description="Switched supplier", vendor_id=3)
        predicted = {}

        async def put(path, json=None):
            predicted["invoice"] = cache.read(InvoiceKeys.detail(101))
            return {**invoice_payloads[0], "amount": 10.0, "description": "Switched supplier"}

        mock_api_client.put.side_effect = put

        await invoice_service.update_invoice(101, request)

        assert predicted["invoice"].description == "Switched supplier"
        assert predicted["invoice"].vendor_id == original.vendor_id
        assert predicted["invoice"].vendor_name == original.vendor_name

    @pytest.mark.asyncio
    async def test_create_invoice_only_invalidates_lists(self, invoice_service, mock_api_client, cache,
                                                         invoice_payloads):
        before = cache.read(InvoiceKeys.list(()))
        created = {**invoice_payloads[0], "id": 200}
        mock_api_client.post.return_value = created

        result = await invoice_service.create_invoice(
            InvoiceRequest(amount=Decimal("12.00"), description="Taxi to the airport", vendor_name="City Cabs")
        )

        assert result.succeeded
        assert result.data.id == 200
        mock_api_client.post.assert_awaited_once_with(
            "/invoice", json={"amount": 12.0, "description": "Taxi to the airport", "vendorName": "City Cabs"}
        )
        assert cache.read(InvoiceKeys.list(())) == before
        assert cache.is_stale(InvoiceKeys.list(()))
        assert not cache.is_stale(InvoiceKeys.detail(101))

    @pytest.mark.asyncio
    async def test_delete_uncached_invoice_proceeds(self, mock_api_client, notifications):
        cache = QueryCache()
        service = InvoiceService(mock_api_client, MutationCoordinator(cache, notifications))
        mock_api_client.delete.return_value = None

        result = await service.delete_invoice(999)

        assert result.succeeded
        mock_api_client.delete.assert_awaited_once_with("/invoice/999")
        assert cache.keys() == []

    @pytest.mark.asyncio
    async def test_delete_removes_from_lists_and_purges_detail(self, invoice_service, mock_api_client, cache):
        cache.write(InvoiceKeys.activity(101), [])
        mock_api_client.delete.return_value = None

        result = await invoice_service.delete_invoice(101)

        assert result.succeeded
        assert all(invoice.id != 101 for invoice in cache.read(InvoiceKeys.list(())))
        assert not cache.contains(InvoiceKeys.detail(101))
        assert not cache.contains(InvoiceKeys.activity(101))

    @pytest.mark.asyncio
    async def test_failed_delete_restores_list(self, invoice_service, mock_api_client, cache, notifications):
        before = self._snapshot(cache)
        mock_api_client.delete.side_effect = ServerRejectedException("", status_code=500)

        result = await invoice_service.delete_invoice(101)

        assert not result.succeeded
        assert self._snapshot(cache) == before
        assert [(n.title, n.message) for n in notifications.drain()] == [("Delete Failed", "Failed to delete invoice")]

    # ========== BULK ==========

    @pytest.mark.asyncio
    async def test_bulk_approve(self, invoice_service, mock_api_client, cache, notifications):
        predicted = {}

        async def post(path, json=None):
            predicted["statuses"] = {i.id: i.status for i in cache.read(InvoiceKeys.list(()))}
            return {"message": "2 invoice(s) updated to Approved", "count": 2}

        mock_api_client.post.side_effect = post

        result = await invoice_service.bulk_update_status([101, 102, 101], "Approved")

        assert result.succeeded
        assert result.data == BulkStatusResult(message="2 invoice(s) updated to Approved", count=2)
        mock_api_client.post.assert_awaited_once_with(
            "/invoice/bulk-status", json={"status": 1, "invoiceIds": [101, 102]}
        )
        assert predicted["statuses"][101] == InvoiceStatus.APPROVED
        assert predicted["statuses"][102] == InvoiceStatus.APPROVED
        assert predicted["statuses"][104] == InvoiceStatus.REJECTED
        assert [(n.level, n.message) for n in notifications.drain()] == [
            ("success", "2 invoice(s) updated to Approved")
        ]

    @pytest.mark.asyncio
    async def test_bulk_approve_leaves_terminal_invoices_unchanged(self, invoice_service, mock_api_client, cache,
                                                                  invoices):
        cache.write(InvoiceKeys.detail(104), invoices[3])
        seen = {}

        async def post(path, json=None):
            seen["list"] = {i.id: i.status for i in cache.read(InvoiceKeys.list(()))}
            seen["detail"] = cache.read(InvoiceKeys.detail(104)).status
            return {"message": "1 invoice(s) updated to Approved", "count": 1}

        mock_api_client.post.side_effect = post

        result = await invoice_service.bulk_update_status([101, 103, 104, 105], InvoiceStatus.APPROVED)

        assert result.succeeded
        assert seen["list"][101] == InvoiceStatus.APPROVED
        assert seen["list"][103] == InvoiceStatus.APPROVED
        assert seen["list"][104] == InvoiceStatus.REJECTED
        assert seen["list"][105] == InvoiceStatus.WITHDRAWN
        assert seen["detail"] == InvoiceStatus.REJECTED


class TestInvoiceLifecycleInMemory:
    """End-to-end flows against the in-memory backend."""

    @pytest_asyncio.fixture
    async def backend(self):
        backend = InMemoryApiClient(AuthSession())
        backend.add_user("manager", "pw-manager", UserRole.MANAGER)
        employee = backend.add_user("employee", "pw-employee", UserRole.USER)
        vendor = backend.add_vendor("Acme Office Supplies", "Office")
        backend.add_invoice(employee, vendor, "120.00", "Printer toner cartridges", invoice_id=1)
        backend.add_invoice(employee, vendor, "80.00", "Paper for the print room", invoice_id=2)
        backend.add_invoice(employee, vendor, "45.00", "Desk organisers", invoice_id=3)
        return backend

    @pytest_asyncio.fixture
    async def container(self, backend):
        container = DIContainer(settings, api_client=backend)
        yield container
        await container.close()

    async def _sign_in(self, container: DIContainer, username: str, password: str) -> None:
        await container.get_service(AuthService).login(username, password)

    @pytest.mark.asyncio
    async def test_bulk_approve_records_activity(self, container, backend):
        await self._sign_in(container, "manager", "pw-manager")
        queries = container.get_service(InvoiceQueryService)
        invoices = container.get_service(InvoiceService)
        notifications = container.get_service(NotifierInterface)

        queries.watch_invoices()
        await queries.list_invoices()

        result = await invoices.bulk_update_status([1, 2], InvoiceStatus.APPROVED)

        assert result.succeeded
        assert result.data.count == 2
        statuses = {invoice.id: invoice.status for invoice in await queries.list_invoices()}
        assert statuses == {1: InvoiceStatus.APPROVED, 2: InvoiceStatus.APPROVED, 3: InvoiceStatus.PENDING}

        activity = await queries.get_activity(1)
        assert [entry.action for entry in activity] == [ActivityAction.APPROVED, ActivityAction.CREATED]
        assert activity[0].performed_by_username == "manager"

        assert notifications.drain()[-1].message == "2 invoice(s) updated to Approved"
        logger.info("✓ test_bulk_approve_records_activity passed")

    @pytest.mark.asyncio
    async def test_employee_cannot_approve(self, container):
        await self._sign_in(container, "employee", "pw-employee")
        queries = container.get_service(InvoiceQueryService)
        cache = container.get_service(QueryCache)
        notifications = container.get_service(NotifierInterface)

        queries.watch_invoices()
        before = await queries.list_invoices()

        result = await container.get_service(InvoiceService).approve(1)

        assert result.error.status_code == 403
        assert cache.read(InvoiceKeys.list(InvoiceFilters().descriptor())) == before
        errors = [n for n in notifications.drain() if n.level == "error"]
        assert [(n.title, n.message) for n in errors] == [
            ("Update Failed", "Only Management and Admin can update invoice status")
        ]

    @pytest.mark.asyncio
    async def test_withdraw_then_edit_is_refused_locally(self, container, backend):
        await self._sign_in(container, "employee", "pw-employee")
        queries = container.get_service(InvoiceQueryService)
        invoices = container.get_service(InvoiceService)

        queries.watch_invoice(2)
        await queries.get_invoice(2)

        result = await invoices.withdraw(2)
        assert result.succeeded
        assert (await queries.get_invoice(2)).status == InvoiceStatus.WITHDRAWN

        request_count = len(backend.request_log)
        with pytest.raises(InvalidInvoiceStateException):
            await invoices.update_invoice(
                2, InvoiceRequest(amount=Decimal("1.00"), description="Too late", vendor_id=1)
            )
        assert len(backend.request_log) == request_count

    @pytest.mark.asyncio
    async def test_filtered_lists_are_cached_separately(self, container):
        await self._sign_in(container, "manager", "pw-manager")
        queries = container.get_service(InvoiceQueryService)
        cache = container.get_service(QueryCache)

        everything = await queries.list_invoices()
        cheap_first = await queries.list_invoices(InvoiceFilters(sort_by="amount", sort_order="asc"))
        searched = await queries.list_invoices(InvoiceFilters(search="paper"))

        assert len(everything) == 3
        assert [invoice.id for invoice in cheap_first] == [3, 2, 1]
        assert [invoice.id for invoice in searched] == [2]
        assert len(cache.keys(InvoiceKeys.LISTS)) == 3

    @pytest.mark.asyncio
    async def test_expired_session_clears_cache(self, container, backend):
        await self._sign_in(container, "manager", "pw-manager")
        queries = container.get_service(InvoiceQueryService)
        cache = container.get_service(QueryCache)
        session = container.get_service(AuthSession)
        notifications = container.get_service(NotifierInterface)
        await queries.list_invoices()

        backend.simulate_failure(401)
        with pytest.raises(UnauthorizedException):
            await queries.list_invoices(force=True)

        assert not session.is_authenticated
        assert cache.keys() == []
        assert notifications.drain()[-1].title == "Session Expired"

    @pytest.mark.asyncio
    async def test_expired_session_during_mutation_keeps_cache_cleared(self, container, backend):
        await self._sign_in(container, "manager", "pw-manager")
        queries = container.get_service(InvoiceQueryService)
        cache = container.get_service(QueryCache)
        notifications = container.get_service(NotifierInterface)
        await queries.list_invoices()
        await queries.get_invoice(1)
        notifications.drain()

        backend.simulate_failure(401)
        result = await container.get_service(InvoiceService).approve(1)

        assert result.state == MutationState.SETTLED_FAILURE
        assert isinstance(result.error, UnauthorizedException)
        assert cache.keys() == []
        assert [(n.level, n.title) for n in notifications.drain()] == [("error", "Session Expired")]
