from typing import Iterable, Optional

from shared.models.invoice import Invoice, InvoiceStatus
from shared.models.schemas import BULK_STATUS_RESULT, INVOICE, validate_response
from shared.utils.constants import FallbackMessages, InvoiceKeys, NotificationTitles
from shared.utils.exceptions import InvalidInvoiceStateException
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.application.services import optimistic_transforms as transforms
from vendorpay_client.application.services.mutation_coordinator import (
    MutationCoordinator,
    MutationResult,
    MutationSpec,
    SettledCallback,
)
from vendorpay_client.domain.requests import BulkStatusRequest, InvoiceRequest, StatusUpdateRequest

logger = get_logger(__name__)


class InvoiceService:
    """
    Invoice mutations.

    This service handles:
    - Submitting and editing invoices
    - Approving and rejecting (single and bulk)
    - Withdrawing and deleting

    Input is validated before the coordinator runs, so invalid calls raise
    ClientValidationException without touching the cache or the network.
    Everything else returns a MutationResult; server failures are rolled
    back and notified by the coordinator.
    """

    def __init__(self, api_client: ApiClientInterface, coordinator: MutationCoordinator):
        self.api_client = api_client
        self.coordinator = coordinator
        self.cache = coordinator.cache

        logger.info(
            "InvoiceService initialized",
            extra={"api_client_type": type(api_client).__name__}
        )

    def _cached_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return transforms.find_cached_invoice(self.cache, invoice_id, [InvoiceKeys.DETAILS, InvoiceKeys.LISTS])

    def _ensure_pending(self, invoice_id: int, action: str) -> None:
        """Reject the call when the cached copy is already terminal. Uncached ids go to the server."""
        invoice = self._cached_invoice(invoice_id)
        if invoice is not None and not invoice.is_editable:
            raise InvalidInvoiceStateException(
                f"Invoice {invoice_id} is {invoice.status.value} and cannot be {action}"
            )

    async def create_invoice(self, request: InvoiceRequest,
                             on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """Submit a new invoice. The id is server-assigned, so lists are only invalidated."""

        async def send():
            payload = await self.api_client.post("/invoice", json=request.to_body())
            return validate_response(INVOICE, payload, "created invoice")

        spec = MutationSpec(
            name="create_invoice",
            request=send,
            affected=[InvoiceKeys.LISTS],
            failure_title=NotificationTitles.CREATE_FAILED,
            fallback_message=FallbackMessages.CREATE_INVOICE,
            success_message="Invoice submitted",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def update_invoice(self, invoice_id: int, request: InvoiceRequest,
                             on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """Edit a pending invoice."""
        self._ensure_pending(invoice_id, "edited")

        async def send():
            payload = await self.api_client.put(f"/invoice/{invoice_id}", json=request.to_body())
            return validate_response(INVOICE, payload, f"invoice {invoice_id}")

        spec = MutationSpec(
            name="update_invoice",
            request=send,
            affected=[InvoiceKeys.LISTS, InvoiceKeys.detail(invoice_id)],
            invalidate=[InvoiceKeys.LISTS, InvoiceKeys.detail(invoice_id), InvoiceKeys.activity(invoice_id)],
            transform=transforms.replace_fields(invoice_id, transforms.invoice_changes(request)),
            failure_title=NotificationTitles.UPDATE_FAILED,
            fallback_message=FallbackMessages.UPDATE_INVOICE,
            success_message="Invoice updated",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def update_status(self, invoice_id: int, status, rejection_reason: Optional[str] = None,
                            on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """
        Approve or reject a pending invoice.

        Args:
            invoice_id: Invoice to update
            status: InvoiceStatus.APPROVED or InvoiceStatus.REJECTED
            rejection_reason: Required (non-blank) when rejecting

        Raises:
            ClientValidationException: Bad status, or a missing rejection reason
            InvalidInvoiceStateException: The cached invoice is no longer pending
        """
        request = StatusUpdateRequest.parse(status=status, rejection_reason=rejection_reason)
        self._ensure_pending(invoice_id, "approved or rejected")

        async def send():
            payload = await self.api_client.patch(f"/invoice/{invoice_id}/status", json=request.to_body())
            if payload is None:
                return None
            return validate_response(INVOICE, payload, f"invoice {invoice_id}")

        approving = request.status == InvoiceStatus.APPROVED
        spec = MutationSpec(
            name="approve_invoice" if approving else "reject_invoice",
            request=send,
            affected=[InvoiceKeys.LISTS, InvoiceKeys.detail(invoice_id)],
            invalidate=[InvoiceKeys.LISTS, InvoiceKeys.detail(invoice_id), InvoiceKeys.activity(invoice_id)],
            transform=transforms.set_invoice_status([invoice_id], request.status, request.rejection_reason),
            failure_title=NotificationTitles.UPDATE_FAILED,
            fallback_message=FallbackMessages.APPROVE_INVOICE if approving else FallbackMessages.REJECT_INVOICE,
            success_message="Invoice approved" if approving else "Invoice rejected",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def approve(self, invoice_id: int, on_settled: Optional[SettledCallback] = None) -> MutationResult:
        return await self.update_status(invoice_id, InvoiceStatus.APPROVED, on_settled=on_settled)

    async def reject(self, invoice_id: int, reason: str,
                     on_settled: Optional[SettledCallback] = None) -> MutationResult:
        return await self.update_status(invoice_id, InvoiceStatus.REJECTED, reason, on_settled=on_settled)

    async def withdraw(self, invoice_id: int, on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """Withdraw one's own pending invoice."""
        self._ensure_pending(invoice_id, "withdrawn")

        async def send():
            payload = await self.api_client.post(f"/invoice/{invoice_id}/withdraw")
            if payload is None:
                return None
            return validate_response(INVOICE, payload, f"invoice {invoice_id}")

        spec = MutationSpec(
            name="withdraw_invoice",
            request=send,
            affected=[InvoiceKeys.LISTS, InvoiceKeys.detail(invoice_id)],
            invalidate=[InvoiceKeys.LISTS, InvoiceKeys.detail(invoice_id), InvoiceKeys.activity(invoice_id)],
            transform=transforms.set_invoice_status([invoice_id], InvoiceStatus.WITHDRAWN),
            failure_title=NotificationTitles.WITHDRAW_FAILED,
            fallback_message=FallbackMessages.WITHDRAW_INVOICE,
            success_message="Invoice withdrawn",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def delete_invoice(self, invoice_id: int,
                             on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """Delete an invoice and purge its detail and activity entries once the server confirms."""
        invoice = self._cached_invoice(invoice_id)
        if invoice is not None and invoice.status == InvoiceStatus.APPROVED:
            raise InvalidInvoiceStateException(f"Invoice {invoice_id} is Approved and cannot be deleted")

        async def send():
            return await self.api_client.delete(f"/invoice/{invoice_id}")

        spec = MutationSpec(
            name="delete_invoice",
            request=send,
            affected=[InvoiceKeys.LISTS],
            purge=[InvoiceKeys.detail(invoice_id), InvoiceKeys.activity(invoice_id)],
            transform=transforms.remove_entity(invoice_id),
            failure_title=NotificationTitles.DELETE_FAILED,
            fallback_message=FallbackMessages.DELETE_INVOICE,
            success_message="Invoice deleted",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def bulk_update_status(self, invoice_ids: Iterable[int], status,
                                 rejection_reason: Optional[str] = None,
                                 on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """Approve or reject a set of invoices in one request. Result data is a BulkStatusResult."""
        request = BulkStatusRequest.parse(
            invoice_ids=list(invoice_ids), status=status, rejection_reason=rejection_reason
        )

        async def send():
            payload = await self.api_client.post("/invoice/bulk-status", json=request.to_body())
            return validate_response(BULK_STATUS_RESULT, payload, "bulk status result")

        affected = [InvoiceKeys.LISTS] + [InvoiceKeys.detail(invoice_id) for invoice_id in request.invoice_ids]
        activities = [InvoiceKeys.activity(invoice_id) for invoice_id in request.invoice_ids]
        spec = MutationSpec(
            name="bulk_update_status",
            request=send,
            affected=affected,
            invalidate=affected + activities,
            transform=transforms.set_invoice_status(request.invoice_ids, request.status, request.rejection_reason),
            failure_title=NotificationTitles.BULK_UPDATE_FAILED,
            fallback_message=FallbackMessages.BULK_STATUS,
            success_message=lambda outcome: outcome.message,
        )
        return await self.coordinator.execute(spec, on_settled)
