"""
Invoices API - reads served from the query cache, writes through the
mutation coordinator.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from shared.utils.exceptions import VendorPayException
from shared.utils.logging_config import get_logger
from vendorpay_client.api.responses import mutation_response, serialize, to_http_exception
from vendorpay_client.application.interfaces.di_container import get_invoice_query_service, get_invoice_service
from vendorpay_client.application.services.invoice_query_service import InvoiceQueryService
from vendorpay_client.application.services.invoice_service import InvoiceService
from vendorpay_client.domain.requests import InvoiceFilters, InvoiceRequest

logger = get_logger(__name__)

router = APIRouter(
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict - invalid state transition"},
        422: {"description": "Invalid input"},
        503: {"description": "Remote API unreachable"},
    }
)


class StatusChange(BaseModel):
    """Request model for invoice approval or rejection."""

    status: str = Field(..., description="Approved or Rejected")
    rejection_reason: Optional[str] = Field(
        None,
        description="Reason for rejection, required if rejecting an invoice",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "Rejected",
                "rejection_reason": "Duplicate submission"
            }
        }
    )


class BulkStatusChange(StatusChange):
    invoice_ids: List[int] = Field(default_factory=list)


# ========== QUERIES ==========

@router.get("/")
async def list_invoices(
    status: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    search: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    force: bool = False,
    query_service: InvoiceQueryService = Depends(get_invoice_query_service),
) -> List[dict]:
    try:
        filters = InvoiceFilters.parse(
            status=status, sort_by=sort_by, sort_order=sort_order,
            search=search, from_date=from_date, to_date=to_date,
        )
        invoices = await query_service.list_invoices(filters, force=force)
    except VendorPayException as e:
        logger.warning("Failed to list invoices", extra={"error_type": type(e).__name__, "error_details": str(e)})
        raise to_http_exception(e)

    logger.info("Invoices listed", extra={"result_count": len(invoices)})
    return serialize(invoices)


@router.get("/{invoice_id}")
async def get_invoice(
    invoice_id: int,
    force: bool = False,
    query_service: InvoiceQueryService = Depends(get_invoice_query_service),
) -> dict:
    try:
        return serialize(await query_service.get_invoice(invoice_id, force=force))
    except VendorPayException as e:
        logger.warning(
            "Failed to get invoice",
            extra={"invoice_id": invoice_id, "error_type": type(e).__name__, "error_details": str(e)},
        )
        raise to_http_exception(e)


@router.get("/{invoice_id}/activity")
async def get_invoice_activity(
    invoice_id: int,
    query_service: InvoiceQueryService = Depends(get_invoice_query_service),
) -> List[dict]:
    try:
        return serialize(await query_service.get_activity(invoice_id))
    except VendorPayException as e:
        raise to_http_exception(e)


# ========== MUTATIONS ==========

@router.post("/")
async def create_invoice(
    body: dict = Body(...),
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> dict:
    try:
        request = InvoiceRequest.parse(**body)
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(await invoice_service.create_invoice(request))


@router.put("/{invoice_id}")
async def update_invoice(
    invoice_id: int,
    body: dict = Body(...),
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> dict:
    try:
        result = await invoice_service.update_invoice(invoice_id, InvoiceRequest.parse(**body))
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(result)


@router.patch("/{invoice_id}/status")
async def update_invoice_status(
    invoice_id: int,
    request: StatusChange,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> dict:
    logger.info(
        "Processing invoice status change",
        extra={"invoice_id": invoice_id, "status": request.status},
    )
    try:
        result = await invoice_service.update_status(invoice_id, request.status, request.rejection_reason)
    except VendorPayException as e:
        logger.warning(
            "Invoice status change refused",
            extra={"invoice_id": invoice_id, "error_type": type(e).__name__, "error_details": str(e)},
        )
        raise to_http_exception(e)
    return mutation_response(result)


@router.post("/bulk-status")
async def bulk_update_status(
    request: BulkStatusChange,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> dict:
    try:
        result = await invoice_service.bulk_update_status(
            request.invoice_ids, request.status, request.rejection_reason
        )
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(result)


@router.post("/{invoice_id}/withdraw")
async def withdraw_invoice(
    invoice_id: int,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> dict:
    try:
        result = await invoice_service.withdraw(invoice_id)
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(result)


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> dict:
    try:
        result = await invoice_service.delete_invoice(invoice_id)
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(result)
