"""
Helpers shared by the routers: error mapping and response serialization.
"""
from typing import Any

from fastapi import HTTPException, status
from pydantic import BaseModel

from shared.utils.exceptions import (
    ApiException,
    ClientValidationException,
    InvalidInvoiceStateException,
    NetworkException,
    SchemaMismatchException,
    VendorPayException,
)
from vendorpay_client.application.services.mutation_coordinator import MutationResult


def to_http_exception(error: VendorPayException) -> HTTPException:
    """Map a client error onto the HTTP status the view returns."""
    if isinstance(error, InvalidInvoiceStateException):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)
    if isinstance(error, ClientValidationException):
        return HTTPException(
            status_code=422,
            detail={"message": error.message, "errors": error.errors},
        )
    if isinstance(error, NetworkException):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=error.message)
    if isinstance(error, ApiException):
        return HTTPException(status_code=error.status_code, detail=error.message or "Request rejected")
    if isinstance(error, SchemaMismatchException):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


def serialize(value: Any) -> Any:
    if isinstance(value, list):
        return [serialize(item) for item in value]
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def mutation_response(result: MutationResult) -> dict:
    """Body for a settled mutation; failures become the mapped HTTP error."""
    if result.error is not None:
        raise to_http_exception(result.error)
    return {
        "mutation": result.name,
        "state": result.state.value,
        "data": serialize(result.data),
    }
