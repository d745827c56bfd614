"""
Request payloads for invoice and vendor mutations, and list filters.

Building a request validates it locally; ``parse`` turns pydantic errors
into ``ClientValidationException`` so callers can report them inline.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shared.models.invoice import InvoiceStatus
from shared.models.vendor import VendorStatus
from shared.utils.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_REJECTION_REASON_LENGTH,
    MAX_VENDOR_CATEGORY_LENGTH,
    MAX_VENDOR_NAME_LENGTH,
    MIN_VENDOR_NAME_LENGTH,
)
from shared.utils.convert import convert_to_request_body, freeze_params
from shared.utils.exceptions import ClientValidationException


class RequestModel(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @classmethod
    def parse(cls, **data):
        """Build the request, raising ClientValidationException on bad input."""
        try:
            return cls(**data)
        except ValidationError as e:
            errors = {
                ".".join(str(part) for part in error["loc"]) or "__root__": error["msg"]
                for error in e.errors()
            }
            raise ClientValidationException(f"Invalid {cls.__name__}", errors=errors) from e

    def to_body(self) -> dict:
        return convert_to_request_body(self.model_dump())


class InvoiceRequest(RequestModel):
    """Payload for creating or editing an invoice."""

    amount: Decimal = Field(gt=0, decimal_places=2)
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = Field(None, max_length=MAX_VENDOR_NAME_LENGTH)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @model_validator(mode="after")
    def check_vendor_reference(self) -> "InvoiceRequest":
        if self.vendor_id is None and not self.vendor_name:
            raise ValueError("Either vendor_id or vendor_name is required")
        return self


class StatusUpdateRequest(RequestModel):
    """Payload for PATCH /invoice/{id}/status and the bulk variant."""

    status: InvoiceStatus
    rejection_reason: Optional[str] = Field(None, max_length=MAX_REJECTION_REASON_LENGTH)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return InvoiceStatus.parse(value)

    @model_validator(mode="after")
    def check_reason(self) -> "StatusUpdateRequest":
        if self.status not in (InvoiceStatus.APPROVED, InvoiceStatus.REJECTED):
            raise ValueError("Status can only be set to Approved or Rejected")
        if self.status == InvoiceStatus.REJECTED and not self.rejection_reason:
            raise ValueError("A rejection reason is required")
        return self

    def to_body(self) -> dict:
        # the backend binds status to its enum, so it goes out as the integer code
        body = {"status": self.status.code}
        if self.status == InvoiceStatus.REJECTED:
            body["rejectionReason"] = self.rejection_reason
        return body


class BulkStatusRequest(StatusUpdateRequest):
    invoice_ids: List[int] = Field(min_length=1)

    @field_validator("invoice_ids")
    @classmethod
    def dedupe_ids(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))

    def to_body(self) -> dict:
        body = super().to_body()
        body["invoiceIds"] = list(self.invoice_ids)
        return body


class VendorRequest(RequestModel):
    """Payload for creating or updating a vendor."""

    name: str = Field(min_length=MIN_VENDOR_NAME_LENGTH, max_length=MAX_VENDOR_NAME_LENGTH)
    category: str = Field(min_length=1, max_length=MAX_VENDOR_CATEGORY_LENGTH)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[VendorStatus] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return None if value is None else VendorStatus.parse(value)


class InvoiceFilters(RequestModel):
    """Query parameters of GET /invoice."""

    status: Optional[InvoiceStatus] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = Field(None, pattern="^(asc|desc)$")
    search: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return None if value is None else InvoiceStatus.parse(value)

    def to_params(self) -> dict:
        """Query params as sent to the server (status as its integer code)."""
        params = convert_to_request_body(self.model_dump())
        if self.status is not None:
            params["status"] = self.status.code
        return params

    def descriptor(self) -> tuple:
        """Hashable filter descriptor used inside cache keys."""
        return freeze_params(self.to_params())
