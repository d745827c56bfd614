"""
Invoice domain model and status machine.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.utils.constants import VALID_STATUS_TRANSITIONS
from shared.utils.convert import parse_enum, to_camel


class InvoiceStatus(str, Enum):
    """Invoice status machine states."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"

    @classmethod
    def parse(cls, value: Any) -> "InvoiceStatus":
        """Accept the status name (any case) or the backend integer code."""
        return parse_enum(cls, value)

    @property
    def code(self) -> int:
        return list(InvoiceStatus).index(self)

    @property
    def is_terminal(self) -> bool:
        return not VALID_STATUS_TRANSITIONS[self.value]

    def can_transition_to(self, new_status: "InvoiceStatus") -> bool:
        """Check if transition to new status is valid."""
        return new_status.value in VALID_STATUS_TRANSITIONS[self.value]


class Invoice(BaseModel):
    """Invoice as returned by the invoice endpoints."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # ========== IDENTIFIERS ==========
    id: int
    user_id: int
    username: Optional[str] = None

    # ========== VENDOR ==========
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    vendor_category: Optional[str] = None

    # ========== CONTENT ==========
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1)
    notes: Optional[str] = None

    # ========== STATUS ==========
    status: InvoiceStatus = InvoiceStatus.PENDING
    rejection_reason: Optional[str] = None

    # ========== DATES ==========
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return InvoiceStatus.parse(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Description cannot be empty")
        return value

    @model_validator(mode="after")
    def check_references(self) -> "Invoice":
        if self.vendor_id is None and not self.vendor_name:
            raise ValueError("Invoice must reference a vendor by id or name")
        if self.rejection_reason and self.status != InvoiceStatus.REJECTED:
            raise ValueError("rejectionReason is only allowed on rejected invoices")
        return self

    @property
    def is_editable(self) -> bool:
        """Only pending invoices may be edited or withdrawn."""
        return self.status == InvoiceStatus.PENDING

    def with_status(self, status: InvoiceStatus, rejection_reason: Optional[str] = None) -> "Invoice":
        """Return a copy carrying the new status."""
        reason = rejection_reason if status == InvoiceStatus.REJECTED else None
        return self.model_copy(update={"status": status, "rejection_reason": reason})

    def to_dict(self) -> dict:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict) -> "Invoice":
        """Create Invoice from a response payload."""
        return cls.model_validate(data)
