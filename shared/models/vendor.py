"""
Vendor domain model.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from shared.utils.convert import parse_enum, to_camel


class VendorStatus(str, Enum):
    """Vendor status."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"

    @classmethod
    def parse(cls, value: Any) -> "VendorStatus":
        return parse_enum(cls, value)


class Vendor(BaseModel):
    """Vendor as returned by the vendor endpoints."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: int
    name: str
    category: str = ""
    status: VendorStatus = VendorStatus.ACTIVE

    # contact details are optional
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return VendorStatus.parse(value)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Vendor name cannot be empty")
        return value

    @property
    def is_active(self) -> bool:
        return self.status == VendorStatus.ACTIVE

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict) -> "Vendor":
        return cls.model_validate(data)
