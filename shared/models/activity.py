"""
Invoice activity (audit trail) model. Entries are append-only.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from shared.utils.convert import parse_enum, to_camel


class ActivityAction(str, Enum):
    """Audit actions, declared in backend enum order."""
    CREATED = "Created"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    UPDATED = "Updated"
    DELETED = "Deleted"

    @classmethod
    def parse(cls, value: Any) -> "ActivityAction":
        return parse_enum(cls, value)


class Activity(BaseModel):
    """A single audit entry for an invoice."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: int
    invoice_id: int
    action: ActivityAction
    performed_by_id: Optional[int] = None
    performed_by_username: str = ""
    performed_by_role: str = ""
    metadata: Optional[str] = None
    timestamp: datetime

    @field_validator("action", mode="before")
    @classmethod
    def parse_action(cls, value):
        return ActivityAction.parse(value)
