"""
User and authentication payload models.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from shared.utils.convert import parse_enum, to_camel


class UserRole(str, Enum):
    """User roles. Manager and Admin may approve or reject invoices."""
    USER = "User"
    MANAGER = "Manager"
    ADMIN = "Admin"

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        return parse_enum(cls, value, aliases={"management": cls.MANAGER})

    @property
    def is_privileged(self) -> bool:
        return self in (UserRole.MANAGER, UserRole.ADMIN)


class User(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    id: int
    username: str
    role: UserRole = UserRole.USER

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, value):
        return UserRole.parse(value)


class AuthResponse(BaseModel):
    """Body of a successful login or register call."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    token: str
    user: User
