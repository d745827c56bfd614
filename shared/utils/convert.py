from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Tuple


def to_camel(name: str) -> str:
    """Convert a snake_case field name to the camelCase used on the wire."""
    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


def convert_to_json_value(value: Any) -> Any:
    """Convert complex types to JSON compatible values."""
    if value is None:
        return None
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, Decimal):
        return float(value)
    elif isinstance(value, (datetime, date)):
        return value.isoformat()
    elif isinstance(value, dict):
        return {k: convert_to_json_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple, set)):
        return [convert_to_json_value(v) for v in value]
    elif isinstance(value, (str, int, float, bool)):
        return value
    else:
        return str(value)


def convert_to_request_body(data: dict) -> dict:
    """Convert a snake_case dict into a camelCase JSON body, dropping None values."""
    body = {}
    for key, value in data.items():
        if value is None:
            continue
        body[to_camel(key)] = convert_to_json_value(value)
    return body


def freeze_params(params: dict) -> Tuple[Tuple[str, Any], ...]:
    """Build a hashable, order-independent descriptor from query params."""
    return tuple(sorted((k, v) for k, v in params.items() if v is not None and v != ""))


def parse_enum(enum_cls, value: Any, aliases: Optional[dict] = None):
    """
    Resolve an enum member from its value (any case), an alias, or the
    backend's integer code (declaration order).
    """
    if isinstance(value, enum_cls):
        return value
    members = list(enum_cls)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized.isdigit():
            value = int(normalized)
        else:
            if aliases and normalized in aliases:
                return aliases[normalized]
            for member in members:
                if str(member.value).lower() == normalized:
                    return member
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(members):
        return members[value]
    raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}")
