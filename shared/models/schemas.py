"""
Response validation. Every payload coming back from the remote API passes
through one of these validators before it may enter the query cache.
"""

from typing import Any, List, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from shared.models.activity import Activity
from shared.models.invoice import Invoice
from shared.models.user import AuthResponse, User
from shared.models.vendor import Vendor
from shared.utils.convert import to_camel
from shared.utils.exceptions import SchemaMismatchException
from shared.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BulkStatusResult(BaseModel):
    """Body of a bulk status update."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    message: str
    count: int


INVOICE_LIST = TypeAdapter(List[Invoice])
INVOICE = TypeAdapter(Invoice)
ACTIVITY_LIST = TypeAdapter(List[Activity])
VENDOR_LIST = TypeAdapter(List[Vendor])
VENDOR = TypeAdapter(Vendor)
USER = TypeAdapter(User)
AUTH_RESPONSE = TypeAdapter(AuthResponse)
BULK_STATUS_RESULT = TypeAdapter(BulkStatusResult)


def validate_response(adapter: TypeAdapter, payload: Any, resource: str):
    """
    Validate a decoded JSON payload.

    Args:
        adapter: TypeAdapter describing the expected shape
        payload: Decoded JSON body
        resource: Human readable resource name for error reporting

    Returns:
        The validated model(s)

    Raises:
        SchemaMismatchException: If the payload does not match
    """
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        logger.error(
            "Response failed schema validation",
            extra={"resource": resource, "error_count": e.error_count(), "error_details": str(e)},
        )
        raise SchemaMismatchException(resource, str(e)) from e
