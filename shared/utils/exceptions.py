"""Custom exceptions for the VendorPay client."""

from typing import Any, Optional


class VendorPayException(Exception):
    """Base exception for all client errors."""
    pass


class ClientValidationException(VendorPayException):
    """Raised before any network call when mutation input is rejected locally."""

    def __init__(self, message: str, errors: Optional[dict] = None):
        self.message = message
        self.errors = errors or {}
        super().__init__(message)


class InvalidInvoiceStateException(ClientValidationException):
    """Raised when a cached invoice is in an invalid state for the requested operation."""
    pass


class SchemaMismatchException(VendorPayException):
    """Raised when a response body does not match the expected entity shape."""

    def __init__(self, resource: str, details: str = ""):
        self.resource = resource
        self.details = details
        super().__init__(f"Unexpected response shape for {resource}")


class ApiException(VendorPayException):
    """Base exception for remote API failures."""

    def __init__(self, message: str, status_code: int = 0, payload: Optional[Any] = None):
        self.message = message
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class NetworkException(ApiException):
    """Raised when the server cannot be reached."""

    def __init__(self, message: str = "Unable to reach the server. Check your connection and try again."):
        super().__init__(message, status_code=0)


class ServerRejectedException(ApiException):
    """Raised when the server answers with a 4xx/5xx status."""
    pass


class UnauthorizedException(ServerRejectedException):
    """Raised on 401 responses, after the session has been torn down."""
    pass
