"""
HTTP client for the VendorPay REST API.

Every request carries the session's bearer token. Failures are normalized
into the client exception taxonomy:

- transport errors and timeouts -> NetworkException
- 401 -> session teardown, then UnauthorizedException
- other 4xx/5xx -> ServerRejectedException with the server's message
- undecodable success body -> SchemaMismatchException
"""
from typing import Any, Optional

import httpx

from shared.config.settings import settings
from shared.utils.exceptions import (
    NetworkException,
    SchemaMismatchException,
    ServerRejectedException,
    UnauthorizedException,
)
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.infrastructure.http.auth_session import AuthSession

logger = get_logger(__name__)

MESSAGE_FIELDS = ("message", "error", "title")


def extract_server_message(payload: Any) -> Optional[str]:
    """Pick the human readable message out of an error body, if any."""
    if isinstance(payload, dict):
        for field_name in MESSAGE_FIELDS:
            value = payload.get(field_name)
            if isinstance(value, str) and value.strip():
                return value
    if isinstance(payload, str) and payload.strip():
        return payload
    return None


class RestApiClient(ApiClientInterface):
    """httpx based implementation of the remote API client."""

    def __init__(
        self,
        session: AuthSession,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            session: Auth session providing the bearer token
            base_url: API root, e.g. http://localhost:5001/api
            timeout: Request timeout in seconds
            transport: Optional transport override (tests)
        """
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    def _headers(self) -> dict:
        if self.session.token:
            return {"Authorization": f"Bearer {self.session.token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self.client.request(
                method=method,
                url=path,
                headers=self._headers(),
                json=json,
                params=params,
            )
        except httpx.HTTPError as e:
            logger.error(
                "API request failed",
                extra={"method": method, "path": path, "error_type": type(e).__name__, "error_details": str(e)},
            )
            raise NetworkException() from e

        if response.status_code == 401:
            self.session.teardown()
            raise UnauthorizedException(
                self._error_message(response) or "Unauthorized",
                status_code=401,
                payload=self._decode(response),
            )

        if response.is_error:
            payload = self._decode(response)
            message = extract_server_message(payload)
            logger.warning(
                "API request rejected",
                extra={"method": method, "path": path, "status_code": response.status_code, "error_details": message},
            )
            raise ServerRejectedException(message or "", status_code=response.status_code, payload=payload)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise SchemaMismatchException(f"{method} {path}", "response body is not JSON") from e

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text or None

    def _error_message(self, response: httpx.Response) -> Optional[str]:
        return extract_server_message(self._decode(response))

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("REST API client closed.")
