"""
Service interfaces for dependency injection.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional


class ApiClientInterface(ABC):
    """Abstract base class for remote API client implementations."""

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body (None for empty responses).

        Raises:
            NetworkException: When the server cannot be reached
            ServerRejectedException: On 4xx/5xx responses
            SchemaMismatchException: When a success body is not JSON
        """
        pass

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[dict] = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Optional[dict] = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Optional[dict] = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the client."""
        pass


class NotifierInterface(ABC):
    """Abstract base class for transient user notifications."""

    @abstractmethod
    def success(self, title: str, message: str) -> None:
        """Publish a success notification."""
        pass

    @abstractmethod
    def error(self, title: str, message: str) -> None:
        """Publish an error notification."""
        pass
