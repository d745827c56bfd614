"""Dependency Injection Container."""
from fastapi import Request

from shared.config.settings import Settings, settings as default_settings
from shared.utils.constants import FallbackMessages, NotificationTitles
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface, NotifierInterface
from vendorpay_client.application.services.auth_service import AuthService
from vendorpay_client.application.services.invoice_query_service import InvoiceQueryService
from vendorpay_client.application.services.invoice_service import InvoiceService
from vendorpay_client.application.services.mutation_coordinator import MutationCoordinator
from vendorpay_client.application.services.query_cache import QueryCache
from vendorpay_client.application.services.vendor_service import VendorService
from vendorpay_client.infrastructure.http.auth_session import AuthSession
from vendorpay_client.infrastructure.http.rest_api_client import RestApiClient
from vendorpay_client.infrastructure.notifications.notification_center import NotificationCenter
from vendorpay_client.infrastructure.repositories.in_memory_api_client import InMemoryApiClient

logger = get_logger(__name__)


class DIContainer:
    """
    Simple dependency injection container.

    One container owns one session, one query cache and one API client.
    Nothing is shared between containers.
    """

    def __init__(self, settings: Settings = None, api_client: ApiClientInterface = None):
        self.settings = settings or default_settings
        self._singletons = {}
        self._setup_services(api_client)

    def _setup_services(self, api_client: ApiClientInterface = None):
        logger.info("Setting up DI container services", extra={"api_client_type": self.settings.api_client_type})

        session = AuthSession()
        if api_client is None:
            if self.settings.api_client_type == "in_memory":
                api_client = InMemoryApiClient(session)
            else:
                api_client = RestApiClient(
                    session,
                    base_url=self.settings.api_base_url,
                    timeout=self.settings.api_timeout_seconds,
                )
        else:
            session = getattr(api_client, "session", session)

        cache = QueryCache()
        notifier = NotificationCenter(self.settings.notification_history_size)
        coordinator = MutationCoordinator(cache, notifier, await_refetch=self.settings.await_refetch_on_settle)

        self._singletons[AuthSession] = session
        self._singletons[ApiClientInterface] = api_client
        self._singletons[QueryCache] = cache
        self._singletons[NotifierInterface] = notifier
        self._singletons[MutationCoordinator] = coordinator
        self._singletons[AuthService] = AuthService(api_client, session)
        self._singletons[InvoiceQueryService] = InvoiceQueryService(
            api_client, cache, self.settings.invoice_stale_time_seconds
        )
        self._singletons[InvoiceService] = InvoiceService(api_client, coordinator)
        self._singletons[VendorService] = VendorService(
            api_client, coordinator, self.settings.vendor_stale_time_seconds
        )

        session.on_teardown(self._on_session_teardown)

    def _on_session_teardown(self) -> None:
        self._singletons[QueryCache].clear()
        self._singletons[NotifierInterface].error(NotificationTitles.SESSION_EXPIRED, FallbackMessages.SESSION_EXPIRED)

    def get_service(self, service_type):
        """Get a service instance by type."""
        if service_type in self._singletons:
            return self._singletons[service_type]
        raise ValueError(f"Service {service_type} not registered")

    async def close(self) -> None:
        """Close all services that require cleanup."""
        await self._singletons[QueryCache].drain()
        for service in self._singletons.values():
            if isinstance(service, ApiClientInterface):
                await service.close()


def get_container(request: Request) -> DIContainer:
    return request.app.state.container


def get_auth_service(request: Request) -> AuthService:
    """Dependency injection function for the auth service."""
    return get_container(request).get_service(AuthService)


def get_invoice_query_service(request: Request) -> InvoiceQueryService:
    """Dependency injection function for invoice reads."""
    return get_container(request).get_service(InvoiceQueryService)


def get_invoice_service(request: Request) -> InvoiceService:
    """Dependency injection function for invoice mutations."""
    return get_container(request).get_service(InvoiceService)


def get_vendor_service(request: Request) -> VendorService:
    return get_container(request).get_service(VendorService)


def get_notification_center(request: Request) -> NotificationCenter:
    return get_container(request).get_service(NotifierInterface)
