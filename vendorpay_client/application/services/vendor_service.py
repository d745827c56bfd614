from typing import List, Optional

from shared.config.settings import settings
from shared.models.schemas import VENDOR, VENDOR_LIST, validate_response
from shared.models.vendor import Vendor
from shared.utils.constants import FallbackMessages, NotificationTitles, VendorKeys
from shared.utils.exceptions import ClientValidationException
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.application.services import optimistic_transforms as transforms
from vendorpay_client.application.services.mutation_coordinator import (
    MutationCoordinator,
    MutationResult,
    MutationSpec,
    SettledCallback,
)
from vendorpay_client.application.services.query_cache import ErrorCallback, QueryObserver
from vendorpay_client.domain.requests import VendorRequest

logger = get_logger(__name__)


class VendorService:
    """
    Vendor reads and admin mutations.

    Vendors change rarely, so they use a longer staleness window than
    invoices.
    """

    def __init__(self, api_client: ApiClientInterface, coordinator: MutationCoordinator,
                 stale_time: float = None):
        self.api_client = api_client
        self.coordinator = coordinator
        self.cache = coordinator.cache
        self.stale_time = stale_time if stale_time is not None else settings.vendor_stale_time_seconds

    # ========== QUERIES ==========

    async def _fetch_list(self) -> List[Vendor]:
        payload = await self.api_client.get("/vendor")
        return validate_response(VENDOR_LIST, payload, "vendor list")

    def _detail_fetcher(self, vendor_id: int):
        async def fetch() -> Vendor:
            payload = await self.api_client.get(f"/vendor/{vendor_id}")
            return validate_response(VENDOR, payload, f"vendor {vendor_id}")
        return fetch

    async def list_vendors(self, force: bool = False) -> List[Vendor]:
        return await self.cache.fetch(VendorKeys.list(), self._fetch_list, self.stale_time, force=force)

    async def get_vendor(self, vendor_id: int, force: bool = False) -> Vendor:
        key = VendorKeys.detail(vendor_id)
        return await self.cache.fetch(key, self._detail_fetcher(vendor_id), self.stale_time, force=force)

    def watch_vendors(self, on_error: Optional[ErrorCallback] = None) -> QueryObserver:
        return self.cache.observe(VendorKeys.list(), self._fetch_list, on_error)

    # ========== PRE-FLIGHT ==========

    def _check_unique_name(self, request: VendorRequest, vendor_id: Optional[int] = None) -> None:
        """Active vendor names are unique, case-insensitively. Only the cached list is consulted."""
        cached = self.cache.read(VendorKeys.list()) or []
        name = request.name.lower()
        for vendor in cached:
            if vendor.id != vendor_id and vendor.is_active and vendor.name.lower() == name:
                raise ClientValidationException(
                    f"Vendor '{request.name}' already exists",
                    errors={"name": "An active vendor with this name already exists"},
                )

    # ========== MUTATIONS ==========

    async def create_vendor(self, request: VendorRequest,
                            on_settled: Optional[SettledCallback] = None) -> MutationResult:
        self._check_unique_name(request)

        async def send():
            payload = await self.api_client.post("/vendor", json=request.to_body())
            return validate_response(VENDOR, payload, "created vendor")

        spec = MutationSpec(
            name="create_vendor",
            request=send,
            affected=[VendorKeys.LISTS],
            failure_title=NotificationTitles.CREATE_FAILED,
            fallback_message=FallbackMessages.CREATE_VENDOR,
            success_message="Vendor created",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def update_vendor(self, vendor_id: int, request: VendorRequest,
                            on_settled: Optional[SettledCallback] = None) -> MutationResult:
        """Update a vendor, showing the new fields in the list and detail right away."""
        self._check_unique_name(request, vendor_id)

        changes = request.model_dump(exclude_none=True)

        async def send():
            payload = await self.api_client.put(f"/vendor/{vendor_id}", json=request.to_body())
            return validate_response(VENDOR, payload, f"vendor {vendor_id}")

        spec = MutationSpec(
            name="update_vendor",
            request=send,
            affected=[VendorKeys.LISTS, VendorKeys.detail(vendor_id)],
            transform=transforms.replace_fields(vendor_id, changes),
            failure_title=NotificationTitles.UPDATE_FAILED,
            fallback_message=FallbackMessages.UPDATE_VENDOR,
            success_message="Vendor updated",
        )
        return await self.coordinator.execute(spec, on_settled)

    async def delete_vendor(self, vendor_id: int,
                            on_settled: Optional[SettledCallback] = None) -> MutationResult:
        async def send():
            return await self.api_client.delete(f"/vendor/{vendor_id}")

        spec = MutationSpec(
            name="delete_vendor",
            request=send,
            affected=[VendorKeys.LISTS],
            purge=[VendorKeys.detail(vendor_id)],
            transform=transforms.remove_entity(vendor_id),
            failure_title=NotificationTitles.DELETE_FAILED,
            fallback_message=FallbackMessages.DELETE_VENDOR,
            success_message="Vendor deleted",
        )
        return await self.coordinator.execute(spec, on_settled)
