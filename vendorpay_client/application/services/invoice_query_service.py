from typing import List, Optional

from shared.config.settings import settings
from shared.models.activity import Activity
from shared.models.invoice import Invoice
from shared.models.schemas import ACTIVITY_LIST, INVOICE, INVOICE_LIST, validate_response
from shared.utils.constants import InvoiceKeys
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.application.services.query_cache import ErrorCallback, QueryCache, QueryObserver
from vendorpay_client.domain.requests import InvoiceFilters

logger = get_logger(__name__)


class InvoiceQueryService:
    """
    Read side for invoices.

    Every fetch validates the response before it is written to the cache; a
    schema mismatch propagates like a network failure and the previously
    cached value stays in place.
    """

    def __init__(self, api_client: ApiClientInterface, cache: QueryCache, stale_time: float = None):
        self.api_client = api_client
        self.cache = cache
        self.stale_time = stale_time if stale_time is not None else settings.invoice_stale_time_seconds

    # ========== FETCHERS ==========

    def _list_fetcher(self, filters: InvoiceFilters):
        async def fetch() -> List[Invoice]:
            payload = await self.api_client.get("/invoice", params=filters.to_params())
            return validate_response(INVOICE_LIST, payload, "invoice list")
        return fetch

    def _detail_fetcher(self, invoice_id: int):
        async def fetch() -> Invoice:
            payload = await self.api_client.get(f"/invoice/{invoice_id}")
            return validate_response(INVOICE, payload, f"invoice {invoice_id}")
        return fetch

    def _activity_fetcher(self, invoice_id: int):
        async def fetch() -> List[Activity]:
            payload = await self.api_client.get(f"/invoice/{invoice_id}/activity")
            return validate_response(ACTIVITY_LIST, payload, f"activity of invoice {invoice_id}")
        return fetch

    # ========== QUERIES ==========

    async def list_invoices(self, filters: Optional[InvoiceFilters] = None, force: bool = False) -> List[Invoice]:
        """Return the invoice list for the given filters, from cache when fresh."""
        filters = filters or InvoiceFilters()
        key = InvoiceKeys.list(filters.descriptor())
        invoices = await self.cache.fetch(key, self._list_fetcher(filters), self.stale_time, force=force)
        logger.debug("Invoice list resolved", extra={"filters": filters.descriptor(), "result_count": len(invoices)})
        return invoices

    async def get_invoice(self, invoice_id: int, force: bool = False) -> Invoice:
        key = InvoiceKeys.detail(invoice_id)
        return await self.cache.fetch(key, self._detail_fetcher(invoice_id), self.stale_time, force=force)

    async def get_activity(self, invoice_id: int, force: bool = False) -> List[Activity]:
        key = InvoiceKeys.activity(invoice_id)
        return await self.cache.fetch(key, self._activity_fetcher(invoice_id), self.stale_time, force=force)

    # ========== OBSERVERS ==========

    def watch_invoices(self, filters: Optional[InvoiceFilters] = None,
                       on_error: Optional[ErrorCallback] = None) -> QueryObserver:
        """Register a displayed invoice list so invalidation refetches it."""
        filters = filters or InvoiceFilters()
        return self.cache.observe(InvoiceKeys.list(filters.descriptor()), self._list_fetcher(filters), on_error)

    def watch_invoice(self, invoice_id: int, on_error: Optional[ErrorCallback] = None) -> QueryObserver:
        return self.cache.observe(InvoiceKeys.detail(invoice_id), self._detail_fetcher(invoice_id), on_error)

    def watch_activity(self, invoice_id: int, on_error: Optional[ErrorCallback] = None) -> QueryObserver:
        return self.cache.observe(InvoiceKeys.activity(invoice_id), self._activity_fetcher(invoice_id), on_error)
