"""
Pure optimistic transforms.

Each factory returns a ``(key, value) -> value`` function suitable for
``QueryCache.update``. A cached value is either a list of entities (list
keys) or a single entity (detail keys). Transforms never mutate their input
and return the input object itself when nothing matched, so ids absent from
a collection leave it untouched.
"""
from typing import Any, Callable, Collection, Optional

from shared.models.invoice import Invoice, InvoiceStatus
from shared.utils.constants import QueryKey

Transform = Callable[[QueryKey, Any], Any]


def _map_entities(value: Any, ids: Collection[int], fn: Callable[[Any], Any]) -> Any:
    if isinstance(value, list):
        if not any(getattr(item, "id", None) in ids for item in value):
            return value
        return [fn(item) if item.id in ids else item for item in value]
    if getattr(value, "id", None) in ids:
        return fn(value)
    return value


def set_invoice_status(invoice_ids: Collection[int], status: InvoiceStatus,
                       rejection_reason: Optional[str] = None) -> Transform:
    """
    Set ``status`` (and the reason when rejecting) on every matching pending invoice.

    Terminal invoices never transition, and the server skips them too, so they
    are left as cached.
    """
    ids = frozenset(invoice_ids)

    def change(invoice: Invoice) -> Invoice:
        if not invoice.is_editable:
            return invoice
        return invoice.with_status(status, rejection_reason)

    def transform(key: QueryKey, value: Any) -> Any:
        return _map_entities(value, ids, change)

    return transform


def replace_fields(entity_id: int, changes: dict) -> Transform:
    """Overwrite the given fields on the matching entity."""
    ids = frozenset([entity_id])

    def transform(key: QueryKey, value: Any) -> Any:
        return _map_entities(value, ids, lambda entity: entity.model_copy(update=changes))

    return transform


def remove_entity(entity_id: int) -> Transform:
    """Drop the matching entity from list values. Detail values are left alone."""

    def transform(key: QueryKey, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        remaining = [item for item in value if item.id != entity_id]
        return value if len(remaining) == len(value) else remaining

    return transform


def invoice_changes(request) -> dict:
    """
    Fields of an InvoiceRequest the cache can predict before the server answers.

    Vendor fields are left out: the server resolves an id to a name and a
    name to an id, so either one alone would leave the entry inconsistent
    until the refetch lands.
    """
    return {
        "amount": request.amount,
        "description": request.description,
        "notes": request.notes,
    }


def find_cached_invoice(cache, invoice_id: int, prefixes) -> Optional[Invoice]:
    """Look an invoice up in detail and list entries, detail first."""
    for prefix in prefixes:
        for key in cache.keys(prefix):
            value = cache.read(key)
            items = value if isinstance(value, list) else [value]
            for item in items:
                if isinstance(item, Invoice) and item.id == invoice_id:
                    return item
    return None
