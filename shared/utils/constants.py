"""
Constants for query keys, status transitions and user-facing messages.
"""

from typing import Any, Tuple

QueryKey = Tuple[Any, ...]


class InvoiceKeys:
    """Query key factory for invoice queries."""
    ALL: QueryKey = ("invoices",)
    LISTS: QueryKey = ("invoices", "list")
    DETAILS: QueryKey = ("invoices", "detail")
    ACTIVITIES: QueryKey = ("invoices", "activity")

    @staticmethod
    def list(filter_descriptor: Tuple[Tuple[str, Any], ...] = ()) -> QueryKey:
        return InvoiceKeys.LISTS + (filter_descriptor,)

    @staticmethod
    def detail(invoice_id: int) -> QueryKey:
        return InvoiceKeys.DETAILS + (invoice_id,)

    @staticmethod
    def activity(invoice_id: int) -> QueryKey:
        return InvoiceKeys.ACTIVITIES + (invoice_id,)


class VendorKeys:
    """Query key factory for vendor queries."""
    ALL: QueryKey = ("vendors",)
    LISTS: QueryKey = ("vendors", "list")
    DETAILS: QueryKey = ("vendors", "detail")

    @staticmethod
    def list() -> QueryKey:
        return VendorKeys.LISTS + ((),)

    @staticmethod
    def detail(vendor_id: int) -> QueryKey:
        return VendorKeys.DETAILS + (vendor_id,)


# Valid state transitions for the invoice status machine
VALID_STATUS_TRANSITIONS = {
    "Pending": ["Approved", "Rejected", "Withdrawn"],
    "Approved": [],
    "Rejected": [],
    "Withdrawn": [],
}


class NotificationTitles:
    """Titles of transient notifications raised by mutations."""
    CREATE_FAILED = "Create Failed"
    UPDATE_FAILED = "Update Failed"
    WITHDRAW_FAILED = "Withdraw Failed"
    DELETE_FAILED = "Delete Failed"
    BULK_UPDATE_FAILED = "Bulk Update Failed"
    SESSION_EXPIRED = "Session Expired"
    SUCCESS = "Success"


class FallbackMessages:
    """Generic per-operation messages used when the server sends none."""
    CREATE_INVOICE = "Failed to create invoice"
    UPDATE_INVOICE = "Failed to update invoice"
    APPROVE_INVOICE = "Failed to approve invoice"
    REJECT_INVOICE = "Failed to reject invoice"
    WITHDRAW_INVOICE = "Failed to withdraw invoice"
    DELETE_INVOICE = "Failed to delete invoice"
    BULK_STATUS = "Failed to update selected invoices"
    CREATE_VENDOR = "Failed to create vendor"
    UPDATE_VENDOR = "Failed to update vendor"
    DELETE_VENDOR = "Failed to delete vendor"
    SESSION_EXPIRED = "Your session has expired. Please sign in again."


MAX_DESCRIPTION_LENGTH = 500
MAX_NOTES_LENGTH = 500
MAX_REJECTION_REASON_LENGTH = 500
MIN_VENDOR_NAME_LENGTH = 2
MAX_VENDOR_NAME_LENGTH = 100
MAX_VENDOR_CATEGORY_LENGTH = 50
