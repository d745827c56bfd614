import copy
import json
from pathlib import Path

import pytest

from shared.models.invoice import Invoice
from shared.models.vendor import Vendor

DATA_SOURCE = Path(__file__).resolve().parents[2] / "scripts" / "data-source"


def _load(filename: str) -> list:
    with open(DATA_SOURCE / filename, "r") as f:
        return json.load(f)


_INVOICE_PAYLOADS = _load("invoices_data.json")
_VENDOR_PAYLOADS = _load("vendors_data.json")


@pytest.fixture
def invoice_payloads() -> list:
    """Invoice response bodies as the backend sends them."""
    return copy.deepcopy(_INVOICE_PAYLOADS)


@pytest.fixture
def vendor_payloads() -> list:
    return copy.deepcopy(_VENDOR_PAYLOADS)


@pytest.fixture
def invoices(invoice_payloads) -> list:
    """Invoices 101 and 102 are Pending, 103 Approved, 104 Rejected, 105 Withdrawn."""
    return [Invoice.from_dict(item) for item in invoice_payloads]


@pytest.fixture
def vendors(vendor_payloads) -> list:
    return [Vendor.from_dict(item) for item in vendor_payloads]
