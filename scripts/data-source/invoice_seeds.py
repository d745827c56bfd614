import argparse
import asyncio
import json

from shared.config.settings import settings
from shared.models.invoice import Invoice, InvoiceStatus
from shared.models.vendor import Vendor
from shared.utils.exceptions import ApiException
from shared.utils.logging_config import get_logger, setup_logging
from vendorpay_client.application.services.auth_service import AuthService
from vendorpay_client.domain.requests import InvoiceRequest, VendorRequest
from vendorpay_client.infrastructure.http.auth_session import AuthSession
from vendorpay_client.infrastructure.http.rest_api_client import RestApiClient

setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)

vendors_filename = "scripts/data-source/vendors_data.json"
invoices_filename = "scripts/data-source/invoices_data.json"


async def seed_vendors(api_client: RestApiClient, vendors: list[Vendor]) -> dict:
    """Create active vendors. Returns fixture vendor id -> server vendor id."""
    id_map = {}
    for vendor in vendors:
        if not vendor.is_active:
            logger.info(f"Skipping inactive vendor: {vendor.name}")
            continue
        request = VendorRequest(
            name=vendor.name,
            category=vendor.category,
            email=vendor.email,
            phone=vendor.phone,
            address=vendor.address,
        )
        try:
            created = await api_client.post("/vendor", json=request.to_body())
            id_map[vendor.id] = created["id"]
            logger.info(f"Seeded vendor {vendor.name} with id {created['id']}")
        except ApiException as e:
            logger.error(f"Failed to seed vendor {vendor.name}: {e.message}")
    return id_map


async def seed_invoices(api_client: RestApiClient, invoices: list[Invoice], vendor_ids: dict) -> bool:
    """Submit the pending fixture invoices for the signed-in user."""
    pending = [invoice for invoice in invoices if invoice.status == InvoiceStatus.PENDING]
    tasks = []
    for invoice in pending:
        request = InvoiceRequest(
            amount=invoice.amount,
            description=invoice.description,
            vendor_id=vendor_ids.get(invoice.vendor_id),
            vendor_name=invoice.vendor_name,
            notes=invoice.notes,
        )
        tasks.append(api_client.post("/invoice", json=request.to_body()))

    results = await asyncio.gather(*tasks, return_exceptions=True)

    success_count = 0
    for invoice, result in zip(pending, results):
        if isinstance(result, Exception):
            logger.error(f"Failed to seed invoice {invoice.id}: {result}")
        else:
            success_count += 1
            logger.debug(f"Successfully seeded invoice {invoice.id} as {result['id']}")

    logger.info(f"Seeding complete: {success_count}/{len(pending)} successful")
    return success_count == len(pending)


async def main():
    parser = argparse.ArgumentParser(description="Seed vendors and invoices into a VendorPay backend.")
    parser.add_argument("--username", required=True, help="Admin account used for seeding")
    parser.add_argument("--password", required=True)
    parser.add_argument("--base-url", default=settings.api_base_url)
    args = parser.parse_args()

    session = AuthSession()
    api_client = RestApiClient(session, base_url=args.base_url)
    try:
        await AuthService(api_client, session).login(args.username, args.password)

        with open(vendors_filename, "r") as f:
            vendors = [Vendor.from_dict(item) for item in json.load(f)]
        with open(invoices_filename, "r") as f:
            invoices = [Invoice.from_dict(item) for item in json.load(f)]

        vendor_ids = await seed_vendors(api_client, vendors)
        completed = await seed_invoices(api_client, invoices, vendor_ids)
        if completed:
            logger.info("Invoice seeding completed successfully.")
        else:
            logger.error("Invoice seeding failed.")
    finally:
        await api_client.close()

if __name__ == "__main__":
    asyncio.run(main())
