"""
Vendors API.
"""
from typing import List

from fastapi import APIRouter, Body, Depends

from shared.utils.exceptions import VendorPayException
from shared.utils.logging_config import get_logger
from vendorpay_client.api.responses import mutation_response, serialize, to_http_exception
from vendorpay_client.application.interfaces.di_container import get_vendor_service
from vendorpay_client.application.services.vendor_service import VendorService
from vendorpay_client.domain.requests import VendorRequest

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def list_vendors(force: bool = False, vendor_service: VendorService = Depends(get_vendor_service)) -> List[dict]:
    try:
        return serialize(await vendor_service.list_vendors(force=force))
    except VendorPayException as e:
        logger.warning("Failed to list vendors", extra={"error_type": type(e).__name__, "error_details": str(e)})
        raise to_http_exception(e)


@router.get("/{vendor_id}")
async def get_vendor(vendor_id: int, vendor_service: VendorService = Depends(get_vendor_service)) -> dict:
    try:
        return serialize(await vendor_service.get_vendor(vendor_id))
    except VendorPayException as e:
        raise to_http_exception(e)


@router.post("/")
async def create_vendor(body: dict = Body(...), vendor_service: VendorService = Depends(get_vendor_service)) -> dict:
    try:
        result = await vendor_service.create_vendor(VendorRequest.parse(**body))
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(result)


@router.put("/{vendor_id}")
async def update_vendor(
    vendor_id: int,
    body: dict = Body(...),
    vendor_service: VendorService = Depends(get_vendor_service),
) -> dict:
    try:
        result = await vendor_service.update_vendor(vendor_id, VendorRequest.parse(**body))
    except VendorPayException as e:
        raise to_http_exception(e)
    return mutation_response(result)


@router.delete("/{vendor_id}")
async def delete_vendor(vendor_id: int, vendor_service: VendorService = Depends(get_vendor_service)) -> dict:
    return mutation_response(await vendor_service.delete_vendor(vendor_id))
