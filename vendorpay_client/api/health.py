"""
Health check endpoint.
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from shared.config.settings import settings
from shared.utils.exceptions import ApiException
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.di_container import DIContainer, get_container
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.application.services.query_cache import QueryCache

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def health_check():
    """Basic health check - is service alive?"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": settings.api_title,
        "version": settings.api_version
    }


# Readiness: the backend must answer its own health check
@router.get("/ready")
async def readiness_check(container: DIContainer = Depends(get_container)):
    """Readiness check - is the remote API reachable?"""
    api_client = container.get_service(ApiClientInterface)
    cache = container.get_service(QueryCache)

    backend_ready = True
    try:
        await api_client.get("/health")
    except ApiException as e:
        backend_ready = False
        logger.warning("Backend health check failed", extra={"error_details": e.message})

    return JSONResponse(
        status_code=200 if backend_ready else 503,
        content={
            "status": "ready" if backend_ready else "not_ready",
            "service": settings.api_title,
            "version": settings.api_version,
            "timestamp": datetime.now().isoformat(),
            "services": {
                "remote_api": backend_ready,
                "query_cache_entries": len(cache.keys()),
            },
        }
    )
