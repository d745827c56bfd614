"""
Auth API - signs the client session in and out against the backend.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from shared.utils.exceptions import VendorPayException
from shared.utils.logging_config import get_logger
from vendorpay_client.api.responses import serialize, to_http_exception
from vendorpay_client.application.interfaces.di_container import get_auth_service
from vendorpay_client.application.services.auth_service import AuthService

logger = get_logger(__name__)

router = APIRouter(
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Not signed in"},
        422: {"description": "Invalid input"},
    }
)


class Credentials(BaseModel):
    username: str = Field("", description="Account name")
    password: str = Field("", description="Account password")
    role: Optional[str] = Field(None, description="Role requested at registration")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "jdoe",
                "password": "secret123"
            }
        }
    )


@router.post("/login")
async def login(credentials: Credentials, auth_service: AuthService = Depends(get_auth_service)) -> dict:
    logger.info("Login requested", extra={"username": credentials.username})
    try:
        user = await auth_service.login(credentials.username, credentials.password)
    except VendorPayException as e:
        logger.warning("Login failed", extra={"username": credentials.username, "error_details": str(e)})
        raise to_http_exception(e)
    return serialize(user)


@router.post("/register")
async def register(credentials: Credentials, auth_service: AuthService = Depends(get_auth_service)) -> dict:
    try:
        user = await auth_service.register(credentials.username, credentials.password, credentials.role)
    except VendorPayException as e:
        logger.warning("Registration failed", extra={"username": credentials.username, "error_details": str(e)})
        raise to_http_exception(e)
    return serialize(user)


@router.get("/me")
async def current_user(auth_service: AuthService = Depends(get_auth_service)) -> dict:
    try:
        return serialize(await auth_service.me())
    except VendorPayException as e:
        raise to_http_exception(e)


@router.post("/logout")
async def logout(auth_service: AuthService = Depends(get_auth_service)) -> dict:
    auth_service.logout()
    return {"status": "signed_out"}
