from typing import Optional

from shared.models.schemas import AUTH_RESPONSE, USER, validate_response
from shared.models.user import User, UserRole
from shared.utils.exceptions import ClientValidationException
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import ApiClientInterface
from vendorpay_client.infrastructure.http.auth_session import AuthSession

logger = get_logger(__name__)


class AuthService:
    """Signs the session in and out. Tokens are issued by the backend."""

    def __init__(self, api_client: ApiClientInterface, session: AuthSession):
        self.api_client = api_client
        self.session = session

    @staticmethod
    def _require_credentials(username: str, password: str) -> None:
        errors = {}
        if not (username or "").strip():
            errors["username"] = "Username is required"
        if not password:
            errors["password"] = "Password is required"
        if errors:
            raise ClientValidationException("Invalid credentials", errors=errors)

    async def login(self, username: str, password: str) -> User:
        """
        Exchange credentials for a token and start the session.

        Raises:
            ClientValidationException: Missing username or password
            ServerRejectedException: Credentials refused by the backend
        """
        self._require_credentials(username, password)
        payload = await self.api_client.post(
            "/auth/login", json={"username": username.strip(), "password": password}
        )
        auth = validate_response(AUTH_RESPONSE, payload, "login response")
        self.session.sign_in(auth.token, auth.user)
        return auth.user

    async def register(self, username: str, password: str, role: Optional[UserRole] = None) -> User:
        self._require_credentials(username, password)
        body = {"username": username.strip(), "password": password}
        if role is not None:
            try:
                body["role"] = UserRole.parse(role).value
            except ValueError as e:
                raise ClientValidationException("Invalid role", errors={"role": str(e)}) from e
        payload = await self.api_client.post("/auth/register", json=body)
        auth = validate_response(AUTH_RESPONSE, payload, "register response")
        self.session.sign_in(auth.token, auth.user)
        logger.info("User registered", extra={"username": auth.user.username})
        return auth.user

    async def me(self) -> User:
        payload = await self.api_client.get("/auth/me")
        user = validate_response(USER, payload, "current user")
        self.session.user = user
        return user

    def logout(self) -> None:
        """Drop the session. Listeners clear cached data."""
        logger.info("User logged out", extra={"username": self.session.user.username if self.session.user else None})
        self.session.teardown()
