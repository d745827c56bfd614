from typing import Callable, List, Optional

from shared.models.user import User
from shared.utils.logging_config import get_logger

logger = get_logger(__name__)


class AuthSession:
    """Holds the bearer token and the signed-in user for one client container."""

    def __init__(self, token: Optional[str] = None, user: Optional[User] = None):
        self.token = token
        self.user = user
        self._teardown_listeners: List[Callable[[], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def sign_in(self, token: str, user: User) -> None:
        self.token = token
        self.user = user
        logger.info("Session started", extra={"username": user.username, "role": user.role.value})

    def on_teardown(self, listener: Callable[[], None]) -> None:
        self._teardown_listeners.append(listener)

    def teardown(self) -> None:
        """Forget the credentials and let listeners reset client state."""
        was_authenticated = self.is_authenticated
        self.token = None
        self.user = None
        if was_authenticated:
            logger.warning("Session torn down")
        for listener in self._teardown_listeners:
            listener()
