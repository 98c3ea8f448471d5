import logging
import time
from dataclasses import dataclass

import jwt

from homevault.server.config import AuthConfig, UserEntry
from homevault.server.exceptions import Unauthorized

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class UserEntity:
    """An authenticated caller."""

    id: int
    username: str
    is_admin: bool = False


class UserService:
    """Looks up configured users and issues access tokens."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def _get_entry(self, username: str) -> UserEntry | None:
        for user in self._config.users:
            if user.username == username:
                return user
        return None

    def get_user(self, username: str) -> UserEntity | None:
        """Return the active user with `username`, if any."""
        entry = self._get_entry(username)
        if entry is None or not entry.is_active:
            logger.info("User not found or inactive: %s", username)
            return None
        return UserEntity(id=entry.user_id, username=entry.username, is_admin=entry.is_admin)

    def create_token(self, username: str) -> str:
        """Issue a signed token for an active user."""
        if self.get_user(username) is None:
            raise Unauthorized(f"Unknown or inactive user: {username}")
        now = int(time.time())
        payload = {
            "sub": username,
            "iat": now,
            "exp": now + self._config.token_ttl_seconds,
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> UserEntity:
        """Decode a token and return the user it was issued to.

        Raises:
          Unauthorized: The token is invalid, expired or names an unknown user.
        """
        try:
            payload = jwt.decode(
                token, self._config.secret_key, algorithms=[JWT_ALGORITHM]
            )
        except jwt.PyJWTError as err:
            logger.info("Rejected token: %s", err)
            raise Unauthorized("Invalid or expired token") from err
        username = payload.get("sub")
        if not username or (user := self.get_user(username)) is None:
            raise Unauthorized("Invalid or expired token")
        return user
