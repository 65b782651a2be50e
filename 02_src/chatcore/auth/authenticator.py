"""Bearer-token authentication."""

from datetime import datetime, timedelta, timezone
from typing import Protocol

import jwt

from ..config import TOKEN_TTL_SECONDS
from ..errors import AuthorizationError, ValidationError
from ..logging_config import get_logger
from ..models import AuthenticatedUser, User
from ..storage import IStorage

logger = get_logger(__name__)

MAX_USERNAME_LENGTH = 64


def parse_bearer(header: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header or not header.startswith("Bearer "):
        raise AuthorizationError("Missing Authorization header")
    token = header.split(" ", 1)[1].strip()
    if not token:
        raise AuthorizationError("Missing Authorization header")
    return token


class IAuthenticator(Protocol):
    """Turns a bearer credential into an authenticated principal."""

    def authenticate(self, token: str | None) -> AuthenticatedUser:
        """Return (user_id, username) or raise AuthorizationError."""
        ...


class TokenAuthenticator:
    """Issues and verifies HS256 JWTs carrying the user's id and username."""

    algorithm = "HS256"

    def __init__(
        self,
        storage: IStorage,
        secret: str,
        ttl_seconds: int = TOKEN_TTL_SECONDS,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._storage = storage
        self._secret = secret
        self._ttl = timedelta(seconds=ttl_seconds)

    async def login(self, username: str) -> tuple[User, str]:
        """Find or create the user and issue a token for it."""
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username must not be empty")
        if len(username) > MAX_USERNAME_LENGTH:
            raise ValidationError(
                f"Username must be at most {MAX_USERNAME_LENGTH} characters"
            )

        user = await self._storage.get_or_create_user(username)
        logger.info("LOGIN_SUCCESS username=%s user_id=%s", user.username, user.id)
        return user, self.issue_token(user)

    def issue_token(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user.username,
            "user_id": user.id,
            "username": user.username,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def authenticate(self, token: str | None) -> AuthenticatedUser:
        """Return (user_id, username) or raise AuthorizationError."""
        if not token:
            logger.warning("UNAUTHORIZED_ACCESS reason=missing_token")
            raise AuthorizationError("Missing token")

        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("UNAUTHORIZED_ACCESS reason=expired_token")
            raise AuthorizationError("Token expired")
        except jwt.PyJWTError:
            logger.warning("UNAUTHORIZED_ACCESS reason=invalid_token")
            raise AuthorizationError("Invalid token")

        try:
            return AuthenticatedUser(
                user_id=int(claims["user_id"]), username=str(claims["username"])
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("UNAUTHORIZED_ACCESS reason=malformed_claims")
            raise AuthorizationError("Invalid token")
