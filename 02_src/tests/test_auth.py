"""Tests for bearer-token authentication."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from chatcore.auth import TokenAuthenticator, parse_bearer
from chatcore.errors import AuthorizationError, ValidationError
from conftest import TEST_JWT_SECRET


class TestParseBearer:
    """Tests for parse_bearer()."""

    def test_extracts_token(self):
        assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [None, "", "Bearer ", "Basic dXNlcg==", "abc"])
    def test_rejects_missing_or_wrong_scheme(self, header):
        with pytest.raises(AuthorizationError, match="Missing Authorization header"):
            parse_bearer(header)


class TestLogin:
    """Tests for TokenAuthenticator.login()."""

    @pytest.mark.asyncio
    async def test_login_creates_user(self, authenticator, storage):
        """Test that first login registers the username."""
        user, token = await authenticator.login("alice")

        assert user.username == "alice"
        assert token
        assert (await storage.get_user(user.id)).username == "alice"

    @pytest.mark.asyncio
    async def test_login_is_idempotent(self, authenticator):
        """Test that logging in again yields the same user."""
        first, _ = await authenticator.login("alice")
        second, _ = await authenticator.login("  alice  ")

        assert first.id == second.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username", ["", "   ", "x" * 65])
    async def test_login_rejects_bad_usernames(self, authenticator, username):
        with pytest.raises(ValidationError):
            await authenticator.login(username)


class TestAuthenticate:
    """Tests for TokenAuthenticator.authenticate()."""

    @pytest.mark.asyncio
    async def test_round_trip(self, authenticator):
        """Test that an issued token authenticates as its user."""
        user, token = await authenticator.login("alice")

        principal = authenticator.authenticate(token)

        assert principal.user_id == user.id
        assert principal.username == "alice"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, authenticator, token):
        with pytest.raises(AuthorizationError, match="Missing token"):
            authenticator.authenticate(token)

    def test_garbage_token(self, authenticator):
        with pytest.raises(AuthorizationError, match="Invalid token"):
            authenticator.authenticate("not-a-jwt")

    def test_wrong_secret(self, authenticator):
        """Test that a token signed with another key is rejected."""
        token = jwt.encode(
            {"user_id": 1, "username": "alice"},
            "another-secret-key-with-enough-bytes",
            algorithm="HS256",
        )
        with pytest.raises(AuthorizationError, match="Invalid token"):
            authenticator.authenticate(token)

    def test_expired_token(self, authenticator):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                "user_id": 1,
                "username": "alice",
                "iat": past,
                "exp": past + timedelta(hours=1),
            },
            TEST_JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(AuthorizationError, match="Token expired"):
            authenticator.authenticate(token)

    def test_missing_claims(self, authenticator):
        """Test that a validly signed token without the user claims is rejected."""
        token = jwt.encode({"username": "alice"}, TEST_JWT_SECRET, algorithm="HS256")
        with pytest.raises(AuthorizationError, match="Invalid token"):
            authenticator.authenticate(token)

    def test_empty_secret_rejected(self, storage):
        with pytest.raises(ValueError):
            TokenAuthenticator(storage=storage, secret="")
