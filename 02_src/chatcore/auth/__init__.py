"""Authentication module."""

from .authenticator import IAuthenticator, TokenAuthenticator, parse_bearer

__all__ = ["IAuthenticator", "TokenAuthenticator", "parse_bearer"]
