"""Authorization providers for analysis requests.

Use :func:`create_authorization_provider` to pick a provider from CLI-style
arguments: a token selects bearer authorization, a username or password
selects Basic, and nothing selects no authorization.
"""

from __future__ import annotations

from typing import Optional

from brapi_analyser.auth.base import AuthorizationProvider, NoAuthorizationProvider
from brapi_analyser.auth.basic import BasicAuthorizationProvider
from brapi_analyser.auth.bearer import BearerAuthorizationProvider
from brapi_analyser.exceptions import ConfigurationError

__all__ = [
    "AuthorizationProvider",
    "BasicAuthorizationProvider",
    "BearerAuthorizationProvider",
    "NoAuthorizationProvider",
    "create_authorization_provider",
]


def create_authorization_provider(
    username: Optional[str] = None,
    password: Optional[str] = None,
    token: Optional[str] = None,
) -> AuthorizationProvider:
    """Return the provider matching the given credentials.

    Raises:
        ConfigurationError: If both a token and Basic credentials are given.
    """
    if token and (username or password):
        raise ConfigurationError("Use either a bearer token or a username and password, not both")
    if token:
        return BearerAuthorizationProvider(token)
    if username or password:
        return BasicAuthorizationProvider(username, password)
    return NoAuthorizationProvider()
