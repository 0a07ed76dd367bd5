"""HTTP Basic authorization provider.

The username and password are joined as ``"username:password"``,
Base64-encoded, and sent as ``Authorization: Basic <encoded>`` per
:rfc:`7617`.
"""

from __future__ import annotations

import base64
from typing import Optional

from brapi_analyser.auth.base import AuthorizationProvider
from brapi_analyser.exceptions import AuthError
from brapi_analyser.result import Result


class BasicAuthorizationProvider(AuthorizationProvider):
    """Authorize via HTTP Basic authentication.

    Args:
        username: The user name; must not be empty or contain a colon.
        password: The password; must not be empty.
    """

    def __init__(self, username: Optional[str], password: Optional[str]) -> None:
        self._username = username
        self._password = password

    def get_authorization(self) -> Result[Optional[str]]:
        errors: list[AuthError] = []
        if not self._username:
            errors.append(AuthError("Basic authorization requires a username"))
        elif ":" in self._username:
            errors.append(AuthError("Basic authorization username must not contain ':'"))
        if not self._password:
            errors.append(AuthError("Basic authorization requires a password"))
        if errors:
            return Result.fail(*errors)

        raw = f"{self._username}:{self._password}"
        encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        return Result.success(f"Basic {encoded}")
