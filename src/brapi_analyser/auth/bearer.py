"""Bearer token authorization provider.

The token is either given literally or read from a credential source
(``env:NAME``, ``file:PATH`` or ``prompt``, see
:func:`brapi_analyser.config.resolve_credential`). A source is resolved on
first use and the token is reused for the rest of the run.
"""

from __future__ import annotations

import threading
from typing import Optional

from brapi_analyser.auth.base import AuthorizationProvider
from brapi_analyser.config import resolve_credential
from brapi_analyser.exceptions import AuthError, ConfigurationError
from brapi_analyser.result import Result


class BearerAuthorizationProvider(AuthorizationProvider):
    """Authorize with ``Authorization: Bearer <token>``.

    Args:
        token: A literal token or a credential source descriptor.
    """

    def __init__(self, token: str) -> None:
        self._source = token
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    def get_authorization(self) -> Result[Optional[str]]:
        with self._lock:
            if self._token is None:
                try:
                    token = resolve_credential(self._source).strip()
                except ConfigurationError as exc:
                    return Result.fail(AuthError(f"Can not resolve bearer token: {exc.message}"))
                if not token:
                    return Result.fail(AuthError("Bearer token is empty"))
                self._token = token
        return Result.success(f"Bearer {self._token}")
