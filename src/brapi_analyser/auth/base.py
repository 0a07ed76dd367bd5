"""Abstract base class for authorization providers.

The executor asks an :class:`AuthorizationProvider` for the value of the
``Authorization`` header before every request. A provider returns a
:class:`~brapi_analyser.result.Result` rather than raising, so a provider
that can not produce a header fails only the request being prepared.

To implement a new strategy, subclass :class:`AuthorizationProvider` and
implement :meth:`~AuthorizationProvider.get_authorization`. Override
:meth:`~AuthorizationProvider.required` when the provider always needs
credentials.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from brapi_analyser.result import Result


class AuthorizationProvider(ABC):
    """Supplies the ``Authorization`` header value for analysis requests."""

    def required(self) -> bool:
        """Whether the provider needs credentials to produce a header."""
        return True

    @abstractmethod
    def get_authorization(self) -> Result[Optional[str]]:
        """Return the header value, ``None`` for no header, or the errors.

        Returns:
            A successful result holding e.g. ``"Bearer abc"`` or ``None``,
            or a failed result carrying an
            :class:`~brapi_analyser.exceptions.AuthError`.
        """


class NoAuthorizationProvider(AuthorizationProvider):
    """Send every request without an ``Authorization`` header."""

    def required(self) -> bool:
        return False

    def get_authorization(self) -> Result[Optional[str]]:
        return Result.success(None)
