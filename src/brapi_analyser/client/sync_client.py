"""Synchronous HTTP client used to send analysis requests.

This module provides :class:`AnalysisClient`, a thin wrapper around
:class:`httpx.Client` that sends one request at a time against the server
under analysis. It deliberately does **not** retry, raise on error statuses
or follow any API conventions: every status code is something to be
validated, and a network failure is reported back as a
:class:`~brapi_analyser.exceptions.TransportError` value so that one
unreachable endpoint never stops a run.

Example::

    with AnalysisClient("https://test-server.brapi.org/brapi/v2") as client:
        result = client.send("GET", "/studies", params={"pageSize": "10"})
        if result.ok:
            print(result.value.status_code)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from brapi_analyser.exceptions import TransportError
from brapi_analyser.result import Result

logger = logging.getLogger(__name__)


class AnalysisClient:
    """Synchronous HTTP client for analysis requests.

    Can be used as a context manager; otherwise the underlying
    :class:`httpx.Client` is opened on first use and released by
    :meth:`close`.

    Args:
        base_url: Base URL of the server under analysis; request paths are
            appended to it.
        timeout: Default per-request timeout in seconds.
        verify_ssl: Verify TLS certificates.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                verify=self._verify_ssl,
                follow_redirects=True,
                transport=self._transport,
            )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> AnalysisClient:
        self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #

    def send(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Result[httpx.Response]:
        """Send one request and return the response, whatever its status.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, ...).
            path: URL path appended to the base URL, already substituted
                and percent-encoded.
            params: Query parameters.
            headers: Extra request headers (e.g. ``Authorization``).
            json_body: JSON-serialisable body.
            timeout: Per-request timeout overriding the client default.

        Returns:
            A successful result with the :class:`httpx.Response`, or a
            failed result carrying a
            :class:`~brapi_analyser.exceptions.TransportError`.
        """
        self.open()
        assert self._client is not None

        merged_headers: dict[str, str] = {"Accept": "application/json"}
        merged_headers.update(headers or {})

        kwargs: dict[str, Any] = {
            "method": method.upper(),
            "url": path,
            "headers": merged_headers,
            "params": params or None,
        }
        if json_body is not None:
            kwargs["json"] = json_body
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.debug("Sending %s %s%s", method.upper(), self._base_url, path)
        try:
            response = self._client.request(**kwargs)
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            logger.warning("%s %s failed: %s", method.upper(), path, exc)
            return Result.fail(
                TransportError(f"{method.upper()} {path} failed: {type(exc).__name__}: {exc}")
            )

        logger.debug("%s %s -> %d", method.upper(), response.request.url, response.status_code)
        return Result.success(response)
