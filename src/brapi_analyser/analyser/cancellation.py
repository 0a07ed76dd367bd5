"""Cancellation and deadlines for long analysis runs.

Analysing every entity of a BrAPI server can take a long time. A
:class:`CancellationToken` is threaded through the orchestrator, the executor
and every HTTP call: it can be cancelled from another thread (or a signal
handler), and it can carry an overall deadline that also caps each request's
timeout.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from brapi_analyser.exceptions import AnalysisCancelledError


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    Args:
        timeout: Seconds from now after which the token counts as
            cancelled. ``None`` means no deadline.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError("Analysis run was cancelled")
        if self.cancelled:
            raise AnalysisCancelledError("Analysis run passed its deadline")
