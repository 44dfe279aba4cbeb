"""Cancellation and deadline token passed through to statement execution."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import OperationCancelledError


class QueryContext:
    """Carries a cancellation flag and an optional deadline.

    The engine never inspects the token itself; it hands it to the database
    adapter, which calls `check()` before running each statement.

    Args:
        timeout: Seconds from now after which the context expires.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0")
        self._cancelled = threading.Event()
        self.deadline: Optional[float] = (
            None if timeout is None else time.monotonic() + timeout
        )

    def cancel(self) -> None:
        """Mark the context cancelled; later statements fail fast."""

        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Return seconds left before the deadline, or `None` if unbounded."""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise `OperationCancelledError` when cancelled or expired."""

        if self._cancelled.is_set():
            raise OperationCancelledError("context cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise OperationCancelledError("context deadline exceeded")


def check_context(ctx: Optional[QueryContext]) -> None:
    if ctx is not None:
        ctx.check()
