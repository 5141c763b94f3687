"""Cooperative cancellation token.

A token is handed to every unit of orchestrated work. Cancelling it only
runs the registered callbacks; the work itself checks the token at the
points where a result would be applied.
"""

from __future__ import annotations

import logging
from typing import Callable

from decision_surface.shared.errors import ErrorContext, FetchCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation flag with callbacks."""

    __slots__ = ("_callbacks", "_cancelled", "_reason")

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation, immediately if already cancelled."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise FetchCancelledError(
                f"Work cancelled: {self._reason}",
                ErrorContext(operation="raise_if_cancelled"),
            )

    def __repr__(self) -> str:
        state = f"cancelled:{self._reason}" if self._cancelled else "active"
        return f"CancellationToken({state})"
