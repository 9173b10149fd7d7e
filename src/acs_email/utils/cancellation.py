from __future__ import annotations

import asyncio
import logging
from typing import Callable


logger = logging.getLogger(__name__)


class CancellationError(Exception):
    """Raised when an operation has been cancelled via a cancellation token."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or "Operation cancelled")
        self.reason = reason


class _CancellationState:
    __slots__ = ("event", "reason", "callbacks")

    def __init__(self) -> None:
        self.event = asyncio.Event()
        self.reason: str | None = None
        self.callbacks: list[Callable[["CancellationToken"], None]] = []


class CancellationToken:
    """Read-only handle that lets a poll loop observe cancellation requests."""

    __slots__ = ("_state",)

    def __init__(self, state: _CancellationState) -> None:
        self._state = state

    @property
    def cancelled(self) -> bool:
        return self._state.event.is_set()

    @property
    def reason(self) -> str | None:
        return self._state.reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError(self._state.reason)

    async def wait(self) -> None:
        await self._state.event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; return True if cancelled meanwhile."""

        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._state.event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def on_cancel(
        self, callback: Callable[["CancellationToken"], None]
    ) -> Callable[[], None]:
        if self.cancelled:
            callback(self)

            def noop() -> None:
                return None

            return noop

        self._state.callbacks.append(callback)

        def unsubscribe() -> None:
            try:
                self._state.callbacks.remove(callback)
            except ValueError:  # pragma: no cover - already removed
                pass

        return unsubscribe

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self.reason!r})"


class CancellationTokenSource:
    """Owns a cancellation token and triggers cancellation on request."""

    __slots__ = ("_state", "_token")

    def __init__(self) -> None:
        self._state = _CancellationState()
        self._token = CancellationToken(self._state)

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self, *, reason: str | None = None) -> bool:
        if self._state.event.is_set():
            return False
        self._state.reason = reason
        self._state.event.set()
        for callback in list(self._state.callbacks):
            try:
                callback(self._token)
            except Exception:  # pragma: no cover - error during cancellation notifications
                logger.exception("Cancellation callback raised an exception.")
        return True


__all__ = ["CancellationError", "CancellationToken", "CancellationTokenSource"]
