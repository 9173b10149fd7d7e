"""Background polling of long-running send operations.

One :class:`OperationTracker` owns one :class:`OperationHandle`. Its poll loop
runs as a background task, reports every observed status to an optional
observer and resolves a one-shot completion future exactly once: on a
terminal status, on the first failed poll, on timeout, or on cancellation.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from acs_email.client.transport import EmailTransport, map_response_to_error
from acs_email.errors import AcsEmailError, PollTimeout, RemoteError, TerminalFailure
from acs_email.models.operation import (
    EmailSendStatus,
    ErrorDetail,
    OperationHandle,
    OperationOutcome,
    OperationStatusResponse,
)
from acs_email.utils import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    get_logger,
    operation_context,
    run_background,
)


logger = get_logger(__name__)


StatusObserver = Callable[
    [str, EmailSendStatus, ErrorDetail | None], Awaitable[None] | None
]


@dataclass(slots=True, frozen=True)
class PollPolicy:
    """Fixed-interval polling bounded by attempt count and elapsed time."""

    interval: float = 2.0
    max_attempts: int = 150
    max_elapsed: float = 300.0

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("Poll interval must not be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_elapsed <= 0:
            raise ValueError("max_elapsed must be positive")


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class OperationTracker:
    def __init__(
        self,
        handle: OperationHandle,
        transport: EmailTransport,
        *,
        policy: PollPolicy | None = None,
        observer: StatusObserver | None = None,
        cancellation_token: CancellationToken | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._handle = handle
        self._transport = transport
        self._policy = policy or PollPolicy()
        self._observer = observer
        self._clock = clock
        self._cancel_source = CancellationTokenSource()
        self._unlink_cancel: Callable[[], None] | None = None
        if cancellation_token is not None:
            self._unlink_cancel = cancellation_token.on_cancel(
                lambda token: self._cancel_source.cancel(reason=token.reason)
            )
        self._completion: asyncio.Future[OperationOutcome] = (
            asyncio.get_running_loop().create_future()
        )
        self._task: asyncio.Task[None] | None = None
        self._attempts = 0

    @property
    def handle(self) -> OperationHandle:
        return self._handle

    @property
    def completion(self) -> asyncio.Future[OperationOutcome]:
        return self._completion

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def done(self) -> bool:
        return self._completion.done()

    def start(self) -> asyncio.Task[None]:
        if self._task is None:
            self._task = run_background(
                self._run(), name=f"acs-email-poll-{self._handle.id}"
            )
        return self._task

    def cancel(self, reason: str | None = None) -> bool:
        return self._cancel_source.cancel(reason=reason or "Tracking cancelled by caller")

    async def wait(self) -> OperationOutcome:
        return await asyncio.shield(self._completion)

    # Internal --------------------------------------------------------

    async def _run(self) -> None:
        with operation_context(self._handle.id):
            await self._poll_until_done()

    async def _poll_until_done(self) -> None:
        token = self._cancel_source.token
        started = self._clock()
        try:
            while True:
                if token.cancelled:
                    await self._finish_with_error(CancellationError(token.reason))
                    return

                self._attempts += 1
                try:
                    status, error, retry_after = await self._poll_once()
                except AcsEmailError as exc:
                    logger.warning("Polling send operation failed", error=str(exc))
                    await self._finish_with_error(exc)
                    return

                # Unknown is reported but never recorded over a known status.
                if status is not EmailSendStatus.UNKNOWN:
                    self._handle.update(status, error)
                await self._notify(status, error)

                if status.is_terminal:
                    self._resolve(OperationOutcome(self._handle.id, status, error))
                    return

                elapsed = self._clock() - started
                remaining = self._policy.max_elapsed - elapsed
                if self._attempts >= self._policy.max_attempts or remaining <= 0:
                    await self._finish_with_error(
                        PollTimeout(
                            f"Operation {self._handle.id} still {status.value} after "
                            f"{self._attempts} polls ({elapsed:.1f}s)"
                        )
                    )
                    return

                delay = max(self._policy.interval, retry_after or 0.0)
                if await token.sleep(min(delay, remaining)):
                    await self._finish_with_error(CancellationError(token.reason))
                    return
        except asyncio.CancelledError:
            await self._finish_with_error(CancellationError("Polling task was cancelled"))
            raise
        except Exception as exc:  # noqa: BLE001 - completion must never stay unresolved
            logger.exception("Unexpected error while polling")
            await self._finish_with_error(exc)
        finally:
            if self._unlink_cancel is not None:
                self._unlink_cancel()
                self._unlink_cancel = None

    async def _poll_once(
        self,
    ) -> tuple[EmailSendStatus, ErrorDetail | None, float | None]:
        response = await self._transport.get(self._handle.status_url)
        if not response.is_success:
            raise map_response_to_error(response)
        try:
            payload = OperationStatusResponse.from_wire(response.json())
        except ValueError as exc:
            raise RemoteError(
                f"Malformed status response for operation {self._handle.id}",
                status_code=response.status_code,
            ) from exc
        logger.debug(
            "Observed send operation status",
            status=payload.status.value,
            attempt=self._attempts,
        )
        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
        return payload.status, payload.error, retry_after

    async def _finish_with_error(self, exc: Exception) -> None:
        if self._completion.done():
            return
        if self._handle.is_terminal:
            # The observer already saw the terminal status.
            self._resolve(
                OperationOutcome(self._handle.id, self._handle.status, self._handle.error)
            )
            return
        if isinstance(exc, AcsEmailError):
            detail = exc.to_error_detail()
        else:
            detail = ErrorDetail(code=type(exc).__name__, message=str(exc) or None)
        self._handle.update(EmailSendStatus.UNKNOWN, detail)
        await self._notify(EmailSendStatus.UNKNOWN, detail)
        self._resolve(
            OperationOutcome(
                self._handle.id,
                EmailSendStatus.UNKNOWN,
                detail,
                exception=exc,
            )
        )

    async def _notify(
        self, status: EmailSendStatus, error: ErrorDetail | None
    ) -> None:
        if self._observer is None:
            return
        try:
            result = self._observer(self._handle.id, status, error)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001 - observers must not break tracking
            logger.exception("Send status observer raised an exception")

    def _resolve(self, outcome: OperationOutcome) -> None:
        if self._completion.done():
            return
        self._completion.set_result(outcome)
        logger.info(
            "Send operation finished",
            status=outcome.status.value,
            attempts=self._attempts,
        )


@dataclass(slots=True)
class SendResult:
    """Handle returned by a successful submission.

    ``completion`` resolves exactly once with an :class:`OperationOutcome`;
    it never raises. Use :meth:`raise_for_status` to turn a non-successful
    outcome into an exception.
    """

    operation_id: str
    tracker: OperationTracker = field(repr=False)

    @property
    def handle(self) -> OperationHandle:
        return self.tracker.handle

    @property
    def completion(self) -> asyncio.Future[OperationOutcome]:
        return self.tracker.completion

    def done(self) -> bool:
        return self.tracker.done

    def cancel(self, reason: str | None = None) -> bool:
        return self.tracker.cancel(reason)

    async def wait(self, timeout: float | None = None) -> OperationOutcome:
        if timeout is None:
            return await self.tracker.wait()
        return await asyncio.wait_for(self.tracker.wait(), timeout=timeout)

    @staticmethod
    def raise_for_status(outcome: OperationOutcome) -> OperationOutcome:
        if outcome.succeeded:
            return outcome
        if outcome.exception is not None:
            raise outcome.exception
        raise TerminalFailure(
            f"Operation {outcome.operation_id} finished with status {outcome.status.value}"
            + (f": {outcome.error}" if outcome.error is not None else ""),
            status=outcome.status.value,
            detail=outcome.error,
        )


__all__ = ["OperationTracker", "PollPolicy", "SendResult", "StatusObserver"]
