from __future__ import annotations

import json
import time
from collections.abc import Callable as CallableABC
from dataclasses import dataclass
from typing import Any, Callable, Tuple

import httpx
from httpx import Auth
from httpx._client import USE_CLIENT_DEFAULT, UseClientDefault
from pydantic import ValidationError

from acs_email.errors import AcsErrorCategory, RemoteError, TransportError
from acs_email.models.operation import ErrorResponse
from acs_email.utils import get_logger


logger = get_logger(__name__)


@dataclass(slots=True)
class RequestTelemetryEvent:
    method: str
    url: str
    status_code: int | None
    duration_ms: float
    category: AcsErrorCategory | None
    success: bool


AuthOption = (
    Tuple[str | bytes, str | bytes]
    | CallableABC[[httpx.Request], httpx.Request]
    | Auth
    | UseClientDefault
    | None
)


class EmailTransport(httpx.AsyncClient):
    """Async HTTP client that converts connection failures into ``TransportError``.

    Responses are returned whatever their status code; interpreting them is
    left to the dispatcher and the operation tracker. No retries happen here.
    """

    def __init__(
        self,
        *args: Any,
        telemetry_callback: Callable[[RequestTelemetryEvent], None] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._telemetry_callback = telemetry_callback

    async def send(
        self,
        request: httpx.Request,
        *,
        stream: bool = False,
        auth: AuthOption = USE_CLIENT_DEFAULT,
        follow_redirects: bool | UseClientDefault = USE_CLIENT_DEFAULT,
        **kwargs: object,
    ) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await super().send(
                request,
                stream=stream,
                auth=auth,
                follow_redirects=follow_redirects,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            self._publish_telemetry(
                request,
                duration=time.perf_counter() - start,
                status_code=None,
                category=AcsErrorCategory.NETWORK,
            )
            raise TransportError(
                "Network timeout communicating with Azure Communication Services",
                inner_error=exc,
            ) from exc
        except httpx.RequestError as exc:
            self._publish_telemetry(
                request,
                duration=time.perf_counter() - start,
                status_code=None,
                category=AcsErrorCategory.NETWORK,
            )
            raise TransportError(
                f"Network error communicating with Azure Communication Services: {exc}",
                inner_error=exc,
            ) from exc

        self._publish_telemetry(
            request,
            duration=time.perf_counter() - start,
            status_code=response.status_code,
            category=None if response.is_success else AcsErrorCategory.REMOTE,
        )
        return response

    def _publish_telemetry(
        self,
        request: httpx.Request,
        *,
        duration: float,
        status_code: int | None,
        category: AcsErrorCategory | None,
    ) -> None:
        if not self._telemetry_callback:
            return
        event = RequestTelemetryEvent(
            method=request.method,
            url=str(request.url),
            status_code=status_code,
            duration_ms=duration * 1000,
            category=category,
            success=category is None,
        )
        try:
            self._telemetry_callback(event)
        except Exception:  # pragma: no cover - telemetry shouldn't break requests
            logger.warning("Telemetry callback raised an exception", exc_info=True)


def map_response_to_error(response: httpx.Response) -> RemoteError:
    """Parse a non-2xx response body into a ``RemoteError``."""

    status = response.status_code
    detail = None
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        body = None

    if isinstance(body, dict):
        try:
            detail = ErrorResponse.from_wire(body).error
        except ValidationError:
            detail = None

    if detail is not None and detail.message:
        message = f"{detail.code}: {detail.message}" if detail.code else detail.message
    else:
        message = response.text or f"Request failed with status {status}"

    return RemoteError(message, status_code=status, detail=detail)


def log_request_telemetry(event: RequestTelemetryEvent) -> None:
    logger.debug(
        "ACS request",
        method=event.method,
        url=event.url,
        status_code=event.status_code,
        duration_ms=round(event.duration_ms, 2),
        success=event.success,
        category=event.category.value if event.category else None,
    )


__all__ = [
    "EmailTransport",
    "RequestTelemetryEvent",
    "log_request_telemetry",
    "map_response_to_error",
]
