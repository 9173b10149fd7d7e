from __future__ import annotations

import json
import uuid

import httpx

from acs_email.client.tracker import (
    OperationTracker,
    PollPolicy,
    SendResult,
    StatusObserver,
)
from acs_email.client.transport import EmailTransport, map_response_to_error
from acs_email.config.settings import DEFAULT_API_VERSION
from acs_email.errors import RemoteError
from acs_email.models.email import EmailMessage
from acs_email.models.operation import (
    EmailSendStatus,
    OperationHandle,
    OperationStatusResponse,
)
from acs_email.utils import CancellationToken, get_logger


logger = get_logger(__name__)

SEND_PATH = "/emails:send"
OPERATIONS_PATH = "/emails/operations"
OPERATION_ID_HEADER = "Operation-Id"
OPERATION_LOCATION_HEADER = "Operation-Location"
CLIENT_REQUEST_ID_HEADER = "x-ms-client-request-id"


class Dispatcher:
    """Submits send requests and turns acknowledgements into tracked operations.

    Each submission is attempted exactly once. Any failure before an operation
    id is known is raised as a ``DispatchError`` subclass, so no tracker is
    ever created for a rejected request.
    """

    def __init__(
        self,
        transport: EmailTransport,
        endpoint: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        poll_policy: PollPolicy | None = None,
    ) -> None:
        self._transport = transport
        self._endpoint = endpoint.rstrip("/")
        self._api_version = api_version
        self._poll_policy = poll_policy or PollPolicy()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def api_version(self) -> str:
        return self._api_version

    def send_url(self) -> str:
        return f"{self._endpoint}{SEND_PATH}?api-version={self._api_version}"

    def operation_url(self, operation_id: str) -> str:
        return (
            f"{self._endpoint}{OPERATIONS_PATH}/{operation_id}"
            f"?api-version={self._api_version}"
        )

    async def submit(
        self,
        message: EmailMessage,
        observer: StatusObserver | None = None,
        *,
        operation_id: str | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> SendResult:
        """Send ``message`` and start tracking the resulting operation."""

        handle = await self.acknowledge(message, operation_id=operation_id)
        tracker = OperationTracker(
            handle,
            self._transport,
            policy=self._poll_policy,
            observer=observer,
            cancellation_token=cancellation_token,
        )
        tracker.start()
        return SendResult(operation_id=handle.id, tracker=tracker)

    async def acknowledge(
        self,
        message: EmailMessage,
        *,
        operation_id: str | None = None,
    ) -> OperationHandle:
        """POST the message and parse the 202 acknowledgement into a handle."""

        request_id = operation_id or str(uuid.uuid4())
        body = json.dumps(message.to_wire(), separators=(",", ":")).encode("utf-8")
        response = await self._transport.post(
            self.send_url(),
            content=body,
            headers={
                "Content-Type": "application/json",
                OPERATION_ID_HEADER: request_id,
                CLIENT_REQUEST_ID_HEADER: str(uuid.uuid4()),
            },
        )

        if not response.is_success:
            error = map_response_to_error(response)
            logger.warning(
                "Send request rejected",
                status_code=response.status_code,
                code=error.code,
            )
            raise error

        handle = self._handle_from_response(response, request_id)
        logger.info(
            "Send request accepted",
            operation_id=handle.id,
            status=handle.status.value,
        )
        return handle

    async def get_status(self, operation_id: str) -> OperationStatusResponse:
        """Fetch the current status of an operation once, without tracking it."""

        response = await self._transport.get(self.operation_url(operation_id))
        if not response.is_success:
            raise map_response_to_error(response)
        return self._parse_status(response)

    # Internal --------------------------------------------------------

    def _handle_from_response(
        self, response: httpx.Response, request_id: str
    ) -> OperationHandle:
        payload = self._parse_acknowledgement(response) if response.content else None
        operation_id = (payload.id if payload else None) or request_id
        status_url = response.headers.get(OPERATION_LOCATION_HEADER) or self.operation_url(
            operation_id
        )
        initial = EmailSendStatus.NOT_STARTED
        if payload is not None and payload.status is EmailSendStatus.RUNNING:
            initial = EmailSendStatus.RUNNING
        return OperationHandle(id=operation_id, status_url=status_url, status=initial)

    @staticmethod
    def _parse_acknowledgement(
        response: httpx.Response,
    ) -> OperationStatusResponse | None:
        # The request id and Operation-Location header still identify the operation.
        try:
            return OperationStatusResponse.from_wire(response.json())
        except ValueError:
            logger.warning(
                "Ignoring unparseable acknowledgement body",
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type"),
            )
            return None

    @staticmethod
    def _parse_status(response: httpx.Response) -> OperationStatusResponse:
        try:
            return OperationStatusResponse.from_wire(response.json())
        except ValueError as exc:
            raise RemoteError(
                "Service returned a malformed operation status body",
                status_code=response.status_code,
            ) from exc


__all__ = [
    "CLIENT_REQUEST_ID_HEADER",
    "Dispatcher",
    "OPERATION_ID_HEADER",
    "OPERATION_LOCATION_HEADER",
]
