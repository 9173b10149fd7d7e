from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType
from typing import Callable

import httpx

from acs_email.auth.credentials import (
    CredentialProvider,
    SharedKeyCredential,
    credential_from_settings,
    parse_connection_string,
)
from acs_email.auth.signing import AcsAuth
from acs_email.client.dispatcher import Dispatcher
from acs_email.client.tracker import PollPolicy, SendResult, StatusObserver
from acs_email.client.transport import (
    EmailTransport,
    RequestTelemetryEvent,
    log_request_telemetry,
)
from acs_email.config.settings import DEFAULT_API_VERSION, Settings
from acs_email.models.email import EmailMessage
from acs_email.models.operation import OperationOutcome, OperationStatusResponse
from acs_email.utils import CancellationToken, get_logger


logger = get_logger(__name__)


@dataclass(slots=True)
class EmailClientConfig:
    api_version: str = DEFAULT_API_VERSION
    poll_policy: PollPolicy = field(default_factory=PollPolicy)
    user_agent: str = "acs-email-python"
    enable_telemetry: bool = True
    telemetry_callback: Callable[[RequestTelemetryEvent], None] | None = None
    timeout: httpx.Timeout = field(
        default_factory=lambda: httpx.Timeout(
            connect=10.0,
            read=60.0,
            write=30.0,
            pool=5.0,
        )
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailClientConfig":
        return cls(
            api_version=settings.api_version,
            poll_policy=PollPolicy(
                interval=settings.poll_interval,
                max_attempts=settings.poll_max_attempts,
                max_elapsed=settings.poll_timeout,
            ),
        )


class EmailClient:
    """Sends email through Azure Communication Services and tracks delivery.

    The client owns its credential (and therefore its token cache) and a
    single HTTP connection pool. Close it with :meth:`close` or use it as an
    async context manager.
    """

    def __init__(
        self,
        endpoint: str,
        credential: CredentialProvider,
        config: EmailClientConfig | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._credential = credential
        self._config = config or EmailClientConfig()
        self._http_client: EmailTransport | None = None
        self._dispatcher: Dispatcher | None = None

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        config: EmailClientConfig | None = None,
    ) -> "EmailClient":
        endpoint, access_key = parse_connection_string(connection_string)
        return cls(endpoint, SharedKeyCredential(access_key), config)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        config: EmailClientConfig | None = None,
    ) -> "EmailClient":
        endpoint, credential = credential_from_settings(settings)
        return cls(endpoint, credential, config or EmailClientConfig.from_settings(settings))

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def credential(self) -> CredentialProvider:
        return self._credential

    async def send_email(
        self,
        message: EmailMessage,
        observer: StatusObserver | None = None,
        *,
        operation_id: str | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> SendResult:
        """Submit ``message`` and return once the service has accepted it.

        Raises:
            DispatchError: When signing, transport or the service rejects the
                submission. No tracking is started in that case.
        """

        return await self._get_dispatcher().submit(
            message,
            observer,
            operation_id=operation_id,
            cancellation_token=cancellation_token,
        )

    async def send_email_and_wait(
        self,
        message: EmailMessage,
        observer: StatusObserver | None = None,
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> OperationOutcome:
        """Submit ``message`` and wait until the operation reaches a final state.

        Raises ``TerminalFailure``, ``PollTimeout`` or the polling error when
        the operation does not succeed.
        """

        result = await self.send_email(
            message, observer, cancellation_token=cancellation_token
        )
        outcome = await result.wait()
        return SendResult.raise_for_status(outcome)

    async def get_status(self, operation_id: str) -> OperationStatusResponse:
        return await self._get_dispatcher().get_status(operation_id)

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            self._dispatcher = None

    async def __aenter__(self) -> "EmailClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------- Internals

    def _get_dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            self._dispatcher = Dispatcher(
                self._get_http_client(),
                self._endpoint,
                api_version=self._config.api_version,
                poll_policy=self._config.poll_policy,
            )
        return self._dispatcher

    def _get_http_client(self) -> EmailTransport:
        if self._http_client is None:
            callback = self._config.telemetry_callback
            if callback is None and self._config.enable_telemetry:
                callback = log_request_telemetry
            elif not self._config.enable_telemetry:
                callback = None

            self._http_client = EmailTransport(
                headers={"User-Agent": self._config.user_agent},
                auth=AcsAuth(self._credential),
                telemetry_callback=callback,
                timeout=self._config.timeout,
            )
        return self._http_client

    def __repr__(self) -> str:
        return f"EmailClient(endpoint={self._endpoint!r}, credential={self._credential!r})"


__all__ = ["EmailClient", "EmailClientConfig"]
