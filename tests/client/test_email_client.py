from __future__ import annotations

import httpx
import pytest
import respx

from acs_email.auth import ServicePrincipalCredential, SharedKeyCredential
from acs_email.client import (
    EmailClient,
    EmailClientConfig,
    PollPolicy,
    RequestTelemetryEvent,
)
from acs_email.errors import (
    ConfigurationError,
    MessageBuildError,
    PollTimeout,
    TerminalFailure,
)
from acs_email.models import EmailSendStatus, build_message
from acs_email.utils import CancellationError, CancellationTokenSource

from tests.factories import (
    ACCESS_KEY,
    CONNECTION_STRING,
    ENDPOINT,
    SEND_URL,
    configure_service_principal,
    make_message,
    make_settings,
    operation_url,
)
from tests.stubs import RecordingObserver, StubConfidentialClientApplication


def _accepted(operation_id: str = "op-1") -> httpx.Response:
    return httpx.Response(202, json={"id": operation_id, "status": "Running"})


def _status(status: str, operation_id: str = "op-1", **extra: object) -> httpx.Response:
    return httpx.Response(200, json={"id": operation_id, "status": status, **extra})


@pytest.mark.asyncio
async def test_send_email_reports_statuses_and_completes(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    respx_mock.post(SEND_URL).mock(return_value=_accepted())
    respx_mock.get(operation_url("op-1")).mock(
        side_effect=[_status("NotStarted"), _status("Running"), _status("Succeeded")]
    )
    observer = RecordingObserver()

    result = await email_client.send_email(make_message(), observer)
    outcome = await result.wait(timeout=5)

    assert result.operation_id == "op-1"
    assert observer.statuses == [
        EmailSendStatus.NOT_STARTED,
        EmailSendStatus.RUNNING,
        EmailSendStatus.SUCCEEDED,
    ]
    assert outcome.succeeded


@pytest.mark.asyncio
async def test_send_and_wait_raises_terminal_failure(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    respx_mock.post(SEND_URL).mock(return_value=_accepted())
    respx_mock.get(operation_url("op-1")).mock(
        return_value=_status(
            "Failed", error={"code": "RecipientRejected", "message": "Unknown mailbox"}
        )
    )

    with pytest.raises(TerminalFailure) as excinfo:
        await email_client.send_email_and_wait(make_message())

    assert excinfo.value.code == "RecipientRejected"


@pytest.mark.asyncio
async def test_send_and_wait_returns_success(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    respx_mock.post(SEND_URL).mock(return_value=_accepted())
    respx_mock.get(operation_url("op-1")).mock(return_value=_status("Succeeded"))

    outcome = await email_client.send_email_and_wait(make_message())

    assert outcome.status is EmailSendStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_send_and_wait_raises_poll_timeout(respx_mock: respx.Router) -> None:
    respx_mock.post(SEND_URL).mock(return_value=_accepted())
    respx_mock.get(operation_url("op-1")).mock(return_value=_status("Running"))
    config = EmailClientConfig(
        poll_policy=PollPolicy(interval=0.0, max_attempts=2, max_elapsed=30.0),
        enable_telemetry=False,
    )

    async with EmailClient.from_connection_string(CONNECTION_STRING, config) as client:
        with pytest.raises(PollTimeout):
            await client.send_email_and_wait(make_message())


@pytest.mark.asyncio
async def test_concurrent_sends_are_tracked_independently(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    respx_mock.post(SEND_URL).mock(side_effect=[_accepted("op-a"), _accepted("op-b")])
    respx_mock.get(operation_url("op-a")).mock(return_value=_status("Succeeded", "op-a"))
    respx_mock.get(operation_url("op-b")).mock(
        return_value=_status("Canceled", "op-b")
    )

    first = await email_client.send_email(make_message())
    second = await email_client.send_email(make_message())

    outcome_a = await first.wait(timeout=5)
    outcome_b = await second.wait(timeout=5)

    assert (outcome_a.operation_id, outcome_a.status) == ("op-a", EmailSendStatus.SUCCEEDED)
    assert (outcome_b.operation_id, outcome_b.status) == ("op-b", EmailSendStatus.CANCELED)


@pytest.mark.asyncio
async def test_invalid_message_fails_before_network(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    with pytest.raises(MessageBuildError):
        await email_client.send_email(
            build_message(sender="", subject="Hi", to=["bob@example.com"])
        )

    assert not respx_mock.calls


@pytest.mark.asyncio
async def test_cancellation_token_stops_tracking(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    respx_mock.post(SEND_URL).mock(return_value=_accepted())
    source = CancellationTokenSource()
    source.cancel(reason="shutting down")

    result = await email_client.send_email(
        make_message(), cancellation_token=source.token
    )
    outcome = await result.wait(timeout=5)

    assert isinstance(outcome.exception, CancellationError)
    assert outcome.status is EmailSendStatus.UNKNOWN


@pytest.mark.asyncio
async def test_get_status_queries_once(
    respx_mock: respx.Router, email_client: EmailClient
) -> None:
    route = respx_mock.get(operation_url("op-5")).mock(
        return_value=_status("Running", "op-5")
    )

    status = await email_client.get_status("op-5")

    assert status.status is EmailSendStatus.RUNNING
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_service_principal_client_sends_bearer_token(
    respx_mock: respx.Router, monkeypatch: pytest.MonkeyPatch
) -> None:
    stub = StubConfidentialClientApplication(
        results=[{"access_token": "aad-token", "expires_in": 3600}]
    )
    credential = configure_service_principal(stub_app=stub, monkeypatch=monkeypatch)
    send_route = respx_mock.post(SEND_URL).mock(return_value=_accepted())
    poll_route = respx_mock.get(operation_url("op-1")).mock(
        return_value=_status("Succeeded")
    )
    config = EmailClientConfig(poll_policy=PollPolicy(interval=0.0), enable_telemetry=False)
    async with EmailClient(ENDPOINT, credential, config) as client:
        await client.send_email_and_wait(make_message())

    assert send_route.calls.last.request.headers["Authorization"] == "Bearer aad-token"
    assert poll_route.calls.last.request.headers["Authorization"] == "Bearer aad-token"
    assert len(stub.acquire_token_for_client_calls) == 1


@pytest.mark.asyncio
async def test_telemetry_callback_receives_events(respx_mock: respx.Router) -> None:
    respx_mock.get(operation_url("op-3")).mock(return_value=_status("Running", "op-3"))
    events: list[RequestTelemetryEvent] = []
    config = EmailClientConfig(telemetry_callback=events.append)

    async with EmailClient.from_connection_string(CONNECTION_STRING, config) as client:
        await client.get_status("op-3")

    assert len(events) == 1
    assert events[0].method == "GET"
    assert events[0].status_code == 200
    assert events[0].success


def test_from_settings_uses_configured_credential() -> None:
    client = EmailClient.from_settings(make_settings(poll_interval=0.5))

    assert client.endpoint == ENDPOINT
    assert isinstance(client.credential, SharedKeyCredential)


def test_from_settings_with_service_principal() -> None:
    settings = make_settings(
        access_key=None,
        tenant_id="contoso-tenant",
        client_id="client",
        client_secret="secret",
    )

    client = EmailClient.from_settings(settings)

    assert isinstance(client.credential, ServicePrincipalCredential)


def test_from_settings_rejects_missing_credentials() -> None:
    with pytest.raises(ConfigurationError):
        EmailClient.from_settings(make_settings(access_key=None))


def test_repr_masks_access_key() -> None:
    client = EmailClient.from_connection_string(CONNECTION_STRING)

    assert ACCESS_KEY not in repr(client)
