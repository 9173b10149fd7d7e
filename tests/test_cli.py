from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import respx

from acs_email.cli import EXIT_FAILED, EXIT_OK, EXIT_USAGE, build_parser, main

from tests.factories import ACCESS_KEY, ENDPOINT, SEND_URL, operation_url


@pytest.fixture
def configured_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> list[str]:
    for name in ("CONNECTION_STRING", "TENANT_ID", "CLIENT_ID", "CLIENT_SECRET"):
        monkeypatch.delenv(f"ACS_EMAIL_{name}", raising=False)
    monkeypatch.setenv("ACS_EMAIL_ENDPOINT", ENDPOINT)
    monkeypatch.setenv("ACS_EMAIL_ACCESS_KEY", ACCESS_KEY)
    monkeypatch.setenv("ACS_EMAIL_SENDER", "DoNotReply@contoso.com")
    monkeypatch.setenv("ACS_EMAIL_POLL_INTERVAL", "0")
    return ["--env-file", str(tmp_path / "absent.env"), "--no-log-file"]


def _send_args(*extra: str) -> list[str]:
    return [
        "send",
        "--to",
        "alice@example.com",
        "--subject",
        "Quarterly report",
        "--text",
        "The report is attached.",
        *extra,
    ]


def test_parser_collects_repeated_recipients() -> None:
    args = build_parser().parse_args(
        ["send", "--to", "a@example.com", "--to", "b@example.com", "--subject", "Hi"]
    )

    assert args.to == ["a@example.com", "b@example.com"]
    assert args.cc == []
    assert not args.no_wait


def test_send_waits_for_success(
    respx_mock: respx.Router,
    configured_env: list[str],
    capsys: pytest.CaptureFixture[str],
) -> None:
    respx_mock.post(SEND_URL).mock(
        return_value=httpx.Response(202, json={"id": "op-1", "status": "Running"})
    )
    respx_mock.get(operation_url("op-1")).mock(
        side_effect=[
            httpx.Response(200, json={"id": "op-1", "status": "Running"}),
            httpx.Response(200, json={"id": "op-1", "status": "Succeeded"}),
        ]
    )

    exit_code = main([*configured_env, *_send_args()])

    output = capsys.readouterr().out
    assert exit_code == EXIT_OK
    assert "Accepted operation op-1" in output
    assert "op-1: Running" in output
    assert "op-1: Succeeded" in output


def test_failed_delivery_exits_nonzero(
    respx_mock: respx.Router,
    configured_env: list[str],
    capsys: pytest.CaptureFixture[str],
) -> None:
    respx_mock.post(SEND_URL).mock(
        return_value=httpx.Response(202, json={"id": "op-1", "status": "Running"})
    )
    respx_mock.get(operation_url("op-1")).mock(
        return_value=httpx.Response(
            200,
            json={
                "id": "op-1",
                "status": "Failed",
                "error": {"code": "RecipientRejected", "message": "Unknown mailbox"},
            },
        )
    )

    exit_code = main([*configured_env, *_send_args()])

    assert exit_code == EXIT_FAILED
    assert "op-1: Failed (RecipientRejected: Unknown mailbox)" in capsys.readouterr().out


def test_no_wait_returns_after_acceptance(
    respx_mock: respx.Router,
    configured_env: list[str],
    capsys: pytest.CaptureFixture[str],
) -> None:
    route = respx_mock.post(SEND_URL).mock(
        return_value=httpx.Response(202, json={"id": "op-1", "status": "NotStarted"})
    )

    exit_code = main([*configured_env, *_send_args("--no-wait")])

    assert exit_code == EXIT_OK
    assert route.call_count == 1
    out = capsys.readouterr().out
    assert "Accepted operation op-1" in out
    assert "Unknown" not in out


def test_attachment_and_tracking_flags_reach_the_wire(
    respx_mock: respx.Router, configured_env: list[str], tmp_path: Path
) -> None:
    attachment = tmp_path / "report.csv"
    attachment.write_text("a,b\n1,2\n", encoding="utf-8")
    route = respx_mock.post(SEND_URL).mock(
        return_value=httpx.Response(202, json={"id": "op-1", "status": "Running"})
    )

    exit_code = main(
        [
            *configured_env,
            *_send_args(
                "--attach", str(attachment), "--disable-tracking", "--no-wait"
            ),
        ]
    )

    body = route.calls.last.request.read()
    assert exit_code == EXIT_OK
    assert b'"name":"report.csv"' in body
    assert b'"userEngagementTrackingDisabled":true' in body


def test_rejected_request_exits_nonzero(
    respx_mock: respx.Router,
    configured_env: list[str],
    capsys: pytest.CaptureFixture[str],
) -> None:
    respx_mock.post(SEND_URL).mock(
        return_value=httpx.Response(
            401, json={"error": {"code": "Denied", "message": "Denied by the resource provider."}}
        )
    )

    exit_code = main([*configured_env, *_send_args()])

    assert exit_code == EXIT_FAILED
    assert "rejected the request" in capsys.readouterr().err


def test_missing_sender_is_a_usage_error(
    respx_mock: respx.Router,
    configured_env: list[str],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.delenv("ACS_EMAIL_SENDER")

    exit_code = main([*configured_env, *_send_args()])

    assert exit_code == EXIT_USAGE
    assert "Sender is required" in capsys.readouterr().err
    assert not respx_mock.calls


def test_missing_attachment_is_a_usage_error(
    respx_mock: respx.Router, configured_env: list[str], tmp_path: Path
) -> None:
    exit_code = main(
        [*configured_env, *_send_args("--attach", str(tmp_path / "absent.pdf"))]
    )

    assert exit_code == EXIT_USAGE
    assert not respx_mock.calls


def test_missing_credentials_is_a_usage_error(
    configured_env: list[str],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.delenv("ACS_EMAIL_ACCESS_KEY")

    exit_code = main([*configured_env, *_send_args()])

    assert exit_code == EXIT_USAGE
    assert "not configured correctly" in capsys.readouterr().err
