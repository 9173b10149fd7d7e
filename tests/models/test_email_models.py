from __future__ import annotations

import base64
from pathlib import Path

import pytest

from acs_email.errors import MessageBuildError
from acs_email.models import (
    EmailAddress,
    attachment_from_bytes,
    attachment_from_file,
    build_message,
    message_from_wire,
)
from acs_email.models.email import guess_content_type

from tests.factories import make_message


def test_message_serialises_with_service_field_names() -> None:
    message = make_message(
        cc=["carol@example.com"],
        html="<p>The report is attached.</p>",
        reply_to=[EmailAddress(address="support@contoso.com", display_name="Support")],
        headers={"x-priority": "1"},
        user_engagement_tracking_disabled=True,
    )

    wire = message.to_wire()

    assert wire == {
        "headers": {"x-priority": "1"},
        "senderAddress": "DoNotReply@contoso.com",
        "content": {
            "subject": "Quarterly report",
            "plainText": "The report is attached.",
            "html": "<p>The report is attached.</p>",
        },
        "recipients": {
            "to": [{"address": "alice@example.com", "displayName": "Alice"}],
            "cc": [{"address": "carol@example.com"}],
        },
        "replyTo": [{"address": "support@contoso.com", "displayName": "Support"}],
        "userEngagementTrackingDisabled": True,
    }


def test_missing_sender_is_rejected() -> None:
    with pytest.raises(MessageBuildError) as excinfo:
        make_message(sender=None)

    assert excinfo.value.message == "Sender is required"


def test_message_without_recipients_is_rejected() -> None:
    with pytest.raises(MessageBuildError) as excinfo:
        build_message(sender="DoNotReply@contoso.com", subject="Hi", to=[])

    assert "At least one recipient is required" in excinfo.value.message


def test_empty_address_is_rejected() -> None:
    with pytest.raises(MessageBuildError) as excinfo:
        make_message(to=[""])

    assert excinfo.value.inner_error is not None


def test_bcc_only_message_is_valid() -> None:
    message = build_message(
        sender="DoNotReply@contoso.com",
        subject="Hidden",
        bcc=["audit@contoso.com"],
        plain_text="body",
    )

    assert message.recipients.to is None
    assert message.recipients.bcc is not None
    assert message.recipients.bcc[0].address == "audit@contoso.com"


def test_attachment_from_bytes_encodes_content() -> None:
    attachment = attachment_from_bytes("report.pdf", b"%PDF-1.7")

    assert attachment.content_type == "application/pdf"
    assert base64.b64decode(attachment.content_in_base64) == b"%PDF-1.7"
    assert attachment.to_wire() == {
        "name": "report.pdf",
        "contentType": "application/pdf",
        "contentInBase64": base64.b64encode(b"%PDF-1.7").decode("ascii"),
    }


def test_attachment_from_file(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")

    attachment = attachment_from_file(path)

    assert attachment.name == "notes.txt"
    assert attachment.content_type == "text/plain"
    assert base64.b64decode(attachment.content_in_base64) == b"hello"


def test_missing_attachment_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(MessageBuildError) as excinfo:
        attachment_from_file(tmp_path / "absent.pdf")

    assert "does not exist" in excinfo.value.message


def test_unknown_extension_defaults_to_octet_stream() -> None:
    assert guess_content_type("blob.zzunknown") == "application/octet-stream"


def test_message_from_wire_accepts_camel_case() -> None:
    message = message_from_wire(
        {
            "senderAddress": "DoNotReply@contoso.com",
            "content": {"subject": "Hi", "plainText": "body"},
            "recipients": {"to": [{"address": "bob@example.com"}]},
            "attachments": [
                {
                    "name": "a.bin",
                    "contentType": "application/octet-stream",
                    "contentInBase64": "AAEC",
                }
            ],
        }
    )

    assert message.sender_address == "DoNotReply@contoso.com"
    assert message.attachments is not None
    assert message.attachments[0].content_in_base64 == "AAEC"


def test_message_from_wire_rejects_bad_attachment() -> None:
    with pytest.raises(MessageBuildError):
        message_from_wire(
            {
                "senderAddress": "DoNotReply@contoso.com",
                "content": {"subject": "Hi"},
                "recipients": {"to": [{"address": "bob@example.com"}]},
                "attachments": [{"name": "a.bin", "contentInBase64": "not base64!"}],
            }
        )
