from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from pydantic import Field, ValidationError, field_validator, model_validator

from acs_email.errors import MessageBuildError

from .common import AcsBaseModel


DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


class EmailAddress(AcsBaseModel):
    address: str = Field(min_length=1)
    display_name: str | None = Field(default=None, alias="displayName")


class EmailContent(AcsBaseModel):
    subject: str
    plain_text: str | None = Field(default=None, alias="plainText")
    html: str | None = None


class Recipients(AcsBaseModel):
    to: list[EmailAddress] | None = None
    cc: list[EmailAddress] | None = None
    bcc: list[EmailAddress] | None = None

    @model_validator(mode="after")
    def _require_recipient(self) -> "Recipients":
        if not (self.to or self.cc or self.bcc):
            raise ValueError("At least one recipient is required")
        return self


class EmailAttachment(AcsBaseModel):
    name: str = Field(min_length=1)
    content_type: str = Field(default=DEFAULT_ATTACHMENT_TYPE, alias="contentType")
    content_in_base64: str = Field(alias="contentInBase64")

    @field_validator("content_in_base64")
    @classmethod
    def _valid_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except ValueError as exc:
            raise ValueError("contentInBase64 is not valid base64") from exc
        return value


class EmailMessage(AcsBaseModel):
    """A validated, ready-to-serialize send request body."""

    headers: dict[str, str] | None = None
    sender_address: str = Field(min_length=1, alias="senderAddress")
    content: EmailContent
    recipients: Recipients
    attachments: list[EmailAttachment] | None = None
    reply_to: list[EmailAddress] | None = Field(default=None, alias="replyTo")
    user_engagement_tracking_disabled: bool | None = Field(
        default=None, alias="userEngagementTrackingDisabled"
    )


AddressInput = EmailAddress | str | tuple[str, str | None]


def _coerce_address(value: AddressInput) -> EmailAddress:
    if isinstance(value, EmailAddress):
        return value
    if isinstance(value, tuple):
        address, display_name = value
        return EmailAddress(address=address, display_name=display_name)
    return EmailAddress(address=value)


def _coerce_addresses(values: Iterable[AddressInput] | None) -> list[EmailAddress] | None:
    if values is None:
        return None
    coerced = [_coerce_address(value) for value in values]
    return coerced or None


def build_message(
    *,
    sender: str | None,
    subject: str,
    to: Sequence[AddressInput] | None = None,
    cc: Sequence[AddressInput] | None = None,
    bcc: Sequence[AddressInput] | None = None,
    plain_text: str | None = None,
    html: str | None = None,
    attachments: Sequence[EmailAttachment] | None = None,
    reply_to: Sequence[AddressInput] | None = None,
    headers: Mapping[str, str] | None = None,
    user_engagement_tracking_disabled: bool | None = None,
) -> EmailMessage:
    """Validate the parts of an email and assemble an :class:`EmailMessage`.

    Raises:
        MessageBuildError: When a required part is missing or malformed. No
            network activity happens before this check.
    """

    if not sender:
        raise MessageBuildError("Sender is required")
    try:
        return EmailMessage(
            sender_address=sender,
            content=EmailContent(subject=subject, plain_text=plain_text, html=html),
            recipients=Recipients(
                to=_coerce_addresses(to),
                cc=_coerce_addresses(cc),
                bcc=_coerce_addresses(bcc),
            ),
            attachments=list(attachments) if attachments else None,
            reply_to=_coerce_addresses(reply_to),
            headers=dict(headers) if headers else None,
            user_engagement_tracking_disabled=user_engagement_tracking_disabled,
        )
    except ValidationError as exc:
        raise MessageBuildError(_summarise(exc), inner_error=exc) from exc


def message_from_wire(payload: dict[str, Any]) -> EmailMessage:
    """Validate a camelCase request body produced elsewhere."""

    try:
        return EmailMessage.from_wire(payload)
    except ValidationError as exc:
        raise MessageBuildError(_summarise(exc), inner_error=exc) from exc


def attachment_from_bytes(
    name: str,
    data: bytes,
    content_type: str | None = None,
) -> EmailAttachment:
    resolved_type = content_type or guess_content_type(name)
    try:
        return EmailAttachment(
            name=name,
            content_type=resolved_type,
            content_in_base64=base64.b64encode(data).decode("ascii"),
        )
    except ValidationError as exc:
        raise MessageBuildError(_summarise(exc), inner_error=exc) from exc


def attachment_from_file(
    path: str | Path,
    content_type: str | None = None,
) -> EmailAttachment:
    """Read a file and encode it as an attachment named after the file."""

    file_path = Path(path)
    if not file_path.is_file():
        raise MessageBuildError(f"Attachment file does not exist: {file_path}")
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise MessageBuildError(
            f"Failed to read attachment {file_path}: {exc}", inner_error=exc
        ) from exc
    return attachment_from_bytes(file_path.name, data, content_type)


def guess_content_type(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_ATTACHMENT_TYPE


def _summarise(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "Invalid email message: " + "; ".join(parts)


__all__ = [
    "AddressInput",
    "EmailAddress",
    "EmailAttachment",
    "EmailContent",
    "EmailMessage",
    "Recipients",
    "attachment_from_bytes",
    "attachment_from_file",
    "build_message",
    "guess_content_type",
    "message_from_wire",
]
