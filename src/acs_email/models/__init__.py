"""Wire models for ACS Email requests and operations."""

from .common import AcsBaseModel
from .email import (
    EmailAddress,
    EmailAttachment,
    EmailContent,
    EmailMessage,
    Recipients,
    attachment_from_bytes,
    attachment_from_file,
    build_message,
    message_from_wire,
)
from .operation import (
    EmailSendStatus,
    ErrorAdditionalInfo,
    ErrorDetail,
    ErrorResponse,
    OperationHandle,
    OperationOutcome,
    OperationStatusResponse,
)

__all__ = [
    "AcsBaseModel",
    "EmailAddress",
    "EmailAttachment",
    "EmailContent",
    "EmailMessage",
    "Recipients",
    "attachment_from_bytes",
    "attachment_from_file",
    "build_message",
    "message_from_wire",
    "EmailSendStatus",
    "ErrorAdditionalInfo",
    "ErrorDetail",
    "ErrorResponse",
    "OperationHandle",
    "OperationOutcome",
    "OperationStatusResponse",
]
