from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from .common import AcsBaseModel


class EmailSendStatus(str, Enum):
    """Status of a long-running send operation.

    Unrecognised values map to ``UNKNOWN`` so newly introduced service states
    never break parsing.
    """

    UNKNOWN = "Unknown"
    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @classmethod
    def _missing_(cls, value: object) -> "EmailSendStatus":
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: object) -> "EmailSendStatus":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        return cls(value)

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {EmailSendStatus.SUCCEEDED, EmailSendStatus.FAILED, EmailSendStatus.CANCELED}
)


class ErrorAdditionalInfo(AcsBaseModel):
    info: Any | None = None
    type: str | None = None


class ErrorDetail(AcsBaseModel):
    """Provider error payload, passed through as received."""

    code: str | None = None
    message: str | None = None
    target: str | None = None
    additional_info: list[ErrorAdditionalInfo] = Field(
        default_factory=list, alias="additionalInfo"
    )

    @field_validator("additional_info", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def __str__(self) -> str:
        if self.code and self.message:
            return f"{self.code}: {self.message}"
        return self.message or self.code or "Unknown error"


class ErrorResponse(AcsBaseModel):
    error: ErrorDetail | None = None


class OperationStatusResponse(AcsBaseModel):
    """Body of both the submit acknowledgement and each status poll."""

    id: str | None = None
    status: EmailSendStatus = EmailSendStatus.UNKNOWN
    error: ErrorDetail | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _lenient_status(cls, value: Any) -> EmailSendStatus:
        return EmailSendStatus.parse(value)


@dataclass(slots=True)
class OperationHandle:
    """Server-issued operation identity plus its last observed state.

    Once ``status`` becomes terminal the handle rejects further transitions.
    """

    id: str
    status_url: str
    status: EmailSendStatus = EmailSendStatus.NOT_STARTED
    error: ErrorDetail | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def update(self, status: EmailSendStatus, error: ErrorDetail | None) -> bool:
        """Record an observed status; return False if the handle is already final."""

        if self.is_terminal:
            return False
        self.status = status
        self.error = error
        return True


@dataclass(slots=True, frozen=True)
class OperationOutcome:
    """Value a send operation's completion resolves to."""

    operation_id: str
    status: EmailSendStatus
    error: ErrorDetail | None = None
    exception: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is EmailSendStatus.SUCCEEDED


__all__ = [
    "EmailSendStatus",
    "ErrorAdditionalInfo",
    "ErrorDetail",
    "ErrorResponse",
    "OperationHandle",
    "OperationOutcome",
    "OperationStatusResponse",
    "TERMINAL_STATUSES",
]
