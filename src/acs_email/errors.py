from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acs_email.models.operation import ErrorDetail


class AcsErrorCategory(str, Enum):
    AUTHENTICATION = "authentication"
    SIGNING = "signing"
    NETWORK = "network"
    REMOTE = "remote"
    TIMEOUT = "timeout"
    TERMINAL = "terminal"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class AcsEmailError(Exception):
    message: str
    category: AcsErrorCategory = AcsErrorCategory.UNKNOWN
    status_code: int | None = None
    code: str | None = None
    detail: "ErrorDetail | None" = None
    inner_error: Exception | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message

    @property
    def recovery_suggestion(self) -> str | None:
        if self.category is AcsErrorCategory.AUTHENTICATION:
            return "Verify the tenant, client id and client secret of the service principal."
        if self.category is AcsErrorCategory.SIGNING:
            return "Check that the access key is the base64 value copied from the Azure portal."
        if self.category is AcsErrorCategory.NETWORK:
            return "Check your internet connection and the resource endpoint, then try again."
        if self.category is AcsErrorCategory.TIMEOUT:
            return "The send operation may still complete; query its status later."
        if self.category is AcsErrorCategory.VALIDATION:
            return "Review the sender, recipients and attachments of the message."
        if self.category is AcsErrorCategory.CONFIGURATION:
            return "Configure either an access key or a service principal, not both."
        if self.category is AcsErrorCategory.REMOTE and self.status_code == 429:
            return "Azure Communication Services throttled the request. Retry later."
        return None

    @property
    def is_retriable(self) -> bool:
        if self.category in {AcsErrorCategory.NETWORK, AcsErrorCategory.TIMEOUT}:
            return True
        if self.status_code and (self.status_code == 429 or 500 <= self.status_code <= 599):
            return True
        return False

    def to_error_detail(self) -> "ErrorDetail":
        """Return the provider error payload, or one synthesised from this error."""

        from acs_email.models.operation import ErrorDetail

        if self.detail is not None:
            return self.detail
        return ErrorDetail(
            code=self.code or type(self).__name__,
            message=self.message,
            target=None,
        )


class DispatchError(AcsEmailError):
    """Failure raised before a send operation handle exists."""


class AuthenticationError(DispatchError):
    def __init__(
        self,
        message: str = "Authentication failed",
        *,
        code: str | None = None,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.AUTHENTICATION,
            code=code,
            inner_error=inner_error,
        )


class SigningError(DispatchError):
    def __init__(
        self,
        message: str = "Failed to sign request",
        *,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.SIGNING,
            inner_error=inner_error,
        )


class TransportError(DispatchError):
    def __init__(
        self,
        message: str = "Network error",
        *,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.NETWORK,
            inner_error=inner_error,
        )


class RemoteError(DispatchError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        detail: "ErrorDetail | None" = None,
    ) -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.REMOTE,
            status_code=status_code,
            code=detail.code if detail is not None else None,
            detail=detail,
        )


class PollTimeout(AcsEmailError):
    def __init__(self, message: str = "Operation did not finish in time") -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.TIMEOUT,
            code="PollTimeout",
        )


class TerminalFailure(AcsEmailError):
    def __init__(
        self,
        message: str,
        *,
        status: str,
        detail: "ErrorDetail | None" = None,
    ) -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.TERMINAL,
            code=detail.code if detail is not None else status,
            detail=detail,
        )
        self.status = status


class MessageBuildError(AcsEmailError):
    def __init__(
        self,
        message: str,
        *,
        inner_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=AcsErrorCategory.VALIDATION,
            inner_error=inner_error,
        )


class ConfigurationError(AcsEmailError):
    def __init__(self, message: str) -> None:
        super().__init__(message=message, category=AcsErrorCategory.CONFIGURATION)


__all__ = [
    "AcsEmailError",
    "AcsErrorCategory",
    "AuthenticationError",
    "ConfigurationError",
    "DispatchError",
    "MessageBuildError",
    "PollTimeout",
    "RemoteError",
    "SigningError",
    "TerminalFailure",
    "TransportError",
]
