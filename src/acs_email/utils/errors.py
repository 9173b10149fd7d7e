from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import httpx

from acs_email.errors import AcsEmailError, AcsErrorCategory


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class ErrorDescriptor:
    headline: str
    detail: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    transient: bool = False
    suggestion: str | None = None


def describe_exception(error: BaseException) -> ErrorDescriptor:
    descriptor = ErrorDescriptor(
        headline="Operation failed.",
        detail=f"{type(error).__name__}: {error}",
    )

    acs_error = _locate_acs_error(error)
    if acs_error is not None:
        descriptor.detail = _format_detail(acs_error)
        descriptor.suggestion = acs_error.recovery_suggestion
        descriptor.transient = acs_error.is_retriable
        if acs_error.is_retriable:
            descriptor.severity = ErrorSeverity.WARNING
        descriptor.headline = _headline(acs_error)
        return descriptor

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        descriptor.headline = "Timed out waiting for Azure Communication Services."
        descriptor.severity = ErrorSeverity.WARNING
        descriptor.transient = True
        descriptor.suggestion = "Retry the request after verifying connectivity."
    return descriptor


def _locate_acs_error(error: BaseException) -> AcsEmailError | None:
    current: BaseException | None = error
    visited: set[int] = set()
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        if isinstance(current, AcsEmailError):
            return current
        current = current.__cause__ or current.__context__
    return None


def _headline(error: AcsEmailError) -> str:
    match error.category:
        case AcsErrorCategory.AUTHENTICATION:
            return "Could not authenticate with Azure Communication Services."
        case AcsErrorCategory.SIGNING:
            return "The request could not be signed."
        case AcsErrorCategory.NETWORK:
            return "Network issue contacting Azure Communication Services."
        case AcsErrorCategory.REMOTE:
            return "Azure Communication Services rejected the request."
        case AcsErrorCategory.TIMEOUT:
            return "The send operation did not finish in time."
        case AcsErrorCategory.TERMINAL:
            return "The email was not delivered."
        case AcsErrorCategory.VALIDATION:
            return "The email message is invalid."
        case AcsErrorCategory.CONFIGURATION:
            return "The client is not configured correctly."
        case _:
            return "Email request failed."


def _format_detail(error: AcsEmailError) -> str:
    if error.code and not error.message.startswith(f"{error.code}:"):
        return f"{error.code}: {error}"
    return str(error)


__all__ = ["ErrorDescriptor", "ErrorSeverity", "describe_exception"]
