"""Dispatch and tracking of ACS email send operations."""

from .client import EmailClient, EmailClientConfig
from .dispatcher import Dispatcher
from .tracker import OperationTracker, PollPolicy, SendResult, StatusObserver
from .transport import EmailTransport, RequestTelemetryEvent, map_response_to_error

__all__ = [
    "Dispatcher",
    "EmailClient",
    "EmailClientConfig",
    "EmailTransport",
    "OperationTracker",
    "PollPolicy",
    "RequestTelemetryEvent",
    "SendResult",
    "StatusObserver",
    "map_response_to_error",
]
