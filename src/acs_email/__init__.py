"""Azure Communication Services email client."""

from acs_email.auth import ServicePrincipalCredential, SharedKeyCredential
from acs_email.client import EmailClient, EmailClientConfig, PollPolicy, SendResult
from acs_email.errors import (
    AcsEmailError,
    AuthenticationError,
    ConfigurationError,
    DispatchError,
    MessageBuildError,
    PollTimeout,
    RemoteError,
    SigningError,
    TerminalFailure,
    TransportError,
)
from acs_email.models import (
    EmailAddress,
    EmailAttachment,
    EmailContent,
    EmailMessage,
    EmailSendStatus,
    ErrorDetail,
    OperationOutcome,
    Recipients,
    attachment_from_file,
    build_message,
)

__version__ = "0.1.0"

__all__ = [
    "AcsEmailError",
    "AuthenticationError",
    "ConfigurationError",
    "DispatchError",
    "EmailAddress",
    "EmailAttachment",
    "EmailClient",
    "EmailClientConfig",
    "EmailContent",
    "EmailMessage",
    "EmailSendStatus",
    "ErrorDetail",
    "MessageBuildError",
    "OperationOutcome",
    "PollPolicy",
    "PollTimeout",
    "Recipients",
    "RemoteError",
    "SendResult",
    "ServicePrincipalCredential",
    "SharedKeyCredential",
    "SigningError",
    "TerminalFailure",
    "TransportError",
    "attachment_from_file",
    "build_message",
]
