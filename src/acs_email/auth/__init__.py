"""Authentication utilities for the ACS email client."""

from .credentials import (
    CredentialProvider,
    ServicePrincipalCredential,
    SharedKeyCredential,
    credential_from_settings,
    parse_connection_string,
)
from .signing import AcsAuth, SignedRequest, format_http_date, sign_request
from .types import AccessToken, AuthMaterial, BearerMaterial, SharedKeyMaterial

__all__ = [
    "AccessToken",
    "AcsAuth",
    "AuthMaterial",
    "BearerMaterial",
    "CredentialProvider",
    "ServicePrincipalCredential",
    "SharedKeyCredential",
    "SharedKeyMaterial",
    "SignedRequest",
    "credential_from_settings",
    "format_http_date",
    "parse_connection_string",
    "sign_request",
]
