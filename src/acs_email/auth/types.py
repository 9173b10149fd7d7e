"""Authentication type definitions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple


class AccessToken(NamedTuple):
    """Represents an OAuth access token.

    Compatible with azure.core.credentials.AccessToken but avoids the dependency.
    """

    token: str
    """The token string."""

    expires_on: int
    """The token's expiration time in Unix time."""


@dataclass(slots=True, frozen=True)
class SharedKeyMaterial:
    """Decoded access key used for HMAC request signing."""

    key: bytes

    def __repr__(self) -> str:
        return "SharedKeyMaterial(key=***)"


@dataclass(slots=True, frozen=True)
class BearerMaterial:
    """Valid bearer token for the Authorization header."""

    token: str

    def __repr__(self) -> str:
        return "BearerMaterial(token=***)"


AuthMaterial = SharedKeyMaterial | BearerMaterial


__all__ = ["AccessToken", "AuthMaterial", "BearerMaterial", "SharedKeyMaterial"]
