"""Request signing for the two ACS authentication schemes.

Shared-key requests carry an HMAC-SHA256 signature over
``METHOD\\npath?query\\ndate;host;content-hash``; service principal requests
carry a bearer token. Both are applied through :class:`AcsAuth`, so submit
and poll requests are signed the same way.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import AsyncGenerator, Callable

import httpx

from acs_email.auth.credentials import CredentialProvider
from acs_email.auth.types import AuthMaterial, BearerMaterial, SharedKeyMaterial
from acs_email.errors import SigningError


DATE_HEADER = "x-ms-date"
CONTENT_HASH_HEADER = "x-ms-content-sha256"
SIGNED_HEADERS = f"{DATE_HEADER};host;{CONTENT_HASH_HEADER}"


@dataclass(slots=True, frozen=True)
class SignedRequest:
    method: str
    path_and_query: str
    headers: dict[str, str]
    body: bytes
    content_hash: str | None = None


def format_http_date(moment: datetime | None = None) -> str:
    """Return an RFC 1123 date in GMT, e.g. ``Tue, 15 Nov 1994 08:12:31 GMT``."""

    value = moment or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def content_sha256(body: bytes) -> str:
    return base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")


def string_to_sign(
    method: str,
    path_and_query: str,
    date: str,
    host: str,
    content_hash: str,
) -> str:
    return f"{method.upper()}\n{path_and_query}\n{date};{host};{content_hash}"


def compute_signature(key: bytes, payload: str) -> str:
    digest = hmac.new(key, payload.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_request(
    method: str,
    path_and_query: str,
    host: str,
    body: bytes,
    material: AuthMaterial,
    *,
    date: str | None = None,
) -> SignedRequest:
    """Produce the authorization headers for one outbound request."""

    if isinstance(material, BearerMaterial):
        return SignedRequest(
            method=method.upper(),
            path_and_query=path_and_query,
            headers={"Authorization": f"Bearer {material.token}"},
            body=body,
        )

    if not isinstance(material, SharedKeyMaterial):
        raise SigningError(f"Unsupported credential material: {type(material).__name__}")

    try:
        request_date = date or format_http_date()
        content_hash = content_sha256(body)
        signature = compute_signature(
            material.key,
            string_to_sign(method, path_and_query, request_date, host, content_hash),
        )
    except (TypeError, ValueError) as exc:
        raise SigningError(f"Failed to compute request signature: {exc}", inner_error=exc) from exc

    return SignedRequest(
        method=method.upper(),
        path_and_query=path_and_query,
        headers={
            DATE_HEADER: request_date,
            CONTENT_HASH_HEADER: content_hash,
            "Authorization": (
                f"HMAC-SHA256 SignedHeaders={SIGNED_HEADERS}&Signature={signature}"
            ),
        },
        body=body,
        content_hash=content_hash,
    )


class AcsAuth(httpx.Auth):
    """httpx auth hook that signs every request with the active credential."""

    requires_request_body = True

    def __init__(
        self,
        credential: CredentialProvider,
        *,
        date_provider: Callable[[], str] = format_http_date,
    ) -> None:
        self._credential = credential
        self._date_provider = date_provider

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        material = await self._credential.auth_material()
        signed = sign_request(
            request.method,
            request.url.raw_path.decode("ascii"),
            request.url.netloc.decode("ascii"),
            request.content,
            material,
            date=self._date_provider(),
        )
        request.headers.update(signed.headers)
        yield request

    def sync_auth_flow(self, request: httpx.Request):  # pragma: no cover - async only
        raise RuntimeError("AcsAuth only supports httpx.AsyncClient")


__all__ = [
    "AcsAuth",
    "CONTENT_HASH_HEADER",
    "DATE_HEADER",
    "SIGNED_HEADERS",
    "SignedRequest",
    "compute_signature",
    "content_sha256",
    "format_http_date",
    "sign_request",
    "string_to_sign",
]
