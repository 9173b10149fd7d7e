from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Callable, Protocol, Sequence

import msal

from acs_email.auth.types import AccessToken, AuthMaterial, BearerMaterial, SharedKeyMaterial
from acs_email.config.settings import DEFAULT_TOKEN_SCOPE, Settings
from acs_email.errors import AuthenticationError, ConfigurationError, SigningError
from acs_email.utils import get_logger


logger = get_logger(__name__)

DEFAULT_SAFETY_MARGIN = 60.0


class CredentialProvider(Protocol):
    """Supplies the material a request signer needs for each outbound call."""

    async def auth_material(self) -> AuthMaterial: ...


class SharedKeyCredential:
    """Static access key of a Communication Services resource."""

    def __init__(self, access_key: str) -> None:
        if not access_key:
            raise ConfigurationError("Access key must not be empty")
        self._access_key = access_key

    async def auth_material(self) -> SharedKeyMaterial:
        try:
            key = base64.b64decode(self._access_key, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SigningError(
                "Access key is not valid base64", inner_error=exc
            ) from exc
        return SharedKeyMaterial(key)

    def __repr__(self) -> str:
        return "SharedKeyCredential(access_key=***)"


class ServicePrincipalCredential:
    """Client-credentials token source with an in-memory, per-instance cache.

    The cached token is reused while ``now < expires_on - safety_margin``.
    Concurrent callers that find the cache stale share a single refresh.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        *,
        scopes: Sequence[str] = (DEFAULT_TOKEN_SCOPE,),
        authority: str | None = None,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not (tenant_id and client_id and client_secret):
            raise ConfigurationError(
                "tenant_id, client_id and client_secret are all required"
            )
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._scopes = list(scopes)
        self._authority = authority or f"https://login.microsoftonline.com/{tenant_id}"
        self._safety_margin = safety_margin
        self._clock = clock
        self._app: msal.ConfidentialClientApplication | None = None
        self._cached: AccessToken | None = None
        self._lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def refresh_count(self) -> int:
        """Number of token exchanges performed by this credential."""
        return self._refresh_count

    @property
    def cached_token(self) -> AccessToken | None:
        return self._cached

    def is_valid(self, token: AccessToken | None) -> bool:
        if token is None:
            return False
        return self._clock() < token.expires_on - self._safety_margin

    async def auth_material(self) -> BearerMaterial:
        token = await self.get_token()
        return BearerMaterial(token.token)

    async def get_token(self) -> AccessToken:
        cached = self._cached
        if self.is_valid(cached):
            return cached  # type: ignore[return-value]
        async with self._lock:
            # Another caller may have refreshed while we waited.
            cached = self._cached
            if self.is_valid(cached):
                return cached  # type: ignore[return-value]
            token = await asyncio.to_thread(self._exchange)
            self._cached = token
            self._refresh_count += 1
            logger.info(
                "Acquired service principal token",
                tenant_id=self._tenant_id,
                client_id=self._client_id,
                expires_on=token.expires_on,
            )
            return token

    def clear(self) -> None:
        self._cached = None

    # Internal --------------------------------------------------------

    def _ensure_app(self) -> msal.ConfidentialClientApplication:
        if self._app is None:
            try:
                self._app = msal.ConfidentialClientApplication(
                    client_id=self._client_id,
                    client_credential=self._client_secret,
                    authority=self._authority,
                )
            except ValueError as exc:
                logger.error(
                    "Invalid MSAL configuration",
                    authority=self._authority,
                    error=str(exc),
                )
                raise AuthenticationError(
                    f"Invalid authority for tenant {self._tenant_id}: {exc}",
                    inner_error=exc,
                ) from exc
            except Exception as exc:  # noqa: BLE001 - surface unexpected MSAL issues
                logger.exception("Failed to initialise MSAL client", authority=self._authority)
                raise AuthenticationError(
                    f"Failed to initialize the MSAL client: {exc}",
                    inner_error=exc,
                ) from exc
        return self._app

    def _exchange(self) -> AccessToken:
        app = self._ensure_app()
        try:
            result = app.acquire_token_for_client(scopes=self._scopes)
        except Exception as exc:  # noqa: BLE001 - network and MSAL failures alike
            raise AuthenticationError(
                f"Token exchange failed: {exc}", inner_error=exc
            ) from exc
        return self._process_result(result)

    def _process_result(self, result: dict[str, object] | None) -> AccessToken:
        if not result:
            raise AuthenticationError("Token endpoint returned no result")
        if "error" in result:
            error_code = result.get("error")
            error_desc = result.get("error_description", error_code)
            raise AuthenticationError(
                f"Token exchange failed: {error_desc}",
                code=str(error_code) if error_code else None,
            )

        access_token = result.get("access_token")
        if not isinstance(access_token, str):
            raise AuthenticationError("Token response missing access token")

        now = int(self._clock())
        expires_on = result.get("expires_on")
        expires_in = result.get("expires_in")
        if isinstance(expires_on, (int, str)) and str(expires_on).isdigit():
            expiry = int(expires_on)
        elif isinstance(expires_in, (int, str)) and str(expires_in).isdigit():
            expiry = now + int(expires_in)
        else:
            expiry = now + 3600
        return AccessToken(access_token, expiry)

    def __repr__(self) -> str:
        return (
            f"ServicePrincipalCredential(tenant_id={self._tenant_id!r}, "
            f"client_id={self._client_id!r})"
        )


def parse_connection_string(connection_string: str) -> tuple[str, str]:
    """Split ``endpoint=...;accesskey=...`` into ``(endpoint, access_key)``."""

    values: dict[str, str] = {}
    for segment in connection_string.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        key, separator, value = segment.partition("=")
        if not separator:
            raise ConfigurationError(
                "Connection string segments must have the form key=value"
            )
        values[key.strip().lower()] = value.strip()

    endpoint = values.get("endpoint")
    access_key = values.get("accesskey")
    if not endpoint or not access_key:
        raise ConfigurationError(
            "Connection string must contain both endpoint and accesskey"
        )
    return endpoint.rstrip("/"), access_key


def credential_from_settings(
    settings: Settings,
) -> tuple[str, SharedKeyCredential | ServicePrincipalCredential]:
    """Resolve the endpoint and the single configured credential scheme."""

    if settings.uses_shared_key and settings.uses_service_principal:
        raise ConfigurationError(
            "Both an access key and a service principal are configured; choose one"
        )

    endpoint = settings.endpoint
    if settings.connection_string:
        parsed_endpoint, access_key = parse_connection_string(settings.connection_string)
        endpoint = endpoint or parsed_endpoint
        if not endpoint:
            raise ConfigurationError("Resource endpoint is not configured")
        return endpoint.rstrip("/"), SharedKeyCredential(access_key)

    if not endpoint:
        raise ConfigurationError("Resource endpoint is not configured")

    if settings.access_key:
        return endpoint.rstrip("/"), SharedKeyCredential(settings.access_key)

    if settings.uses_service_principal:
        return endpoint.rstrip("/"), ServicePrincipalCredential(
            settings.tenant_id or "",
            settings.client_id or "",
            settings.client_secret or "",
            scopes=(settings.token_scope,),
            authority=settings.derive_authority(),
        )

    raise ConfigurationError(
        "No credentials configured; set an access key or a service principal"
    )


__all__ = [
    "CredentialProvider",
    "DEFAULT_SAFETY_MARGIN",
    "ServicePrincipalCredential",
    "SharedKeyCredential",
    "credential_from_settings",
    "parse_connection_string",
]
