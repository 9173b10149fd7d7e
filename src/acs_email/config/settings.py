from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "acs-email"
ENV_PREFIX = "ACS_EMAIL_"
ENV_FILE_NAME = "settings.env"

DEFAULT_API_VERSION = "2023-03-31"
DEFAULT_TOKEN_SCOPE = "https://communication.azure.com/.default"
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 150
DEFAULT_POLL_TIMEOUT = 300.0


def config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME, roaming=True))
    path.mkdir(parents=True, exist_ok=True)
    return path


def cache_dir() -> Path:
    path = Path(user_cache_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def log_dir() -> Path:
    path = cache_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_file_path(explicit: Path | None) -> Path:
    if explicit is not None:
        return explicit
    local = Path.cwd() / ".env"
    if local.exists():
        return local
    return config_dir() / ENV_FILE_NAME


@dataclass(slots=True)
class Settings:
    """Connection details for an Azure Communication Services resource.

    Exactly one authentication scheme should be configured: either a shared
    access key (directly or through ``connection_string``) or a service
    principal (``tenant_id`` + ``client_id`` + ``client_secret``).
    """

    endpoint: str | None = None
    access_key: str | None = None
    connection_string: str | None = None
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    sender: str | None = None
    api_version: str = DEFAULT_API_VERSION
    token_scope: str = DEFAULT_TOKEN_SCOPE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS
    poll_timeout: float = DEFAULT_POLL_TIMEOUT

    @property
    def uses_shared_key(self) -> bool:
        return bool(self.access_key or self.connection_string)

    @property
    def uses_service_principal(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)

    @property
    def is_configured(self) -> bool:
        """True when an endpoint and exactly one credential scheme are set."""
        has_endpoint = bool(self.endpoint or self.connection_string)
        return has_endpoint and (self.uses_shared_key != self.uses_service_principal)

    def derive_authority(self) -> str:
        tenant = self.tenant_id or "common"
        return f"https://login.microsoftonline.com/{tenant}"


class SettingsManager:
    """Load settings from ``ACS_EMAIL_*`` environment variables."""

    def __init__(self, env_file: Path | None = None) -> None:
        self._env_file = _env_file_path(env_file)

    @property
    def env_file(self) -> Path:
        return self._env_file

    def load(self) -> Settings:
        """Load settings from the environment, falling back to the env file."""
        load_dotenv(self._env_file, override=False)

        settings = Settings(
            endpoint=self._get_env("ENDPOINT"),
            access_key=self._get_env("ACCESS_KEY"),
            connection_string=self._get_env("CONNECTION_STRING"),
            tenant_id=self._get_env("TENANT_ID"),
            client_id=self._get_env("CLIENT_ID"),
            client_secret=self._get_env("CLIENT_SECRET"),
            sender=self._get_env("SENDER"),
        )

        api_version = self._get_env("API_VERSION")
        if api_version:
            settings.api_version = api_version
        token_scope = self._get_env("TOKEN_SCOPE")
        if token_scope:
            settings.token_scope = token_scope

        settings.poll_interval = self._get_float(
            "POLL_INTERVAL", settings.poll_interval
        )
        settings.poll_timeout = self._get_float("POLL_TIMEOUT", settings.poll_timeout)
        settings.poll_max_attempts = int(
            self._get_float("POLL_MAX_ATTEMPTS", settings.poll_max_attempts)
        )
        return settings

    def _get_env(self, name: str) -> str | None:
        value = os.getenv(f"{ENV_PREFIX}{name}")
        if value is None:
            return None
        return value.strip() or None

    def _get_float(self, name: str, default: float) -> float:
        raw = self._get_env(name)
        if raw is None:
            return default
        try:
            return float(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}{name} must be numeric, got {raw!r}") from exc


__all__ = [
    "APP_NAME",
    "DEFAULT_API_VERSION",
    "DEFAULT_TOKEN_SCOPE",
    "ENV_PREFIX",
    "Settings",
    "SettingsManager",
    "cache_dir",
    "config_dir",
    "log_dir",
]
