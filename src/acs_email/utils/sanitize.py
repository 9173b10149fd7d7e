from __future__ import annotations

import re
from typing import Any, Final, MutableMapping

_CONTROL_CHARS: Final[frozenset[str]] = frozenset(
    chr(code) for code in range(0x00, 0x20) if chr(code) not in {"\t", "\n"}
)

_SECRET_KEYS: Final[frozenset[str]] = frozenset(
    {
        "access_key",
        "accesskey",
        "authorization",
        "client_secret",
        "connection_string",
        "secret",
        "token",
    }
)

_CONNECTION_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(accesskey=)[^;\s]+",
    flags=re.IGNORECASE,
)

MASK: Final[str] = "***"


def sanitize_log_message(value: str) -> str:
    """Normalise log messages by stripping control characters and masking keys."""

    normalised = value.replace("\r\n", "\n").replace("\r", "\n")
    stripped = "".join(ch for ch in normalised if ch not in _CONTROL_CHARS)
    return _CONNECTION_KEY_PATTERN.sub(rf"\g<1>{MASK}", stripped)


def mask_secret_fields(
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    for key in list(event_dict):
        if key.lower() in _SECRET_KEYS and event_dict[key]:
            event_dict[key] = MASK
        elif isinstance(event_dict[key], str):
            event_dict[key] = sanitize_log_message(event_dict[key])
    return event_dict


__all__ = ["MASK", "mask_secret_fields", "sanitize_log_message"]
