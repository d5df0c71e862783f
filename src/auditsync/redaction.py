"""Scrubbing of credential-shaped text before it is persisted or sent."""

from __future__ import annotations

import re
from typing import Any

DEFAULT_MAX_CHARS = 1000
TRUNCATION_MARKER = "... (truncated)"

# Order matters: provider-prefixed env assignments are collapsed before the
# generic key/secret/password rules so the provider name survives.
_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"AWS_[A-Z_]+=[^&\s]+"), "AWS_***"),
    (re.compile(r"SUPABASE_[A-Z_]+=[^&\s]+"), "SUPABASE_***"),
    (re.compile(r"GOOGLE_[A-Z_]+=[^&\s]+"), "GOOGLE_***"),
    (re.compile(r"password[^&\s=]*=[^&\s]+", re.IGNORECASE), "password=***"),
    (re.compile(r"secret[^&\s=]*=[^&\s]+", re.IGNORECASE), "secret=***"),
    (re.compile(r"key[^&\s=]*=[^&\s]+", re.IGNORECASE), "key=***"),
)


def truncate(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def redact(text: str | None, *, max_chars: int = DEFAULT_MAX_CHARS) -> str | None:
    """Mask credential assignments in *text* and cap its length.

    >>> redact("connect failed password=hunter2")
    'connect failed password=***'
    """
    if text is None:
        return None
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return truncate(text, max_chars)


def redact_metadata(
    metadata: dict[str, Any] | None,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> dict[str, Any]:
    """Return a copy of *metadata* with every string value redacted."""
    if not metadata:
        return {}
    return {key: _redact_value(value, max_chars) for key, value in metadata.items()}


def _redact_value(value: Any, max_chars: int) -> Any:
    if isinstance(value, str):
        return redact(value, max_chars=max_chars)
    if isinstance(value, dict):
        return {k: _redact_value(v, max_chars) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact_value(v, max_chars) for v in value]
    return value
