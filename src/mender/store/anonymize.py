"""Scrubbing of identifying data for pattern exports.

Problem signatures and feedback comments are free text and may carry
endpoint URLs, credentials or addresses copied from a diagnosis. Solution
payloads stay opaque: only values under sensitive-looking keys are replaced,
the structure and everything else is kept.
"""

import re
from typing import Any

from mender.core.logging import REDACTED, is_sensitive_key

_TEXT_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"https?://[^\s]+", re.IGNORECASE), "https://example.com/endpoint"),
    (re.compile(r"(bearer\s+)[A-Za-z0-9._~+/-]+=*", re.IGNORECASE), r"\1[TOKEN_REMOVED]"),
    (re.compile(r"\b(?:sk|pk|api)[_-][A-Za-z0-9_-]{16,}\b"), "[API_KEY_REMOVED]"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL_REMOVED]"),
    (re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "[IP_REMOVED]"),
    (
        re.compile(r"\b(password|pwd|pass|secret|token|key)\s*[:=]\s*[^\s;,]+", re.IGNORECASE),
        r"\1=[REDACTED]",
    ),
]


def anonymize_text(text: str) -> str:
    """Replace URLs, tokens, API keys, e-mail addresses, IPs and key=value secrets."""
    for pattern, replacement in _TEXT_RULES:
        text = pattern.sub(replacement, text)
    return text


def redact_payload(value: Any) -> Any:
    """Recursively replace values stored under sensitive keys with "[REDACTED]"."""
    if isinstance(value, dict):
        return {
            k: REDACTED if is_sensitive_key(str(k)) else redact_payload(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact_payload(item) for item in value]
    return value
