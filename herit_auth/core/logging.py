"""Logging setup with token redaction."""

from __future__ import annotations

import logging
import os
import re

_JWT_RE = re.compile(r"\beyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+")
_BEARER_RE = re.compile(r"(?i)\bBearer\s+[^\s,;]+")
_ARGON2_RE = re.compile(r"\$argon2(?:id|i|d)\$[^\s,;]+")
REDACTED = "***REDACTED***"


def redact(value: str) -> str:
    value = _JWT_RE.sub(REDACTED, value)
    value = _BEARER_RE.sub(f"Bearer {REDACTED}", value)
    return _ARGON2_RE.sub(REDACTED, value)


class RedactingFilter(logging.Filter):
    """Scrubs token and hash material from records before any handler formats them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        return True


def setup_logging(level: str | None = None) -> None:
    if logging.getLogger().handlers:
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level_name,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RedactingFilter())
