"""Centralized logging helpers.

Provides process-wide logging setup plus small utilities used by the HTTP,
registry and operation layers to emit structured DEBUG traces without
leaking credentials.
"""
from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from constants import Constants

_SENSITIVE_QUERY_KEYS = {"token", "access_token", "auth", "password", "apikey", "api_key", "key"}
_CONTEXT_ORDER = ("event", "component", "action", "package", "version", "outcome", "target", "duration_ms")


class ContextFormatter(logging.Formatter):
    """Formatter that appends structured context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        ctx = getattr(record, "ctx", None)
        if not ctx:
            return base
        ordered = [k for k in _CONTEXT_ORDER if k in ctx] + sorted(k for k in ctx if k not in _CONTEXT_ORDER)
        rendered = " ".join(f"{k}={ctx[k]}" for k in ordered)
        return f"{base} [{rendered}]"


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None, quiet: bool = False) -> None:
    """Configure the root logger.

    The level is taken from the argument, then PKGWRIGHT_LOG_LEVEL, then INFO.
    Calling this more than once replaces the handlers installed previously.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_pkgwright", False):
            root.removeHandler(handler)

    formatter = ContextFormatter(Constants.LOG_FORMAT)
    handlers = []
    if not quiet:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._pkgwright = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from this logger would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping carrying structured context.

    None values are dropped so call sites can pass optional fields freely.
    """
    return {"ctx": {k: v for k, v in fields.items() if v is not None}}


def redact(text: Optional[str]) -> str:
    """Mask credentials embedded in free text (basic-auth URLs, bearer tokens)."""
    if not text:
        return ""
    masked = re.sub(r"(?i)(://)([^/@\s:]+):([^/@\s]+)@", r"\1\2:[REDACTED]@", text)
    masked = re.sub(r"(?i)(bearer|basic)\s+[A-Za-z0-9._~+/=-]+", r"\1 [REDACTED]", masked)
    return masked


def safe_url(url: Optional[str]) -> str:
    """Return the URL with userinfo passwords and sensitive query values masked."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.netloc
    if "@" in netloc:
        userinfo, host = netloc.rsplit("@", 1)
        user = userinfo.split(":", 1)[0]
        netloc = f"{user}:[REDACTED]@{host}" if ":" in userinfo else f"{user}@{host}"
    query = parts.query
    if query:
        pairs = [
            (k, "[REDACTED]" if k.lower() in _SENSITIVE_QUERY_KEYS else v)
            for k, v in parse_qsl(query, keep_blank_values=True)
        ]
        query = urlencode(pairs)
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; measured up to now while still running."""
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
