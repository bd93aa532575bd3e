"""Logging setup for the MCP server.

Records go to stderr only: stdout is the stdio transport and a stray line there
breaks the protocol stream. Passwords are scrubbed before anything is
formatted, both from ``extra`` fields and from connection URLs embedded in
messages.
"""

import json
import logging
import re
import sys
from typing import Any, ClassVar

# Attributes present on every record; everything else came in through ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# user:password@ inside postgres:// style URLs
_DSN_PASSWORD = re.compile(r"(?P<prefix>[a-z][a-z0-9+.-]*://[^:/@\s]+:)(?P<secret>[^@\s]+)@", re.I)

REDACTED = "***REDACTED***"


def redact_dsn(text: str) -> str:
    """Mask the password part of any connection URL found in ``text``.

    Example:
        >>> redact_dsn("postgres://app:hunter2@db:5432/prod")
        'postgres://app:***@db:5432/prod'
    """
    return _DSN_PASSWORD.sub(r"\g<prefix>***@", text)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}


class SensitiveDataFilter(logging.Filter):
    """Scrub credentials from a record before any handler formats it.

    Values under credential-like keys are replaced wholesale; strings anywhere
    else (message, arguments, extras) have URL passwords masked.
    """

    SENSITIVE_KEYS: ClassVar[frozenset[str]] = frozenset(
        {"password", "passwd", "pgpassword", "secret", "token", "authorization"}
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_dsn(record.msg)
        if record.args:
            record.args = self._scrub(record.args)

        for key, value in _extra_fields(record).items():
            setattr(record, key, REDACTED if self._is_sensitive(key) else self._scrub(value))

        return True

    def _is_sensitive(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self.SENSITIVE_KEYS

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            return redact_dsn(value)
        if isinstance(value, dict):
            return {
                k: REDACTED if self._is_sensitive(k) else self._scrub(v) for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self._scrub(item) for item in value)
        return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields nested under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        extra = _extra_fields(record)
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``<time> [LEVEL] logger - message {extra}`` for interactive use."""

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, self.datefmt)} [{record.levelname}] "
            f"{record.name} - {record.getMessage()}"
        )
        extra = _extra_fields(record)
        if extra:
            line = f"{line} {json.dumps(extra, default=str, sort_keys=True)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: str = "INFO",
    log_format: str = "text",
    enable_sensitive_filter: bool = True,
) -> None:
    """Route all logging to a single stderr handler on the root logger.

    Handlers installed earlier are removed, so calling this twice does not
    duplicate output.

    Args:
        level: Root level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: ``"json"`` or ``"text"``.
        enable_sensitive_filter: Attach :class:`SensitiveDataFilter`.
    """
    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(TextFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    if enable_sensitive_filter:
        handler.addFilter(SensitiveDataFilter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    for noisy in ("asyncpg", "mcp", "fastmcp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
