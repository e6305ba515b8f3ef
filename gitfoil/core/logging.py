"""
Logging
=======

Logging for a process whose stdout is file content.

- Every handler redacts values that look like passwords or key material
- Console output goes to stderr only; stdout is reserved for filter data
- An optional size-limited rotating log file, created owner-only

Modules log through logging.getLogger("gitfoil.<area>"); configure_logging
attaches handlers to the "gitfoil" parent once per process.
"""

from __future__ import annotations

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Final, Iterable, Optional, Pattern, TextIO

if TYPE_CHECKING:
    from gitfoil.core.config import FoilConfig

ROOT_LOGGER_NAME: Final[str] = "gitfoil"

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"

REDACTED: Final[str] = "[REDACTED]"

# (label, pattern); a match is replaced with "<label>=[REDACTED]"
_REDACTIONS: Final[tuple[tuple[str, Pattern[str]], ...]] = (
    ("password", re.compile(r"(?i)\b(?:password|passwd|pwd)\s*[=:]\s*\S+")),
    ("secret", re.compile(r"(?i)\b(?:secret|private[_-]?key|master[_-]?key|kek)\s*[=:]\s*\S+")),
    ("token", re.compile(r"(?i)\b(?:token|bearer)\s*[=:]\s*\S+")),
    ("base64_secret", re.compile(r"[A-Za-z0-9+/]{40,}={0,2}")),
    ("hex_secret", re.compile(r"(?i)(?:0x)?[0-9a-f]{32,}")),
)


def redact(text: str, extra: Iterable[Pattern[str]] = ()) -> str:
    for label, pattern in _REDACTIONS:
        text = pattern.sub(f"{label}={REDACTED}", text)
    for pattern in extra:
        text = pattern.sub(REDACTED, text)
    return text


class SecureLogFilter(logging.Filter):
    """
    Formats the record's message, redacts it, and freezes the result.

    Records are never dropped. After filtering, record.args is empty and
    record.msg holds the final redacted text, so every handler sees the
    same sanitized line.
    """

    def __init__(self, name: str = "", extra_patterns: Optional[Iterable[Pattern[str]]] = None) -> None:
        super().__init__(name)
        self._extra = tuple(extra_patterns or ())

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        record.msg = redact(message, self._extra)
        record.args = ()
        return True


class SecureRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler whose parent directory is created with mode 0700."""

    def __init__(
        self,
        filename: str | Path,
        maxBytes: int = 10 * 1024 * 1024,
        backupCount: int = 3,
    ) -> None:
        path = Path(filename).resolve()
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        super().__init__(path, maxBytes=maxBytes, backupCount=backupCount, encoding="utf-8")


def _console_handler(stream: Optional[TextIO], formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    return handler


def _file_handler(log_file: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = SecureRotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def get_secure_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "WARNING",
    enable_console: bool = True,
    log_file: Optional[Path] = None,
    stream: Optional[TextIO] = None,
    fmt: str = DEFAULT_FORMAT,
    datefmt: str = "%H:%M:%S",
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Return a logger whose handlers redact secrets.

    Args:
        name: Logger name
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        enable_console: Attach a stderr handler
        log_file: Also write to this rotating file
        stream: Console stream override (must not be stdout in a filter)

    A logger that already has handlers is returned unchanged.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level.upper())
    redactor = SecureLogFilter()

    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(_console_handler(stream, logging.Formatter(fmt, datefmt=datefmt)))
    if log_file is not None:
        handlers.append(_file_handler(log_file, max_file_size, backup_count))

    for handler in handlers:
        handler.addFilter(redactor)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def configure_logging(config: "FoilConfig", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the "gitfoil" logger tree from configuration.

    Existing handlers on the "gitfoil" logger are closed and replaced, so
    this is safe to call more than once.
    """
    settings = config.logging
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    return get_secure_logger(
        ROOT_LOGGER_NAME,
        level=settings.level,
        enable_console=settings.enable_console,
        log_file=settings.log_file if settings.enable_file else None,
        stream=stream,
        fmt=settings.format,
        datefmt=settings.date_format,
        max_file_size=settings.max_file_size_bytes,
        backup_count=settings.backup_count,
    )
