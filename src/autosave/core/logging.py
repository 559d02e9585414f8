"""
Logging utilities for the autosave engine.

Every save attempt should be traceable to the document and editor session it
came from. Records carry those ids as ``extra`` attributes; the formatters
below render them either as JSON lines or as a bracketed suffix.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple


CORRELATION_FIELDS = ("document_id", "company_id", "session_id", "correlation_id")
EXTRA_FIELDS = ("status", "version", "fingerprint", "attempt")


def _present(record: logging.LogRecord, fields: Tuple[str, ...]) -> Iterator[Tuple[str, Any]]:
    for name in fields:
        value = getattr(record, name, None)
        if value is not None:
            yield name, value


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: level, logger, message, optional timestamp (UTC ISO-8601), any
    correlation or engine field set on the record, and the formatted
    traceback under ``exception``.
    """

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            entry["timestamp"] = created.isoformat()

        entry.update(_present(record, CORRELATION_FIELDS + EXTRA_FIELDS))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    ``[asctime - ]name - level - message [document_id=.. session_id=..]``
    """

    def __init__(self, include_timestamp: bool = True):
        parts = ["%(name)s", "%(levelname)s", "%(message)s"]
        if include_timestamp:
            parts.insert(0, "%(asctime)s")
        super().__init__(" - ".join(parts))

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ids = " ".join(f"{name}={value}" for name, value in _present(record, CORRELATION_FIELDS))
        return f"{line} [{ids}]" if ids else line


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Return ``logging.getLogger(name)``, optionally forcing its level."""
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def configure_logging(
    level: int = logging.INFO,
    include_timestamp: bool = True,
    structured: bool = False,
    stream=None,
) -> logging.Logger:
    """
    Attach a stream handler to the ``autosave`` package logger.

    Calling it again only adjusts the level; the first handler stays, so
    repeated calls never duplicate output.

    Args:
        level: Threshold for the package logger and its handler
        include_timestamp: Prefix lines with the record time
        structured: JSON lines instead of human-readable text
        stream: Destination (default: stdout)

    Example:
        >>> configure_logging(level=logging.DEBUG, structured=True)
    """
    package_logger = logging.getLogger("autosave")
    package_logger.setLevel(level)

    if package_logger.handlers:
        return package_logger

    if structured:
        formatter: logging.Formatter = StructuredFormatter(include_timestamp=include_timestamp)
    else:
        formatter = HumanReadableFormatter(include_timestamp=include_timestamp)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    package_logger.addHandler(handler)
    return package_logger


class CorrelationContext:
    """
    Scope in which log_with_context() tags records with the given ids.

    Contexts nest; leaving one restores the enclosing context.

    Example:
        >>> with CorrelationContext(document_id="p-1", session_id="s-9"):
        ...     log_with_context(logger, logging.INFO, "Saving draft")
    """

    _active: Optional["CorrelationContext"] = None

    def __init__(
        self,
        document_id: Optional[str] = None,
        company_id: Optional[str] = None,
        session_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ):
        fields = dict(
            document_id=document_id,
            company_id=company_id,
            session_id=session_id,
            correlation_id=correlation_id,
            **extra,
        )
        self.context = {k: v for k, v in fields.items() if v is not None}
        self._outer: Optional["CorrelationContext"] = None

    def __enter__(self) -> "CorrelationContext":
        self._outer, CorrelationContext._active = CorrelationContext._active, self
        return self

    def __exit__(self, *exc) -> None:
        CorrelationContext._active = self._outer

    @classmethod
    def get_current(cls) -> Dict[str, Any]:
        """Copy of the innermost active context's fields ({} outside any)."""
        active = cls._active
        return dict(active.context) if active else {}


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
) -> None:
    """
    Log ``message`` with the active correlation ids plus ``extra``.

    Keyword fields override context fields of the same name; None values
    are dropped.
    """
    fields = CorrelationContext.get_current()
    fields.update((k, v) for k, v in extra.items() if v is not None)
    logger.log(level, message, extra=fields)
