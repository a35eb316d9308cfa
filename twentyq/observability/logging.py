"""Structured logging configuration using structlog.

JSON lines in production, coloured console output while debugging.
Credentials (oracle tokens, signing keys, cookies) are redacted before
rendering. With a log file configured, every line also goes to that
file, rotated by size.
"""

import logging
import logging.handlers
import sys
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

# Key names whose values must never reach a log line
SECRET_KEYS: frozenset[str] = frozenset({
    "token",
    "key",
    "raw_key",
    "signing_key",
    "cookie",
    "cookies",
    "credential",
    "authorization",
})

LOG_SINK_NAME = "twentyq.sink"
LOG_FILE_MAX_BYTES = 100 * 1024 * 1024
LOG_FILE_BACKUPS = 31


class SecretRedactor:
    """Processor that replaces values of credential-bearing keys."""

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._redact_dict(event_dict))

    def _redact_dict(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in data.items():
            if key.lower() in SECRET_KEYS:
                result[key] = "[REDACTED]"
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            else:
                result[key] = value
        return result


def _file_sink(log_file: str) -> logging.Logger:
    """Stdlib logger writing rendered lines to stderr and a rotating file."""
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    sink = logging.getLogger(LOG_SINK_NAME)
    for handler in list(sink.handlers):
        sink.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        logging.handlers.RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        ),
    ]
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))
        sink.addHandler(handler)

    # Level filtering happens in structlog; the sink passes everything.
    sink.setLevel(logging.DEBUG)
    sink.propagate = False
    return sink


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_secrets: bool = True,
    log_file: str | None = None,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        format: "json" for production, "console" for development
        redact_secrets: Whether to redact credential values
        log_file: Optional path that also receives every line, rotated at 100 MB
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if redact_secrets:
        processors.append(SecretRedactor())

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=log_file is None))

    level_map = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    level_num = level_map.get(level.upper(), 20)

    if log_file:
        sink = _file_sink(log_file)

        def logger_factory(*_args: Any) -> logging.Logger:
            return sink
    else:
        logger_factory = structlog.PrintLoggerFactory(sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to the given name (typically __name__)."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
