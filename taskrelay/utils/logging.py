"""structlog configuration shared by the server, the dispatcher and the CLI.

Every line goes through the standard library root logger so aiohttp and
httpx records come out in the same format. While an event is being
dispatched its action and resource ids are bound as context variables and
appear on every line logged underneath, including rule and client logs.
"""

from __future__ import annotations

import logging
import re
import sys
from contextlib import AbstractContextManager

import structlog

# Field names whose whole value is a credential
_SECRET_FIELDS = frozenset({"access_token", "authorization", "hook_secret", "x_hook_secret"})

# Credentials embedded in free text, e.g. exception messages or headers
_SECRET_IN_TEXT = [
    re.compile(
        r"(token|secret|authorization|x-hook-secret)[\"']?\s*[:=]\s*[\"']?(?:bearer\s+)?[\w\-\./]+",
        re.IGNORECASE,
    ),
    re.compile(r"(bearer)\s+[\w\-\./]+", re.IGNORECASE),
]

_REDACTED = "***REDACTED***"

# Request lines and connection pool chatter
_NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access")


def _redact_text(value: str) -> str:
    for pattern in _SECRET_IN_TEXT:
        value = pattern.sub(rf"\1={_REDACTED}", value)
    return value


def _filter_sensitive(
    _logger: structlog.types.WrappedLogger,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    for key, value in list(event_dict.items()):
        if key.lower() in _SECRET_FIELDS:
            event_dict[key] = _REDACTED
        elif isinstance(value, str):
            event_dict[key] = _redact_text(value)
    return event_dict


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _filter_sensitive,
    ]


def _renderer(json_output: bool) -> structlog.types.Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _stderr_handler(renderer: structlog.types.Processor) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog and the root logger; safe to call more than once."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stderr_handler(_renderer(json_output)))
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def event_context(
    action: str, resource: str, parent: str | None = None
) -> AbstractContextManager[None]:
    """Bind the event being processed to every log line inside the block."""
    return structlog.contextvars.bound_contextvars(
        event_action=action,
        event_resource=resource,
        event_parent=parent,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
