"""
Structured logging configuration using structlog.

Every record, ours or a library's, goes through one processor chain and
leaves as a single JSON line (or a coloured console line in development).
Credential-bearing fields are masked before rendering.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

from tilapp.config.settings import Settings

REDACTED = "[redacted]"

# Keys whose values must never reach a log sink
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "confirm_password",
        "password_hash",
        "token",
        "access_token",
        "csrf_token",
        "oauth_state",
        "session_id",
        "authorization",
        "api_key",
        "client_secret",
    }
)

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "multipart", "aiosqlite")


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict.keys() & SENSITIVE_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def _app_context(settings: Settings) -> structlog.types.Processor:
    app = settings.app_name
    environment = settings.environment.value

    def add_app_context(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("app", app)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_app_context


def configure_logging(settings: Settings) -> None:
    """
    Configure structlog and the stdlib root logger from settings.

    Called once at application startup before any log statements.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _app_context(settings),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_json:
        final: list[Any] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.log_level.value, logging.INFO))

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    # db_echo turns the engine's statement log back on
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.db_echo else logging.WARNING
    )
