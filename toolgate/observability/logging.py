"""structlog configuration.

Gateway events carry tool arguments, caller emails and bearer tokens, so
`PIIRedactor` runs before rendering unless disabled in config.
"""

import logging
import re
import sys
from collections.abc import Mapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from toolgate.config.models.observability import LoggingConfig

REDACTED = "[REDACTED]"

SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization",
    "api_key",
    "access_token",
    "token",
    "jwt",
    "password",
    "secret",
    "secrets",
    "value",
    "value_encrypted",
    "encryption_key",
    "email",
    "invited_email",
    "shared_with_email",
})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
BEARER_PATTERN = re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*")
JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")


class PIIRedactor:
    """Masks sensitive keys at any depth and scrubs emails and tokens from strings."""

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._redact(event_dict))

    def _redact(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: REDACTED if str(k).lower() in SENSITIVE_KEYS else self._redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self._redact(item) for item in value]
        if isinstance(value, str):
            value = BEARER_PATTERN.sub(f"Bearer {REDACTED}", value)
            value = JWT_PATTERN.sub(REDACTED, value)
            return EMAIL_PATTERN.sub("[EMAIL]", value)
        return value


def add_trace_id(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    from toolgate.observability.tracing import current_trace_id

    trace_id = current_trace_id()
    if trace_id:
        event_dict.setdefault("trace_id", trace_id)
    return event_dict


def configure_logging(config: LoggingConfig) -> None:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if config.include_trace_id:
        processors.append(add_trace_id)
    if config.redact_pii:
        processors.append(PIIRedactor())
    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
