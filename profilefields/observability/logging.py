"""structlog setup for the engine.

Attribute values, defaults and history snapshots are principal data, so
the redaction processor is installed unless explicitly turned off.
"""

import re
import sys
from collections.abc import Iterable, Mapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "[REDACTED]"

SENSITIVE_KEYS: frozenset[str] = frozenset({
    # principal data
    "value",
    "values",
    "old_value",
    "new_value",
    "old_values",
    "new_values",
    "default_value",
    "verification_data",
    "snapshot",
    # contact details
    "email",
    "phone",
    "address",
    "origin_address",
    # credentials
    "password",
    "secret",
    "token",
    "api_key",
    "authorization",
    "dsn",
})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?[\d\s\-\(\)]{10,}")

_LEVEL_NUMBERS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


class PIIRedactor:
    """Mask principal data in an event before it is rendered.

    Keys in ``SENSITIVE_KEYS`` (plus any extra keys) lose their value
    entirely. Other strings keep their text with e-mail addresses and
    phone numbers replaced.
    """

    def __init__(self, extra_keys: Iterable[str] = ()) -> None:
        self._keys = SENSITIVE_KEYS | {key.lower() for key in extra_keys}

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._scrub_mapping(event_dict))

    def _scrub_mapping(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            key: REDACTED if key.lower() in self._keys else self._scrub(item)
            for key, item in data.items()
        }

    def _scrub(self, item: Any) -> Any:
        if isinstance(item, str):
            return PHONE_PATTERN.sub("[PHONE]", EMAIL_PATTERN.sub("[EMAIL]", item))
        if isinstance(item, Mapping):
            return self._scrub_mapping(item)
        if isinstance(item, (list, tuple)):
            return [self._scrub(entry) for entry in item]
        return item


def build_processors(format: str = "json", redact_pii: bool = True) -> list[Processor]:
    """Processor chain used by ``setup_logging``."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if redact_pii:
        processors.append(PIIRedactor())
    if format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())
    return processors


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structlog for the process.

    Args:
        level: Minimum level name
        format: "json" or "console"
        redact_pii: Install the PIIRedactor processor
    """
    structlog.configure(
        processors=build_processors(format, redact_pii),
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVEL_NUMBERS.get(level.upper(), 20)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Lazy logger; safe to create at import time, before ``setup_logging``."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
