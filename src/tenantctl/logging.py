import logging
import re
from typing import Any, Mapping, MutableMapping

import structlog

REDACTED = "***"

_SECRET_KEY_PATTERN = re.compile(r"(password|secret|token|api_key|access_key)", re.IGNORECASE)

_live_secrets: set[str] = set()


def register_secret(value: str | None) -> None:
    """Mark a value as secret so it is masked wherever it shows up in a log event."""
    if value:
        _live_secrets.add(value)


def forget_secrets() -> None:
    """Drop every registered secret value (called when a run releases its credentials)."""
    _live_secrets.clear()


def _mask(value: Any) -> Any:
    if isinstance(value, str):
        for secret in _live_secrets:
            if secret in value:
                value = value.replace(secret, REDACTED)
    return value


def scrub(value: Any) -> Any:
    """Mask registered secrets inside strings, mappings and sequences."""
    if isinstance(value, str):
        return _mask(value)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if _SECRET_KEY_PATTERN.search(str(k)) else scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [scrub(v) for v in value]
    return value


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking secret-bearing keys and registered secret values."""
    for key in list(event_dict.keys()):
        if _SECRET_KEY_PATTERN.search(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _mask(event_dict[key])
    return event_dict


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure structlog/standard logging bridge."""

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Bind contextual fields for downstream logs."""

    logger = structlog.get_logger()
    return logger.bind(**kwargs)
