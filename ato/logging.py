import logging
import sys
from typing import Any, Callable, Iterable

import structlog
from structlog import contextvars

MAX_LOG_VALUE_LENGTH = 2048
TRUNCATION_SUFFIX = "...(truncated)"
_MAX_MASK_DEPTH = 4

_Processor = Callable[[Any, str, dict[str, Any]], dict[str, Any]]


def _truncate_large_values(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > MAX_LOG_VALUE_LENGTH:
            event_dict[key] = f"{value[:MAX_LOG_VALUE_LENGTH]}{TRUNCATION_SUFFIX}"
        elif isinstance(value, (bytes, bytearray)):
            decoded = bytes(value).decode("utf-8", errors="replace")
            if len(decoded) > MAX_LOG_VALUE_LENGTH:
                event_dict[key] = f"{decoded[:MAX_LOG_VALUE_LENGTH]}{TRUNCATION_SUFFIX}"
        elif isinstance(value, list):
            event_dict[key] = [
                item if not isinstance(item, str) or len(item) <= MAX_LOG_VALUE_LENGTH else f"{item[:MAX_LOG_VALUE_LENGTH]}{TRUNCATION_SUFFIX}"
                for item in value
            ]
    return event_dict


def build_masking_processor(redact_fields: Iterable[str], placeholder: str = "***") -> _Processor:
    redacted_keys = {entry.lower() for entry in redact_fields}

    def _mask(value: Any, depth: int = 0) -> Any:
        if depth > _MAX_MASK_DEPTH:
            return value
        if isinstance(value, dict):
            for key, item in list(value.items()):
                lowered = key.lower() if isinstance(key, str) else None
                if lowered and lowered in redacted_keys:
                    value[key] = placeholder
                    continue
                value[key] = _mask(item, depth + 1)
            return value
        if isinstance(value, list):
            return [_mask(item, depth + 1) for item in value]
        if isinstance(value, tuple):
            return tuple(_mask(item, depth + 1) for item in value)
        return value

    def _mask_sensitive_values(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        return _mask(event_dict)

    return _mask_sensitive_values


def configure_logging(
    level: str = "WARNING",
    *,
    log_format: str = "console",
    redact_fields: Iterable[str] = (),
    redaction_placeholder: str = "***",
) -> None:
    """Route structlog through stdlib logging on stderr.

    stdout is reserved for rendered command output, so nothing here writes
    to it.
    """

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING
    logging.basicConfig(level=numeric_level, handlers=[logging.StreamHandler(sys.stderr)], format="%(message)s", force=True)
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(numeric_level, logging.WARNING))

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            build_masking_processor(redact_fields, redaction_placeholder),
            _truncate_large_values,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def bind_log_context(**params: Any) -> None:
    payload = {key: str(value) for key, value in params.items() if value is not None}
    if payload:
        contextvars.bind_contextvars(**payload)


def unbind_log_context(*keys: str) -> None:
    for key in keys:
        try:
            contextvars.unbind_contextvars(key)
        except KeyError:
            continue


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    if name is not None:
        return structlog.get_logger(name, **initial_values)
    return structlog.get_logger(**initial_values)


__all__ = [
    "bind_log_context",
    "build_masking_processor",
    "configure_logging",
    "get_logger",
    "unbind_log_context",
]
