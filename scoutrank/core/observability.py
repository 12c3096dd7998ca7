"""Observability framework for scoutrank.

Structured logging via structlog plus the ``trace_call`` decorator family
used on service and adapter boundaries. Standard-library loggers
(``logging.getLogger(__name__)``) are routed through the same renderer by
``configure_logging``.
"""

import asyncio
import functools
import json
import logging
import re
import sys
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

import structlog
from pydantic import BaseModel
from structlog.contextvars import bind_contextvars, unbind_contextvars

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        *_SHARED_PROCESSORS,
        structlog.processors.dict_tracebacks,
        structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),  # type: ignore[list-item]
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

# Connection strings and credentials never reach the logs
_SENSITIVE_KEY_RE = re.compile(r"(password|secret|token|dsn|database_url|redis_url)", re.IGNORECASE)


def configure_logging(level: str = "INFO", file_target: str | None = None) -> None:
    """Route stdlib logging through structlog's renderer.

    Args:
        level: Root log level name
        file_target: Optional file path receiving the same JSON lines as stdout
    """
    renderer: Any = (
        structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer()
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if file_target:
        handlers.append(logging.FileHandler(file_target, encoding="utf-8"))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level.upper())

    # asyncpg and celery are chatty at INFO
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


def set_correlation_id(correlation_id: str) -> None:
    bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    unbind_contextvars("correlation_id")


def _serialize_value(value: Any, max_length: int = 500) -> Any:
    """Safely serialize a value for logging."""
    try:
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json", exclude_unset=True)
        json_str = json.dumps(value, default=str)
        if len(json_str) > max_length:
            return json_str[:max_length] + "..."
        return json.loads(json_str)
    except (TypeError, ValueError):
        str_repr = str(value)
        if len(str_repr) > max_length:
            return str_repr[:max_length] + "..."
        return str_repr


def _safe_kwargs(kwargs: dict[str, Any], max_length: int) -> dict[str, Any]:
    return {
        k: ("***" if _SENSITIVE_KEY_RE.search(k) else _serialize_value(v, max_length))
        for k, v in kwargs.items()
    }


def trace_call(
    *,
    capture_args: bool = True,
    capture_result: bool = False,
    max_arg_length: int = 500,
    log_level: str = "DEBUG",
    add_metadata: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """Decorator logging entry, duration and failures of a call.

    Exceptions are logged and re-raised unchanged.

    Args:
        capture_args: Log keyword arguments (sensitive keys are masked)
        capture_result: Log the serialized return value
        max_arg_length: Truncation length for serialized values
        log_level: Level for entry/success events
        add_metadata: Static fields added to every event (e.g. layer)
    """
    metadata = add_metadata or {}

    def decorator(func: F) -> F:
        name = f"{func.__module__}.{func.__qualname__}"
        level = log_level.lower()

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            logger.log(
                logging.getLevelName(level.upper()),
                "call_started",
                function_name=name,
                kwargs=_safe_kwargs(kwargs, max_arg_length) if capture_args else None,
                **metadata,
            )
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "call_failed",
                    function_name=name,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    **metadata,
                )
                raise
            logger.log(
                logging.getLevelName(level.upper()),
                "call_finished",
                function_name=name,
                duration_ms=(time.perf_counter() - start_time) * 1000,
                result=_serialize_value(result, max_arg_length) if capture_result else None,
                **metadata,
            )
            return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "call_failed",
                    function_name=name,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    **metadata,
                )
                raise
            logger.log(
                logging.getLevelName(level.upper()),
                "call_finished",
                function_name=name,
                duration_ms=(time.perf_counter() - start_time) * 1000,
                result=_serialize_value(result, max_arg_length) if capture_result else None,
                **metadata,
            )
            return result

        if asyncio.iscoroutinefunction(func):
            return cast(F, async_wrapper)
        return cast(F, sync_wrapper)

    return decorator


# Convenience decorators with common configurations
def trace_service(func: F) -> F:
    """Decorator for service layer entry points."""
    return trace_call(capture_args=True, log_level="INFO", add_metadata={"layer": "service"})(func)


def trace_adapter(func: F) -> F:
    """Decorator specifically for adapter layer functions."""
    return trace_call(capture_args=True, log_level="DEBUG", add_metadata={"layer": "adapter"})(func)


def trace_performance(func: F) -> F:
    """Decorator focused on performance monitoring."""
    return trace_call(capture_args=False, log_level="DEBUG")(func)
