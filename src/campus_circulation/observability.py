"""Logfire observability for the Campus Library circulation server.

Service operations are wrapped in ``traced`` spans and MCP tool handlers in
``trace_tool`` spans. Borrow and return also bump a circulation counter.
Nothing is sent anywhere unless ``LOGFIRE_SEND=true`` and a token is set.
"""

import functools
import logging
import os
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability."""

    token: str = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN", ""))
    project_name: str = "campus-library"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    enabled: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_ENABLED", "true").lower() == "true"
    )
    console_output: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_CONSOLE", "false").lower() == "true"
    )
    send_to_logfire: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_SEND", "false").lower() == "true"
    )


_config: ObservabilityConfig | None = None

circulation_events = logfire.metric_counter(
    "library.books.circulation", description="Book circulation events (borrow/return)"
)


def initialize_observability(config: ObservabilityConfig | None = None) -> None:
    """Configure Logfire once at process start."""
    global _config  # noqa: PLW0603
    _config = config or ObservabilityConfig()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        token=_config.token or None,
        service_name=_config.project_name,
        environment=_config.environment,
        send_to_logfire=_config.send_to_logfire and bool(_config.token),
        console=None if _config.console_output else False,
    )

    if _config.environment == "production":
        logfire.instrument_system_metrics()


def record_circulation_event(event_type: str, campus: str) -> None:
    """Count a borrow or return."""
    circulation_events.add(1, {"event_type": event_type, "campus": campus})


def traced(operation: str):
    """Decorator to trace a synchronous service operation."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with logfire.span(f"library.{operation}", operation=operation) as span:
                start_time = datetime.now()
                _add_attributes(span, "input", kwargs)

                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("operation.success", False)
                    span.set_attribute("operation.error", str(e))
                    raise

                span.set_attribute("operation.success", True)
                span.set_attribute(
                    "operation.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def trace_tool(tool_name: str):
    """Decorator to trace MCP tool execution."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(arguments: dict[str, Any]) -> dict[str, Any]:
            with logfire.span(f"tool.execution.{tool_name}", tool_name=tool_name) as span:
                start_time = datetime.now()
                _add_attributes(
                    span, "input", {k: v for k, v in arguments.items() if k != "token"}
                )

                result = await func(arguments)

                span.set_attribute("tool.success", not result.get("isError", False))
                span.set_attribute(
                    "tool.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def _add_attributes(span, prefix: str, data: dict):
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
