"""
Arize Phoenix tracing integration.

Sets up OpenTelemetry tracing for indexing runs and similarity queries.
Traces are sent to a Phoenix instance for visualization.

Usage:
    from fieldkb.tracing import setup_tracing
    setup_tracing()  # Call once at application startup
"""

import functools
import warnings
from typing import Any, Callable, TypeVar

from fieldkb.config import settings

F = TypeVar("F", bound=Callable[..., Any])


def setup_tracing() -> bool:
    """
    Initialize Phoenix tracing with OpenTelemetry.

    Requires a Phoenix collector at settings.phoenix_endpoint and the
    ``tracing`` extra installed.

    Returns:
        True if a tracer provider was registered
    """
    if not settings.enable_tracing:
        return False

    try:
        from phoenix.otel import register

        register(
            project_name="fieldkb",
            endpoint=f"{settings.phoenix_endpoint}/v1/traces",
        )
        return True

    except ImportError:
        warnings.warn(
            "Phoenix tracing dependencies not installed. "
            "Install with: pip install fieldkb[tracing]"
        )
    except Exception as e:
        warnings.warn(f"Failed to setup tracing: {e}")
    return False


def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Decorator to add tracing span to a function.

    Args:
        name: Span name (defaults to function name)

    Returns:
        Decorated function with tracing

    Example:
        @traced("index_document")
        def index_document(self, source_id):
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not settings.enable_tracing:
                return func(*args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(*args, **kwargs)

            tracer = trace.get_tracer(__name__)
            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)

                result = func(*args, **kwargs)

                span.set_attribute("result.type", type(result).__name__)
                return result

        return wrapper  # type: ignore

    return decorator


def add_span_attributes(**attributes: Any) -> None:
    """
    Add attributes to the current span.

    Args:
        **attributes: Key-value pairs to add as span attributes

    Example:
        add_span_attributes(source_id="manual-042", chunks_written=12)
    """
    if not settings.enable_tracing:
        return

    try:
        from opentelemetry import trace
    except ImportError:
        return

    span = trace.get_current_span()
    for key, value in attributes.items():
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(key, value)
        else:
            span.set_attribute(key, str(value))


def record_exception(exception: Exception) -> None:
    """
    Record an exception in the current span.

    Args:
        exception: Exception to record
    """
    if not settings.enable_tracing:
        return

    try:
        from opentelemetry import trace
    except ImportError:
        return

    span = trace.get_current_span()
    span.record_exception(exception)
    span.set_status(trace.Status(trace.StatusCode.ERROR))
