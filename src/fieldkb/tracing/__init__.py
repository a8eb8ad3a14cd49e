"""
Observability and tracing with Arize Phoenix.

Provides OpenTelemetry spans around indexing runs and similarity queries.
"""

from fieldkb.tracing.phoenix import (
    add_span_attributes,
    record_exception,
    setup_tracing,
    traced,
)

__all__ = ["add_span_attributes", "record_exception", "setup_tracing", "traced"]
