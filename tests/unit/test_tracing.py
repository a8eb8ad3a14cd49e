"""
Unit tests for Phoenix tracing integration.

Tests cover:
    - setup_tracing() initialization
    - @traced decorator functionality
    - add_span_attributes() helper
    - record_exception() helper
    - Graceful degradation when dependencies missing
"""

import sys
import warnings
from unittest.mock import MagicMock, Mock, patch

import pytest

from fieldkb.tracing import phoenix as phoenix_module

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def tracing_enabled():
    """Patch the tracing module's settings with tracing turned on."""
    with patch.object(phoenix_module, "settings") as mock_config:
        mock_config.enable_tracing = True
        mock_config.phoenix_endpoint = "http://localhost:6006"
        yield mock_config


@pytest.fixture
def tracing_disabled():
    """Patch the tracing module's settings with tracing turned off."""
    with patch.object(phoenix_module, "settings") as mock_config:
        mock_config.enable_tracing = False
        yield mock_config


@pytest.fixture
def mock_otel_modules():
    """Install mock Phoenix and OpenTelemetry modules for one test."""
    mock_otel = MagicMock()

    mock_trace = MagicMock()
    mock_opentelemetry = MagicMock()
    mock_opentelemetry.trace = mock_trace

    mock_phoenix = MagicMock()
    mock_phoenix.otel = mock_otel

    modules = {
        "phoenix": mock_phoenix,
        "phoenix.otel": mock_otel,
        "opentelemetry": mock_opentelemetry,
        "opentelemetry.trace": mock_trace,
    }
    with patch.dict(sys.modules, modules):
        yield {"register": mock_otel.register, "trace": mock_trace}


@pytest.fixture
def mock_span(mock_otel_modules):
    """Provide a span returned by the mocked tracer."""
    span = MagicMock()
    span.__enter__ = Mock(return_value=span)
    span.__exit__ = Mock(return_value=None)

    tracer = MagicMock()
    tracer.start_as_current_span.return_value = span
    mock_otel_modules["trace"].get_tracer.return_value = tracer
    mock_otel_modules["trace"].get_current_span.return_value = span
    span.tracer = tracer
    return span


# =============================================================================
# setup_tracing() Tests
# =============================================================================


@pytest.mark.unit
def test_setup_tracing_disabled(tracing_disabled, mock_otel_modules):
    """setup_tracing does nothing when tracing is disabled."""
    assert phoenix_module.setup_tracing() is False
    mock_otel_modules["register"].assert_not_called()


@pytest.mark.unit
def test_setup_tracing_success(tracing_enabled, mock_otel_modules):
    """Phoenix is registered with the project name and endpoint."""
    assert phoenix_module.setup_tracing() is True

    mock_otel_modules["register"].assert_called_once_with(
        project_name="fieldkb",
        endpoint="http://localhost:6006/v1/traces",
    )


@pytest.mark.unit
def test_setup_tracing_missing_dependencies(tracing_enabled):
    """A missing Phoenix install warns instead of failing."""
    with patch.dict(sys.modules, {"phoenix": None, "phoenix.otel": None}):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            assert phoenix_module.setup_tracing() is False

    messages = [str(warning.message) for warning in w]
    assert any("Phoenix tracing dependencies not installed" in m for m in messages)


@pytest.mark.unit
def test_setup_tracing_initialization_error(tracing_enabled, mock_otel_modules):
    """Registration errors warn instead of failing."""
    mock_otel_modules["register"].side_effect = RuntimeError("Connection failed")

    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter("always")
        assert phoenix_module.setup_tracing() is False

    messages = [str(warning.message) for warning in w]
    assert any("Failed to setup tracing" in m and "Connection failed" in m for m in messages)


# =============================================================================
# @traced Decorator Tests
# =============================================================================


@pytest.mark.unit
def test_traced_decorator_disabled(tracing_disabled, mock_span):
    """@traced calls straight through when tracing is disabled."""

    @phoenix_module.traced()
    def my_function(x: int) -> int:
        return x * 2

    assert my_function(5) == 10
    mock_span.tracer.start_as_current_span.assert_not_called()


@pytest.mark.unit
def test_traced_decorator_with_default_name(tracing_enabled, mock_span):
    """Spans default to the function name."""

    @phoenix_module.traced()
    def my_function(x: int) -> int:
        return x * 2

    result = my_function(5)

    mock_span.tracer.start_as_current_span.assert_called_once_with("my_function")
    mock_span.set_attribute.assert_any_call("function.name", "my_function")
    mock_span.set_attribute.assert_any_call("result.type", "int")
    assert result == 10


@pytest.mark.unit
def test_traced_decorator_with_custom_name(tracing_enabled, mock_span):
    """A custom span name is used when given."""

    @phoenix_module.traced("index_document")
    def my_function(x: int) -> int:
        return x * 2

    assert my_function(5) == 10
    mock_span.tracer.start_as_current_span.assert_called_once_with("index_document")


@pytest.mark.unit
def test_traced_decorator_missing_dependencies(tracing_enabled):
    """@traced still runs the function without OpenTelemetry."""
    with patch.dict(sys.modules, {"opentelemetry": None}):

        @phoenix_module.traced()
        def my_function(x: int) -> int:
            return x * 2

        assert my_function(5) == 10


@pytest.mark.unit
def test_traced_preserves_function_metadata():
    """@traced keeps the wrapped function's name and docstring."""

    @phoenix_module.traced()
    def my_function(x: int) -> int:
        """This is my docstring."""
        return x * 2

    assert my_function.__name__ == "my_function"
    assert my_function.__doc__ == "This is my docstring."


@pytest.mark.unit
def test_traced_propagates_exceptions(tracing_enabled, mock_span):
    """Errors inside a traced function are not swallowed."""

    @phoenix_module.traced()
    def failing() -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        failing()


# =============================================================================
# add_span_attributes() / record_exception() Tests
# =============================================================================


@pytest.mark.unit
def test_add_span_attributes_disabled(tracing_disabled, mock_span):
    """Nothing is recorded when tracing is disabled."""
    phoenix_module.add_span_attributes(source_id="manual-042", chunks_written=12)

    mock_span.set_attribute.assert_not_called()


@pytest.mark.unit
def test_add_span_attributes_with_primitives(tracing_enabled, mock_span):
    """Primitive values are set as-is."""
    phoenix_module.add_span_attributes(
        source_id="manual-042",
        chunks_written=12,
        score=0.85,
        cancelled=False,
    )

    assert mock_span.set_attribute.call_count == 4
    mock_span.set_attribute.assert_any_call("source_id", "manual-042")
    mock_span.set_attribute.assert_any_call("chunks_written", 12)
    mock_span.set_attribute.assert_any_call("score", 0.85)
    mock_span.set_attribute.assert_any_call("cancelled", False)


@pytest.mark.unit
def test_add_span_attributes_with_complex_types(tracing_enabled, mock_span):
    """Other values are converted to strings."""
    phoenix_module.add_span_attributes(source_types=["manual", "policy"])

    mock_span.set_attribute.assert_called_once_with("source_types", "['manual', 'policy']")


@pytest.mark.unit
def test_record_exception(tracing_enabled, mock_span, mock_otel_modules):
    """Exceptions are recorded and the span marked as an error."""
    error = RuntimeError("provider down")

    phoenix_module.record_exception(error)

    mock_span.record_exception.assert_called_once_with(error)
    mock_span.set_status.assert_called_once()


@pytest.mark.unit
def test_record_exception_disabled(tracing_disabled, mock_span):
    """Nothing is recorded when tracing is disabled."""
    phoenix_module.record_exception(RuntimeError("provider down"))

    mock_span.record_exception.assert_not_called()
