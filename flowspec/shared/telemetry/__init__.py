"""Telemetry: logging setup and OpenTelemetry tracing helpers."""

from flowspec.shared.telemetry.logging import get_logger, setup_logging
from flowspec.shared.telemetry.tracing import add_span_attributes, traced

__all__ = ["add_span_attributes", "get_logger", "setup_logging", "traced"]
