"""Logging and metrics for the attribute-schema engine."""

from profilefields.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
