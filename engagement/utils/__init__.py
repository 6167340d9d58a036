"""Utility modules for logging and request tracing."""

from engagement.utils.logging import bind_request_id, configure_logging, get_logger, metric_context

__all__ = ["bind_request_id", "configure_logging", "get_logger", "metric_context"]
