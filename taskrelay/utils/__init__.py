"""Utility modules for taskrelay."""

from taskrelay.utils.logging import event_context, get_logger, setup_logging

__all__ = ["event_context", "get_logger", "setup_logging"]
