"""
Logging infrastructure for dock-broker.

Exports logging configuration and utilities.
"""

from dock_broker.infrastructure.logging.logging_config import (
    configure_logging,
    get_logger,
    bind_context,
    clear_context,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
