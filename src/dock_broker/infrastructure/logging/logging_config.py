"""
structlog setup for dock-broker.

Text output (the default) puts the job context first so that every line
of one job reads the same way:

    [2025-01-14 10:30:45] [INFO] [execution_supervisor] Job completed job_id=j1 namespace=requests/h/c chunks=1

JSON output renders every event as one object for log shippers.
"""

import logging
import sys
from typing import Any, Iterable, List

import structlog
from structlog.types import EventDict, Processor

LEVEL_COLORS = {
    "debug": "\033[36m",
    "info": "\033[32m",
    "warning": "\033[33m",
    "error": "\033[31m",
    "critical": "\033[35m",
}
RESET = "\033[0m"

# Rendered ahead of other keys, in this order
JOB_CONTEXT_KEYS = ("host_name", "job_id", "namespace", "sandbox_id")


def _format_pair(key: str, value: Any) -> str:
    if isinstance(value, (str, int, float, bool)):
        return f"{key}={value}"
    return f"{key}={value!r}"


def _ordered_keys(keys: Iterable[str]) -> List[str]:
    keys = set(keys)
    leading = [key for key in JOB_CONTEXT_KEYS if key in keys]
    return leading + sorted(keys.difference(leading))


class TextRenderer:
    """Single-line renderer: [time] [LEVEL] [logger] event key=value ..."""

    def __init__(self, colors: bool = True):
        self._colors = colors

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> str:
        timestamp = event_dict.pop("timestamp", None)
        level = str(event_dict.pop("level", method_name)).upper()
        logger_name = event_dict.pop("logger", None) or event_dict.pop("logger_name", None)
        event = event_dict.pop("event", "")
        exception = event_dict.pop("exception", None)
        event_dict.pop("stack_info", None)

        if self._colors:
            level = f"{LEVEL_COLORS.get(method_name, RESET)}{level}{RESET}"

        parts = []
        if timestamp:
            parts.append(f"[{timestamp}]")
        parts.append(f"[{level}]")
        if logger_name and logger_name != "root":
            parts.append(f"[{logger_name.rsplit('.', 1)[-1]}]")
        parts.append(str(event))
        parts.extend(_format_pair(key, event_dict[key]) for key in _ordered_keys(event_dict))

        line = " ".join(parts)
        if exception:
            line = f"{line}\n{exception}"
        return line


def configure_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "text" or "json"
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(TextRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None, **context) -> structlog.stdlib.BoundLogger:
    """
    Module logger with optional bound context.

    Example:
        logger = get_logger(__name__)
        logger.info("Job accepted", job_id="123", namespace="requests/h/c")
    """
    if name:
        return structlog.get_logger(name, **context)
    return structlog.get_logger(**context)


def bind_context(**context) -> None:
    """Bind context to every logger in the current task and its children."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
