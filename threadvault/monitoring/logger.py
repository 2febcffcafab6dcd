"""
Logging configuration for ThreadVault.
Sets up loguru sinks for console and optional file output, in plain text or
serialized JSON.
"""

import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def configure_logging(
    level: str = "INFO",
    format_type: str = "text",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure loguru for ThreadVault.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Format type (text or json)
        log_file: Optional path of a rotating log file
    """
    serialize = format_type.lower() == "json"
    handlers = [
        {
            "sink": sys.stderr,
            "level": level.upper(),
            "format": TEXT_FORMAT,
            "serialize": serialize,
        }
    ]

    if log_file:
        handlers.append(
            {
                "sink": log_file,
                "level": level.upper(),
                "format": TEXT_FORMAT,
                "serialize": serialize,
                "rotation": "100 MB",
                "retention": 10,
                "enqueue": True,
            }
        )

    logger.configure(handlers=handlers)


@contextmanager
def log_operation(operation: str, **context: Any) -> Iterator[None]:
    """
    Log the duration and outcome of an operation.

    Failures are logged and re-raised.
    """
    bound = logger.bind(operation=operation, **context)
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        duration_ms = (time.perf_counter() - start) * 1000
        bound.error(f"Operation '{operation}' failed after {duration_ms:.2f}ms: {e}")
        raise
    duration_ms = (time.perf_counter() - start) * 1000
    bound.info(f"Operation '{operation}' completed in {duration_ms:.2f}ms")
