"""
Logging setup for ThreadVault.
"""

from .logger import configure_logging, log_operation

__all__ = ["configure_logging", "log_operation"]
