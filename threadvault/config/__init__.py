"""
Configuration management for ThreadVault.

Settings are read from environment variables, after a ``.env`` file (if any)
has been loaded by the package on import.
"""

from .settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
