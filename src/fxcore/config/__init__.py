"""
fxcore configuration.

Pydantic-based settings read from FXCORE_* environment variables and .env files.
"""

from fxcore.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
