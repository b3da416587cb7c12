"""Curator configuration package.

Centralized configuration management using Pydantic Settings.
"""

from curator.config.settings import Settings, get_settings, reload_settings

__all__: list[str] = ["Settings", "get_settings", "reload_settings"]
