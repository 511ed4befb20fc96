"""Process configuration."""

from synditracker.config.settings import VERSION, Settings, get_settings

__all__ = ["Settings", "VERSION", "get_settings"]
