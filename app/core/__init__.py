"""Process configuration and logging setup."""

from app.core.config import EnvironmentMode, Settings, get_settings, setup_logging

__all__ = ["EnvironmentMode", "Settings", "get_settings", "setup_logging"]
