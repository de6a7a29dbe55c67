"""
Configuration management using database storage.

Provides access to configuration values with defaults and type conversion.
"""

import logging
import shlex
import sys
from typing import Any, List, Optional

from .database import ConfigRepository, Database
from .engine import default_ipc_path


class ConfigManager:
    """Manages configuration stored in database."""

    @staticmethod
    def _get_platform_defaults():
        """Get platform-specific default values."""
        if sys.platform == "darwin":
            return {
                # Native fullscreen breaks borderless mpv windows on macOS
                "mpv_platform_options": "--no-native-fs",
            }
        return {
            "mpv_platform_options": "",
        }

    # Default configuration values (merged with platform-specific)
    DEFAULTS = {
        "playlists_directory": "playlists",  # Day-scoped play and report logs
        "media_directory": None,  # Will default to ~/.jukebox/media
        "eof_suppression_seconds": "1.0",  # Ignore end-of-file events this soon after a load
        "mpv_path": "mpv",
        "mpv_ipc_path": default_ipc_path(),
        "mpv_options": "",  # Extra mpv command-line options, shell-quoted
        "mpv_platform_options": None,  # Overridden by platform defaults
        "web_host": "0.0.0.0",
        "web_port": "8000",
    }

    def __init__(self, database: Database):
        """
        Initialize ConfigManager.

        Args:
            database: Database instance
        """
        self.database = database
        self.repository = ConfigRepository(database)
        self.logger = logging.getLogger(__name__)
        platform_defaults = self._get_platform_defaults()
        self._merged_defaults = {**self.DEFAULTS, **platform_defaults}
        self.repository.initialize_defaults(self._merged_defaults)

    def get(self, key: str, default: Any = None) -> Optional[str]:
        """
        Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if not found (uses merged defaults if None)

        Returns:
            Configuration value as string, or None if not found
        """
        if default is None:
            default = self._merged_defaults.get(key)

        entry = self.repository.get(key)
        if entry:
            return entry.value if entry.value else default
        return default

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get configuration value as integer."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning("Invalid integer value for %s: %s", key, value)
            return default

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        """Get configuration value as float."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            self.logger.warning("Invalid float value for %s: %s", key, value)
            return default

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        """Get configuration value as boolean."""
        value = self.get(key)
        if value is None or value == "":
            return default
        return value.lower() in ("true", "1", "yes", "on")

    def get_list(self, key: str) -> List[str]:
        """Get a shell-quoted configuration value split into a list."""
        value = self.get(key)
        if not value:
            return []
        try:
            return shlex.split(value)
        except ValueError:
            self.logger.warning("Invalid option list for %s: %s", key, value)
            return []

    def set(self, key: str, value: Any) -> bool:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to set (will be converted to string)

        Returns:
            True if successful
        """
        return self.repository.set(key, str(value))

    def get_all(self) -> dict:
        """
        Get all configuration values.

        Returns:
            Dictionary of all configuration key-value pairs
        """
        entries = self.repository.get_all()
        config = {entry.key: entry.value for entry in entries if entry.value}

        result = self._merged_defaults.copy()
        result.update(config)
        return result
