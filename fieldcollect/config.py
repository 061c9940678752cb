"""
Configuration management for fieldcollect.

Loads settings from config.ini with environment variable overrides.
"""

import configparser
import os
from pathlib import Path
from typing import Any, Dict, Optional

from fieldcollect.database import DEFAULT_DB_URL
from fieldcollect.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Application configuration manager."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file, defaults to ~/.fieldcollect/config.ini
        """
        self.config_path = config_path or self._default_config_path()
        self._config = configparser.ConfigParser()
        self._load()

    def _default_config_path(self) -> Path:
        """Get default config path."""
        return Path.home() / ".fieldcollect" / "config.ini"

    def _load(self):
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                self._config.read(self.config_path)
                logger.info(f"Loaded configuration from {self.config_path}")
            except configparser.Error as e:
                logger.warning(f"Failed to read config file: {e}. Using defaults.")
        else:
            logger.debug(f"Config file not found at {self.config_path}. Using defaults.")

    @staticmethod
    def _env_bool(name: str) -> Optional[bool]:
        value = os.getenv(name, '').lower()
        if not value:
            return None
        return value in ('1', 'true', 'yes', 'on')

    def get_database_config(self) -> Dict[str, Any]:
        """
        Get database configuration with environment overrides.

        Environment variables take precedence over config file:
        - FIELDCOLLECT_DATABASE_URL
        - FIELDCOLLECT_DB_BUSY_TIMEOUT
        - FIELDCOLLECT_DB_ECHO

        Returns:
            Dictionary with database configuration
        """
        echo = self._env_bool('FIELDCOLLECT_DB_ECHO')
        config = {
            'url': os.getenv('FIELDCOLLECT_DATABASE_URL') or
                   self._config.get('database', 'url', fallback=DEFAULT_DB_URL),
            'busy_timeout': float(os.getenv('FIELDCOLLECT_DB_BUSY_TIMEOUT') or
                                  self._config.get('database', 'busy_timeout', fallback='5')),
            'echo': echo if echo is not None
                    else self._config.getboolean('database', 'echo', fallback=False),
        }

        logger.debug(f"Database config: url={config['url']}, "
                     f"busy_timeout={config['busy_timeout']}, echo={config['echo']}")

        return config

    def get_loader_config(self) -> Dict[str, Any]:
        """
        Get aggregate loader configuration with environment overrides.

        Environment variables take precedence over config file:
        - FIELDCOLLECT_LOAD_TIMEOUT (seconds, 0 disables the timeout)

        Returns:
            Dictionary with loader configuration
        """
        timeout = float(os.getenv('FIELDCOLLECT_LOAD_TIMEOUT') or
                        self._config.get('loader', 'timeout', fallback='0'))
        config = {
            'timeout': timeout if timeout > 0 else None,
        }

        logger.debug(f"Loader config: timeout={config['timeout']}")

        return config

    def get(self, section: str, key: str, fallback: Any = None) -> Any:
        """
        Get configuration value with fallback.

        Args:
            section: Config section name
            key: Config key name
            fallback: Default value if not found

        Returns:
            Configuration value or fallback
        """
        return self._config.get(section, key, fallback=fallback)

    def has_section(self, section: str) -> bool:
        """Check if config section exists."""
        return self._config.has_section(section)

    def sections(self) -> list:
        """Get list of all configuration sections."""
        return self._config.sections()
