"""
Configuration management for Mars Rover Explorer integration.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from uc_intg_marsrover.selector import CAMERAS, ROVERS, SOL_RANGE

_LOG = logging.getLogger(__name__)

API_KEY_ENV = "NASA_API_KEY"

DEFAULT_CONFIG = {
    "api_key": "",
    "device_id": "mars_rover_explorer",
    "device_name": "Mars Rover Explorer",
    "base_url": "https://api.nasa.gov/mars-photos/api/v1/rovers",
    "rovers": list(ROVERS),
    "cameras": list(CAMERAS),
    "sol_min": SOL_RANGE[0],
    "sol_max": SOL_RANGE[1],
    "max_attempts": 50,
}


class Config:
    """Configuration management for Mars Rover integration."""

    def __init__(self, config_file_path: str):
        """Initialize configuration."""
        self._config_file_path = config_file_path
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from file."""
        try:
            if os.path.exists(self._config_file_path):
                with open(self._config_file_path, "r", encoding="utf-8") as file:
                    self._config = {**DEFAULT_CONFIG, **json.load(file)}
                    _LOG.info("Configuration loaded from %s", self._config_file_path)
            else:
                _LOG.info("Configuration file not found, using defaults")
                self._config = DEFAULT_CONFIG.copy()
        except Exception as ex:
            _LOG.error("Failed to load configuration: %s", ex)
            self._config = DEFAULT_CONFIG.copy()

    def save(self) -> None:
        """Save configuration to file."""
        try:
            directory = os.path.dirname(self._config_file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self._config_file_path, "w", encoding="utf-8") as file:
                json.dump(self._config, file, indent=2)
                _LOG.info("Configuration saved to %s", self._config_file_path)
        except Exception as ex:
            _LOG.error("Failed to save configuration: %s", ex)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self._config[key] = value

    def update(self, data: Dict[str, Any]) -> None:
        """Update configuration with new data."""
        self._config.update(data)
        self.save()

    @property
    def config_file_path(self) -> str:
        """Path of the backing JSON file."""
        return self._config_file_path

    @property
    def api_key(self) -> str:
        """Get NASA API key, the environment wins over the file."""
        return os.environ.get(API_KEY_ENV) or self._config.get("api_key", "")

    @property
    def is_configured(self) -> bool:
        """True once an API key is available from file or environment."""
        return bool(self.api_key)

    @property
    def device_id(self) -> str:
        """Get device ID."""
        return self._config.get("device_id", DEFAULT_CONFIG["device_id"])

    @property
    def device_name(self) -> str:
        """Get device name."""
        return self._config.get("device_name", DEFAULT_CONFIG["device_name"])

    @property
    def base_url(self) -> str:
        """Rovers endpoint root, without trailing slash."""
        return self._config.get("base_url", DEFAULT_CONFIG["base_url"]).rstrip("/")

    def _names(self, key: str, default: Tuple[str, ...]) -> List[str]:
        value = self._config.get(key)
        if not value:
            return list(default)
        if not isinstance(value, (list, tuple)) or not all(isinstance(name, str) for name in value):
            _LOG.warning("Invalid %s in config: %r, using defaults", key, value)
            return list(default)
        return list(value)

    def _int(self, key: str) -> int:
        value = self._config.get(key, DEFAULT_CONFIG[key])
        try:
            return int(value)
        except (TypeError, ValueError):
            _LOG.warning("Invalid %s in config: %r, using %s", key, value, DEFAULT_CONFIG[key])
            return DEFAULT_CONFIG[key]

    @property
    def rovers(self) -> List[str]:
        """Candidate rovers."""
        return self._names("rovers", ROVERS)

    @property
    def cameras(self) -> List[str]:
        """Candidate cameras."""
        return self._names("cameras", CAMERAS)

    @property
    def sol_range(self) -> Tuple[int, int]:
        """Inclusive sol range for random queries."""
        low = self._int("sol_min")
        high = self._int("sol_max")
        if low > high:
            _LOG.warning("sol_min %d above sol_max %d, swapping", low, high)
            low, high = high, low
        return low, high

    @property
    def max_attempts(self) -> Optional[int]:
        """Fetch attempts per invocation, None for unlimited."""
        if self._config.get("max_attempts", 0) is None:
            return None
        value = self._int("max_attempts")
        if value <= 0:
            return None
        return value
