"""
Settings management for tfeval.

Handles loading, saving, and accessing application configuration.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from ..core.block_expander import MAP_ORDERS
from .defaults import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "hcl")


class Settings:
    """
    Application settings manager.

    Handles persistent configuration stored in user's config directory.
    Settings are stored as JSON.

    Path:
        Linux/macOS: ~/.config/tfeval/settings.json
        Windows: %APPDATA%\\tfeval\\settings.json
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize settings manager.

        Args:
            config_dir: Directory holding settings.json; the platform
                default when None
        """
        self.config_dir = Path(config_dir) if config_dir else self._get_config_dir()
        self.config_file = self.config_dir / "settings.json"
        self._settings: Dict[str, Any] = {}
        self.load()

    @staticmethod
    def _get_config_dir() -> Path:
        """
        Get platform-specific configuration directory.

        Returns:
            Path to configuration directory
        """
        if os.name == 'nt':  # Windows
            base = os.environ.get('APPDATA', os.path.expanduser('~'))
            config_dir = Path(base) / 'tfeval'
        else:  # Linux/macOS
            base = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
            config_dir = Path(base) / 'tfeval'

        return config_dir

    def load(self):
        """
        Load settings from file.

        If file doesn't exist or is invalid, uses default settings.
        """
        self._settings = copy.deepcopy(DEFAULT_SETTINGS)

        if not self.config_file.exists():
            logger.info("No config file found, using defaults")
            return

        try:
            with open(self.config_file, 'r') as f:
                loaded_settings = json.load(f)

            # Merge with defaults (in case new settings were added)
            self._deep_update(self._settings, loaded_settings)

            logger.info(f"Loaded settings from {self.config_file}")

        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Failed to load settings: {e}, using defaults")
            self._settings = copy.deepcopy(DEFAULT_SETTINGS)

    def save(self):
        """
        Save current settings to file.

        Creates parent directories if needed.
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)

            with open(self.config_file, 'w') as f:
                json.dump(self._settings, f, indent=2)

            logger.info(f"Saved settings to {self.config_file}")

        except IOError as e:
            logger.error(f"Failed to save settings: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get setting value.

        Supports nested keys with dot notation: "evaluation.map_order"

        Args:
            key: Setting key (use dots for nested values)
            default: Default value if key not found

        Returns:
            Setting value or default
        """
        keys = key.split('.')
        value = self._settings

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set setting value.

        Supports nested keys with dot notation: "output.format"

        Args:
            key: Setting key (use dots for nested values)
            value: Value to set
        """
        keys = key.split('.')
        target = self._settings

        # Navigate to parent of target key
        for k in keys[:-1]:
            if k not in target or not isinstance(target[k], dict):
                target[k] = {}
            target = target[k]

        # Set the value
        target[keys[-1]] = value

    @property
    def map_order(self) -> str:
        """
        Map iteration order for dynamic blocks.

        Falls back to "insertion" when the stored value is unknown.
        """
        order = self.get("evaluation.map_order", "insertion")
        if order not in MAP_ORDERS:
            logger.warning(f"Unknown map order '{order}' in settings, using 'insertion'")
            return "insertion"
        return order

    @property
    def output_format(self) -> str:
        fmt = self.get("output.format", "json")
        if fmt not in OUTPUT_FORMATS:
            logger.warning(f"Unknown output format '{fmt}' in settings, using 'json'")
            return "json"
        return fmt

    @staticmethod
    def _deep_update(base: dict, updates: dict):
        """
        Recursively update base dict with values from updates dict.

        Args:
            base: Dictionary to update
            updates: Dictionary with new values
        """
        for key, value in updates.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                Settings._deep_update(base[key], value)
            else:
                base[key] = value
