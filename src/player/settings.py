"""
Settings management for the signage player.
Loads server and timing settings from a YAML file with environment overrides.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_SETTINGS: Dict[str, Any] = {
    'server': {
        'url': 'http://localhost:5000',
        'timeout': 10,
    },
    'pairing': {
        'poll_interval': 5,
    },
    'heartbeat': {
        'interval': 60,
    },
    'state': {
        'dir': str(Path.home() / '.signage-player'),
    },
}


class Settings:
    """Manages player settings from a YAML file."""

    def __init__(self, settings_path: Optional[str] = None):
        """
        Initialize settings.

        Args:
            settings_path: Path to a YAML file. If None or missing, defaults are used
        """
        self.settings_path = Path(settings_path) if settings_path else None
        self._settings: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load settings from the YAML file on top of the defaults."""
        self._settings = _merge(DEFAULT_SETTINGS, {})

        if self.settings_path is not None:
            if not self.settings_path.exists():
                raise FileNotFoundError(f"Settings file not found: {self.settings_path}")

            with open(self.settings_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}

            if not isinstance(loaded, dict):
                raise ValueError(f"Settings file must contain a mapping: {self.settings_path}")

            self._settings = _merge(self._settings, loaded)

        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """Override settings from environment variables."""
        if 'SIGNAGE_SERVER_URL' in os.environ:
            self.set('server.url', os.environ['SIGNAGE_SERVER_URL'])

        if 'SIGNAGE_POLL_INTERVAL' in os.environ:
            self.set('pairing.poll_interval', int(os.environ['SIGNAGE_POLL_INTERVAL']))

        if 'SIGNAGE_HEARTBEAT_INTERVAL' in os.environ:
            self.set('heartbeat.interval', int(os.environ['SIGNAGE_HEARTBEAT_INTERVAL']))

        if 'SIGNAGE_STATE_DIR' in os.environ:
            self.set('state.dir', os.environ['SIGNAGE_STATE_DIR'])

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting using dot notation.

        Example:
            >>> Settings().get('server.url')
            'http://localhost:5000'
        """
        value = self._settings

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a setting using dot notation."""
        keys = key.split('.')
        settings = self._settings

        for k in keys[:-1]:
            if not isinstance(settings.get(k), dict):
                settings[k] = {}
            settings = settings[k]

        settings[keys[-1]] = value

    @property
    def server_url(self) -> str:
        return str(self.get('server.url', '')).rstrip('/')

    @property
    def request_timeout(self) -> int:
        return int(self.get('server.timeout', 10))

    @property
    def poll_interval(self) -> int:
        return int(self.get('pairing.poll_interval', 5))

    @property
    def heartbeat_interval(self) -> int:
        return int(self.get('heartbeat.interval', 60))

    @property
    def state_dir(self) -> str:
        return str(self.get('state.dir'))

    def __repr__(self) -> str:
        return f"Settings(path={self.settings_path})"


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two settings mappings into a new dict."""
    merged = {}
    for key, value in base.items():
        merged[key] = _merge(value, {}) if isinstance(value, dict) else value

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value

    return merged
