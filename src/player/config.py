"""
JSON state for the signage player.
Persists the device id and the screen binding in device.json.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional


class PlayerConfig:
    """Manages the persisted device.json state of the player."""

    DEVICE_FILE = "device.json"

    def __init__(self, config_dir: str):
        """
        Initialize the state store.

        Args:
            config_dir: Directory holding device.json
        """
        self.config_dir = Path(config_dir)
        self._device: Dict[str, Any] = {}

        if self.config_dir.exists():
            self.load()

    @property
    def device_path(self) -> Path:
        return self.config_dir / self.DEVICE_FILE

    def load(self) -> None:
        """Load device.json, treating a missing file as empty state."""
        if not self.device_path.exists():
            self._device = {}
            return

        with open(self.device_path, 'r') as f:
            data = json.load(f)

        self._device = data if isinstance(data, dict) else {}

    def save(self) -> None:
        """
        Write device.json through a temporary file renamed into place.
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)

        tmp_path = self.device_path.with_suffix('.json.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(self._device, f, indent=2)
        os.replace(tmp_path, self.device_path)

    # Device identity

    @property
    def device_id(self) -> str:
        """Get the persisted 8-character device id."""
        return self._device.get('device_id', '')

    @device_id.setter
    def device_id(self, value: str) -> None:
        self._device['device_id'] = value

    # Binding

    @property
    def screen_id(self) -> Optional[int]:
        """Get the bound screen id, if any."""
        value = self._device.get('screen_id')
        return int(value) if value is not None else None

    @screen_id.setter
    def screen_id(self, value: Optional[int]) -> None:
        self._device['screen_id'] = int(value) if value is not None else None

    @property
    def device_token(self) -> str:
        """Get the stored device token."""
        return self._device.get('device_token', '')

    @device_token.setter
    def device_token(self, value: str) -> None:
        self._device['device_token'] = value

    @property
    def binding_id(self) -> Optional[int]:
        return self._device.get('binding_id')

    @binding_id.setter
    def binding_id(self, value: Optional[int]) -> None:
        self._device['binding_id'] = value

    @property
    def has_token(self) -> bool:
        """True when both a token and a screen id are stored."""
        return bool(self.device_token) and self.screen_id is not None

    def store_binding(self, screen_id: int, device_token: str, binding_id: Optional[int] = None) -> None:
        """Persist a freshly received binding."""
        self.screen_id = screen_id
        self.device_token = device_token
        self.binding_id = binding_id
        self.save()

    def clear_token(self) -> None:
        """
        Forget the device token but keep the screen id.

        A player that knows its screen can show that screen's activation
        code again without operator help.
        """
        self._device.pop('device_token', None)
        self._device.pop('binding_id', None)
        self.save()

    def get_device_config(self) -> Dict[str, Any]:
        """Get a copy of the raw device state."""
        return self._device.copy()

    def __repr__(self) -> str:
        return f"PlayerConfig(config_dir={self.config_dir})"
