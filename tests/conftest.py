"""
Pytest Fixtures for Player Tests

Provides a temporary state directory, player config and a mocked API client.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Player package lives under src/
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))


@pytest.fixture
def state_dir(tmp_path):
    """Empty directory for device.json."""
    return tmp_path / 'state'


@pytest.fixture
def player_config(state_dir):
    """Player state with a fixed device id and no binding."""
    from player.config import PlayerConfig

    config = PlayerConfig(str(state_dir))
    config.device_id = 'A1B2C3D4'
    config.save()
    return config


@pytest.fixture
def bound_config(player_config):
    """Player state holding a token for screen 42."""
    player_config.store_binding(42, 'dev_stored', 7)
    return player_config


@pytest.fixture
def mock_client():
    """API client mock; every call answers "no answer" unless configured."""
    from player.api_client import SignageAPIClient

    client = MagicMock(spec=SignageAPIClient)
    client.verify.return_value = None
    client.check_binding.return_value = {'bound': False}
    client.get_activation_code.return_value = None
    client.check_activation.return_value = None
    client.activate.return_value = None
    client.heartbeat.return_value = None
    return client
