"""Unit tests for player state, settings and device ids.

Tests device.json persistence, YAML settings loading with environment
overrides, and device id generation.
"""

import json

import pytest
import yaml

from player.config import PlayerConfig
from player.device_id import format_device_qr, generate_device_id, get_or_create_device_id
from player.settings import Settings


class TestPlayerConfig:
    """Tests for PlayerConfig."""

    def test_missing_directory_is_empty_state(self, state_dir):
        config = PlayerConfig(str(state_dir))

        assert config.device_id == ''
        assert config.screen_id is None
        assert config.device_token == ''
        assert not config.has_token

    def test_store_binding_persists(self, player_config, state_dir):
        player_config.store_binding(42, 'dev_abc', 7)

        with open(state_dir / 'device.json') as f:
            data = json.load(f)
        assert data == {'device_id': 'A1B2C3D4', 'screen_id': 42, 'device_token': 'dev_abc', 'binding_id': 7}

        reloaded = PlayerConfig(str(state_dir))
        assert reloaded.has_token
        assert reloaded.screen_id == 42

    def test_clear_token_keeps_screen(self, bound_config, state_dir):
        bound_config.clear_token()

        reloaded = PlayerConfig(str(state_dir))
        assert reloaded.device_token == ''
        assert reloaded.binding_id is None
        assert reloaded.screen_id == 42
        assert reloaded.device_id == 'A1B2C3D4'

    def test_screen_id_is_coerced_to_int(self, player_config):
        player_config.screen_id = '42'
        assert player_config.screen_id == 42

    def test_no_temp_file_left_behind(self, player_config, state_dir):
        player_config.save()
        assert [p.name for p in state_dir.iterdir()] == ['device.json']


class TestDeviceId:
    """Tests for device id helpers."""

    def test_generated_id_format(self):
        device_id = generate_device_id()

        assert len(device_id) == 8
        assert device_id.isalnum()
        assert device_id == device_id.upper()

    def test_existing_id_is_kept(self, player_config):
        assert get_or_create_device_id(player_config) == 'A1B2C3D4'

    def test_malformed_id_is_replaced(self, player_config, state_dir):
        player_config.device_id = 'not-valid'

        device_id = get_or_create_device_id(player_config)

        assert device_id != 'not-valid'
        assert PlayerConfig(str(state_dir)).device_id == device_id

    def test_device_qr(self):
        assert format_device_qr('A1B2C3D4') == 'DEVICE:A1B2C3D4'


class TestSettings:
    """Tests for YAML settings."""

    @pytest.fixture
    def settings_file(self, tmp_path):
        path = tmp_path / 'player.yaml'
        with open(path, 'w') as f:
            yaml.dump({'server': {'url': 'https://signage.example.com/'}, 'pairing': {'poll_interval': 2}}, f)
        return str(path)

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ('SIGNAGE_SERVER_URL', 'SIGNAGE_POLL_INTERVAL',
                     'SIGNAGE_HEARTBEAT_INTERVAL', 'SIGNAGE_STATE_DIR'):
            monkeypatch.delenv(name, raising=False)

    def test_defaults_without_file(self):
        settings = Settings()

        assert settings.server_url == 'http://localhost:5000'
        assert settings.poll_interval == 5
        assert settings.heartbeat_interval == 60

    def test_file_overrides_defaults(self, settings_file):
        settings = Settings(settings_file)

        assert settings.server_url == 'https://signage.example.com'
        assert settings.poll_interval == 2
        assert settings.heartbeat_interval == 60

    def test_env_overrides_file(self, settings_file, monkeypatch):
        monkeypatch.setenv('SIGNAGE_SERVER_URL', 'http://10.0.0.5:5000')
        monkeypatch.setenv('SIGNAGE_HEARTBEAT_INTERVAL', '15')

        settings = Settings(settings_file)

        assert settings.server_url == 'http://10.0.0.5:5000'
        assert settings.heartbeat_interval == 15

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings(str(tmp_path / 'missing.yaml'))

    def test_get_and_set_dot_notation(self):
        settings = Settings()
        settings.set('server.timeout', 3)

        assert settings.get('server.timeout') == 3
        assert settings.get('nope.nothing', 'fallback') == 'fallback'
