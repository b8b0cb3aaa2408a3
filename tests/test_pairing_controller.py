"""
Tests for PairingController.

Covers:
- Verifying a stored token (keep on no answer, discard on bound=false)
- Polling a displayed code and collecting a QR binding
- Manual code entry
- What the display callback receives
"""

from unittest.mock import MagicMock

from player.config import PlayerConfig
from player.pairing import PairingController
from player.state_machine import PlayerMode


ACTIVATION = {
    'code': 'AB12CD',
    'qrPayload': 'SCREEN:42:AB12CD',
    'pollingToken': 'poll',
    'expiresAt': '2024-01-15T13:00:00+00:00',
}


class TestStoredToken:
    """Player starts with a token in device.json."""

    def test_starts_verifying(self, mock_client, bound_config):
        controller = PairingController(mock_client, bound_config)
        assert controller.mode == PlayerMode.VERIFYING

    def test_confirmed_token_becomes_active(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'bindingId': 7, 'playable': True}
        controller = PairingController(mock_client, bound_config)

        assert controller.step() == PlayerMode.ACTIVE
        mock_client.verify.assert_called_once_with('dev_stored', 42)

    def test_unplayable_screen_becomes_inactive(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'bindingId': 7, 'playable': False}
        controller = PairingController(mock_client, bound_config)

        assert controller.step() == PlayerMode.INACTIVE

    def test_no_answer_keeps_token(self, mock_client, bound_config, state_dir):
        controller = PairingController(mock_client, bound_config)

        assert controller.step() == PlayerMode.VERIFYING
        assert PlayerConfig(str(state_dir)).device_token == 'dev_stored'

    def test_no_answer_after_reverify_request_stays_verifying(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': True}
        controller = PairingController(mock_client, bound_config)
        controller.step()
        controller.request_verification()

        mock_client.verify.return_value = None
        assert controller.step() == PlayerMode.VERIFYING
        assert bound_config.device_token == 'dev_stored'

    def test_active_player_makes_no_verify_calls(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': True}
        controller = PairingController(mock_client, bound_config)
        controller.step()

        for _ in range(3):
            assert controller.step() == PlayerMode.ACTIVE

        assert mock_client.verify.call_count == 1
        mock_client.check_binding.assert_not_called()

    def test_inactive_player_makes_no_verify_calls(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': False}
        controller = PairingController(mock_client, bound_config)
        controller.step()

        assert controller.step() == PlayerMode.INACTIVE
        assert mock_client.verify.call_count == 1

    def test_definite_unbound_discards_token(self, mock_client, bound_config, state_dir):
        mock_client.verify.return_value = {'bound': False}
        controller = PairingController(mock_client, bound_config)

        assert controller.step() == PlayerMode.UNBOUND
        stored = PlayerConfig(str(state_dir))
        assert stored.device_token == ''
        assert stored.screen_id == 42

    def test_revocation_detected_after_rejected_heartbeat(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': True}
        controller = PairingController(mock_client, bound_config)
        controller.step()

        controller.request_verification()
        mock_client.verify.return_value = {'bound': False}

        assert controller.step() == PlayerMode.UNBOUND
        assert mock_client.verify.call_count == 2

    def test_request_verification_from_bound(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': True}
        controller = PairingController(mock_client, bound_config)
        controller.step()

        controller.request_verification()

        assert controller.mode == PlayerMode.VERIFYING

    def test_set_playable_toggles_mode(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': True}
        controller = PairingController(mock_client, bound_config)
        controller.step()

        controller.set_playable(False)

        assert controller.mode == PlayerMode.INACTIVE


class TestCodePolling:
    """Unbound player that knows its screen."""

    def _controller(self, mock_client, player_config, **kwargs):
        player_config.screen_id = 42
        player_config.save()
        mock_client.get_activation_code.return_value = dict(ACTIVATION)
        return PairingController(mock_client, player_config, **kwargs)

    def test_pending_code_stays_unbound(self, mock_client, player_config):
        mock_client.check_activation.return_value = {'activated': False, 'expired': False}
        controller = self._controller(mock_client, player_config)

        assert controller.step() == PlayerMode.UNBOUND
        assert controller.activation_code == 'AB12CD'
        mock_client.check_activation.assert_called_once_with(42, 'AB12CD', polling_token='poll')

    def test_code_is_fetched_once(self, mock_client, player_config):
        mock_client.check_activation.return_value = {'activated': False, 'expired': False}
        controller = self._controller(mock_client, player_config)

        controller.step()
        controller.step()

        assert mock_client.get_activation_code.call_count == 1

    def test_expired_code_is_replaced(self, mock_client, player_config):
        mock_client.check_activation.return_value = {'activated': False, 'expired': True}
        controller = self._controller(mock_client, player_config)

        controller.step()
        assert controller.activation_code is None

        controller.step()
        assert mock_client.get_activation_code.call_count == 2

    def test_redeemed_code_persists_token(self, mock_client, player_config, state_dir):
        mock_client.check_activation.return_value = {
            'activated': True, 'deviceToken': 'dev_new', 'bindingId': 9, 'screenId': 42,
        }
        controller = self._controller(mock_client, player_config)

        assert controller.step() == PlayerMode.VERIFYING
        stored = PlayerConfig(str(state_dir))
        assert stored.device_token == 'dev_new'
        assert stored.binding_id == 9

        mock_client.verify.return_value = {'bound': True, 'playable': True}
        assert controller.step() == PlayerMode.ACTIVE

    def test_code_redeemed_elsewhere_fetches_new_code(self, mock_client, player_config):
        mock_client.check_activation.return_value = {'activated': True}
        controller = self._controller(mock_client, player_config)

        assert controller.step() == PlayerMode.UNBOUND
        assert controller.activation_code is None

    def test_display_shows_code_and_qr(self, mock_client, player_config):
        mock_client.check_activation.return_value = {'activated': False, 'expired': False}
        display = MagicMock()
        controller = self._controller(mock_client, player_config, on_display=display)

        controller.step()
        controller.step()

        display.assert_called_once_with(PlayerMode.UNBOUND, 'AB12CD', 'SCREEN:42:AB12CD')


class TestDeviceBinding:
    """Unbound player waiting for an operator to scan its device QR."""

    def test_shows_device_qr(self, mock_client, player_config):
        display = MagicMock()
        controller = PairingController(mock_client, player_config, on_display=display)

        controller.step()

        display.assert_called_once_with(PlayerMode.UNBOUND, None, 'DEVICE:A1B2C3D4')
        mock_client.get_activation_code.assert_not_called()

    def test_collects_token_from_check_binding(self, mock_client, player_config, state_dir):
        mock_client.check_binding.return_value = {
            'bound': True, 'screenId': 43, 'deviceToken': 'dev_qr', 'bindingId': 5,
        }
        controller = PairingController(mock_client, player_config)

        assert controller.step() == PlayerMode.VERIFYING
        mock_client.check_binding.assert_called_once_with('A1B2C3D4')
        stored = PlayerConfig(str(state_dir))
        assert (stored.screen_id, stored.device_token) == (43, 'dev_qr')

    def test_generates_device_id_when_missing(self, mock_client, state_dir):
        config = PlayerConfig(str(state_dir))
        controller = PairingController(mock_client, config)

        assert len(controller.device_id) == 8
        assert controller.device_id == controller.device_id.upper()
        assert PlayerConfig(str(state_dir)).device_id == controller.device_id

    def test_verifying_display_has_no_code(self, mock_client, player_config):
        mock_client.check_binding.return_value = {
            'bound': True, 'screenId': 43, 'deviceToken': 'dev_qr', 'bindingId': 5,
        }
        display = MagicMock()
        controller = PairingController(mock_client, player_config, on_display=display)

        controller.step()

        display.assert_called_with(PlayerMode.VERIFYING, None, None)


class TestManualActivation:
    """Tests for activate()."""

    def test_accepted_code(self, mock_client, player_config):
        mock_client.activate.return_value = {'deviceToken': 'dev_typed', 'screenId': 42, 'bindingId': 2}
        controller = PairingController(mock_client, player_config)

        assert controller.activate('ab12cd') is True
        assert controller.mode == PlayerMode.VERIFYING
        assert player_config.device_token == 'dev_typed'
        assert mock_client.activate.call_args[0] == ('ab12cd',)

    def test_rejected_code(self, mock_client, player_config):
        controller = PairingController(mock_client, player_config)

        assert controller.activate('ZZZZZZ') is False
        assert controller.mode == PlayerMode.UNBOUND
        assert player_config.device_token == ''


class TestBackgroundLoop:
    """Tests for start()/stop()."""

    def test_start_and_stop(self, mock_client, bound_config):
        mock_client.verify.return_value = {'bound': True, 'playable': True}
        controller = PairingController(mock_client, bound_config, poll_interval=60)

        controller.start()
        try:
            assert controller.is_running()
        finally:
            controller.stop()

        assert not controller.is_running()
