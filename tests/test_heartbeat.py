"""
Tests for HeartbeatReporter.
"""

from unittest.mock import MagicMock

from player.api_client import DeviceTokenRejected
from player.heartbeat import HeartbeatReporter


class TestSendHeartbeat:
    """Tests for send_heartbeat()."""

    def test_skips_when_unbound(self, mock_client, player_config):
        reporter = HeartbeatReporter(mock_client, player_config)

        assert reporter.send_heartbeat() is False
        mock_client.heartbeat.assert_not_called()

    def test_success_resets_failures(self, mock_client, bound_config):
        mock_client.heartbeat.return_value = {'status': 'ok', 'playable': True}
        reporter = HeartbeatReporter(mock_client, bound_config)
        reporter._consecutive_failures = 3

        assert reporter.send_heartbeat() is True
        mock_client.heartbeat.assert_called_once_with('dev_stored', 42)
        info = reporter.get_last_heartbeat_info()
        assert info['last_success'] is True
        assert info['consecutive_failures'] == 0
        assert info['last_time'] is not None

    def test_no_answer_counts_failures(self, mock_client, bound_config):
        reporter = HeartbeatReporter(mock_client, bound_config)

        reporter.send_heartbeat()
        reporter.send_heartbeat()

        assert reporter.get_last_heartbeat_info()['consecutive_failures'] == 2

    def test_rejected_token_calls_on_revoked(self, mock_client, bound_config):
        mock_client.heartbeat.side_effect = DeviceTokenRejected('/screens/42/heartbeat')
        on_revoked = MagicMock()
        reporter = HeartbeatReporter(mock_client, bound_config, on_revoked=on_revoked)

        assert reporter.send_heartbeat() is False
        on_revoked.assert_called_once_with()

    def test_playable_flag_is_forwarded(self, mock_client, bound_config):
        mock_client.heartbeat.return_value = {'status': 'ok', 'playable': False}
        on_playable_changed = MagicMock()
        reporter = HeartbeatReporter(mock_client, bound_config, on_playable_changed=on_playable_changed)

        reporter.send_heartbeat()

        on_playable_changed.assert_called_once_with(False)

    def test_callback_errors_are_contained(self, mock_client, bound_config):
        mock_client.heartbeat.side_effect = DeviceTokenRejected('/screens/42/heartbeat')
        reporter = HeartbeatReporter(mock_client, bound_config, on_revoked=MagicMock(side_effect=RuntimeError()))

        assert reporter.send_heartbeat() is False


class TestLifecycle:
    """Tests for start()/stop()."""

    def test_start_and_stop(self, mock_client, bound_config):
        reporter = HeartbeatReporter(mock_client, bound_config, interval=60)

        reporter.start()
        assert reporter.is_running()

        reporter.stop()
        assert not reporter.is_running()

    def test_stop_when_not_running(self, mock_client, bound_config):
        reporter = HeartbeatReporter(mock_client, bound_config)
        reporter.stop()
        assert not reporter.is_running()
