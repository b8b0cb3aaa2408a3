"""
Heartbeat Reporter - Reports player liveness to the signage server.
Sends a device-token authenticated ping at a fixed interval.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

from .api_client import DeviceTokenRejected, SignageAPIClient
from .config import PlayerConfig
from .logger import setup_logger

logger = setup_logger(__name__)


class HeartbeatReporter:
    """Reports player liveness to the server at regular intervals."""

    DEFAULT_INTERVAL = 60  # seconds between heartbeats

    def __init__(
        self,
        client: SignageAPIClient,
        config: PlayerConfig,
        interval: int = DEFAULT_INTERVAL,
        on_revoked: Optional[Callable[[], None]] = None,
        on_playable_changed: Optional[Callable[[bool], None]] = None,
    ):
        """
        Initialize heartbeat reporter.

        Args:
            client: API client used to send heartbeats
            config: Player state holding the device token and screen id
            interval: Seconds between heartbeats (default: 60)
            on_revoked: Called when the server rejects the device token
            on_playable_changed: Called with the playable flag of each successful heartbeat
        """
        self.client = client
        self.config = config
        self.interval = interval
        self.on_revoked = on_revoked
        self.on_playable_changed = on_playable_changed

        self._running = False
        self._thread: Optional[threading.Thread] = None

        self._last_heartbeat_time: Optional[float] = None
        self._last_heartbeat_success: bool = False
        self._consecutive_failures = 0

    def send_heartbeat(self) -> bool:
        """
        Send one heartbeat: POST /api/screens/<screen_id>/heartbeat.

        Returns:
            True if the heartbeat was accepted, False otherwise
        """
        if not self.config.has_token:
            logger.debug("Skipping heartbeat: player is not bound")
            return False

        try:
            data = self.client.heartbeat(self.config.device_token, self.config.screen_id)
        except DeviceTokenRejected:
            logger.warning("Heartbeat rejected: device token no longer valid")
            self._last_heartbeat_success = False
            self._consecutive_failures += 1
            if self.on_revoked:
                try:
                    self.on_revoked()
                except Exception as e:
                    logger.error(f"Error in revoked callback: {e}")
            return False

        if data is None:
            self._last_heartbeat_success = False
            self._consecutive_failures += 1
            logger.warning(f"Heartbeat failed ({self._consecutive_failures} in a row)")
            return False

        self._last_heartbeat_time = time.time()
        self._last_heartbeat_success = True
        self._consecutive_failures = 0
        logger.debug("Heartbeat sent")

        if self.on_playable_changed and 'playable' in data:
            try:
                self.on_playable_changed(bool(data['playable']))
            except Exception as e:
                logger.error(f"Error in playable callback: {e}")

        return True

    def _heartbeat_loop(self) -> None:
        """Background thread loop for sending heartbeats."""
        logger.info(f"Heartbeat reporter started (interval: {self.interval}s)")

        while self._running:
            self.send_heartbeat()

            # Sleep in small increments for responsive shutdown
            for _ in range(self.interval):
                if not self._running:
                    break
                time.sleep(1)

        logger.info("Heartbeat reporter stopped")

    def start(self) -> None:
        """Start the heartbeat reporter background thread."""
        if self._running:
            logger.warning("Heartbeat reporter already running")
            return

        self._running = True
        self._thread = threading.Thread(target=self._heartbeat_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the heartbeat reporter."""
        if not self._running:
            return

        self._running = False

        # stop() may be reached from the heartbeat thread through on_revoked
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None

    def is_running(self) -> bool:
        return self._running

    def get_last_heartbeat_info(self) -> Dict[str, Any]:
        """
        Get information about the last heartbeat.

        Returns:
            Dictionary with last heartbeat details
        """
        return {
            "last_time": self._last_heartbeat_time,
            "last_success": self._last_heartbeat_success,
            "consecutive_failures": self._consecutive_failures,
        }
