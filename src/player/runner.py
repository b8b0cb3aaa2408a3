"""
Signage Player - headless runner.

Wires the pairing controller and the heartbeat reporter together and
reports what the screen should show through the log.
"""

import signal
import threading
from typing import Optional

from .api_client import SignageAPIClient
from .config import PlayerConfig
from .heartbeat import HeartbeatReporter
from .logger import setup_logger
from .pairing import PairingController
from .settings import Settings
from .state_machine import PlayerMode

logger = setup_logger(__name__)


class SignagePlayer:
    """Headless player: pairing loop plus heartbeat while bound."""

    def __init__(self, settings: Settings, screen_id: Optional[int] = None):
        self.settings = settings
        self.config = PlayerConfig(settings.state_dir)

        if screen_id is not None and self.config.screen_id != screen_id:
            self.config.screen_id = screen_id
            self.config.save()

        self.client = SignageAPIClient(settings.server_url, timeout=settings.request_timeout)
        self.controller = PairingController(
            self.client,
            self.config,
            poll_interval=settings.poll_interval,
            on_display=self._show,
        )
        self.heartbeat = HeartbeatReporter(
            self.client,
            self.config,
            interval=settings.heartbeat_interval,
            on_revoked=self.controller.request_verification,
            on_playable_changed=self.controller.set_playable,
        )
        self._done = threading.Event()

    def _show(self, mode: PlayerMode, code: Optional[str], qr_payload: Optional[str]) -> None:
        if mode == PlayerMode.UNBOUND:
            if code:
                logger.info(f"Activation code: {code} (QR {qr_payload})")
            else:
                logger.info(f"Scan to bind this device: {qr_payload}")
        elif mode == PlayerMode.VERIFYING:
            logger.info("Checking binding...")
        elif mode == PlayerMode.INACTIVE:
            logger.info("Screen is inactive")
        else:
            logger.info("Screen is active")

        if mode in (PlayerMode.ACTIVE, PlayerMode.INACTIVE):
            if not self.heartbeat.is_running():
                self.heartbeat.start()
        else:
            self.heartbeat.stop()

    def run(self) -> None:
        """Run until SIGINT or SIGTERM."""
        signal.signal(signal.SIGINT, lambda *_: self._done.set())
        signal.signal(signal.SIGTERM, lambda *_: self._done.set())

        self.controller.start()
        try:
            self._done.wait()
        finally:
            self.controller.stop()
            self.heartbeat.stop()
            self.client.close()


def main():
    """Main entry point for the signage player."""
    import argparse

    parser = argparse.ArgumentParser(description="Signage Player")
    parser.add_argument('--settings', help="YAML settings file path")
    parser.add_argument('--server-url', help="Signage server URL override")
    parser.add_argument('--screen-id', type=int, help="Screen to show an activation code for")
    parser.add_argument('--code', help="Redeem this activation code and exit")

    args = parser.parse_args()

    settings = Settings(args.settings)
    if args.server_url:
        settings.set('server.url', args.server_url)

    player = SignagePlayer(settings, screen_id=args.screen_id)

    if args.code:
        if player.controller.activate(args.code):
            player.controller.step()
            logger.info(f"Activated; mode is {player.controller.mode.name}")
            return 0
        logger.error("Activation failed")
        return 1

    logger.info("Signage player starting...")
    player.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
