"""
Pairing Controller - Drives the player from unbound to bound.

Each step() is one idempotent iteration of the pairing loop:
- With a stored token in VERIFYING: verify it. Only a definite
  {"bound": false} discards the token; an unreachable server leaves it in
  place. ACTIVE and INACTIVE make no verify calls; a rejected heartbeat
  sends the player back to VERIFYING.
- Without a token: poll the displayed activation code (check-activation)
  and the device QR binding (check-binding). A received token is persisted
  and the player moves to VERIFYING.

The display layer only ever receives the mode, the activation code and
the QR payload. Server error text never reaches the screen.
"""

import threading
from typing import Any, Callable, Dict, Optional

from .api_client import SignageAPIClient
from .config import PlayerConfig
from .device_id import describe_device, format_device_qr, get_or_create_device_id
from .logger import setup_logger
from .state_machine import PlayerMode, PlayerStateMachine

logger = setup_logger(__name__)


DisplayCallback = Callable[[PlayerMode, Optional[str], Optional[str]], None]


class PairingController:
    """Runs the player side of the pairing protocol."""

    DEFAULT_POLL_INTERVAL = 5  # seconds between pairing steps

    def __init__(
        self,
        client: SignageAPIClient,
        config: PlayerConfig,
        poll_interval: int = DEFAULT_POLL_INTERVAL,
        on_display: Optional[DisplayCallback] = None,
    ):
        """
        Initialize the controller.

        Args:
            client: API client for the signage server
            config: Persisted player state
            poll_interval: Seconds between background steps
            on_display: Called with (mode, code, qr_payload) whenever what
                the screen should show changes
        """
        self.client = client
        self.config = config
        self.poll_interval = poll_interval
        self.on_display = on_display

        self.device_id = get_or_create_device_id(config)

        initial_mode = PlayerMode.VERIFYING if config.has_token else PlayerMode.UNBOUND
        self.state = PlayerStateMachine(initial_mode=initial_mode, on_mode_changed=self._mode_changed)

        self._lock = threading.RLock()
        self._activation: Optional[Dict[str, Any]] = None
        self._displayed = None

        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._wake_event = threading.Event()

    @property
    def mode(self) -> PlayerMode:
        return self.state.mode

    @property
    def activation_code(self) -> Optional[str]:
        """Code currently shown on screen, if any."""
        return self._activation.get('code') if self._activation else None

    # Display

    def _mode_changed(self, machine: PlayerStateMachine, old_mode: PlayerMode, new_mode: PlayerMode) -> None:
        self._refresh_display()

    def _refresh_display(self) -> None:
        mode = self.state.mode
        code = None
        qr_payload = None

        if mode == PlayerMode.UNBOUND:
            if self._activation:
                code = self._activation.get('code')
                qr_payload = self._activation.get('qrPayload')
            else:
                qr_payload = format_device_qr(self.device_id)

        shown = (mode, code, qr_payload)
        if shown == self._displayed:
            return
        self._displayed = shown

        if self.on_display:
            try:
                self.on_display(mode, code, qr_payload)
            except Exception as e:
                logger.error(f"Error in display callback: {e}")

    # Steps

    def step(self) -> PlayerMode:
        """
        Run one iteration of the pairing loop.

        Returns:
            The mode after the iteration
        """
        with self._lock:
            if self.config.has_token:
                self._verify_stored_token()
            else:
                if not self.state.is_unbound:
                    self.state.to_unbound()
                self._poll_for_token()

            self._refresh_display()
            return self.state.mode

    def _verify_stored_token(self) -> None:
        if self.state.is_bound:
            return
        if self.state.is_unbound:
            self.state.to_verifying()

        result = self.client.verify(self.config.device_token, self.config.screen_id)

        if result is None:
            # No answer: keep the token and the current mode, retry next step
            logger.info("Verify got no answer; keeping stored token")
            return

        if not result.get('bound'):
            logger.warning(f"Device token for screen {self.config.screen_id} is no longer bound")
            self.config.clear_token()
            self._activation = None
            self.state.to_unbound()
            return

        self.state.to_bound(bool(result.get('playable', True)))

    def _poll_for_token(self) -> None:
        result = self.client.check_binding(self.device_id)
        if result and result.get('bound') and result.get('deviceToken'):
            logger.info(f"Device {self.device_id} was bound to screen {result.get('screenId')}")
            self._accept_token(result['screenId'], result['deviceToken'], result.get('bindingId'))
            return

        screen_id = self.config.screen_id
        if screen_id is None:
            self._activation = None
            return

        if self._activation is None:
            self._activation = self.client.get_activation_code(screen_id)
            if self._activation is None:
                return

        result = self.client.check_activation(
            screen_id,
            self._activation['code'],
            polling_token=self._activation.get('pollingToken'),
        )
        if result is None:
            return

        if result.get('activated'):
            if result.get('deviceToken'):
                logger.info(f"Activation code redeemed for screen {screen_id}")
                self._accept_token(result.get('screenId', screen_id), result['deviceToken'],
                                   result.get('bindingId'))
            else:
                # Redeemed by another device; show a fresh code next step
                self._activation = None
        elif result.get('expired'):
            logger.info("Displayed activation code expired; fetching a new one")
            self._activation = None

    def _accept_token(self, screen_id: int, device_token: str, binding_id: Optional[int]) -> None:
        self.config.store_binding(screen_id, device_token, binding_id)
        self._activation = None
        self.state.to_verifying()

    # Manual entry and revocation

    def activate(self, code: str) -> bool:
        """
        Redeem a code typed on the player itself.

        Returns:
            True if a token was received and stored
        """
        with self._lock:
            result = self.client.activate(
                code,
                screen_id=self.config.screen_id,
                device_info=describe_device(self.device_id),
            )
            if not result or not result.get('deviceToken'):
                logger.info("Manual activation was not accepted")
                return False

            if not self.state.is_unbound:
                self.state.to_unbound()
            self._accept_token(result['screenId'], result['deviceToken'], result.get('bindingId'))
            self._refresh_display()
            return True

    def request_verification(self) -> None:
        """Send a bound player back to VERIFYING, e.g. after a rejected heartbeat."""
        with self._lock:
            if self.state.is_bound:
                self.state.to_verifying()
        self._wake_event.set()

    def set_playable(self, playable: bool) -> None:
        """Switch between ACTIVE and INACTIVE while bound."""
        with self._lock:
            if self.state.is_bound:
                self.state.to_bound(playable)

    # Background loop

    def start(self) -> None:
        """Start the pairing loop on a background thread."""
        if self._running:
            logger.warning("Pairing controller already running")
            return

        self._running = True
        self._wake_event.clear()

        self._thread = threading.Thread(target=self._run_loop, name="PairingController", daemon=True)
        self._thread.start()

        logger.info("Pairing controller started")

    def stop(self) -> None:
        """Stop the pairing loop."""
        if not self._running:
            return

        self._running = False
        self._wake_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None

        logger.info("Pairing controller stopped")

    def is_running(self) -> bool:
        return self._running

    def _run_loop(self) -> None:
        """Background thread loop; a wake-up skips the rest of the wait."""
        while self._running:
            try:
                self.step()
            except Exception as e:
                logger.error(f"Pairing step failed: {e}")

            self._wake_event.wait(timeout=self.poll_interval)
            self._wake_event.clear()
