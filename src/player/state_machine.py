"""
Pairing State Machine for the signage player.
Tracks whether the player is unbound, verifying a stored token, or bound.
"""

import threading
from enum import Enum
from typing import Callable, Dict, List, Optional

from .logger import setup_logger

logger = setup_logger(__name__)


class PlayerMode(Enum):
    """Represents the current pairing mode of the player."""
    UNBOUND = "unbound"        # No token; showing an activation code or device QR
    VERIFYING = "verifying"    # Checking a stored token with the server
    ACTIVE = "active"          # Bound and the screen is playable
    INACTIVE = "inactive"      # Bound but the screen's subscription lapsed


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""


ModeCallback = Callable[['PlayerStateMachine', PlayerMode, PlayerMode], None]


class PlayerStateMachine:
    """
    State machine for the player's binding lifecycle.

    Valid transitions:
    - UNBOUND -> VERIFYING (token received)
    - VERIFYING -> ACTIVE | INACTIVE (token confirmed)
    - VERIFYING -> UNBOUND (token rejected)
    - ACTIVE <-> INACTIVE (playability changed)
    - ACTIVE | INACTIVE -> VERIFYING (periodic or forced re-check)
    - ACTIVE | INACTIVE -> UNBOUND (binding revoked)
    """

    VALID_TRANSITIONS: Dict[PlayerMode, List[PlayerMode]] = {
        PlayerMode.UNBOUND: [PlayerMode.VERIFYING],
        PlayerMode.VERIFYING: [PlayerMode.ACTIVE, PlayerMode.INACTIVE, PlayerMode.UNBOUND],
        PlayerMode.ACTIVE: [PlayerMode.INACTIVE, PlayerMode.VERIFYING, PlayerMode.UNBOUND],
        PlayerMode.INACTIVE: [PlayerMode.ACTIVE, PlayerMode.VERIFYING, PlayerMode.UNBOUND],
    }

    def __init__(self, initial_mode: PlayerMode = PlayerMode.UNBOUND,
                 on_mode_changed: Optional[ModeCallback] = None):
        """
        Initialize the state machine.

        Args:
            initial_mode: Starting mode (VERIFYING when a token is stored)
            on_mode_changed: Callback when mode changes (self, old_mode, new_mode)
        """
        self._mode = initial_mode
        self._previous_mode: Optional[PlayerMode] = None
        self._on_mode_changed = on_mode_changed
        self._lock = threading.Lock()

        logger.info("PlayerStateMachine initialized in %s mode", self._mode.name)

    @property
    def mode(self) -> PlayerMode:
        with self._lock:
            return self._mode

    @property
    def previous_mode(self) -> Optional[PlayerMode]:
        with self._lock:
            return self._previous_mode

    def can_transition_to(self, target_mode: PlayerMode) -> bool:
        """Check if a transition to target_mode is valid from the current mode."""
        with self._lock:
            if self._mode == target_mode:
                return True
            return target_mode in self.VALID_TRANSITIONS.get(self._mode, [])

    def transition_to(self, target_mode: PlayerMode) -> bool:
        """
        Attempt to transition to a new mode.

        Args:
            target_mode: Mode to transition to

        Returns:
            True if the mode changed, False if already in target mode

        Raises:
            StateTransitionError: If transition is not valid
        """
        with self._lock:
            old_mode = self._mode

            if old_mode == target_mode:
                logger.debug("Already in %s mode", target_mode.name)
                return False

            if target_mode not in self.VALID_TRANSITIONS.get(old_mode, []):
                raise StateTransitionError(
                    f"Invalid transition: {old_mode.name} -> {target_mode.name}"
                )

            self._previous_mode = old_mode
            self._mode = target_mode

            logger.info("Mode transition: %s -> %s", old_mode.name, target_mode.name)

        # Callback runs outside the lock so it may query the machine
        if self._on_mode_changed:
            try:
                self._on_mode_changed(self, old_mode, target_mode)
            except Exception as e:
                logger.error("Error in mode change callback: %s", e)

        return True

    def to_unbound(self) -> bool:
        return self.transition_to(PlayerMode.UNBOUND)

    def to_verifying(self) -> bool:
        return self.transition_to(PlayerMode.VERIFYING)

    def to_bound(self, playable: bool) -> bool:
        """Transition to ACTIVE or INACTIVE depending on playability."""
        return self.transition_to(PlayerMode.ACTIVE if playable else PlayerMode.INACTIVE)

    @property
    def is_unbound(self) -> bool:
        return self.mode == PlayerMode.UNBOUND

    @property
    def is_bound(self) -> bool:
        """True in ACTIVE or INACTIVE mode."""
        return self.mode in (PlayerMode.ACTIVE, PlayerMode.INACTIVE)

    @property
    def is_playing(self) -> bool:
        return self.mode == PlayerMode.ACTIVE

    def get_state_info(self) -> Dict[str, Optional[str]]:
        """
        Get information about current state.

        Returns:
            Dictionary with mode and previous_mode info
        """
        with self._lock:
            return {
                "mode": self._mode.value,
                "previous_mode": self._previous_mode.value if self._previous_mode else None,
            }

    def __repr__(self) -> str:
        return f"PlayerStateMachine(mode={self.mode.name})"
