"""
Signage Routes Package

Blueprint registration for all API route modules:
- Auth: Dashboard login, logout and current user
- Screens: Screen records, activation codes, linked devices, bind-device, heartbeat
- Player: Code redemption, verify, QR code refresh and activation polling
- Device Bindings: Operator revocation of device bindings
"""

from signage.routes.auth import auth_bp
from signage.routes.screens import screens_bp
from signage.routes.player import player_bp
from signage.routes.device_bindings import device_bindings_bp

__all__ = [
    'auth_bp',
    'screens_bp',
    'player_bp',
    'device_bindings_bp',
]
