"""
Device ID generation and management.
Ensures each player has a stable 8-character identifier for QR binding.
"""

import socket
import uuid
from typing import Dict

from .config import PlayerConfig


DEVICE_ID_LENGTH = 8
DEVICE_QR_PREFIX = "DEVICE"


def generate_device_id() -> str:
    """Generate a new uppercase alphanumeric device id."""
    return uuid.uuid4().hex[:DEVICE_ID_LENGTH].upper()


def get_or_create_device_id(config: PlayerConfig) -> str:
    """
    Get the persisted device ID or create and persist a new one.

    Device ID is stored in device.json so it survives reboots.
    """
    device_id = (config.device_id or '').strip().upper()
    if len(device_id) == DEVICE_ID_LENGTH and device_id.isalnum():
        return device_id

    device_id = generate_device_id()
    config.device_id = device_id
    config.save()

    return device_id


def format_device_qr(device_id: str) -> str:
    """QR payload an operator scans to bind this device: DEVICE:<id>."""
    return f"{DEVICE_QR_PREFIX}:{device_id}"


def get_device_info(device_id: str) -> Dict[str, str]:
    """Describe this player for the deviceInfo field of an activation."""
    return {
        "device_id": device_id,
        "hostname": socket.gethostname(),
    }


def describe_device(device_id: str) -> str:
    """Short human-readable device description sent with activations."""
    info = get_device_info(device_id)
    return f"signage-player {info['hostname']} ({info['device_id']})"
