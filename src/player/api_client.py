"""
Signage API Client - Player side of the pairing protocol.

Every call returns the decoded JSON body, or None when the server could
not be reached or answered with something other than the expected status.
None means "no answer", never "not bound".
"""

from typing import Any, Dict, Optional

import requests

from .logger import setup_logger

logger = setup_logger(__name__)


DEVICE_TOKEN_HEADER = "X-Device-Token"


class DeviceTokenRejected(Exception):
    """The server answered 401 to a device-token request."""


class SignageAPIClient:
    """HTTP client for the signage server's player endpoints."""

    def __init__(self, server_url: str = "http://localhost:5000", timeout: int = 10,
                 session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            server_url: Base URL of the signage server
            timeout: Per-request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.server_url = server_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.server_url}/api{path}"

    def _request(self, method: str, path: str, expected=(200,), **kwargs) -> Optional[Dict[str, Any]]:
        """
        Perform a request and decode the JSON body.

        Raises:
            DeviceTokenRejected: On 401 when a device token was sent
        """
        try:
            response = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.Timeout:
            logger.warning(f"{method} {path} timed out - server unreachable")
            return None
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            return None

        if response.status_code == 401 and DEVICE_TOKEN_HEADER in kwargs.get('headers', {}):
            raise DeviceTokenRejected(path)

        if response.status_code not in expected:
            logger.info(f"{method} {path} answered HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"{method} {path} returned a non-JSON body")
            return None

        return data if isinstance(data, dict) else None

    def get_activation_code(self, screen_id: int) -> Optional[Dict[str, Any]]:
        """
        Fetch the current activation code of a screen for display.

        Returns:
            ActivationCodeData dict with code, expiresAt, qrPayload and pollingToken
        """
        return self._request('GET', f"/player/{screen_id}/activation-code")

    def check_activation(self, screen_id: int, code: str,
                         polling_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Poll whether a displayed code has been redeemed."""
        params = {'code': code}
        if polling_token:
            params['pollingToken'] = polling_token
        return self._request('GET', f"/player/{screen_id}/check-activation", params=params)

    def activate(self, code: str, screen_id: Optional[int] = None,
                 device_info: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Redeem an activation code typed on the player.

        Uses /player/activate when the screen is known, /screens/activate otherwise.
        Rejections (unknown, used, expired, rate-limited) all return None.
        """
        payload: Dict[str, Any] = {'code': code}
        if device_info:
            payload['deviceInfo'] = device_info

        if screen_id is not None:
            payload['screenId'] = screen_id
            data = self._request('POST', "/player/activate", json=payload)
            if data is not None:
                data.setdefault('screenId', screen_id)
            return data

        return self._request('POST', "/screens/activate", json=payload)

    def verify(self, device_token: str, screen_id: int) -> Optional[Dict[str, Any]]:
        """
        Confirm a stored device token.

        Returns:
            {"bound": True, ...} or {"bound": False}; None if the server was unreachable
        """
        return self._request('POST', "/player/verify", json={
            'deviceToken': device_token,
            'screenId': screen_id,
        })

    def heartbeat(self, device_token: str, screen_id: int) -> Optional[Dict[str, Any]]:
        """
        Send a liveness ping for the bound screen.

        Raises:
            DeviceTokenRejected: The binding was revoked
        """
        return self._request(
            'POST',
            f"/screens/{screen_id}/heartbeat",
            headers={DEVICE_TOKEN_HEADER: device_token},
        )

    def check_binding(self, device_id: str) -> Optional[Dict[str, Any]]:
        """Collect a token minted for this device by an operator's QR scan."""
        return self._request('GET', f"/device/{device_id}/check-binding")

    def close(self) -> None:
        self.session.close()
