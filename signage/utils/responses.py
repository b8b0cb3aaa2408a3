"""
Response helpers shared by the pairing routes.
"""

from flask import jsonify

from signage.services.errors import PairingError


def pairing_error_response(error: PairingError):
    """
    Convert a PairingError into a JSON response.

    Rate-limited responses carry a Retry-After header in seconds in
    addition to blockedForMinutes in the body.
    """
    response = jsonify(error.to_dict())
    response.status_code = error.status_code

    if error.blocked_for_minutes is not None:
        response.headers['Retry-After'] = str(error.blocked_for_minutes * 60)

    return response
