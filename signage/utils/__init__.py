"""
Signage Utility Functions.

This package contains utility functions and decorators used across the service:
- auth: Dashboard session and device token decorators
- audit: Audit logging helpers
"""

from signage.utils.auth import (
    login_required,
    device_token_required,
    get_current_user,
    get_current_binding,
    get_client_ip,
)

__all__ = [
    'login_required',
    'device_token_required',
    'get_current_user',
    'get_current_binding',
    'get_client_ip',
]
