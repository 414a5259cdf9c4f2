"""
Admin authentication utilities for the Book Catalog API

A single shared secret: POST /api/login exchanges ADMIN_PASSWORD for
ADMIN_TOKEN, and admin routes expect that token in the x-admin-token header.
"""

from __future__ import annotations

import hmac

from catalog_backend.config import ADMIN_TOKEN_HEADER, Settings
from catalog_backend.utils.validation import get_header


def check_password(password: object, settings: Settings) -> bool:
    """
    Compare a submitted password with the configured admin password.

    Args:
        password: Value from the login request body
        settings: Process configuration

    Returns:
        bool: True if the password matches
    """
    if not isinstance(password, str):
        return False
    return hmac.compare_digest(password.encode(), settings.admin_password.encode())


def is_admin(event: dict, settings: Settings) -> bool:
    """
    Check the admin token header of an API Gateway event.

    Args:
        event: API Gateway event
        settings: Process configuration

    Returns:
        bool: True if the x-admin-token header matches the admin token
    """
    token = get_header(event, ADMIN_TOKEN_HEADER)
    if not token:
        return False
    return hmac.compare_digest(token.encode(), settings.admin_token.encode())
