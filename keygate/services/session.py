"""Verification of upstream session tokens.

Sessions are issued by the login service as HS256 JWTs whose ``sub`` is the
owner id. Keygate only verifies them; it never issues one.
"""

from __future__ import annotations

import jwt

from keygate.config import settings


def decode_session_token(token: str) -> dict:
    """Decode and validate a session JWT.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError on failure.
    """
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def owner_id_from_session(token: str) -> str | None:
    """Return the owner id of a valid session token, or None."""
    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        return None
    return payload.get("sub") or None
