"""Security utilities: JWT tokens, password hashing, and token revocation."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import logging

import jwt
from jwt.exceptions import PyJWTError
import bcrypt

from app.core.config import settings

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hash.

    Uses bcrypt's built-in timing-safe comparison.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError as e:
        logger.warning(f"Password verification error: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with a unique JTI for revocation support."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Revoked tokens decode to None."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True}
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None

    jti = payload.get("jti")
    if jti and _is_token_revoked(jti):
        logger.debug(f"Token {jti} is revoked")
        return None

    return payload


def revoke_token(payload: dict[str, Any]) -> None:
    """Revoke a decoded token until its own expiry (logout)."""
    jti = payload.get("jti")
    if not jti:
        return
    exp = payload.get("exp")
    if exp:
        expiry = datetime.fromtimestamp(exp, tz=timezone.utc)
    else:
        expiry = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    _revoked_tokens[jti] = expiry


def _is_token_revoked(jti: str) -> bool:
    expiry = _revoked_tokens.get(jti)
    if expiry is None:
        return False
    if datetime.now(timezone.utc) < expiry:
        return True
    del _revoked_tokens[jti]
    return False


# In-memory revocation list (cleared on restart, like backend sessions)
_revoked_tokens: Dict[str, datetime] = {}
