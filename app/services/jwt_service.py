"""
Token Service — JWT access tokens and rotating refresh sessions.

    access   15 min (JWT_ACCESS_EXPIRES)   claims: sub, role, type, jti
    refresh  7 days (JWT_REFRESH_EXPIRES)  claims: sub, type, jti

Refresh tokens are single-use. Only their SHA-256 hash is persisted (one
``user_sessions`` row per token); refreshing deactivates the row and opens
a new one in the same commit. ``sub`` is a string, as PyJWT requires.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from app.models import db
from app.models.auth import Session
from app.services.user_service import AuthenticationError, get_user_by_id
from app.utils.crypto import sha256_hex

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
_DEFAULT_TTL = {"access": 15 * 60, "refresh": 7 * 24 * 3600}


def _secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _ttl(kind):
    return int(current_app.config.get(f"JWT_{kind.upper()}_EXPIRES", _DEFAULT_TTL[kind]))


def _encode(user_id, kind, **claims):
    issued = datetime.now(timezone.utc)
    expires_at = issued + timedelta(seconds=_ttl(kind))
    payload = {
        "sub": str(user_id),
        "type": kind,
        "iat": issued,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
        **claims,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM), expires_at


def generate_access_token(user_id: int, role: str) -> str:
    return _encode(user_id, "access", role=role)[0]


def generate_token_pair(user_id: int, role: str) -> dict:
    refresh_token, refresh_expires_at = _encode(user_id, "refresh")
    return {
        "access_token": generate_access_token(user_id, role),
        "refresh_token": refresh_token,
        "refresh_expires_at": refresh_expires_at,
        "token_type": "Bearer",
        "expires_in": _ttl("access"),
    }


def decode_token(token: str, expected_type: str) -> dict:
    """Verified payload; raises jwt.InvalidTokenError (or a subclass)."""
    payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")
    return payload


def decode_access_token(token: str) -> dict:
    return decode_token(token, "access")


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, "refresh")


# ═══════════════════════════════════════════════════════════════
# Refresh sessions
# ═══════════════════════════════════════════════════════════════

def _add_session(user, pair, ip_address, user_agent):
    db.session.add(Session(
        user_id=user.id,
        token_hash=sha256_hex(pair["refresh_token"]),
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500],
        expires_at=pair["refresh_expires_at"],
    ))


def _client_payload(pair):
    return {k: pair[k] for k in ("access_token", "refresh_token", "token_type", "expires_in")}


def open_session(user, ip_address=None, user_agent=None) -> dict:
    """Issue a token pair for ``user`` and persist its refresh session."""
    pair = generate_token_pair(user.id, user.role)
    _add_session(user, pair, ip_address, user_agent)
    db.session.commit()
    return _client_payload(pair)


def refresh_session(raw_token, ip_address=None, user_agent=None) -> dict:
    """
    Exchange a refresh token for a new pair.

    Raises AuthenticationError: 401 for expired, invalid or revoked tokens,
    403 when the account is blocked.
    """
    try:
        payload = decode_refresh_token(raw_token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Refresh token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid refresh token")

    user = get_user_by_id(payload.get("sub"))
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_blocked:
        raise AuthenticationError("Account is blocked", 403)

    session = Session.query.filter_by(
        user_id=user.id, token_hash=sha256_hex(raw_token), is_active=True
    ).first()
    if session is None:
        logger.info("Refresh with revoked session for user %s", user.id)
        raise AuthenticationError("Session revoked")

    session.is_active = False
    session.last_used_at = datetime.now(timezone.utc)
    pair = generate_token_pair(user.id, user.role)
    _add_session(user, pair, ip_address, user_agent)
    db.session.commit()
    return _client_payload(pair)


def revoke_refresh_token(raw_token) -> bool:
    """Deactivate the session behind ``raw_token``; False when none was active."""
    session = Session.query.filter_by(token_hash=sha256_hex(raw_token), is_active=True).first()
    if session is None:
        return False
    session.is_active = False
    db.session.commit()
    return True
