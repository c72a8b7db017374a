"""
ClientForge
Authentication & authorization decorators.

Provides:
    - login_required           — valid JWT access token for an unblocked user
    - platform_admin_required  — login_required + users.role == platform_admin
    - portal_required          — client-portal bearer session

Security model:
    - init_jwt_middleware (app.middleware.jwt_auth) decodes the Bearer token
      into g.jwt_user_id before the view runs; these decorators only read g.
    - Portal tokens are opaque random strings, stored as SHA-256 hashes in
      client_portal_sessions, and never go through the JWT middleware.
    - Per-project access (owner / member role) is checked in
      app.services.project_service, not here.
"""

import functools
import logging

from flask import g, jsonify, request

from app.models import db
from app.models.auth import User
from app.models.client import Client, ClientPortalSession
from app.utils.crypto import sha256_hex

logger = logging.getLogger(__name__)


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[7:].strip() or None


def get_current_user():
    """Resolve g.jwt_user_id to a User row (cached on g)."""
    if getattr(g, "current_user", None) is not None:
        return g.current_user
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        return None
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
    g.current_user = user
    return user


def login_required(f):
    """
    Decorator: require an authenticated, unblocked user.

    Sets g.current_user.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if user.is_blocked:
            logger.warning("Blocked user %s attempted %s", user.id, request.path)
            return jsonify({"error": "Account is blocked"}), 403
        return f(*args, **kwargs)

    return decorated


def platform_admin_required(f):
    """Decorator: login_required + platform_admin role."""
    @functools.wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not g.current_user.is_platform_admin:
            logger.warning(
                "Access denied: user %s tried admin endpoint %s",
                g.current_user.id, request.path,
            )
            return jsonify({"error": "Platform admin access required"}), 403
        return f(*args, **kwargs)

    return decorated


def portal_required(f):
    """
    Decorator: require a live client-portal session.

    Sets g.portal_client and g.portal_session.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Portal authentication required"}), 401

        session = ClientPortalSession.query.filter_by(token_hash=sha256_hex(token)).first()
        if session is None or session.is_expired:
            return jsonify({"error": "Portal session expired or invalid"}), 401

        client = db.session.get(Client, session.client_id)
        if client is None or not client.has_portal_access:
            return jsonify({"error": "Portal access disabled"}), 403

        g.portal_session = session
        g.portal_client = client
        return f(*args, **kwargs)

    return decorated
