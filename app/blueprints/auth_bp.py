"""
Auth Blueprint — JWT authentication and the caller's profile.

Endpoints:
  POST /api/v1/auth/register    — Email + password → user + JWT pair (201)
  POST /api/v1/auth/login       — Email + password → JWT pair
  POST /api/v1/auth/refresh     — Refresh token → rotated JWT pair
  POST /api/v1/auth/logout      — Revoke refresh token
  GET  /api/v1/auth/me          — Current user
  GET  /api/v1/profile          — Current user profile
  PUT  /api/v1/profile          — Update profile fields
  PUT  /api/v1/profile/password — Change password
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services.jwt_service import open_session, refresh_session, revoke_refresh_token
from app.services.user_service import (
    AuthenticationError,
    authenticate_user,
    change_password,
    create_user,
    update_profile,
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1")
register_error_handlers(auth_bp)


def _client_info():
    return request.remote_addr, request.headers.get("User-Agent", "")


def _signed_in(user):
    return {**open_session(user, *_client_info()), "user": user.to_dict()}


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/register", methods=["POST"])
def register():
    """
    Create an account and sign in.

    Body: { "email": "...", "password": "...", "first_name": "...", "last_name": "..." }
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = create_user(
        email, password,
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )
    return jsonify(_signed_in(user)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/login", methods=["POST"])
def login():
    """Body: { "email": "...", "password": "..." }"""
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    try:
        user = authenticate_user(email, password)
    except AuthenticationError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify(_signed_in(user)), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new pair; the old token stops working.

    Body: { "refresh_token": "..." }
    """
    data = request.get_json(silent=True) or {}
    raw = data.get("refresh_token") or ""
    if not raw:
        return jsonify({"error": "refresh_token is required"}), 400

    try:
        tokens = refresh_session(raw, *_client_info())
    except AuthenticationError as e:
        return jsonify({"error": e.message}), e.status_code
    return jsonify(tokens), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/logout", methods=["POST"])
def logout():
    data = request.get_json(silent=True) or {}
    raw = data.get("refresh_token") or ""
    if raw:
        revoke_refresh_token(raw)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.route("/auth/me", methods=["GET"])
@login_required
def me():
    return jsonify(g.current_user.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    return jsonify(g.current_user.to_dict()), 200


@auth_bp.route("/profile", methods=["PUT"])
@login_required
def put_profile():
    data = request.get_json(silent=True) or {}
    user = update_profile(g.current_user, data)
    return jsonify(user.to_dict()), 200


@auth_bp.route("/profile/password", methods=["PUT"])
@login_required
def put_password():
    data = request.get_json(silent=True) or {}
    change_password(g.current_user, data.get("current_password"), data.get("new_password"))
    return jsonify({"message": "Password updated"}), 200
