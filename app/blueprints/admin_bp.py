"""
Admin Blueprint — platform administration API.

Endpoints:
  GET    /api/v1/admin/check                      — Caller's admin status (login)
  POST   /api/v1/admin/init                       — Bootstrap the first platform admin (login)
  GET    /api/v1/admin/stats                      — Dashboard counts
  GET    /api/v1/admin/ai-providers               — LLM provider chain
  POST   /api/v1/admin/ai-providers               — Add provider (lowest priority)
  PUT    /api/v1/admin/ai-providers/<id>          — Update provider
  DELETE /api/v1/admin/ai-providers/<id>          — Remove provider
  POST   /api/v1/admin/ai-providers/reorder       — Set priorities from an id list
  GET    /api/v1/admin/users?search=              — Users with project/client counts
  POST   /api/v1/admin/users                      — Create user
  PUT    /api/v1/admin/users/<id>                 — Update user
  PUT    /api/v1/admin/users/<id>/role            — Change platform role
  PUT    /api/v1/admin/users/<id>/block           — Block / unblock
  GET    /api/v1/admin/clients                    — All clients
  GET    /api/v1/admin/projects?status=           — All projects
  GET    /api/v1/admin/settings                   — Platform settings
  POST   /api/v1/admin/settings                   — Upsert setting (key in body)
  PUT    /api/v1/admin/settings/<key>             — Upsert setting
  GET    /api/v1/admin/audit-logs?limit=100       — Admin audit trail
  GET    /api/v1/platform-settings/<key>          — Public read of one setting

Everything under /admin requires the platform_admin role except check and init.
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required, platform_admin_required
from app.blueprints import register_error_handlers
from app.services import admin_service

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1")
register_error_handlers(admin_bp)


def _ip():
    return request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip() or None


# ═══════════════════════════════════════════════════════════════
# Bootstrap
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/admin/check", methods=["GET"])
@login_required
def check_admin():
    return jsonify(admin_service.check_admin(g.current_user)), 200


@admin_bp.route("/admin/init", methods=["POST"])
@login_required
def init_admin():
    user = admin_service.init_admin(g.current_user, _ip())
    return jsonify({"message": "Platform admin initialised", "user": user.to_dict()}), 200


@admin_bp.route("/admin/stats", methods=["GET"])
@platform_admin_required
def stats():
    return jsonify(admin_service.get_stats()), 200


# ═══════════════════════════════════════════════════════════════
# AI providers
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/admin/ai-providers", methods=["GET"])
@platform_admin_required
def list_providers():
    return jsonify(admin_service.list_providers()), 200


@admin_bp.route("/admin/ai-providers", methods=["POST"])
@platform_admin_required
def create_provider():
    data = request.get_json(silent=True) or {}
    return jsonify(admin_service.create_provider(g.current_user.id, data, _ip())), 201


@admin_bp.route("/admin/ai-providers/reorder", methods=["POST"])
@platform_admin_required
def reorder_providers():
    data = request.get_json(silent=True) or {}
    return jsonify(admin_service.reorder_providers(g.current_user.id, data.get("provider_ids"), _ip())), 200


@admin_bp.route("/admin/ai-providers/<int:provider_id>", methods=["PUT"])
@platform_admin_required
def update_provider(provider_id):
    data = request.get_json(silent=True) or {}
    return jsonify(admin_service.update_provider(g.current_user.id, provider_id, data, _ip())), 200


@admin_bp.route("/admin/ai-providers/<int:provider_id>", methods=["DELETE"])
@platform_admin_required
def delete_provider(provider_id):
    admin_service.delete_provider(g.current_user.id, provider_id, _ip())
    return jsonify({"message": "Provider deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/admin/users", methods=["GET"])
@platform_admin_required
def list_users():
    return jsonify(admin_service.list_users(request.args.get("search"))), 200


@admin_bp.route("/admin/users", methods=["POST"])
@platform_admin_required
def create_user():
    data = request.get_json(silent=True) or {}
    user = admin_service.admin_create_user(g.current_user.id, data, _ip())
    return jsonify(user.to_dict()), 201


@admin_bp.route("/admin/users/<int:user_id>", methods=["PUT"])
@platform_admin_required
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    user = admin_service.admin_update_user(g.current_user.id, user_id, data, _ip())
    return jsonify(user.to_dict()), 200


@admin_bp.route("/admin/users/<int:user_id>/role", methods=["PUT"])
@platform_admin_required
def set_role(user_id):
    data = request.get_json(silent=True) or {}
    user = admin_service.set_user_role(g.current_user.id, user_id, data.get("role"), _ip())
    return jsonify(user.to_dict()), 200


@admin_bp.route("/admin/users/<int:user_id>/block", methods=["PUT"])
@platform_admin_required
def set_blocked(user_id):
    data = request.get_json(silent=True) or {}
    user = admin_service.set_user_blocked(g.current_user.id, user_id, data.get("is_blocked"), _ip())
    return jsonify(user.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Clients & projects
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/admin/clients", methods=["GET"])
@platform_admin_required
def list_clients():
    return jsonify(admin_service.list_all_clients()), 200


@admin_bp.route("/admin/projects", methods=["GET"])
@platform_admin_required
def list_projects():
    return jsonify(admin_service.list_all_projects(request.args.get("status"))), 200


# ═══════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/admin/settings", methods=["GET"])
@platform_admin_required
def list_settings():
    return jsonify(admin_service.list_settings()), 200


@admin_bp.route("/admin/settings", methods=["POST"])
@platform_admin_required
def create_setting():
    data = request.get_json(silent=True) or {}
    setting = admin_service.upsert_setting(g.current_user.id, data.get("key"), data, _ip())
    return jsonify(setting.to_dict()), 200


@admin_bp.route("/admin/settings/<key>", methods=["PUT"])
@platform_admin_required
def update_setting(key):
    data = request.get_json(silent=True) or {}
    setting = admin_service.upsert_setting(g.current_user.id, key, data, _ip())
    return jsonify(setting.to_dict()), 200


@admin_bp.route("/platform-settings/<key>", methods=["GET"])
def public_setting(key):
    setting = admin_service.get_setting(key)
    return jsonify({"key": setting.key, "value": setting.value}), 200


# ═══════════════════════════════════════════════════════════════
# Audit trail
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/admin/audit-logs", methods=["GET"])
@platform_admin_required
def audit_logs():
    try:
        limit = int(request.args.get("limit", 100))
    except (TypeError, ValueError):
        limit = 100
    return jsonify(admin_service.list_audit_logs(limit)), 200
