"""
Client Portal Blueprint — read-only project view for clients.

Portal callers authenticate with an opaque bearer token issued by
POST /portal/login, not with the staff JWT.

Endpoints:
  POST /api/v1/portal/login
  POST /api/v1/portal/logout
  GET  /api/v1/portal/me
  GET  /api/v1/portal/projects
  GET  /api/v1/portal/projects/<id>
  POST /api/v1/portal/projects/<id>/feedbacks
  GET  /api/v1/portal/feedbacks?status=
"""

from flask import Blueprint, g, jsonify, request

from app.auth import portal_required
from app.blueprints import register_error_handlers
from app.services import client_service

portal_bp = Blueprint("portal", __name__, url_prefix="/api/v1/portal")
register_error_handlers(portal_bp)


@portal_bp.route("/login", methods=["POST"])
def portal_login():
    data = request.get_json(silent=True) or {}
    result = client_service.portal_login(data.get("email"), data.get("password"))
    if result is None:
        return jsonify({"error": "Invalid email or password"}), 401
    token, client = result
    return jsonify({"token": token, "client": client.to_dict()}), 200


@portal_bp.route("/logout", methods=["POST"])
@portal_required
def portal_logout():
    client_service.portal_logout(g.portal_session)
    return jsonify({"message": "Logged out"}), 200


@portal_bp.route("/me", methods=["GET"])
@portal_required
def portal_me():
    return jsonify(g.portal_client.to_dict()), 200


@portal_bp.route("/projects", methods=["GET"])
@portal_required
def portal_projects():
    projects = client_service.portal_projects(g.portal_client)
    return jsonify([p.to_dict() for p in projects]), 200


@portal_bp.route("/projects/<int:project_id>", methods=["GET"])
@portal_required
def portal_project(project_id):
    return jsonify(client_service.portal_project_detail(g.portal_client, project_id)), 200


@portal_bp.route("/projects/<int:project_id>/feedbacks", methods=["POST"])
@portal_required
def portal_create_feedback(project_id):
    data = request.get_json(silent=True) or {}
    feedback = client_service.create_portal_feedback(g.portal_client, project_id, data)
    return jsonify(feedback.to_dict()), 201


@portal_bp.route("/feedbacks", methods=["GET"])
@portal_required
def portal_feedbacks():
    items = client_service.list_portal_feedbacks(g.portal_client, request.args.get("status"))
    return jsonify([f.to_dict() for f in items]), 200
