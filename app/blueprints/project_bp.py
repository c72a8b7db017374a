"""
Project Blueprint — project CRUD, favourites and activity.

Endpoints:
  GET    /api/v1/projects?status=&client_id=&category=&favorite=&search=
  POST   /api/v1/projects
  GET    /api/v1/projects/<id>
  PUT    /api/v1/projects/<id>
  DELETE /api/v1/projects/<id>
  POST   /api/v1/projects/<id>/favorite
  GET    /api/v1/projects/<id>/progress-logs
  GET    /api/v1/activity/recent?limit=10
  GET    /api/v1/activity?type=&limit=
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import activity_service, project_service

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


def _int_arg(name, default):
    try:
        return max(1, min(int(request.args.get(name, default)), 500))
    except (TypeError, ValueError):
        return default


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/projects", methods=["GET"])
@login_required
def list_projects():
    filters = {k: request.args.get(k) for k in ("status", "client_id", "category", "favorite", "search")}
    projects = project_service.list_projects(g.current_user.id, filters)
    return jsonify([p.to_dict(include_client=True) for p in projects]), 200


@project_bp.route("/projects", methods=["POST"])
@login_required
def create_project():
    data = request.get_json(silent=True) or {}
    project = project_service.create_project(g.current_user.id, data)
    return jsonify(project.to_dict(include_client=True)), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
@login_required
def get_project(project_id):
    project = project_service.get_project_for_user(project_id, g.current_user.id)
    d = project.to_dict(include_client=True)
    d["role"] = project_service.project_role(project, g.current_user.id)
    return jsonify(d), 200


@project_bp.route("/projects/<int:project_id>", methods=["PUT"])
@login_required
def update_project(project_id):
    data = request.get_json(silent=True) or {}
    project = project_service.get_project_for_user(project_id, g.current_user.id)
    project = project_service.update_project(project, g.current_user.id, data)
    return jsonify(project.to_dict(include_client=True)), 200


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@login_required
def delete_project(project_id):
    project = project_service.get_project_for_user(project_id, g.current_user.id)
    project_service.delete_project(project, g.current_user.id)
    return jsonify({"message": "Project deleted"}), 200


@project_bp.route("/projects/<int:project_id>/favorite", methods=["POST"])
@login_required
def toggle_favorite(project_id):
    project = project_service.get_project_for_user(project_id, g.current_user.id)
    project = project_service.toggle_favorite(project)
    return jsonify({"id": project.id, "is_favorite": project.is_favorite}), 200


# ═══════════════════════════════════════════════════════════════
# Activity
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/projects/<int:project_id>/progress-logs", methods=["GET"])
@login_required
def progress_logs(project_id):
    project = project_service.get_project_for_user(project_id, g.current_user.id)
    return jsonify(activity_service.list_progress_logs(project.id)), 200


@project_bp.route("/activity/recent", methods=["GET"])
@login_required
def recent_activity():
    ids = project_service.visible_project_ids(g.current_user.id)
    return jsonify(activity_service.list_activity(ids, limit=_int_arg("limit", 10))), 200


@project_bp.route("/activity", methods=["GET"])
@login_required
def all_activity():
    ids = project_service.visible_project_ids(g.current_user.id)
    items = activity_service.list_activity(
        ids, limit=_int_arg("limit", 200), activity_type=request.args.get("type"),
    )
    return jsonify(items), 200
