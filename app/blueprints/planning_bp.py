"""
Planning Blueprint — scope, scope versions, roadmap, WBS and diagrams.

Endpoints:
  GET   /api/v1/projects/<id>/scope
  PATCH /api/v1/projects/<id>/scope
  POST  /api/v1/projects/<id>/scope/regenerate
  GET   /api/v1/projects/<id>/scope/versions
  POST  /api/v1/projects/<id>/scope/versions
  POST  /api/v1/projects/<id>/scope/versions/<vid>/restore
  GET   /api/v1/projects/<id>/roadmap
  PUT   /api/v1/projects/<id>/roadmap
  GET   /api/v1/projects/<id>/wbs
  POST  /api/v1/projects/<id>/wbs/generate
  PATCH /api/v1/projects/<id>/wbs/items/<item_id>
  GET   /api/v1/projects/<id>/diagrams
  POST  /api/v1/projects/<id>/diagrams/generate
  PATCH /api/v1/diagrams/<id>
  DELETE /api/v1/diagrams/<id>
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import planning_service
from app.services.project_service import get_project_for_user

planning_bp = Blueprint("planning", __name__, url_prefix="/api/v1")
register_error_handlers(planning_bp)


def _project(project_id):
    return get_project_for_user(project_id, g.current_user.id)


# ═══════════════════════════════════════════════════════════════
# Scope
# ═══════════════════════════════════════════════════════════════
@planning_bp.route("/projects/<int:project_id>/scope", methods=["GET"])
@login_required
def get_scope(project_id):
    scope = planning_service.require_scope(_project(project_id))
    return jsonify(scope.to_dict()), 200


@planning_bp.route("/projects/<int:project_id>/scope", methods=["PATCH"])
@login_required
def update_scope(project_id):
    data = request.get_json(silent=True) or {}
    scope = planning_service.update_scope(_project(project_id), g.current_user.id, data)
    return jsonify(scope.to_dict()), 200


@planning_bp.route("/projects/<int:project_id>/scope/regenerate", methods=["POST"])
@login_required
def regenerate_scope(project_id):
    scope = planning_service.regenerate_scope(_project(project_id), g.current_user.id)
    return jsonify(scope.to_dict()), 200


@planning_bp.route("/projects/<int:project_id>/scope/versions", methods=["GET"])
@login_required
def list_versions(project_id):
    return jsonify([v.to_dict() for v in planning_service.list_versions(_project(project_id))]), 200


@planning_bp.route("/projects/<int:project_id>/scope/versions", methods=["POST"])
@login_required
def create_version(project_id):
    data = request.get_json(silent=True) or {}
    version = planning_service.create_version(_project(project_id), g.current_user.id, data.get("change_notes"))
    return jsonify(version.to_dict()), 201


@planning_bp.route("/projects/<int:project_id>/scope/versions/<int:version_id>/restore", methods=["POST"])
@login_required
def restore_version(project_id, version_id):
    scope = planning_service.restore_version(_project(project_id), version_id, g.current_user.id)
    return jsonify(scope.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Roadmap
# ═══════════════════════════════════════════════════════════════
@planning_bp.route("/projects/<int:project_id>/roadmap", methods=["GET"])
@login_required
def get_roadmap(project_id):
    project = _project(project_id)
    if project.roadmap is None:
        return jsonify({"error": "Roadmap not found"}), 404
    return jsonify(project.roadmap.to_dict()), 200


@planning_bp.route("/projects/<int:project_id>/roadmap", methods=["PUT"])
@login_required
def update_roadmap(project_id):
    data = request.get_json(silent=True) or {}
    roadmap = planning_service.update_roadmap(_project(project_id), data)
    return jsonify(roadmap.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# WBS
# ═══════════════════════════════════════════════════════════════
@planning_bp.route("/projects/<int:project_id>/wbs", methods=["GET"])
@login_required
def get_wbs(project_id):
    project = _project(project_id)
    if project.wbs is None:
        return jsonify({"error": "WBS not found"}), 404
    return jsonify(project.wbs.to_dict()), 200


@planning_bp.route("/projects/<int:project_id>/wbs/generate", methods=["POST"])
@login_required
def generate_wbs(project_id):
    wbs = planning_service.generate_wbs(_project(project_id), g.current_user.id)
    return jsonify(wbs.to_dict()), 200


@planning_bp.route("/projects/<int:project_id>/wbs/items/<item_id>", methods=["PATCH"])
@login_required
def toggle_wbs_item(project_id, item_id):
    data = request.get_json(silent=True) or {}
    wbs = planning_service.toggle_wbs_item(_project(project_id), item_id, data.get("completed"))
    return jsonify(wbs.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Diagrams
# ═══════════════════════════════════════════════════════════════
@planning_bp.route("/projects/<int:project_id>/diagrams", methods=["GET"])
@login_required
def list_diagrams(project_id):
    return jsonify([d.to_dict() for d in planning_service.list_diagrams(_project(project_id))]), 200


@planning_bp.route("/projects/<int:project_id>/diagrams/generate", methods=["POST"])
@login_required
def generate_diagram(project_id):
    data = request.get_json(silent=True) or {}
    if not data.get("type"):
        return jsonify({"error": "type is required"}), 400
    diagram = planning_service.generate_diagram(_project(project_id), data["type"], g.current_user.id)
    return jsonify(diagram.to_dict()), 200


@planning_bp.route("/diagrams/<int:diagram_id>", methods=["PATCH"])
@login_required
def update_diagram(diagram_id):
    data = request.get_json(silent=True) or {}
    diagram = planning_service.get_diagram_for_user(diagram_id, g.current_user.id)
    return jsonify(planning_service.update_diagram(diagram, data).to_dict()), 200


@planning_bp.route("/diagrams/<int:diagram_id>", methods=["DELETE"])
@login_required
def delete_diagram(diagram_id):
    diagram = planning_service.get_diagram_for_user(diagram_id, g.current_user.id)
    planning_service.delete_diagram(diagram)
    return jsonify({"message": "Diagram deleted"}), 200
