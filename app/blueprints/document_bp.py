"""
Document Blueprint — checklists, generated documents and the AI command.

Endpoints:
  GET    /api/v1/projects/<id>/checklists?type=
  PUT    /api/v1/checklists/<id>
  GET    /api/v1/projects/<id>/documents?type=
  POST   /api/v1/projects/<id>/documents/generate
  DELETE /api/v1/projects/<id>/documents/<doc_id>
  GET    /api/v1/projects/<id>/ai-command
  POST   /api/v1/projects/<id>/ai-command/regenerate
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import document_service
from app.services.project_service import get_project_for_user
from app.utils.errors import E, api_error

document_bp = Blueprint("document", __name__, url_prefix="/api/v1")
register_error_handlers(document_bp)


def _project(project_id):
    return get_project_for_user(project_id, g.current_user.id)


# ═══════════════════════════════════════════════════════════════
# Checklists
# ═══════════════════════════════════════════════════════════════
@document_bp.route("/projects/<int:project_id>/checklists", methods=["GET"])
@login_required
def list_checklists(project_id):
    items = document_service.list_checklists(_project(project_id), request.args.get("type"))
    return jsonify([c.to_dict() for c in items]), 200


@document_bp.route("/checklists/<int:checklist_id>", methods=["PUT"])
@login_required
def update_checklist(checklist_id):
    data = request.get_json(silent=True) or {}
    if "items" not in data:
        return api_error(E.VALIDATION_REQUIRED, "items is required")
    checklist = document_service.get_checklist_for_user(checklist_id, g.current_user.id)
    checklist = document_service.update_checklist(checklist, data["items"])
    return jsonify(checklist.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Documents
# ═══════════════════════════════════════════════════════════════
@document_bp.route("/projects/<int:project_id>/documents", methods=["GET"])
@login_required
def list_documents(project_id):
    items = document_service.list_documents(_project(project_id), request.args.get("type"))
    return jsonify([d.to_dict() for d in items]), 200


@document_bp.route("/projects/<int:project_id>/documents/generate", methods=["POST"])
@login_required
def generate_document(project_id):
    data = request.get_json(silent=True) or {}
    if not data.get("type"):
        return api_error(E.VALIDATION_REQUIRED, "type is required")
    document = document_service.generate_document(_project(project_id), data["type"], g.current_user.id)
    return jsonify(document.to_dict()), 200


@document_bp.route("/projects/<int:project_id>/documents/<int:document_id>", methods=["DELETE"])
@login_required
def delete_document(project_id, document_id):
    document_service.delete_document(_project(project_id), document_id)
    return jsonify({"message": "Document deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# AI command
# ═══════════════════════════════════════════════════════════════
@document_bp.route("/projects/<int:project_id>/ai-command", methods=["GET"])
@login_required
def get_ai_command(project_id):
    command = document_service.get_ai_command(_project(project_id))
    if command is None:
        return api_error(E.NOT_FOUND, "AI command not found")
    return jsonify(command.to_dict()), 200


@document_bp.route("/projects/<int:project_id>/ai-command/regenerate", methods=["POST"])
@login_required
def regenerate_ai_command(project_id):
    data = request.get_json(silent=True) or {}
    command = document_service.regenerate_ai_command(
        _project(project_id), g.current_user.id, data.get("target_platform") or "cursor",
    )
    return jsonify(command.to_dict()), 200
