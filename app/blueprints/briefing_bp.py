"""
Briefing Blueprint — conversational requirements capture.

Endpoints:
  GET    /api/v1/briefing/templates             (?category=web)
  GET    /api/v1/briefing/templates/<template_id>
  GET    /api/v1/briefing/questions/<category>
  GET    /api/v1/projects/<id>/briefing
  PATCH  /api/v1/projects/<id>/briefing
  POST   /api/v1/projects/<id>/briefing/chat
  POST   /api/v1/projects/<id>/briefing/documents
  POST   /api/v1/projects/<id>/briefing/images
  DELETE /api/v1/projects/<id>/briefing/images/<index>
  POST   /api/v1/projects/<id>/briefing/audio
  DELETE /api/v1/projects/<id>/briefing/audio
  DELETE /api/v1/projects/<id>/briefing/audio/<audio_id>
  GET    /api/v1/projects/<id>/briefing/audio/<audio_id>/transcription
  POST   /api/v1/projects/<id>/briefing/complete
"""

from flask import Blueprint, Response, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import briefing_service, briefing_templates
from app.services.project_service import get_project_for_user, require_manager

briefing_bp = Blueprint("briefing", __name__, url_prefix="/api/v1")
register_error_handlers(briefing_bp)


def _project(project_id):
    return get_project_for_user(project_id, g.current_user.id)


# ═══════════════════════════════════════════════════════════════
# Templates
# ═══════════════════════════════════════════════════════════════
@briefing_bp.route("/briefing/templates", methods=["GET"])
@login_required
def list_templates():
    return jsonify(briefing_templates.list_templates(request.args.get("category"))), 200


@briefing_bp.route("/briefing/templates/<template_id>", methods=["GET"])
@login_required
def get_template(template_id):
    return jsonify(briefing_templates.get_template(template_id)), 200


@briefing_bp.route("/briefing/questions/<category>", methods=["GET"])
@login_required
def category_questions(category):
    return jsonify(briefing_templates.questions_for_category(category)), 200


@briefing_bp.route("/projects/<int:project_id>/briefing", methods=["GET"])
@login_required
def get_briefing(project_id):
    project = _project(project_id)
    if project.briefing is None:
        return jsonify({"error": "Briefing not found"}), 404
    return jsonify(project.briefing.to_dict()), 200


@briefing_bp.route("/projects/<int:project_id>/briefing", methods=["PATCH"])
@login_required
def update_briefing(project_id):
    data = request.get_json(silent=True) or {}
    briefing = briefing_service.update_briefing(_project(project_id), data)
    return jsonify(briefing.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Chat
# ═══════════════════════════════════════════════════════════════
@briefing_bp.route("/projects/<int:project_id>/briefing/chat", methods=["POST"])
@login_required
def chat(project_id):
    data = request.get_json(silent=True) or {}
    if not (data.get("message") or "").strip():
        return jsonify({"error": "message is required"}), 400
    result = briefing_service.chat(_project(project_id), data["message"], g.current_user.id)
    return jsonify({
        "assistant_message": result["message"],
        "extracted_data": result["extracted_data"],
        "is_complete": result["is_complete"],
        "current_field": result["current_field"],
        "briefing": result["briefing"],
    }), 200


# ═══════════════════════════════════════════════════════════════
# Attachments
# ═══════════════════════════════════════════════════════════════
@briefing_bp.route("/projects/<int:project_id>/briefing/documents", methods=["POST"])
@login_required
def add_document(project_id):
    data = request.get_json(silent=True) or {}
    briefing = briefing_service.add_document(_project(project_id), data.get("filename"), data.get("object_path"))
    return jsonify(briefing.to_dict()), 200


@briefing_bp.route("/projects/<int:project_id>/briefing/images", methods=["POST"])
@login_required
def add_image(project_id):
    data = request.get_json(silent=True) or {}
    reference, briefing = briefing_service.add_image_reference(
        _project(project_id), data.get("url"), data.get("description"), g.current_user.id,
    )
    return jsonify({"reference": reference, "briefing": briefing.to_dict()}), 201


@briefing_bp.route("/projects/<int:project_id>/briefing/images/<int:index>", methods=["DELETE"])
@login_required
def remove_image(project_id, index):
    briefing = briefing_service.remove_image_reference(_project(project_id), index)
    return jsonify(briefing.to_dict()), 200


@briefing_bp.route("/projects/<int:project_id>/briefing/audio", methods=["POST"])
@login_required
def upload_audio(project_id):
    """
    Body: { "audio": "<base64>", "filename": "...", "mime_type": "audio/webm", "title": "..." }
    """
    data = request.get_json(silent=True) or {}
    record = briefing_service.upload_audio(
        _project(project_id),
        data.get("audio"),
        data.get("filename"),
        mime_type=data.get("mime_type"),
        title=data.get("title"),
        user_id=g.current_user.id,
    )
    return jsonify(record), 201


@briefing_bp.route("/projects/<int:project_id>/briefing/audio", methods=["DELETE"])
@login_required
def delete_all_audio(project_id):
    removed = briefing_service.delete_audio(_project(project_id))
    return jsonify({"deleted": removed}), 200


@briefing_bp.route("/projects/<int:project_id>/briefing/audio/<audio_id>", methods=["DELETE"])
@login_required
def delete_audio(project_id, audio_id):
    removed = briefing_service.delete_audio(_project(project_id), audio_id)
    return jsonify({"deleted": removed}), 200


@briefing_bp.route("/projects/<int:project_id>/briefing/audio/<audio_id>/transcription", methods=["GET"])
@login_required
def download_transcription(project_id, audio_id):
    filename, text = briefing_service.get_transcription(_project(project_id), audio_id)
    return Response(
        text,
        mimetype="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ═══════════════════════════════════════════════════════════════
# Completion
# ═══════════════════════════════════════════════════════════════
@briefing_bp.route("/projects/<int:project_id>/briefing/complete", methods=["POST"])
@login_required
def complete_briefing(project_id):
    project = _project(project_id)
    require_manager(project, g.current_user.id, "complete the briefing")
    return jsonify(briefing_service.complete_briefing(project, g.current_user.id)), 200
