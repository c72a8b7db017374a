"""
Export Blueprint — generated code scaffolds and git host pushes.

Endpoints:
  GET    /api/v1/exports/options
  GET    /api/v1/projects/<id>/exports?status=
  POST   /api/v1/projects/<id>/exports
  GET    /api/v1/exports/<id>
  DELETE /api/v1/exports/<id>
  GET    /api/v1/exports/<id>/download
  POST   /api/v1/exports/<id>/push/github
  POST   /api/v1/exports/<id>/push/gitlab

Archives are streamed from object storage; no temp files.
"""

import io
import logging

from flask import Blueprint, g, jsonify, request, send_file

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import export_service
from app.services.project_service import get_project_for_user
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1")
register_error_handlers(export_bp)


@export_bp.route("/exports/options", methods=["GET"])
@login_required
def export_options():
    return jsonify(export_service.export_options()), 200


@export_bp.route("/projects/<int:project_id>/exports", methods=["GET"])
@login_required
def list_exports(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    items = export_service.list_exports(project, request.args.get("status"))
    return jsonify([e.to_dict() for e in items]), 200


@export_bp.route("/projects/<int:project_id>/exports", methods=["POST"])
@login_required
def create_export(project_id):
    """
    Body: { "stack": "react-vite", "target_platform": "zip" }

    Generation failures come back as 201 with status "failed" and an
    error_message; only invalid input is a 4xx.
    """
    data = request.get_json(silent=True) or {}
    project = get_project_for_user(project_id, g.current_user.id)
    export = export_service.create_export(project, g.current_user.id, data)
    return jsonify(export.to_dict(include_files=True)), 201


@export_bp.route("/exports/<int:export_id>", methods=["GET"])
@login_required
def get_export(export_id):
    export = export_service.get_export_for_user(export_id, g.current_user.id)
    return jsonify(export.to_dict(include_files=True)), 200


@export_bp.route("/exports/<int:export_id>", methods=["DELETE"])
@login_required
def delete_export(export_id):
    export = export_service.get_export_for_user(export_id, g.current_user.id)
    export_service.delete_export(export)
    return jsonify({"message": "Export deleted"}), 200


@export_bp.route("/exports/<int:export_id>/download", methods=["GET"])
@login_required
def download_export(export_id):
    export = export_service.get_export_for_user(export_id, g.current_user.id)
    filename, data = export_service.read_archive(export)
    return send_file(io.BytesIO(data), mimetype="application/zip", as_attachment=True, download_name=filename)


@export_bp.route("/exports/<int:export_id>/push/<provider>", methods=["POST"])
@login_required
def push_export(export_id, provider):
    """
    Body: { "token": "...", "repo_name": "...", "private": false, "description": "..." }

    Returns 200 with the repository URL, or 502 with the host's error.
    """
    data = request.get_json(silent=True) or {}
    export = export_service.get_export_for_user(export_id, g.current_user.id)
    ok, result = export_service.push_export(export, provider, data)
    if not ok:
        logger.warning("Push of export %s to %s failed: %s", export.id, provider, result.get("error"))
        return api_error(E.UPSTREAM, result.get("error") or f"{provider} push failed", details=result)
    return jsonify({"success": True, "url": result.get("url"), "details": result,
                    "export": export.to_dict()}), 200
