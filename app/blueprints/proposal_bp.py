"""
Proposal Blueprint — commercial proposals and their downloads.

Endpoints:
  GET  /api/v1/projects/<id>/proposals?status=
  POST /api/v1/projects/<id>/proposals
  GET  /api/v1/proposals/<id>
  PUT  /api/v1/proposals/<id>
  POST /api/v1/proposals/<id>/recalculate
  GET  /api/v1/proposals/<id>/download?format=docx|xlsx

Downloads are rendered in memory; no temp files.
"""

import logging

from flask import Blueprint, g, jsonify, request, send_file

from app.ai.generators import slugify
from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import proposal_service
from app.services.project_service import get_project_for_user
from app.services.proposal_render import DOCX_MIMETYPE, XLSX_MIMETYPE, render_docx, render_xlsx

logger = logging.getLogger(__name__)

proposal_bp = Blueprint("proposal", __name__, url_prefix="/api/v1")
register_error_handlers(proposal_bp)


@proposal_bp.route("/projects/<int:project_id>/proposals", methods=["GET"])
@login_required
def list_proposals(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    items = proposal_service.list_proposals(project, request.args.get("status"))
    return jsonify([p.to_dict() for p in items]), 200


@proposal_bp.route("/projects/<int:project_id>/proposals", methods=["POST"])
@login_required
def create_proposal(project_id):
    """
    Body (all optional): { "hourly_rate": 150, "start_date": "2025-01-06" }
    """
    data = request.get_json(silent=True) or {}
    project = get_project_for_user(project_id, g.current_user.id)
    proposal = proposal_service.create_proposal(project, g.current_user.id, data)
    return jsonify(proposal.to_dict()), 201


@proposal_bp.route("/proposals/<int:proposal_id>", methods=["GET"])
@login_required
def get_proposal(proposal_id):
    proposal = proposal_service.get_proposal_for_user(proposal_id, g.current_user.id)
    return jsonify(proposal.to_dict()), 200


@proposal_bp.route("/proposals/<int:proposal_id>", methods=["PUT"])
@login_required
def update_proposal(proposal_id):
    data = request.get_json(silent=True) or {}
    proposal = proposal_service.get_proposal_for_user(proposal_id, g.current_user.id)
    return jsonify(proposal_service.update_proposal(proposal, data).to_dict()), 200


@proposal_bp.route("/proposals/<int:proposal_id>/recalculate", methods=["POST"])
@login_required
def recalculate_proposal(proposal_id):
    proposal = proposal_service.get_proposal_for_user(proposal_id, g.current_user.id)
    return jsonify(proposal_service.recalculate_proposal(proposal).to_dict()), 200


@proposal_bp.route("/proposals/<int:proposal_id>/download", methods=["GET"])
@login_required
def download_proposal(proposal_id):
    fmt = request.args.get("format", "docx").lower()
    if fmt not in ("docx", "xlsx"):
        return jsonify({"error": "Unsupported format. Supported values: docx, xlsx."}), 400

    proposal = proposal_service.get_proposal_for_user(proposal_id, g.current_user.id)
    project = proposal.project
    base = f"proposal-{slugify(project.name) or project.id}-v{proposal.version}"
    if fmt == "xlsx":
        buf, mimetype = render_xlsx(proposal, project), XLSX_MIMETYPE
    else:
        buf, mimetype = render_docx(proposal, project), DOCX_MIMETYPE

    logger.info("Proposal %s downloaded as %s by user %s", proposal.id, fmt, g.current_user.id)
    return send_file(buf, mimetype=mimetype, as_attachment=True, download_name=f"{base}.{fmt}")
