"""
Agent Blueprint — specialist project reviews and the orchestrator.

Endpoints:
  POST /api/v1/projects/<id>/agents/<type>/run
  GET  /api/v1/projects/<id>/agents/analyses?type=
  POST /api/v1/projects/<id>/agents/orchestrate
  GET  /api/v1/projects/<id>/agents/sessions
  POST /api/v1/agents/analyses/<id>/apply
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import agent_service
from app.services.project_service import get_project_for_user

agent_bp = Blueprint("agent", __name__, url_prefix="/api/v1")
register_error_handlers(agent_bp)


@agent_bp.route("/projects/<int:project_id>/agents/<agent_type>/run", methods=["POST"])
@login_required
def run_agent(project_id, agent_type):
    project = get_project_for_user(project_id, g.current_user.id)
    analysis = agent_service.run_agent(project, agent_type, g.current_user.id)
    return jsonify(analysis.to_dict()), 201


@agent_bp.route("/projects/<int:project_id>/agents/analyses", methods=["GET"])
@login_required
def list_analyses(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    items = agent_service.list_analyses(project, request.args.get("type"))
    return jsonify([a.to_dict() for a in items]), 200


@agent_bp.route("/projects/<int:project_id>/agents/orchestrate", methods=["POST"])
@login_required
def orchestrate(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    session = agent_service.orchestrate(project, g.current_user.id)
    return jsonify(session.to_dict(include_analyses=True)), 201


@agent_bp.route("/projects/<int:project_id>/agents/sessions", methods=["GET"])
@login_required
def list_sessions(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    return jsonify([s.to_dict() for s in agent_service.list_sessions(project)]), 200


@agent_bp.route("/agents/analyses/<int:analysis_id>/apply", methods=["POST"])
@login_required
def apply_analysis(analysis_id):
    analysis = agent_service.apply_analysis(analysis_id, g.current_user.id)
    return jsonify(analysis.to_dict()), 200
