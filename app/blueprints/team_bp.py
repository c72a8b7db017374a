"""
Team Blueprint — project members, invitations and stage assignments.

Endpoints:
  GET    /api/v1/projects/<id>/members
  POST   /api/v1/projects/<id>/members
  PUT    /api/v1/members/<id>
  DELETE /api/v1/members/<id>
  GET    /api/v1/invites/<token>           (public)
  POST   /api/v1/invites/<token>/accept    (public)
  GET    /api/v1/projects/<id>/assignments
  GET    /api/v1/stages/<id>/assignments
  POST   /api/v1/stages/<id>/assignments
  DELETE /api/v1/assignments/<id>
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import team_service
from app.services.project_service import get_project_for_user
from app.services.stage_service import get_stage_for_user

team_bp = Blueprint("team", __name__, url_prefix="/api/v1")
register_error_handlers(team_bp)


# ═══════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════
@team_bp.route("/projects/<int:project_id>/members", methods=["GET"])
@login_required
def list_members(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    return jsonify([m.to_dict() for m in team_service.list_members(project)]), 200


@team_bp.route("/projects/<int:project_id>/members", methods=["POST"])
@login_required
def add_member(project_id):
    """
    Body: { "email": "...", "name": "...", "role": "contributor", "specialty": "...", "password": "optional" }
    """
    data = request.get_json(silent=True) or {}
    if not (data.get("email") or "").strip():
        return jsonify({"error": "email is required"}), 400
    project = get_project_for_user(project_id, g.current_user.id)
    member, invite = team_service.add_member(project, g.current_user, data)
    body = member.to_dict()
    body["invite_sent"] = invite is not None
    return jsonify(body), 201


@team_bp.route("/members/<int:member_id>", methods=["PUT"])
@login_required
def update_member(member_id):
    data = request.get_json(silent=True) or {}
    member = team_service.get_member_for_user(member_id, g.current_user.id)
    member = team_service.update_member(member, g.current_user.id, data)
    return jsonify(member.to_dict()), 200


@team_bp.route("/members/<int:member_id>", methods=["DELETE"])
@login_required
def remove_member(member_id):
    member = team_service.get_member_for_user(member_id, g.current_user.id)
    team_service.remove_member(member, g.current_user.id)
    return jsonify({"message": "Member removed"}), 200


# ═══════════════════════════════════════════════════════════════
# Invites (no login: the token is the credential)
# ═══════════════════════════════════════════════════════════════
@team_bp.route("/invites/<token>", methods=["GET"])
def get_invite(token):
    invite = team_service.get_pending_invite(token)
    return jsonify(team_service.describe_invite(invite)), 200


@team_bp.route("/invites/<token>/accept", methods=["POST"])
def accept_invite(token):
    data = request.get_json(silent=True) or {}
    user, member = team_service.accept_invite(token, data)
    return jsonify({"user": user.to_dict(), "member": member.to_dict()}), 200


# ═══════════════════════════════════════════════════════════════
# Assignments
# ═══════════════════════════════════════════════════════════════
@team_bp.route("/projects/<int:project_id>/assignments", methods=["GET"])
@login_required
def project_assignments(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    return jsonify(team_service.list_project_assignments(project)), 200


@team_bp.route("/stages/<int:stage_id>/assignments", methods=["GET"])
@login_required
def stage_assignments(stage_id):
    stage = get_stage_for_user(stage_id, g.current_user.id)
    return jsonify(team_service.list_assignments(stage)), 200


@team_bp.route("/stages/<int:stage_id>/assignments", methods=["POST"])
@login_required
def create_assignment(stage_id):
    data = request.get_json(silent=True) or {}
    stage = get_stage_for_user(stage_id, g.current_user.id)
    assignment = team_service.create_assignment(stage, g.current_user.id, data)
    return jsonify(assignment.to_dict(include_member=True)), 201


@team_bp.route("/assignments/<int:assignment_id>", methods=["DELETE"])
@login_required
def delete_assignment(assignment_id):
    team_service.delete_assignment(assignment_id, g.current_user.id)
    return jsonify({"message": "Assignment removed"}), 200
