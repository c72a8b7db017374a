"""
Client Blueprint — the caller's clients and their feedback.

Endpoints:
  GET    /api/v1/clients?search=
  POST   /api/v1/clients
  GET    /api/v1/clients/<id>
  PUT    /api/v1/clients/<id>
  DELETE /api/v1/clients/<id>
  GET    /api/v1/clients/<id>/feedbacks?status=
  GET    /api/v1/projects/<id>/feedbacks?status=
  PATCH  /api/v1/feedbacks/<id>
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import client_service
from app.services.project_service import get_project_for_user

client_bp = Blueprint("client", __name__, url_prefix="/api/v1")
register_error_handlers(client_bp)


@client_bp.route("/clients", methods=["GET"])
@login_required
def list_clients():
    clients = client_service.list_clients(g.current_user.id, request.args.get("search"))
    return jsonify([c.to_dict() for c in clients]), 200


@client_bp.route("/clients", methods=["POST"])
@login_required
def create_client():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return jsonify({"error": "name is required"}), 400
    client = client_service.create_client(g.current_user.id, data)
    return jsonify(client.to_dict()), 201


@client_bp.route("/clients/<int:client_id>", methods=["GET"])
@login_required
def get_client(client_id):
    return jsonify(client_service.get_client(g.current_user.id, client_id).to_dict()), 200


@client_bp.route("/clients/<int:client_id>", methods=["PUT"])
@login_required
def update_client(client_id):
    data = request.get_json(silent=True) or {}
    client = client_service.update_client(g.current_user.id, client_id, data)
    return jsonify(client.to_dict()), 200


@client_bp.route("/clients/<int:client_id>", methods=["DELETE"])
@login_required
def delete_client(client_id):
    client_service.delete_client(g.current_user.id, client_id)
    return jsonify({"message": "Client deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Feedback
# ═══════════════════════════════════════════════════════════════
@client_bp.route("/clients/<int:client_id>/feedbacks", methods=["GET"])
@login_required
def client_feedbacks(client_id):
    items = client_service.list_client_feedbacks(g.current_user.id, client_id, request.args.get("status"))
    return jsonify([f.to_dict() for f in items]), 200


@client_bp.route("/projects/<int:project_id>/feedbacks", methods=["GET"])
@login_required
def project_feedbacks(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    items = client_service.list_project_feedbacks(project.id, request.args.get("status"))
    return jsonify([f.to_dict() for f in items]), 200


@client_bp.route("/feedbacks/<int:feedback_id>", methods=["PATCH"])
@login_required
def review_feedback(feedback_id):
    data = request.get_json(silent=True) or {}
    feedback = client_service.review_feedback(g.current_user.id, feedback_id, data)
    return jsonify(feedback.to_dict()), 200
