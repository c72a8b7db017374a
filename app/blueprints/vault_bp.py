"""
Vault Blueprint — owner-only encrypted project credentials.

Endpoints:
  GET    /api/v1/projects/<id>/vault
  POST   /api/v1/projects/<id>/vault
  PATCH  /api/v1/vault/<id>
  DELETE /api/v1/vault/<id>
  GET    /api/v1/vault/<id>/reveal
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import vault_service
from app.services.project_service import get_project_for_user

vault_bp = Blueprint("vault", __name__, url_prefix="/api/v1")
register_error_handlers(vault_bp)


@vault_bp.route("/projects/<int:project_id>/vault", methods=["GET"])
@login_required
def list_items(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    return jsonify(vault_service.list_items(project, g.current_user.id)), 200


@vault_bp.route("/projects/<int:project_id>/vault", methods=["POST"])
@login_required
def create_item(project_id):
    data = request.get_json(silent=True) or {}
    project = get_project_for_user(project_id, g.current_user.id)
    return jsonify(vault_service.create_item(project, g.current_user.id, data)), 201


@vault_bp.route("/vault/<int:item_id>", methods=["PATCH"])
@login_required
def update_item(item_id):
    data = request.get_json(silent=True) or {}
    item = vault_service.get_item_for_owner(item_id, g.current_user.id)
    return jsonify(vault_service.update_item(item, data)), 200


@vault_bp.route("/vault/<int:item_id>", methods=["DELETE"])
@login_required
def delete_item(item_id):
    item = vault_service.get_item_for_owner(item_id, g.current_user.id)
    vault_service.delete_item(item)
    return jsonify({"message": "Vault item deleted"}), 200


@vault_bp.route("/vault/<int:item_id>/reveal", methods=["GET"])
@login_required
def reveal_item(item_id):
    item = vault_service.get_item_for_owner(item_id, g.current_user.id)
    return jsonify(vault_service.reveal_item(item, g.current_user.id)), 200
