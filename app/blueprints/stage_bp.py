"""
Stage Blueprint — project stages, tasks, approvals and the caller's work.

Endpoints:
  GET    /api/v1/projects/<id>/stages
  POST   /api/v1/projects/<id>/stages
  PUT    /api/v1/stages/<id>
  DELETE /api/v1/stages/<id>
  POST   /api/v1/stages/<id>/approve
  PATCH  /api/v1/stages/<id>/progress
  POST   /api/v1/stages/<id>/tasks
  POST   /api/v1/stages/<id>/tasks/generate
  PUT    /api/v1/tasks/<id>
  DELETE /api/v1/tasks/<id>
  GET    /api/v1/my-tasks
"""

from flask import Blueprint, g, jsonify, request

from app.auth import login_required
from app.blueprints import register_error_handlers
from app.services import stage_service
from app.services.project_service import get_project_for_user

stage_bp = Blueprint("stage", __name__, url_prefix="/api/v1")
register_error_handlers(stage_bp)


# ═══════════════════════════════════════════════════════════════
# Stages
# ═══════════════════════════════════════════════════════════════
@stage_bp.route("/projects/<int:project_id>/stages", methods=["GET"])
@login_required
def list_stages(project_id):
    project = get_project_for_user(project_id, g.current_user.id)
    stages = stage_service.list_stages(project)
    return jsonify([s.to_dict(include_tasks=True) for s in stages]), 200


@stage_bp.route("/projects/<int:project_id>/stages", methods=["POST"])
@login_required
def create_stage(project_id):
    data = request.get_json(silent=True) or {}
    project = get_project_for_user(project_id, g.current_user.id)
    stage = stage_service.create_stage(project, g.current_user.id, data)
    return jsonify(stage.to_dict(include_tasks=True)), 201


@stage_bp.route("/stages/<int:stage_id>", methods=["PUT"])
@login_required
def update_stage(stage_id):
    data = request.get_json(silent=True) or {}
    stage = stage_service.get_stage_for_user(stage_id, g.current_user.id)
    stage = stage_service.update_stage(stage, g.current_user.id, data)
    return jsonify(stage.to_dict(include_tasks=True)), 200


@stage_bp.route("/stages/<int:stage_id>", methods=["DELETE"])
@login_required
def delete_stage(stage_id):
    stage = stage_service.get_stage_for_user(stage_id, g.current_user.id)
    stage_service.delete_stage(stage, g.current_user.id)
    return jsonify({"message": "Stage deleted"}), 200


@stage_bp.route("/stages/<int:stage_id>/approve", methods=["POST"])
@login_required
def approve_stage(stage_id):
    """
    Body: { "approved": true | false, "comment": "..." }
    """
    data = request.get_json(silent=True) or {}
    stage = stage_service.get_stage_for_user(stage_id, g.current_user.id)
    stage = stage_service.approve_stage(stage, g.current_user.id, data.get("approved"), data.get("comment"))
    return jsonify(stage.to_dict(include_tasks=True)), 200


@stage_bp.route("/stages/<int:stage_id>/progress", methods=["PATCH"])
@login_required
def update_progress(stage_id):
    data = request.get_json(silent=True) or {}
    stage = stage_service.get_stage_for_user(stage_id, g.current_user.id)
    stage = stage_service.update_stage_progress(stage, g.current_user.id, data)
    return jsonify(stage.to_dict(include_tasks=True)), 200


# ═══════════════════════════════════════════════════════════════
# Tasks
# ═══════════════════════════════════════════════════════════════
@stage_bp.route("/stages/<int:stage_id>/tasks", methods=["POST"])
@login_required
def create_task(stage_id):
    data = request.get_json(silent=True) or {}
    stage = stage_service.get_stage_for_user(stage_id, g.current_user.id)
    task = stage_service.create_task(stage, g.current_user.id, data)
    return jsonify(task.to_dict()), 201


@stage_bp.route("/stages/<int:stage_id>/tasks/generate", methods=["POST"])
@login_required
def generate_tasks(stage_id):
    stage = stage_service.get_stage_for_user(stage_id, g.current_user.id)
    tasks = stage_service.generate_tasks(stage, g.current_user.id)
    return jsonify([t.to_dict() for t in tasks]), 201


@stage_bp.route("/tasks/<int:task_id>", methods=["PUT"])
@login_required
def update_task(task_id):
    data = request.get_json(silent=True) or {}
    task = stage_service.get_task_for_user(task_id, g.current_user.id)
    task = stage_service.update_task(task, g.current_user.id, data)
    return jsonify(task.to_dict()), 200


@stage_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    task = stage_service.get_task_for_user(task_id, g.current_user.id)
    stage_service.delete_task(task, g.current_user.id)
    return jsonify({"message": "Task deleted"}), 200


@stage_bp.route("/my-tasks", methods=["GET"])
@login_required
def my_tasks():
    return jsonify(stage_service.list_my_tasks(g.current_user.id)), 200
