"""
Stage Service — kanban stages, their weighted tasks and approvals.

Functions:
    - create_default_stages:  Five standard stages with starter tasks
    - list_stages / create_stage / update_stage / delete_stage
    - approve_stage:          Owner approves or rejects a finished stage
    - generate_tasks:         LLM task list for an empty stage
    - create_task / update_task / delete_task
    - update_stage_progress:  Manual progress for stages without tasks
    - list_my_tasks:          Stages across projects with the caller's permissions

Edit rules:
    owner / manager   → any stage of the project
    contributor       → only stages they are assigned to
Stage progress, when the stage has tasks, is the weighted share of completed
tasks; every change rolls up into the project via recalculate_project.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from app.ai import generators
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models import db
from app.models.planning import STAGE_TYPES, TASK_STATUSES, Stage, Task
from app.models.project import Project, ProjectMember, StageAssignment
from app.services.activity_service import log_activity
from app.services.project_service import (
    get_project_for_user,
    project_role,
    recalculate_project,
    require_manager,
    require_owner,
    visible_project_ids,
)
from app.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_STAGES = (
    {"name": "Planning", "type": "planning", "weight": 15, "order": 1},
    {"name": "Design", "type": "design", "weight": 20, "order": 2},
    {"name": "Development", "type": "development", "weight": 35, "order": 3},
    {"name": "Testing", "type": "testing", "weight": 20, "order": 4},
    {"name": "Deploy", "type": "deploy", "weight": 10, "order": 5},
)

DEFAULT_TASKS = {
    "planning": [
        "Define functional requirements",
        "Define non-functional requirements",
        "Design the system architecture",
        "Build the detailed schedule",
        "Identify risks and mitigations",
    ],
    "design": [
        "Create wireframes",
        "Define the design system",
        "Build high-fidelity prototypes",
        "Design reusable components",
        "Validate the UX with the client",
    ],
    "development": [
        "Set up the development environment",
        "Implement core features",
        "Build API integrations",
        "Write unit tests",
        "Run code review",
    ],
    "testing": [
        "Write the test plan",
        "Run functional tests",
        "Run integration tests",
        "Run performance tests",
        "Fix reported bugs",
    ],
    "deploy": [
        "Configure the production environment",
        "Deploy to staging",
        "Validate on staging",
        "Deploy to production",
        "Monitor after deploy",
    ],
}

# Statuses a stage may be moved to directly; approved/rejected go through approve_stage.
_EDITABLE_STATUSES = ("pending", "in_progress", "completed")


def _utcnow():
    return datetime.now(timezone.utc)


def _int_field(data, field, low=None, high=None):
    try:
        value = int(data[field])
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    if (low is not None and value < low) or (high is not None and value > high):
        raise ValidationError(f"{field} must be between {low} and {high}", details={field: "out_of_range"})
    return value


# ═══════════════════════════════════════════════════════════════
# Access
# ═══════════════════════════════════════════════════════════════
def is_assigned(stage, user_id):
    stmt = (
        select(StageAssignment.id)
        .join(ProjectMember, StageAssignment.member_id == ProjectMember.id)
        .where(
            StageAssignment.stage_id == stage.id,
            ProjectMember.user_id == user_id,
            ProjectMember.status == "active",
        )
    )
    return db.session.execute(stmt).first() is not None


def can_edit_stage(stage, user_id):
    role = project_role(stage.project, user_id)
    if role in ("owner", "manager"):
        return True
    return role == "contributor" and is_assigned(stage, user_id)


def require_stage_editor(stage, user_id):
    if not can_edit_stage(stage, user_id):
        raise PermissionDeniedError("You are not assigned to this stage")


def get_stage_for_user(stage_id, user_id):
    stage = db.session.get(Stage, stage_id)
    if not stage:
        raise NotFoundError(resource="Stage", resource_id=stage_id)
    get_project_for_user(stage.project_id, user_id)
    return stage


def get_task_for_user(task_id, user_id):
    task = db.session.get(Task, task_id)
    if not task:
        raise NotFoundError(resource="Task", resource_id=task_id)
    get_project_for_user(task.stage.project_id, user_id)
    return task


# ═══════════════════════════════════════════════════════════════
# Stages
# ═══════════════════════════════════════════════════════════════
def create_default_stages(project):
    """Add the standard stages the project is missing (flush only)."""
    existing = {s.type for s in project.stages}
    created = []
    for defaults in DEFAULT_STAGES:
        if defaults["type"] in existing:
            continue
        stage = Stage(project_id=project.id, status="pending", progress=0, approval_history=[], **defaults)
        stage.tasks = [Task(title=title, weight=1, status="pending") for title in DEFAULT_TASKS[defaults["type"]]]
        db.session.add(stage)
        created.append(stage)
    db.session.flush()
    db.session.refresh(project)
    return created


def list_stages(project):
    return sorted(project.stages, key=lambda s: s.order)


def create_stage(project, user_id, data):
    require_manager(project, user_id, "add stages")
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    stage_type = data.get("type")
    if stage_type not in STAGE_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(STAGE_TYPES)}", details={"type": "invalid"})
    weight = _int_field(data, "weight", 0, 100) if "weight" in data else 20
    if "order" in data:
        order = _int_field(data, "order", 0)
    else:
        current = db.session.execute(
            select(func.max(Stage.order)).where(Stage.project_id == project.id)
        ).scalar()
        order = (current or 0) + 1

    stage = Stage(
        project_id=project.id, name=name[:100], type=stage_type, weight=weight,
        order=order, status="pending", progress=0, approval_history=[],
    )
    db.session.add(stage)
    db.session.flush()
    db.session.refresh(project)
    recalculate_project(project, user_id)
    db.session.commit()
    logger.info("Stage created id=%s project=%s", stage.id, project.id)
    return stage


def update_stage(stage, user_id, data):
    project = stage.project
    require_stage_editor(stage, user_id)
    structural = {"name", "type", "weight", "order"} & set(data)
    if structural:
        require_manager(project, user_id, "edit stage settings")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        stage.name = name[:100]
    if "type" in data:
        if data["type"] not in STAGE_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(STAGE_TYPES)}")
        stage.type = data["type"]
    if "weight" in data:
        stage.weight = _int_field(data, "weight", 0, 100)
    if "order" in data:
        stage.order = _int_field(data, "order", 0)
    if "status" in data:
        if data["status"] not in _EDITABLE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(_EDITABLE_STATUSES)}; use the approve endpoint otherwise"
            )
        stage.status = data["status"]
    if "progress" in data:
        _set_progress(stage, _int_field(data, "progress", 0, 100), user_id)

    recalculate_project(project, user_id)
    db.session.commit()
    return stage


def delete_stage(stage, user_id):
    project = stage.project
    require_manager(project, user_id, "delete stages")
    db.session.delete(stage)
    db.session.flush()
    db.session.refresh(project)
    recalculate_project(project, user_id)
    db.session.commit()


def approve_stage(stage, user_id, approved, comment=None):
    """Record an approval decision; only the project owner may decide."""
    require_owner(stage.project, user_id, "approve stages")
    if not isinstance(approved, bool):
        raise ValidationError("approved must be a boolean", details={"approved": "invalid"})
    if approved and stage.status == "approved":
        raise ValidationError("Stage is already approved")
    if approved and (stage.progress or 0) < 100:
        raise ValidationError("Stage must reach 100% progress before approval")

    now = _utcnow()
    previous_status = stage.status
    stage.approval_history = list(stage.approval_history or []) + [{
        "action": "approved" if approved else "rejected",
        "user_id": user_id,
        "timestamp": now.isoformat(),
        "comment": comment,
    }]
    if approved:
        stage.status = "approved"
        stage.approved_by = user_id
        stage.approved_at = now
    else:
        stage.status = "rejected"
        stage.approved_by = None
        stage.approved_at = None

    log_activity(
        stage.project_id, "stage_approval", user_id=user_id, stage_id=stage.id,
        previous_status=previous_status, new_status=stage.status,
        description=f"Stage {stage.name} {stage.status}", notes=comment,
    )
    recalculate_project(stage.project, user_id)
    db.session.commit()
    logger.info("Stage %s %s by user %s", stage.id, stage.status, user_id)
    return stage


# ═══════════════════════════════════════════════════════════════
# Progress
# ═══════════════════════════════════════════════════════════════
def _set_progress(stage, progress, user_id):
    previous = stage.progress or 0
    stage.progress = progress
    if stage.status != "approved":
        if 0 < progress < 100:
            stage.status = "in_progress"
        elif progress == 100:
            stage.status = "completed"
        elif stage.status == "in_progress":
            stage.status = "pending"
    if previous != progress:
        log_activity(
            stage.project_id, "progress_update", user_id=user_id, stage_id=stage.id,
            previous_progress=previous, new_progress=progress,
            description=f"{stage.name} progress {previous}% → {progress}%",
        )


def recompute_stage_progress(stage, user_id=None):
    """Weighted share of completed tasks; stages without tasks keep their value."""
    tasks = list(stage.tasks)
    if not tasks:
        return stage
    total = sum(t.weight or 0 for t in tasks)
    done = sum(t.weight or 0 for t in tasks if t.status == "completed")
    progress = round(done / total * 100) if total else 0
    _set_progress(stage, progress, user_id)
    return stage


def update_stage_progress(stage, user_id, data):
    require_stage_editor(stage, user_id)
    if "progress" not in data:
        raise ValidationError("progress is required", details={"progress": "required"})
    _set_progress(stage, _int_field(data, "progress", 0, 100), user_id)
    if data.get("notes"):
        log_activity(stage.project_id, "progress_update", user_id=user_id, stage_id=stage.id, notes=data["notes"])
    recalculate_project(stage.project, user_id)
    db.session.commit()
    return stage


# ═══════════════════════════════════════════════════════════════
# Tasks
# ═══════════════════════════════════════════════════════════════
def _after_task_change(stage, user_id):
    db.session.flush()
    db.session.refresh(stage)
    recompute_stage_progress(stage, user_id)
    recalculate_project(stage.project, user_id)
    db.session.commit()


def _apply_task_fields(task, data):
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required", details={"title": "required"})
        task.title = title[:255]
    if "description" in data:
        task.description = data["description"]
    if "weight" in data:
        task.weight = _int_field(data, "weight", 1, 100)
    if "status" in data:
        if data["status"] not in TASK_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(TASK_STATUSES)}")
        task.status = data["status"]
    if "assignee" in data:
        task.assignee = data["assignee"]
    if "due_date" in data:
        task.due_date = parse_datetime(data["due_date"])


def create_task(stage, user_id, data):
    require_stage_editor(stage, user_id)
    if not (data.get("title") or "").strip():
        raise ValidationError("title is required", details={"title": "required"})
    task = Task(stage_id=stage.id, weight=1, status="pending")
    _apply_task_fields(task, data)
    db.session.add(task)
    _after_task_change(stage, user_id)
    return task


def update_task(task, user_id, data):
    stage = task.stage
    require_stage_editor(stage, user_id)
    _apply_task_fields(task, data)
    _after_task_change(stage, user_id)
    return task


def delete_task(task, user_id):
    stage = task.stage
    require_stage_editor(stage, user_id)
    db.session.delete(task)
    _after_task_change(stage, user_id)


def generate_tasks(stage, user_id):
    """Fill an empty stage with LLM-suggested tasks."""
    require_stage_editor(stage, user_id)
    if stage.tasks:
        raise ValidationError("Stage already has tasks")
    project = stage.project
    suggestions = generators.generate_stage_tasks(stage, project, project.briefing, user_id=user_id)
    created = []
    for item in suggestions:
        task = Task(
            stage_id=stage.id,
            title=str(item.get("title"))[:255],
            description=item.get("description"),
            weight=item.get("weight") or 1,
            status="pending",
        )
        db.session.add(task)
        created.append(task)
    _after_task_change(stage, user_id)
    logger.info("Generated %d tasks for stage %s", len(created), stage.id)
    return created


# ═══════════════════════════════════════════════════════════════
# My tasks
# ═══════════════════════════════════════════════════════════════
def list_my_tasks(user_id):
    """Every stage the caller can see, with their role and edit flags."""
    ids = visible_project_ids(user_id)
    if not ids:
        return []
    projects = db.session.execute(
        select(Project).where(Project.id.in_(ids)).order_by(Project.created_at.desc(), Project.id.desc())
    ).scalars().all()

    result = []
    for project in projects:
        role = project_role(project, user_id)
        for stage in list_stages(project):
            assigned = is_assigned(stage, user_id)
            d = stage.to_dict(include_tasks=True)
            d.update({
                "project": {"id": project.id, "name": project.name, "status": project.status},
                "is_owner": role == "owner",
                "is_assigned": assigned,
                "member_role": role,
                "can_edit": role in ("owner", "manager") or (role == "contributor" and assigned),
            })
            result.append(d)
    return result
