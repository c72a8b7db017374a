"""Project service: CRUD, per-project access checks and progress roll-up.

Access model:
    owner                → the user who created the project (projects.user_id)
    manager/contributor  → an *active* ProjectMember row linked to the user
A project the caller cannot see is reported as NotFoundError (404); a visible
project where the caller's role is too low raises PermissionDeniedError (403).
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models import db
from app.models.client import Client
from app.models.planning import Briefing
from app.models.project import METHODOLOGIES, PROJECT_STATUSES, Project, ProjectMember
from app.services.activity_service import log_activity
from app.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


# ── Access helpers ───────────────────────────────────────────────────────────


def active_membership(project_id: int, user_id: int) -> ProjectMember | None:
    return ProjectMember.query.filter_by(project_id=project_id, user_id=user_id, status="active").first()


def visible_project_ids(user_id: int) -> list[int]:
    """Projects the user owns plus projects where they are an active member."""
    member_ids = select(ProjectMember.project_id).where(
        ProjectMember.user_id == user_id, ProjectMember.status == "active"
    )
    stmt = select(Project.id).where(or_(Project.user_id == user_id, Project.id.in_(member_ids)))
    return list(db.session.execute(stmt).scalars().all())


def get_project_for_user(project_id: int, user_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if project.user_id != user_id and not active_membership(project_id, user_id):
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def project_role(project: Project, user_id: int) -> str | None:
    """'owner', the member role, or None when the user has no access."""
    if project.user_id == user_id:
        return "owner"
    member = active_membership(project.id, user_id)
    return member.role if member else None


def require_owner(project: Project, user_id: int, action: str = "perform this action") -> None:
    if project.user_id != user_id:
        raise PermissionDeniedError(f"Only the project owner can {action}")


def require_manager(project: Project, user_id: int, action: str = "perform this action") -> None:
    if project_role(project, user_id) not in ("owner", "manager"):
        raise PermissionDeniedError(f"Only the project owner or a manager can {action}")


# ── CRUD ─────────────────────────────────────────────────────────────────────


def list_projects(user_id: int, filters: dict | None = None) -> list[Project]:
    filters = filters or {}
    ids = visible_project_ids(user_id)
    if not ids:
        return []
    stmt = select(Project).where(Project.id.in_(ids))
    if filters.get("status"):
        stmt = stmt.where(Project.status == filters["status"])
    if filters.get("client_id"):
        try:
            client_id = int(filters["client_id"])
        except (TypeError, ValueError):
            raise ValidationError("client_id must be an integer", details={"client_id": "invalid"})
        stmt = stmt.where(Project.client_id == client_id)
    if filters.get("category"):
        stmt = stmt.where(Project.category == filters["category"])
    if str(filters.get("favorite", "")).lower() in ("1", "true", "yes"):
        stmt = stmt.where(Project.is_favorite.is_(True))
    if filters.get("search"):
        stmt = stmt.where(Project.name.ilike(f"%{filters['search'].strip()}%"))
    stmt = stmt.order_by(Project.is_favorite.desc(), Project.created_at.desc(), Project.id.desc())
    return db.session.execute(stmt).scalars().all()


def _owned_client(user_id: int, client_id) -> Client:
    try:
        client = db.session.get(Client, int(client_id))
    except (TypeError, ValueError):
        client = None
    if not client or client.user_id != user_id:
        raise ValidationError("client_id must reference one of your clients", details={"client_id": "invalid"})
    return client


def _apply_dates(project: Project, data: dict) -> None:
    for field in ("start_date", "estimated_end_date"):
        if field in data:
            raw = data[field]
            value = parse_datetime(raw)
            if raw and value is None:
                raise ValidationError(f"{field} must be an ISO date", details={field: "invalid"})
            setattr(project, field, value)


def create_project(user_id: int, data: dict) -> Project:
    """Create a project in ``briefing`` status with an empty briefing."""
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if not data.get("client_id"):
        raise ValidationError("client_id is required", details={"client_id": "required"})
    client = _owned_client(user_id, data["client_id"])

    methodology = data.get("methodology") or "hybrid"
    if methodology not in METHODOLOGIES:
        raise ValidationError(f"methodology must be one of: {', '.join(METHODOLOGIES)}")

    project = Project(
        name=name[:255],
        description=data.get("description"),
        methodology=methodology,
        category=data.get("category"),
        client_id=client.id,
        user_id=user_id,
        status="briefing",
        progress=0,
        is_favorite=bool(data.get("is_favorite", False)),
    )
    _apply_dates(project, data)
    db.session.add(project)
    db.session.flush()
    db.session.add(Briefing(project_id=project.id, status="incomplete", conversation=[]))
    db.session.commit()
    logger.info("Project created id=%s client=%s user=%s", project.id, client.id, user_id)
    return project


def update_project(project: Project, user_id: int, data: dict) -> Project:
    require_manager(project, user_id, "edit the project")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        project.name = name[:255]
    for field in ("description", "category"):
        if field in data:
            setattr(project, field, data[field])
    if "methodology" in data:
        if data["methodology"] not in METHODOLOGIES:
            raise ValidationError(f"methodology must be one of: {', '.join(METHODOLOGIES)}")
        project.methodology = data["methodology"]
    if "client_id" in data:
        project.client_id = _owned_client(project.user_id, data["client_id"]).id
    if "is_favorite" in data:
        project.is_favorite = bool(data["is_favorite"])
    if "progress" in data:
        try:
            progress = int(data["progress"])
        except (TypeError, ValueError):
            raise ValidationError("progress must be an integer 0-100")
        project.progress = max(0, min(100, progress))
    _apply_dates(project, data)

    if "status" in data and data["status"] != project.status:
        if data["status"] not in PROJECT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PROJECT_STATUSES)}")
        log_activity(
            project.id, "project_status_changed", user_id=user_id,
            previous_status=project.status, new_status=data["status"],
            description=f"Status changed from {project.status} to {data['status']}",
        )
        project.status = data["status"]

    db.session.commit()
    return project


def delete_project(project: Project, user_id: int) -> None:
    require_owner(project, user_id, "delete the project")
    project_id = project.id
    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted id=%s user=%s", project_id, user_id)


def toggle_favorite(project: Project) -> Project:
    project.is_favorite = not project.is_favorite
    db.session.commit()
    return project


# ── Progress roll-up ─────────────────────────────────────────────────────────


def recalculate_project(project: Project, user_id: int | None = None) -> Project:
    """Derive project progress and status from its stages (flush only).

    progress = weighted average of stage progress.
    status   = completed when every stage is approved; otherwise the type of
               the active stage (first unapproved stage already started, else
               the first unapproved stage).
    """
    stages = sorted(project.stages, key=lambda s: s.order)
    total_weight = sum(s.weight or 0 for s in stages)
    if total_weight:
        weighted = sum((s.progress or 0) * (s.weight or 0) / 100 for s in stages)
        project.progress = round(weighted / total_weight * 100)
    else:
        project.progress = 0

    if not stages:
        return project

    pending = [s for s in stages if s.status != "approved"]
    if not pending:
        new_status = "completed"
    else:
        active = next((s for s in pending if (s.progress or 0) > 0), pending[0])
        new_status = active.type if active.type in PROJECT_STATUSES else "planning"

    if new_status != project.status:
        log_activity(
            project.id, "project_status_changed", user_id=user_id,
            previous_status=project.status, new_status=new_status,
            description=f"Status changed from {project.status} to {new_status}",
        )
        project.status = new_status
    db.session.flush()
    return project
