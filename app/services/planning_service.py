"""Scope (with version history), roadmap, WBS and diagrams for a project.

Every mutating call commits. Upserts used by the briefing completion flow
flush only so the whole completion lands in one transaction.
"""

from __future__ import annotations

import copy
import logging
import math
from datetime import datetime, timezone

from sqlalchemy import func, select

from app.ai import generators
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.document import DIAGRAM_TYPES, ProjectDiagram
from app.models.planning import SCOPE_FIELDS, ProjectWbs, Roadmap, Scope, ScopeVersion
from app.models.project import Project
from app.services.project_service import get_project_for_user
from app.utils.helpers import add_working_days

logger = logging.getLogger(__name__)

_LIST_FIELDS = SCOPE_FIELDS[1:]


def _today() -> datetime:
    now = datetime.now(timezone.utc)
    return datetime(now.year, now.month, now.day)


# ── Scope ────────────────────────────────────────────────────────────────────


def _apply_scope(scope: Scope, data: dict) -> None:
    if "objective" in data:
        scope.objective = data["objective"]
    for field in _LIST_FIELDS:
        if field in data:
            value = data[field] or []
            if not isinstance(value, list):
                raise ValidationError(f"{field} must be a list", details={field: "invalid"})
            setattr(scope, field, list(value))
    if "metadata" in data:
        if not isinstance(data["metadata"], dict):
            raise ValidationError("metadata must be an object", details={"metadata": "invalid"})
        scope.meta = dict(data["metadata"])


def upsert_scope(project: Project, data: dict) -> Scope:
    scope = project.scope
    if scope is None:
        scope = Scope(project_id=project.id, meta={})
        db.session.add(scope)
        project.scope = scope
    _apply_scope(scope, data)
    db.session.flush()
    return scope


def _next_version(scope: Scope) -> int:
    current = db.session.execute(
        select(func.max(ScopeVersion.version)).where(ScopeVersion.scope_id == scope.id)
    ).scalar()
    return (current or 0) + 1


def snapshot_scope(scope: Scope, user_id: int | None, notes: str | None = None) -> ScopeVersion:
    """Copy the current scope into the next version number (flush only)."""
    number = _next_version(scope)
    version = ScopeVersion(
        scope_id=scope.id,
        project_id=scope.project_id,
        version=number,
        objective=scope.objective,
        meta=copy.deepcopy(scope.meta or {}),
        change_notes=notes or f"Version {number}",
        created_by=user_id,
    )
    for field in _LIST_FIELDS:
        setattr(version, field, copy.deepcopy(getattr(scope, field) or []))
    db.session.add(version)
    db.session.flush()
    return version


def require_scope(project: Project) -> Scope:
    if project.scope is None:
        raise NotFoundError(resource="Scope", resource_id=project.id)
    return project.scope


def update_scope(project: Project, user_id: int, data: dict) -> Scope:
    """Snapshot the current scope, then apply the changes."""
    scope = require_scope(project)
    snapshot_scope(scope, user_id, data.get("change_notes") or "Automatic backup before edit")
    _apply_scope(scope, data)
    db.session.commit()
    return scope


def regenerate_scope(project: Project, user_id: int) -> Scope:
    briefing = project.briefing
    if briefing is None or briefing.status != "complete":
        raise ValidationError("Briefing must be complete before regenerating the scope")
    if project.scope is not None:
        snapshot_scope(project.scope, user_id, "Automatic backup before regeneration")
    scope = upsert_scope(project, generators.generate_scope(project, briefing, user_id=user_id))
    db.session.commit()
    logger.info("Scope regenerated for project %s", project.id)
    return scope


def list_versions(project: Project) -> list[ScopeVersion]:
    stmt = (
        select(ScopeVersion)
        .where(ScopeVersion.project_id == project.id)
        .order_by(ScopeVersion.version.desc())
    )
    return db.session.execute(stmt).scalars().all()


def create_version(project: Project, user_id: int, notes: str | None = None) -> ScopeVersion:
    version = snapshot_scope(require_scope(project), user_id, notes)
    db.session.commit()
    return version


def restore_version(project: Project, version_id: int, user_id: int) -> Scope:
    """Back up the current scope, then copy the chosen version over it."""
    scope = require_scope(project)
    version = db.session.get(ScopeVersion, version_id)
    if not version or version.project_id != project.id:
        raise NotFoundError(resource="ScopeVersion", resource_id=version_id)

    snapshot_scope(scope, user_id, f"Automatic backup before restoring version {version.version}")
    scope.objective = version.objective
    scope.meta = copy.deepcopy(version.meta or {})
    for field in _LIST_FIELDS:
        setattr(scope, field, copy.deepcopy(getattr(version, field) or []))
    db.session.commit()
    logger.info("Scope of project %s restored to version %s", project.id, version.version)
    return scope


# ── Roadmap ──────────────────────────────────────────────────────────────────


def upsert_roadmap(project: Project, data: dict) -> Roadmap:
    roadmap = project.roadmap
    if roadmap is None:
        roadmap = Roadmap(project_id=project.id)
        db.session.add(roadmap)
        project.roadmap = roadmap
    for field in ("phases", "milestones", "slas"):
        if field in data:
            value = data[field] or []
            if not isinstance(value, list):
                raise ValidationError(f"{field} must be a list", details={field: "invalid"})
            setattr(roadmap, field, list(value))
    if "suggested_dates" in data:
        if not isinstance(data["suggested_dates"], dict):
            raise ValidationError("suggested_dates must be an object")
        roadmap.suggested_dates = dict(data["suggested_dates"])
    db.session.flush()
    return roadmap


def update_roadmap(project: Project, data: dict) -> Roadmap:
    if project.roadmap is None:
        raise NotFoundError(resource="Roadmap", resource_id=project.id)
    roadmap = upsert_roadmap(project, data)
    db.session.commit()
    return roadmap


# ── WBS ──────────────────────────────────────────────────────────────────────


def generate_wbs(project: Project, user_id: int) -> ProjectWbs:
    """Estimate hours from the scope and derive the project dates."""
    if project.scope is None:
        raise ValidationError("A scope is required before generating the WBS")
    result = generators.generate_wbs(project, project.scope, project.briefing, user_id=user_id)

    wbs = project.wbs
    if wbs is None:
        wbs = ProjectWbs(project_id=project.id)
        db.session.add(wbs)
        project.wbs = wbs
    wbs.phases = result["phases"]
    wbs.total_estimated_hours = int(result["total_estimated_hours"] or 0)
    wbs.critical_path = result.get("critical_path") or []
    wbs.meta = {"generated_at": datetime.now(timezone.utc).isoformat()}

    if wbs.total_estimated_hours > 0:
        start = _today()
        project.start_date = start
        project.estimated_end_date = add_working_days(start, math.ceil(wbs.total_estimated_hours / 8))
    db.session.commit()
    logger.info("WBS generated for project %s: %s hours", project.id, wbs.total_estimated_hours)
    return wbs


def toggle_wbs_item(project: Project, item_id: str, completed) -> ProjectWbs:
    if project.wbs is None:
        raise NotFoundError(resource="WBS", resource_id=project.id)
    if not isinstance(completed, bool):
        raise ValidationError("completed must be a boolean", details={"completed": "invalid"})

    phases = copy.deepcopy(project.wbs.phases or [])
    for phase in phases:
        for item in phase.get("items") or []:
            if str(item.get("id")) == str(item_id):
                item["completed"] = completed
                project.wbs.phases = phases
                db.session.commit()
                return project.wbs
    raise NotFoundError(resource="WBS item", resource_id=item_id)


# ── Diagrams ─────────────────────────────────────────────────────────────────


def list_diagrams(project: Project) -> list[ProjectDiagram]:
    stmt = select(ProjectDiagram).where(ProjectDiagram.project_id == project.id).order_by(ProjectDiagram.type)
    return db.session.execute(stmt).scalars().all()


def generate_diagram(project: Project, diagram_type: str, user_id: int) -> ProjectDiagram:
    """Create or replace the project's diagram of ``diagram_type``."""
    if diagram_type not in DIAGRAM_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(DIAGRAM_TYPES)}", details={"type": "invalid"})
    result = generators.generate_diagram(
        diagram_type, project, project.briefing, project.scope, user_id=user_id
    )
    diagram = ProjectDiagram.query.filter_by(project_id=project.id, type=diagram_type).first()
    if diagram is None:
        diagram = ProjectDiagram(project_id=project.id, type=diagram_type)
        db.session.add(diagram)
    diagram.name = result["name"]
    diagram.description = result.get("description")
    diagram.data = result["data"]
    diagram.meta = {"generated_at": datetime.now(timezone.utc).isoformat()}
    db.session.commit()
    return diagram


def get_diagram_for_user(diagram_id: int, user_id: int) -> ProjectDiagram:
    diagram = db.session.get(ProjectDiagram, diagram_id)
    if not diagram:
        raise NotFoundError(resource="Diagram", resource_id=diagram_id)
    get_project_for_user(diagram.project_id, user_id)
    return diagram


def update_diagram(diagram: ProjectDiagram, data: dict) -> ProjectDiagram:
    if "name" in data:
        if not (data.get("name") or "").strip():
            raise ValidationError("name is required", details={"name": "required"})
        diagram.name = data["name"].strip()[:255]
    if "description" in data:
        diagram.description = data["description"]
    if "data" in data:
        payload = data["data"]
        if not isinstance(payload, dict):
            raise ValidationError("data must be an object with nodes and edges", details={"data": "invalid"})
        diagram.data = {"nodes": list(payload.get("nodes") or []), "edges": list(payload.get("edges") or [])}
    if "svg_content" in data:
        diagram.svg_content = data["svg_content"]
    if "metadata" in data and isinstance(data["metadata"], dict):
        diagram.meta = {**(diagram.meta or {}), **data["metadata"]}
    db.session.commit()
    return diagram


def delete_diagram(diagram: ProjectDiagram) -> None:
    db.session.delete(diagram)
    db.session.commit()
