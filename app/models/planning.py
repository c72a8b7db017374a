"""
Planning models — the artefacts produced from a project briefing.

    Briefing      one per project; intake questionnaire + AI conversation
    Scope         one per project; deliverables, exclusions, assumptions, risks
    ScopeVersion  snapshot history of a Scope
    Roadmap       one per project; phases + milestones
    ProjectWbs    one per project; generated work breakdown with hour estimates
    Stage / Task  kanban columns and their weighted tasks
    Checklist     typed checklists (technical, commercial, legal, ...)

JSON columns default to empty containers; to_dict() always returns a list or
dict for them, never None.
"""

from datetime import datetime, timezone

from app.models import db


BRIEFING_STATUSES = ("incomplete", "in_progress", "ready_to_finalize", "complete")
STAGE_TYPES = ("planning", "design", "development", "testing", "deploy")
STAGE_STATUSES = ("pending", "in_progress", "completed", "approved", "rejected")
TASK_STATUSES = ("pending", "in_progress", "completed", "blocked")
CHECKLIST_TYPES = ("technical", "commercial", "legal", "delivery", "validation")

# Fields a briefing must carry before it can be completed.
REQUIRED_BRIEFING_FIELDS = (
    "project_type",
    "business_objective",
    "target_audience",
    "market_niche",
    "desired_scope",
    "success_criteria",
    "stack",
    "visual_identity",
    "deadline_text",
    "budget",
)

BRIEFING_TEXT_FIELDS = (
    "project_type", "business_objective", "target_audience", "market_niche",
    "desired_scope", "stack", "deadline_text", "budget", "success_criteria",
    "technical_restrictions", "language", "compliance", "raw_input",
)

SCOPE_FIELDS = ("objective", "deliverables", "out_of_scope", "assumptions", "dependencies", "risks")


def _utcnow():
    return datetime.now(timezone.utc)


def _ts(value):
    return value.isoformat() if value else None


# ═══════════════════════════════════════════════════════════════
# BRIEFING
# ═══════════════════════════════════════════════════════════════
class Briefing(db.Model):
    __tablename__ = "briefings"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    project_type = db.Column(db.Text)
    business_objective = db.Column(db.Text)
    target_audience = db.Column(db.Text)
    market_niche = db.Column(db.Text)
    desired_scope = db.Column(db.Text)
    stack = db.Column(db.Text)
    deadline_text = db.Column(db.Text)
    deadline = db.Column(db.DateTime, comment="Parsed from deadline_text when it reads 'N days/weeks/months'.")
    budget = db.Column(db.Text)
    success_criteria = db.Column(db.Text)
    technical_restrictions = db.Column(db.Text)
    language = db.Column(db.String(50), default="technical")
    compliance = db.Column(db.Text)
    visual_identity = db.Column(db.JSON, default=dict)
    visual_references = db.Column(db.JSON, default=list)
    audio_recordings = db.Column(
        db.JSON, default=list,
        comment="[{id, object_path, filename, mime_type, size, title, transcription, uploaded_at}]",
    )
    status = db.Column(db.String(50), nullable=False, default="incomplete",
                       comment="incomplete | in_progress | ready_to_finalize | complete")
    conversation = db.Column(db.JSON, default=list, comment="[{role, content, timestamp, ...}]")
    raw_input = db.Column(db.Text)
    current_field = db.Column(db.String(50))
    template_id = db.Column(db.String(50), comment="Briefing template guiding the interview")
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def missing_fields(self):
        """Required fields that are still empty."""
        return [f for f in REQUIRED_BRIEFING_FIELDS if not getattr(self, f)]

    def to_dict(self):
        d = {f: getattr(self, f) for f in BRIEFING_TEXT_FIELDS}
        d.update({
            "id": self.id,
            "project_id": self.project_id,
            "deadline": _ts(self.deadline),
            "visual_identity": self.visual_identity or {},
            "visual_references": self.visual_references or [],
            "audio_recordings": self.audio_recordings or [],
            "status": self.status,
            "conversation": self.conversation or [],
            "current_field": self.current_field,
            "template_id": self.template_id,
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        })
        return d


# ═══════════════════════════════════════════════════════════════
# SCOPE + VERSIONS
# ═══════════════════════════════════════════════════════════════
class Scope(db.Model):
    __tablename__ = "scopes"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    objective = db.Column(db.Text)
    deliverables = db.Column(db.JSON, default=list)
    out_of_scope = db.Column(db.JSON, default=list)
    assumptions = db.Column(db.JSON, default=list)
    dependencies = db.Column(db.JSON, default=list)
    risks = db.Column(db.JSON, default=list)
    meta = db.Column("metadata", db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    versions = db.relationship(
        "ScopeVersion", back_populates="scope", cascade="all, delete",
        order_by="ScopeVersion.version.desc()",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "objective": self.objective,
            "deliverables": self.deliverables or [],
            "out_of_scope": self.out_of_scope or [],
            "assumptions": self.assumptions or [],
            "dependencies": self.dependencies or [],
            "risks": self.risks or [],
            "metadata": self.meta or {},
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }


class ScopeVersion(db.Model):
    __tablename__ = "scope_versions"
    __table_args__ = (
        db.UniqueConstraint("scope_id", "version", name="uq_scope_version"),
    )

    id = db.Column(db.Integer, primary_key=True)
    scope_id = db.Column(
        db.Integer, db.ForeignKey("scopes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version = db.Column(db.Integer, nullable=False)
    objective = db.Column(db.Text)
    deliverables = db.Column(db.JSON, default=list)
    out_of_scope = db.Column(db.JSON, default=list)
    assumptions = db.Column(db.JSON, default=list)
    dependencies = db.Column(db.JSON, default=list)
    risks = db.Column(db.JSON, default=list)
    meta = db.Column("metadata", db.JSON, default=dict)
    change_notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=_utcnow)

    scope = db.relationship("Scope", back_populates="versions")

    def to_dict(self):
        return {
            "id": self.id,
            "scope_id": self.scope_id,
            "project_id": self.project_id,
            "version": self.version,
            "objective": self.objective,
            "deliverables": self.deliverables or [],
            "out_of_scope": self.out_of_scope or [],
            "assumptions": self.assumptions or [],
            "dependencies": self.dependencies or [],
            "risks": self.risks or [],
            "metadata": self.meta or {},
            "change_notes": self.change_notes,
            "created_by": self.created_by,
            "created_at": _ts(self.created_at),
        }


# ═══════════════════════════════════════════════════════════════
# ROADMAP
# ═══════════════════════════════════════════════════════════════
class Roadmap(db.Model):
    __tablename__ = "roadmaps"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    phases = db.Column(db.JSON, default=list, comment="[{name, duration, deliverables}]")
    milestones = db.Column(db.JSON, default=list, comment="[{name, date, description}]")
    suggested_dates = db.Column(db.JSON, default=dict)
    slas = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phases": self.phases or [],
            "milestones": self.milestones or [],
            "suggested_dates": self.suggested_dates or {},
            "slas": self.slas or [],
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }


# ═══════════════════════════════════════════════════════════════
# WBS
# ═══════════════════════════════════════════════════════════════
class ProjectWbs(db.Model):
    __tablename__ = "project_wbs"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    phases = db.Column(
        db.JSON, nullable=False, default=list,
        comment="[{name, description, estimated_hours, items: [{id, title, estimated_hours, ...}]}]",
    )
    total_estimated_hours = db.Column(db.Integer, nullable=False, default=0)
    critical_path = db.Column(db.JSON, default=list)
    meta = db.Column("metadata", db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phases": self.phases or [],
            "total_estimated_hours": self.total_estimated_hours or 0,
            "critical_path": self.critical_path or [],
            "metadata": self.meta or {},
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }


# ═══════════════════════════════════════════════════════════════
# STAGES + TASKS
# ═══════════════════════════════════════════════════════════════
class Stage(db.Model):
    __tablename__ = "stages"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(50), nullable=False, comment="planning | design | development | testing | deploy")
    weight = db.Column(db.Integer, nullable=False, default=20, comment="Share of project progress.")
    progress = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(50), nullable=False, default="pending")
    order = db.Column(db.Integer, nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    approved_at = db.Column(db.DateTime)
    approval_history = db.Column(db.JSON, default=list, comment="[{action, user_id, timestamp, comment}]")
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", back_populates="stages")
    tasks = db.relationship(
        "Task", back_populates="stage", cascade="all, delete", order_by="Task.id"
    )
    assignments = db.relationship("StageAssignment", back_populates="stage", cascade="all, delete")

    def to_dict(self, include_tasks=False):
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "type": self.type,
            "weight": self.weight,
            "progress": self.progress or 0,
            "status": self.status,
            "order": self.order,
            "approved_by": self.approved_by,
            "approved_at": _ts(self.approved_at),
            "approval_history": self.approval_history or [],
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }
        if include_tasks:
            d["tasks"] = [t.to_dict() for t in self.tasks]
        return d


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(
        db.Integer, db.ForeignKey("stages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    weight = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(50), nullable=False, default="pending")
    assignee = db.Column(db.String(255))
    due_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    stage = db.relationship("Stage", back_populates="tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "stage_id": self.stage_id,
            "title": self.title,
            "description": self.description,
            "weight": self.weight,
            "status": self.status,
            "assignee": self.assignee,
            "due_date": _ts(self.due_date),
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }


# ═══════════════════════════════════════════════════════════════
# CHECKLISTS
# ═══════════════════════════════════════════════════════════════
class Checklist(db.Model):
    __tablename__ = "checklists"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = db.Column(db.String(50), nullable=False)
    items = db.Column(db.JSON, default=list, comment="[{text, checked}]")
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "type": self.type,
            "items": self.items or [],
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }
