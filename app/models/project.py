"""
Project models — projects, team membership, invites and stage assignments.

Project status lifecycle:
    briefing → planning → design → development → testing → deploy → completed

Child rows (briefing, scope, stages, documents, vault items, ...) reference
projects.id with ON DELETE CASCADE, and the ORM relationships below cascade
the same way so a project delete never leaves orphans.
"""

from datetime import datetime, timezone

from app.models import db


PROJECT_STATUSES = ("briefing", "planning", "design", "development", "testing", "deploy", "completed")
METHODOLOGIES = ("scrum", "kanban", "waterfall", "hybrid")
MEMBER_ROLES = ("owner", "manager", "contributor")
MEMBER_STATUSES = ("pending", "active", "inactive")
INVITE_TTL_DAYS = 7


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. PROJECTS
# ═══════════════════════════════════════════════════════════════
class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(50), nullable=False, default="briefing", index=True)
    methodology = db.Column(db.String(50), default="hybrid")
    progress = db.Column(db.Integer, nullable=False, default=0, comment="0-100, weighted over stages")
    start_date = db.Column(db.DateTime)
    estimated_end_date = db.Column(db.DateTime)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category = db.Column(db.String(50))
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    client = db.relationship("Client", back_populates="projects")
    owner = db.relationship("User", foreign_keys=[user_id])
    briefing = db.relationship("Briefing", uselist=False, cascade="all, delete")
    scope = db.relationship("Scope", uselist=False, cascade="all, delete")
    roadmap = db.relationship("Roadmap", uselist=False, cascade="all, delete")
    wbs = db.relationship("ProjectWbs", uselist=False, cascade="all, delete")
    stages = db.relationship(
        "Stage", back_populates="project", order_by="Stage.order",
        cascade="all, delete",
    )
    checklists = db.relationship("Checklist", cascade="all, delete")
    documents = db.relationship("Document", cascade="all, delete")
    ai_commands = db.relationship("AICommand", cascade="all, delete")
    diagrams = db.relationship("ProjectDiagram", cascade="all, delete")
    vault_items = db.relationship("VaultItem", cascade="all, delete")
    members = db.relationship("ProjectMember", back_populates="project", cascade="all, delete")
    invites = db.relationship("ProjectInvite", back_populates="project", cascade="all, delete")
    agent_analyses = db.relationship("AgentAnalysis", cascade="all, delete")
    orchestrator_sessions = db.relationship("OrchestratorSession", cascade="all, delete")
    proposals = db.relationship("Proposal", cascade="all, delete")
    exports = db.relationship("ProjectExport", cascade="all, delete")
    progress_logs = db.relationship("ProgressLog", cascade="all, delete")
    feedbacks = db.relationship("ClientFeedback", cascade="all, delete")

    def to_dict(self, include_client=False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "methodology": self.methodology,
            "progress": self.progress or 0,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "estimated_end_date": self.estimated_end_date.isoformat() if self.estimated_end_date else None,
            "client_id": self.client_id,
            "user_id": self.user_id,
            "category": self.category,
            "is_favorite": bool(self.is_favorite),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_client and self.client:
            d["client"] = {"id": self.client.id, "name": self.client.name, "company": self.client.company}
        return d


# ═══════════════════════════════════════════════════════════════
# 2. PROJECT_MEMBERS (team members with per-project role)
# ═══════════════════════════════════════════════════════════════
class ProjectMember(db.Model):
    __tablename__ = "project_members"
    __table_args__ = (
        db.UniqueConstraint("project_id", "email", name="uq_member_project_email"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(50), nullable=False, default="contributor",
                     comment="owner | manager | contributor")
    specialty = db.Column(db.String(100))
    status = db.Column(db.String(50), nullable=False, default="pending",
                       comment="pending | active | inactive")
    invited_at = db.Column(db.DateTime, default=_utcnow)
    joined_at = db.Column(db.DateTime)
    provisioned_by_project = db.Column(db.Boolean, nullable=False, default=False,
                                       comment="account created by this project; password resets allowed")
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    project = db.relationship("Project", back_populates="members")
    user = db.relationship("User")
    assignments = db.relationship(
        "StageAssignment", back_populates="member", cascade="all, delete"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "specialty": self.specialty,
            "status": self.status,
            "invited_at": self.invited_at.isoformat() if self.invited_at else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "provisioned_by_project": bool(self.provisioned_by_project),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 3. PROJECT_INVITES
# ═══════════════════════════════════════════════════════════════
class ProjectInvite(db.Model):
    __tablename__ = "project_invites"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id = db.Column(
        db.Integer, db.ForeignKey("project_members.id", ondelete="CASCADE"), nullable=False
    )
    email = db.Column(db.String(255), nullable=False)
    token = db.Column(db.String(255), nullable=False, unique=True)
    status = db.Column(db.String(50), nullable=False, default="pending", comment="pending | accepted")
    expires_at = db.Column(db.DateTime, nullable=False)
    accepted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)

    member = db.relationship("ProjectMember")
    project = db.relationship("Project", back_populates="invites")

    @property
    def is_expired(self):
        return _utcnow() > self.expires_at.replace(tzinfo=timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "member_id": self.member_id,
            "email": self.email,
            "status": self.status,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 4. STAGE_ASSIGNMENTS (stage ↔ member)
# ═══════════════════════════════════════════════════════════════
class StageAssignment(db.Model):
    __tablename__ = "stage_assignments"
    __table_args__ = (
        db.UniqueConstraint("stage_id", "member_id", name="uq_assignment_stage_member"),
    )

    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(
        db.Integer, db.ForeignKey("stages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id = db.Column(
        db.Integer, db.ForeignKey("project_members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    due_date = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    member = db.relationship("ProjectMember", back_populates="assignments")
    stage = db.relationship("Stage", back_populates="assignments")

    def to_dict(self, include_member=False):
        d = {
            "id": self.id,
            "stage_id": self.stage_id,
            "member_id": self.member_id,
            "assigned_by": self.assigned_by,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_member and self.member:
            d["member"] = self.member.to_dict()
        return d
