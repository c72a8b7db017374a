"""
Activity trails.

ProgressLog   — project activity (progress updates, approvals, documents,
                members, status changes). Shown on dashboards.
AdminAuditLog — immutable record of every platform-admin mutation.
"""

from datetime import datetime, timezone

from app.models import db


ACTIVITY_TYPES = (
    "progress_update",
    "stage_approval",
    "document_created",
    "member_added",
    "project_status_changed",
)


def _utcnow():
    return datetime.now(timezone.utc)


class ProgressLog(db.Model):
    __tablename__ = "progress_logs"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    stage_id = db.Column(db.Integer, db.ForeignKey("stages.id", ondelete="SET NULL"), nullable=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)
    member_id = db.Column(db.Integer, db.ForeignKey("project_members.id", ondelete="SET NULL"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    activity_type = db.Column(db.String(50), nullable=False, default="progress_update")
    previous_progress = db.Column(db.Integer)
    new_progress = db.Column(db.Integer)
    previous_status = db.Column(db.String(50))
    new_status = db.Column(db.String(50))
    description = db.Column(db.Text)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    user = db.relationship("User")
    member = db.relationship("ProjectMember")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "stage_id": self.stage_id,
            "document_id": self.document_id,
            "member_id": self.member_id,
            "user_id": self.user_id,
            "activity_type": self.activity_type,
            "previous_progress": self.previous_progress,
            "new_progress": self.new_progress,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "description": self.description,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AdminAuditLog(db.Model):
    __tablename__ = "admin_audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = db.Column(db.String(100), nullable=False)
    target_type = db.Column(db.String(50), comment="user | provider | settings")
    target_id = db.Column(db.String(64))
    previous_value = db.Column(db.JSON)
    new_value = db.Column(db.JSON)
    ip_address = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    admin = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "admin_email": self.admin.email if self.admin else None,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "previous_value": self.previous_value,
            "new_value": self.new_value,
            "ip_address": self.ip_address,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
