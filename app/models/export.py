"""Project code exports.

Status lifecycle: pending → generating → completed | failed.
A failed export keeps the reason in error_message; nothing is retried
automatically.
"""

from __future__ import annotations

from datetime import datetime, timezone

from app.models import db


EXPORT_PLATFORMS = ("zip", "github", "gitlab", "replit")
EXPORT_STATUSES = ("pending", "generating", "completed", "failed")

# stack id → framework label
EXPORT_STACKS = {
    "react-vite": "Vite + React + TypeScript",
    "nextjs": "Next.js 14 + TypeScript",
    "express": "Express.js + TypeScript",
    "node": "Node.js + TypeScript",
    "python-flask": "Python + Flask",
    "python-fastapi": "Python + FastAPI",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectExport(db.Model):
    __tablename__ = "project_exports"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(255), nullable=False)
    target_platform = db.Column(db.String(50), nullable=False, comment="zip | github | gitlab | replit")
    status = db.Column(db.String(50), nullable=False, default="pending", index=True)
    stack = db.Column(db.String(100))
    framework = db.Column(db.String(100))
    file_tree = db.Column(db.JSON, default=list, comment="List of file paths.")
    files = db.Column(db.JSON, default=dict, comment="{path: content}")
    package_json = db.Column(db.JSON)
    readme_content = db.Column(db.Text)
    config_files = db.Column(db.JSON, default=dict)
    zip_url = db.Column(db.Text, comment="Object-storage key of the generated archive.")
    external_url = db.Column(db.Text, comment="Repository URL after a git-host push.")
    error_message = db.Column(db.Text)
    meta = db.Column("metadata", db.JSON, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self, include_files: bool = False) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "name": self.name,
            "target_platform": self.target_platform,
            "status": self.status,
            "stack": self.stack,
            "framework": self.framework,
            "file_tree": self.file_tree or [],
            "file_count": len(self.files or {}),
            "package_json": self.package_json,
            "readme_content": self.readme_content,
            "zip_url": self.zip_url,
            "external_url": self.external_url,
            "error_message": self.error_message,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_files:
            d["files"] = self.files or {}
            d["config_files"] = self.config_files or {}
        return d
