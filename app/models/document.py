"""Generated artefacts: documents, AI commands and diagrams."""

from datetime import datetime, timezone

from app.models import db


DOCUMENT_TYPES = (
    "scope", "technical", "architecture", "api", "ai_command", "installation",
    "styles", "requirements", "user-guide", "testing",
)
DIAGRAM_TYPES = ("flow", "architecture", "mindmap")


def _utcnow():
    return datetime.now(timezone.utc)


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False)
    content = db.Column(db.Text)
    meta = db.Column("metadata", db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "type": self.type,
            "content": self.content,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AICommand(db.Model):
    """A ready-to-paste prompt for an AI coding assistant."""

    __tablename__ = "ai_commands"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    prompt_text = db.Column(db.Text)
    json_command = db.Column(db.JSON)
    target_platform = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "prompt_text": self.prompt_text,
            "json_command": self.json_command,
            "target_platform": self.target_platform,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ProjectDiagram(db.Model):
    __tablename__ = "project_diagrams"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = db.Column(db.String(50), nullable=False, comment="flow | architecture | mindmap")
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    data = db.Column(db.JSON, nullable=False, default=dict, comment="{nodes: [...], edges: [...]}")
    svg_content = db.Column(db.Text)
    meta = db.Column("metadata", db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "data": self.data or {},
            "svg_content": self.svg_content,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
