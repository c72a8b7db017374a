"""Specialist AI agent runs and multi-agent orchestration sessions."""

from datetime import datetime, timezone

from app.models import db


AGENT_TYPES = ("scope", "technical", "timeline", "risks", "financial", "documentation")
AGENT_STATUSES = ("pending", "running", "completed", "failed")


def _utcnow():
    return datetime.now(timezone.utc)


class AgentAnalysis(db.Model):
    __tablename__ = "agent_analyses"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_id = db.Column(
        db.Integer, db.ForeignKey("orchestrator_sessions.id", ondelete="SET NULL"), nullable=True
    )
    agent_type = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(50), nullable=False, default="pending")
    result = db.Column(db.JSON, default=dict)
    confidence = db.Column(db.Integer, nullable=False, default=0, comment="0-100")
    recommendations = db.Column(db.JSON, default=list)
    warnings = db.Column(db.JSON, default=list)
    meta = db.Column("metadata", db.JSON, default=dict)
    executed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "session_id": self.session_id,
            "agent_type": self.agent_type,
            "status": self.status,
            "result": self.result or {},
            "confidence": self.confidence or 0,
            "recommendations": self.recommendations or [],
            "warnings": self.warnings or [],
            "metadata": self.meta or {},
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class OrchestratorSession(db.Model):
    __tablename__ = "orchestrator_sessions"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = db.Column(db.String(50), nullable=False, default="running", comment="running | completed | failed")
    agents_executed = db.Column(db.JSON, default=list)
    consolidated_result = db.Column(db.JSON, default=dict)
    total_confidence = db.Column(db.Integer, nullable=False, default=0)
    execution_log = db.Column(db.JSON, default=list, comment="[{agent_type, status, message, timestamp}]")
    started_at = db.Column(db.DateTime, default=_utcnow)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)

    analyses = db.relationship("AgentAnalysis", lazy="select")

    def to_dict(self, include_analyses=False):
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "status": self.status,
            "agents_executed": self.agents_executed or [],
            "consolidated_result": self.consolidated_result or {},
            "total_confidence": self.total_confidence or 0,
            "execution_log": self.execution_log or [],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_analyses:
            d["analyses"] = [a.to_dict() for a in self.analyses]
        return d
