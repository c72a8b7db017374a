"""
Platform-wide configuration models.

PlatformSetting  — key/value JSON settings (e.g. ``proposal_config``).
AIProvider       — ordered LLM provider chain used by app.ai.gateway.
                   API keys are NOT stored here: api_key_env_var holds the
                   *name* of the environment variable that carries the key.
PlatformUsageLog — one row per tracked action (LLM calls included).
"""

import os
from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class PlatformSetting(db.Model):
    __tablename__ = "platform_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.JSON, nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), default="general")
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "category": self.category,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AIProvider(db.Model):
    __tablename__ = "ai_providers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    provider = db.Column(db.String(50), nullable=False, comment="anthropic | openai | gemini | local")
    model = db.Column(db.String(100), nullable=False)
    api_key_env_var = db.Column(db.String(100))
    base_url_env_var = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    priority = db.Column(db.Integer, nullable=False, default=1, comment="Lower = tried first")
    max_tokens = db.Column(db.Integer, nullable=False, default=4096)
    temperature = db.Column(db.Integer, nullable=False, default=70, comment="x100 (70 = 0.7)")
    description = db.Column(db.Text)
    last_used_at = db.Column(db.DateTime)
    total_tokens_used = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "model": self.model,
            "api_key_env_var": self.api_key_env_var,
            "base_url_env_var": self.base_url_env_var,
            "has_api_key": bool(self.api_key_env_var and os.getenv(self.api_key_env_var)),
            "has_base_url": bool(self.base_url_env_var and os.getenv(self.base_url_env_var)),
            "is_active": self.is_active,
            "priority": self.priority,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "description": self.description,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "total_tokens_used": self.total_tokens_used or 0,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PlatformUsageLog(db.Model):
    __tablename__ = "platform_usage_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    action = db.Column(db.String(100), nullable=False, index=True)
    resource = db.Column(db.String(100))
    resource_id = db.Column(db.String(64))
    meta = db.Column("metadata", db.JSON, default=dict)
    ip_address = db.Column(db.String(50))
    user_agent = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
