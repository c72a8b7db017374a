"""
Auth Models — users and refresh-token sessions.

User.role is a platform-level role (user | admin | platform_admin).
Per-project roles live on ProjectMember (app.models.project).
"""

import uuid
from datetime import datetime, timezone

from app.models import db


USER_ROLES = ("user", "admin", "platform_admin")


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    profile_image_url = db.Column(db.String(500))
    role = db.Column(db.String(20), nullable=False, default="user",
                     comment="user | admin | platform_admin")
    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    last_login_at = db.Column(db.DateTime)
    job_title = db.Column(db.String(100))
    phone = db.Column(db.String(50))
    instagram = db.Column(db.String(100))
    facebook = db.Column(db.String(100))
    x_handle = db.Column(db.String(100))
    linkedin = db.Column(db.String(100))
    youtube = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    sessions = db.relationship("Session", back_populates="user", lazy="dynamic", cascade="all, delete-orphan")

    PROFILE_FIELDS = (
        "first_name", "last_name", "profile_image_url", "job_title", "phone",
        "instagram", "facebook", "x_handle", "linkedin", "youtube",
    )

    @property
    def full_name(self):
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email

    @property
    def is_platform_admin(self):
        return self.role == "platform_admin"

    def to_dict(self):
        d = {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "is_blocked": bool(self.is_blocked),
            "full_name": self.full_name,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        for field in self.PROFILE_FIELDS:
            d[field] = getattr(self, field)
        return d


# ═══════════════════════════════════════════════════════════════
# 2. SESSIONS (Refresh tokens & login tracking)
# ═══════════════════════════════════════════════════════════════
class Session(db.Model):
    __tablename__ = "user_sessions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash = db.Column(db.String(256), nullable=False, index=True)  # SHA-256 of refresh token
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    expires_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime)

    # Relationships
    user = db.relationship("User", back_populates="sessions")

    @property
    def is_expired(self):
        return datetime.now(timezone.utc) > self.expires_at.replace(tzinfo=timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }
