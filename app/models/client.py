"""Client models.

Three tables:
  Client              — an agency customer, optionally with portal access.
  ClientFeedback      — observations/suggestions/issues raised from the portal.
  ClientPortalSession — bearer sessions for the client portal (token hashed).
"""

from __future__ import annotations

from datetime import datetime, timezone

from app.models import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


DOCUMENT_TYPES = ("cpf", "cnpj")
FEEDBACK_TYPES = ("observation", "suggestion", "issue")
FEEDBACK_STATUSES = ("pending", "reviewed", "resolved")


# ── Client ───────────────────────────────────────────────────────────────────


class Client(db.Model):
    """A customer of the agency user who owns it.

    The portal password is a bcrypt hash and is excluded from to_dict()
    via SENSITIVE_FIELDS.
    """

    __tablename__ = "clients"

    SENSITIVE_FIELDS: frozenset[str] = frozenset({"portal_password_hash"})

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    company = db.Column(db.String(255))
    notes = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    document_type = db.Column(db.String(10), comment="cpf | cnpj")
    document = db.Column(db.String(20), comment="Digits only — checksum validated on write.")
    razao_social = db.Column(db.String(255), comment="Registered company name (CNPJ clients).")
    address = db.Column(
        db.JSON,
        default=dict,
        comment="{street, number, complement, neighborhood, city, state, zip_code}",
    )
    has_portal_access = db.Column(db.Boolean, nullable=False, default=False)
    portal_email = db.Column(db.String(255), index=True)
    portal_password_hash = db.Column(db.String(255), comment="bcrypt hash. NEVER expose.")
    portal_last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    projects = db.relationship("Project", back_populates="client", lazy="select",
                               cascade="all, delete")
    feedbacks = db.relationship("ClientFeedback", back_populates="client", lazy="select",
                                cascade="all, delete")

    def to_dict(self) -> dict:
        d = {
            c.name: getattr(self, c.name)
            for c in self.__table__.columns
            if c.name not in self.SENSITIVE_FIELDS
        }
        d["address"] = self.address or {}
        for key in ("portal_last_login_at", "created_at", "updated_at"):
            d[key] = d[key].isoformat() if d[key] else None
        return d


# ── ClientFeedback ───────────────────────────────────────────────────────────


class ClientFeedback(db.Model):
    """Feedback lifecycle: pending → reviewed → resolved."""

    __tablename__ = "client_feedbacks"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    type = db.Column(db.String(50), nullable=False, default="observation",
                     comment="observation | suggestion | issue")
    content = db.Column(db.Text, nullable=False)
    images = db.Column(db.JSON, default=list, comment="List of image URLs.")
    status = db.Column(db.String(50), nullable=False, default="pending",
                       comment="pending | reviewed | resolved")
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    client = db.relationship("Client", back_populates="feedbacks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "project_id": self.project_id,
            "type": self.type,
            "content": self.content,
            "images": self.images or [],
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_notes": self.review_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ── ClientPortalSession ──────────────────────────────────────────────────────


class ClientPortalSession(db.Model):
    """A 24h portal login. Only the SHA-256 of the bearer token is stored."""

    __tablename__ = "client_portal_sessions"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = db.Column(db.String(64), nullable=False, unique=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    client = db.relationship("Client")

    @property
    def is_expired(self) -> bool:
        return _utcnow() > self.expires_at.replace(tzinfo=timezone.utc)
