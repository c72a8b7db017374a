"""Project vault — encrypted-at-rest credentials.

VaultItem.value_encrypted holds Fernet ciphertext produced by
app.utils.crypto.encrypt_secret. to_dict() never includes it; callers choose
between the masked form (list views) and the decrypted value (reveal).
"""

from __future__ import annotations

from datetime import datetime, timezone

from app.models import db


VAULT_ITEM_TYPES = ("api_key", "password", "token", "certificate", "connection_string", "other")
ENVIRONMENTS = ("development", "staging", "production")

MASK = "••••••••"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mask_value(value: str) -> str:
    """Show the first and last 4 chars of long secrets; hide short ones entirely."""
    if not value or len(value) <= 8:
        return MASK
    return f"{value[:4]}{MASK}{value[-4:]}"


class VaultItem(db.Model):
    __tablename__ = "vault_items"

    SENSITIVE_FIELDS: frozenset[str] = frozenset({"value_encrypted"})

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(
        db.String(50),
        nullable=False,
        comment="api_key | password | token | certificate | connection_string | other",
    )
    value_encrypted = db.Column(
        db.Text,
        nullable=False,
        comment="Fernet ciphertext. NEVER log or expose.",
    )
    description = db.Column(db.Text)
    environment = db.Column(db.String(50), nullable=False, default="production")
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        d = {
            c.name: getattr(self, c.name)
            for c in self.__table__.columns
            if c.name not in self.SENSITIVE_FIELDS
        }
        d["created_at"] = self.created_at.isoformat() if self.created_at else None
        d["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return d
