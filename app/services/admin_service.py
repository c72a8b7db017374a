"""
Admin Service — platform-wide management business logic.

Provides the queries, mutations and aggregations behind the admin
blueprint: dashboard stats, the LLM provider chain, user management,
platform settings and the admin audit trail. Every mutation writes an
AdminAuditLog row in the same transaction as the change itself.
"""

import logging

from flask import current_app
from sqlalchemy import func

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.activity import AdminAuditLog
from app.models.auth import USER_ROLES, User
from app.models.client import Client
from app.models.export import ProjectExport
from app.models.platform import AIProvider, PlatformSetting
from app.models.project import Project
from app.services.user_service import create_user, normalize_and_validate_email
from app.utils.crypto import hash_password

logger = logging.getLogger(__name__)

PROVIDER_TYPES = ("anthropic", "openai", "gemini", "local")


def write_admin_audit(admin_id, action, target_type=None, target_id=None,
                      previous_value=None, new_value=None, ip_address=None):
    """Add an AdminAuditLog row to the session; the caller commits."""
    entry = AdminAuditLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        previous_value=previous_value,
        new_value=new_value,
        ip_address=ip_address,
    )
    db.session.add(entry)
    return entry


# ═══════════════════════════════════════════════════════════════
# Bootstrap
# ═══════════════════════════════════════════════════════════════

def admin_exists() -> bool:
    return db.session.scalar(
        db.select(func.count()).select_from(User).where(User.role == "platform_admin")
    ) > 0


def check_admin(user) -> dict:
    return {
        "is_platform_admin": bool(user and user.is_platform_admin),
        "admin_exists": admin_exists(),
    }


def init_admin(user, ip_address=None) -> User:
    """Promote ``user`` when no platform admin exists and the email matches."""
    if admin_exists():
        raise ValidationError("A platform admin already exists")
    allowed = (current_app.config.get("PLATFORM_ADMIN_EMAIL") or "").strip().lower()
    if not allowed or user.email.lower() != allowed:
        raise ValidationError("This account is not allowed to initialise the platform admin")

    previous = user.role
    user.role = "platform_admin"
    write_admin_audit(user.id, "init_admin", "user", user.id,
                      {"role": previous}, {"role": "platform_admin"}, ip_address)
    db.session.commit()
    logger.info("Platform admin initialised: user %s", user.id)
    return user


# ═══════════════════════════════════════════════════════════════
# Stats
# ═══════════════════════════════════════════════════════════════

def _count(model, *where):
    stmt = db.select(func.count()).select_from(model)
    for clause in where:
        stmt = stmt.where(clause)
    return db.session.scalar(stmt) or 0


def get_stats() -> dict:
    by_status = dict(
        db.session.execute(db.select(Project.status, func.count()).group_by(Project.status)).all()
    )
    tokens = db.session.scalar(db.select(func.coalesce(func.sum(AIProvider.total_tokens_used), 0)))
    return {
        "total_users": _count(User),
        "blocked_users": _count(User, User.is_blocked.is_(True)),
        "total_clients": _count(Client),
        "total_projects": _count(Project),
        "projects_by_status": by_status,
        "total_exports": _count(ProjectExport),
        "total_tokens_used": int(tokens or 0),
        "active_providers": _count(AIProvider, AIProvider.is_active.is_(True)),
    }


# ═══════════════════════════════════════════════════════════════
# AI providers
# ═══════════════════════════════════════════════════════════════

def list_providers() -> list[dict]:
    rows = db.session.execute(
        db.select(AIProvider).order_by(AIProvider.priority, AIProvider.id)
    ).scalars().all()
    return [p.to_dict() for p in rows]


def _get_provider(provider_id) -> AIProvider:
    provider = db.session.get(AIProvider, provider_id)
    if not provider:
        raise NotFoundError(resource="AIProvider", resource_id=provider_id)
    return provider


_PROVIDER_FIELDS = ("name", "provider", "model", "api_key_env_var", "base_url_env_var",
                    "is_active", "max_tokens", "temperature", "description")


def _apply_provider_fields(provider: AIProvider, data: dict) -> None:
    if "provider" in data and data["provider"] not in PROVIDER_TYPES:
        raise ValidationError(f"provider must be one of: {', '.join(PROVIDER_TYPES)}",
                              details={"provider": "invalid"})
    for field in ("max_tokens", "temperature", "priority"):
        if field in data:
            try:
                data[field] = int(data[field])
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    for field in _PROVIDER_FIELDS + ("priority",):
        if field in data:
            setattr(provider, field, data[field])


def create_provider(admin_id, data, ip_address=None) -> dict:
    missing = [f for f in ("name", "provider", "model") if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}",
                              details={f: "required" for f in missing})
    max_priority = db.session.scalar(db.select(func.max(AIProvider.priority))) or 0
    provider = AIProvider(priority=max_priority + 1, max_tokens=4096, temperature=70, is_active=True)
    _apply_provider_fields(provider, dict(data))
    db.session.add(provider)
    db.session.flush()
    write_admin_audit(admin_id, "create_provider", "provider", provider.id,
                      None, provider.to_dict(), ip_address)
    db.session.commit()
    return provider.to_dict()


def update_provider(admin_id, provider_id, data, ip_address=None) -> dict:
    provider = _get_provider(provider_id)
    before = provider.to_dict()
    _apply_provider_fields(provider, dict(data))
    db.session.flush()
    write_admin_audit(admin_id, "update_provider", "provider", provider.id,
                      before, provider.to_dict(), ip_address)
    db.session.commit()
    return provider.to_dict()


def delete_provider(admin_id, provider_id, ip_address=None) -> None:
    provider = _get_provider(provider_id)
    write_admin_audit(admin_id, "delete_provider", "provider", provider.id,
                      provider.to_dict(), None, ip_address)
    db.session.delete(provider)
    db.session.commit()


def reorder_providers(admin_id, provider_ids, ip_address=None) -> list[dict]:
    """Priority follows the position in ``provider_ids`` (1-based)."""
    if not isinstance(provider_ids, list):
        raise ValidationError("provider_ids must be a list", details={"provider_ids": "invalid"})
    previous = {}
    for position, provider_id in enumerate(provider_ids, start=1):
        provider = _get_provider(provider_id)
        previous[str(provider.id)] = provider.priority
        provider.priority = position
    write_admin_audit(admin_id, "reorder_providers", "provider", None,
                      previous, {str(pid): i for i, pid in enumerate(provider_ids, start=1)}, ip_address)
    db.session.commit()
    return list_providers()


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════

def list_users(search=None) -> list[dict]:
    stmt = db.select(User).order_by(User.created_at.desc(), User.id.desc())
    if search:
        like = f"%{search}%"
        stmt = stmt.where(User.email.ilike(like) | User.first_name.ilike(like) | User.last_name.ilike(like))
    users = db.session.execute(stmt).scalars().all()

    project_counts = dict(db.session.execute(
        db.select(Project.user_id, func.count()).group_by(Project.user_id)
    ).all())
    client_counts = dict(db.session.execute(
        db.select(Client.user_id, func.count()).group_by(Client.user_id)
    ).all())
    items = []
    for u in users:
        d = u.to_dict()
        d["project_count"] = project_counts.get(u.id, 0)
        d["client_count"] = client_counts.get(u.id, 0)
        items.append(d)
    return items


def _get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def admin_create_user(admin_id, data, ip_address=None) -> User:
    if not data.get("email") or not data.get("password"):
        raise ValidationError("email and password are required")
    user = create_user(
        data["email"], data["password"],
        first_name=data.get("first_name"), last_name=data.get("last_name"),
        role=data.get("role") or "user", commit=False,
    )
    write_admin_audit(admin_id, "create_user", "user", user.id, None,
                      {"email": user.email, "role": user.role}, ip_address)
    db.session.commit()
    return user


def admin_update_user(admin_id, user_id, data, ip_address=None) -> User:
    user = _get_user(user_id)
    before = {"email": user.email, "first_name": user.first_name, "last_name": user.last_name}
    if "email" in data:
        email = normalize_and_validate_email(data["email"])
        clash = User.query.filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ValidationError("Email already registered", details={"email": "duplicate"})
        user.email = email
    for field in User.PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    if data.get("password"):
        if len(data["password"]) < 6:
            raise ValidationError("Password must be at least 6 characters", details={"password": "too_short"})
        user.password_hash = hash_password(data["password"])
    write_admin_audit(admin_id, "update_user", "user", user.id, before,
                      {"email": user.email, "first_name": user.first_name, "last_name": user.last_name},
                      ip_address)
    db.session.commit()
    return user


def set_user_role(admin_id, user_id, role, ip_address=None) -> User:
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}", details={"role": "invalid"})
    user = _get_user(user_id)
    previous = user.role
    user.role = role
    write_admin_audit(admin_id, "update_role", "user", user.id, {"role": previous}, {"role": role}, ip_address)
    db.session.commit()
    logger.info("User %s role %s -> %s by admin %s", user.id, previous, role, admin_id)
    return user


def set_user_blocked(admin_id, user_id, blocked, ip_address=None) -> User:
    if not isinstance(blocked, bool):
        raise ValidationError("is_blocked must be a boolean", details={"is_blocked": "invalid"})
    user = _get_user(user_id)
    if user.id == admin_id:
        raise ValidationError("You cannot block yourself")
    previous = bool(user.is_blocked)
    user.is_blocked = blocked
    write_admin_audit(admin_id, "block_user" if blocked else "unblock_user", "user", user.id,
                      {"is_blocked": previous}, {"is_blocked": blocked}, ip_address)
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Clients & projects (read-only, cross-account)
# ═══════════════════════════════════════════════════════════════

def list_all_clients() -> list[dict]:
    clients = db.session.execute(db.select(Client).order_by(Client.created_at.desc())).scalars().all()
    owners = {u.id: u.email for u in db.session.execute(db.select(User)).scalars()}
    items = []
    for c in clients:
        d = c.to_dict()
        d["owner_email"] = owners.get(c.user_id)
        d["project_count"] = len(c.projects)
        items.append(d)
    return items


def list_all_projects(status=None) -> list[dict]:
    stmt = db.select(Project).order_by(Project.created_at.desc())
    if status:
        stmt = stmt.where(Project.status == status)
    items = []
    for p in db.session.execute(stmt).scalars():
        d = p.to_dict(include_client=True)
        d["owner_email"] = p.owner.email if p.owner else None
        items.append(d)
    return items


# ═══════════════════════════════════════════════════════════════
# Platform settings
# ═══════════════════════════════════════════════════════════════

def list_settings() -> list[dict]:
    rows = db.session.execute(db.select(PlatformSetting).order_by(PlatformSetting.key)).scalars()
    return [s.to_dict() for s in rows]


def get_setting(key) -> PlatformSetting:
    setting = PlatformSetting.query.filter_by(key=key).first()
    if not setting:
        raise NotFoundError(resource="PlatformSetting", resource_id=key)
    return setting


def upsert_setting(admin_id, key, data, ip_address=None) -> PlatformSetting:
    key = (key or "").strip()
    if not key:
        raise ValidationError("key is required", details={"key": "required"})
    if "value" not in data:
        raise ValidationError("value is required", details={"value": "required"})

    setting = PlatformSetting.query.filter_by(key=key).first()
    previous = setting.value if setting else None
    if setting is None:
        setting = PlatformSetting(key=key[:100])
        db.session.add(setting)
    setting.value = data["value"]
    if "description" in data:
        setting.description = data["description"]
    if data.get("category"):
        setting.category = data["category"]
    setting.updated_by = admin_id
    write_admin_audit(admin_id, "update_setting", "settings", key, previous, data["value"], ip_address)
    db.session.commit()
    return setting


# ═══════════════════════════════════════════════════════════════
# Audit trail
# ═══════════════════════════════════════════════════════════════

def list_audit_logs(limit=100) -> list[dict]:
    limit = max(1, min(int(limit), 500))
    rows = db.session.execute(
        db.select(AdminAuditLog).order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc()).limit(limit)
    ).scalars()
    return [r.to_dict() for r in rows]
