"""
User Service — registration, authentication, profile and password changes.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.auth import USER_ROLES, User
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthenticationError(Exception):
    """Bad credentials (401) or blocked account (403)."""

    def __init__(self, message, status_code=401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def normalize_and_validate_email(email):
    try:
        return validate_email((email or "").strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})


def check_password_length(password, field="password"):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={field: "too_short"},
        )


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(email, password, *, first_name=None, last_name=None, role="user", commit=True):
    """Create a local user. Duplicate emails are a 400, not a 409."""
    email = normalize_and_validate_email(email)
    check_password_length(password)
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    if get_user_by_email(email):
        raise ValidationError("Email already registered", details={"email": "duplicate"})

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    logger.info("User created id=%s role=%s", user.id, role)
    return user


def get_user_by_email(email):
    return User.query.filter_by(email=(email or "").strip().lower()).first()


def get_user_by_id(user_id):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def authenticate_user(email, password):
    user = get_user_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", (email or "")[:3] + "***")
        raise AuthenticationError("Invalid email or password", 401)
    if user.is_blocked:
        raise AuthenticationError("Account is blocked", 403)

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════
def update_profile(user, data):
    for field in User.PROFILE_FIELDS:
        if field in data:
            value = data[field]
            setattr(user, field, value.strip() if isinstance(value, str) else value)
    db.session.commit()
    return user


def change_password(user, current_password, new_password):
    if not current_password or not new_password:
        raise ValidationError("Both current_password and new_password are required")
    check_password_length(new_password, "new_password")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", details={"current_password": "mismatch"})
    user.password_hash = hash_password(new_password)
    db.session.commit()
    logger.info("Password changed for user %s", user.id)
    return user


def require_user(user_id):
    user = get_user_by_id(user_id)
    if not user:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user
