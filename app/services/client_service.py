"""
Client Service — clients, client feedback and the client portal.

Functions:
    - list_clients / get_client / create_client / update_client / delete_client
    - list_client_feedbacks / list_project_feedbacks / review_feedback
    - portal_login / portal_logout
    - portal_projects / portal_project_detail
    - create_portal_feedback / list_portal_feedbacks

Clients are owned by a single agency user; every lookup is scoped to that
user and a foreign client is reported as not found.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models import db
from app.models.client import (
    DOCUMENT_TYPES,
    FEEDBACK_STATUSES,
    FEEDBACK_TYPES,
    Client,
    ClientFeedback,
    ClientPortalSession,
)
from app.models.project import Project
from app.utils.crypto import generate_token, hash_password, sha256_hex, verify_password
from app.utils.validators import is_valid_email, normalize_email, validate_document

logger = logging.getLogger(__name__)

PORTAL_SESSION_HOURS = 24

_TEXT_FIELDS = ("name", "email", "phone", "company", "notes", "image_url", "razao_social")


# ── Clients ──────────────────────────────────────────────────────────────────


def list_clients(user_id, search=None):
    stmt = select(Client).where(Client.user_id == user_id)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Client.name.ilike(like), Client.company.ilike(like), Client.email.ilike(like)))
    stmt = stmt.order_by(Client.name)
    return db.session.execute(stmt).scalars().all()


def get_client(user_id, client_id):
    client = db.session.get(Client, client_id)
    if not client or client.user_id != user_id:
        raise NotFoundError(resource="Client", resource_id=client_id)
    return client


def _apply_client_fields(client, data):
    for field in _TEXT_FIELDS:
        if field in data:
            value = data[field]
            setattr(client, field, value.strip() if isinstance(value, str) else value)
    if not (client.name or "").strip():
        raise ValidationError("name is required", details={"name": "required"})
    if client.email:
        if not is_valid_email(client.email):
            raise ValidationError("Invalid email", details={"email": "invalid"})
        client.email = normalize_email(client.email)

    if "address" in data:
        address = data["address"] or {}
        if not isinstance(address, dict):
            raise ValidationError("address must be an object", details={"address": "invalid"})
        client.address = dict(address)

    if "document_type" in data or "document" in data:
        doc_type = data.get("document_type", client.document_type)
        document = data.get("document", client.document)
        if document:
            if doc_type not in DOCUMENT_TYPES:
                raise ValidationError("document_type must be 'cpf' or 'cnpj'", details={"document_type": "invalid"})
            client.document = validate_document(doc_type, document)
        else:
            client.document = None
        client.document_type = doc_type or None

    if "has_portal_access" in data:
        client.has_portal_access = bool(data["has_portal_access"])
    if "portal_email" in data:
        portal_email = normalize_email(data["portal_email"]) or None
        if portal_email and not is_valid_email(portal_email):
            raise ValidationError("Invalid portal_email", details={"portal_email": "invalid"})
        client.portal_email = portal_email

    password = data.get("portal_password")
    if password and client.has_portal_access:
        client.portal_password_hash = hash_password(password)

    if client.has_portal_access and not client.portal_email:
        client.portal_email = client.email
    if client.has_portal_access and not client.portal_email:
        raise ValidationError("portal_email is required for portal access", details={"portal_email": "required"})
    if client.has_portal_access and client.portal_email:
        other = Client.query.filter(
            Client.portal_email == client.portal_email,
            Client.has_portal_access.is_(True),
            Client.id != client.id,
        ).first()
        if other:
            raise ValidationError("portal_email already in use", details={"portal_email": "duplicate"})


def create_client(user_id, data):
    client = Client(user_id=user_id)
    _apply_client_fields(client, data)
    db.session.add(client)
    db.session.commit()
    logger.info("Client created id=%s user=%s", client.id, user_id)
    return client


def update_client(user_id, client_id, data):
    client = get_client(user_id, client_id)
    _apply_client_fields(client, data)
    db.session.commit()
    return client


def delete_client(user_id, client_id):
    client = get_client(user_id, client_id)
    db.session.delete(client)
    db.session.commit()
    logger.info("Client deleted id=%s user=%s", client_id, user_id)


# ── Feedback ─────────────────────────────────────────────────────────────────


def list_client_feedbacks(user_id, client_id, status=None):
    get_client(user_id, client_id)
    stmt = select(ClientFeedback).where(ClientFeedback.client_id == client_id)
    if status:
        stmt = stmt.where(ClientFeedback.status == status)
    stmt = stmt.order_by(ClientFeedback.created_at.desc(), ClientFeedback.id.desc())
    return db.session.execute(stmt).scalars().all()


def list_project_feedbacks(project_id, status=None):
    stmt = select(ClientFeedback).where(ClientFeedback.project_id == project_id)
    if status:
        stmt = stmt.where(ClientFeedback.status == status)
    stmt = stmt.order_by(ClientFeedback.created_at.desc(), ClientFeedback.id.desc())
    return db.session.execute(stmt).scalars().all()


def review_feedback(user_id, feedback_id, data):
    """Set status / review notes on feedback for one of the user's clients."""
    feedback = db.session.get(ClientFeedback, feedback_id)
    if not feedback or not feedback.client or feedback.client.user_id != user_id:
        raise NotFoundError(resource="Feedback", resource_id=feedback_id)

    if "status" in data:
        status = data["status"]
        if status not in FEEDBACK_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(FEEDBACK_STATUSES)}")
        feedback.status = status
        if status in ("reviewed", "resolved"):
            feedback.reviewed_by = user_id
            feedback.reviewed_at = datetime.now(timezone.utc)
    if "review_notes" in data:
        feedback.review_notes = data["review_notes"]
    db.session.commit()
    return feedback


# ── Portal ───────────────────────────────────────────────────────────────────


def portal_login(email, password):
    """Returns (raw_token, client), or None when the credentials do not match."""
    if not email or not password:
        raise ValidationError("Email and password are required")
    client = Client.query.filter_by(portal_email=normalize_email(email), has_portal_access=True).first()
    if not client or not client.portal_password_hash or not verify_password(password, client.portal_password_hash):
        return None

    now = datetime.now(timezone.utc)
    token = generate_token(32)
    db.session.add(ClientPortalSession(
        client_id=client.id,
        token_hash=sha256_hex(token),
        expires_at=now + timedelta(hours=PORTAL_SESSION_HOURS),
    ))
    client.portal_last_login_at = now
    db.session.commit()
    logger.info("Portal login client=%s", client.id)
    return token, client


def portal_logout(session):
    db.session.delete(session)
    db.session.commit()


def portal_projects(client):
    stmt = select(Project).where(Project.client_id == client.id).order_by(Project.created_at.desc())
    return db.session.execute(stmt).scalars().all()


def portal_project_detail(client, project_id):
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if project.client_id != client.id:
        raise PermissionDeniedError("Project does not belong to this client")
    return {
        "project": project.to_dict(),
        "briefing": project.briefing.to_dict() if project.briefing else None,
        "scope": project.scope.to_dict() if project.scope else None,
        "roadmap": project.roadmap.to_dict() if project.roadmap else None,
        "stages": [s.to_dict(include_tasks=True) for s in project.stages],
    }


def create_portal_feedback(client, project_id, data):
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if project.client_id != client.id:
        raise PermissionDeniedError("Project does not belong to this client")

    content = (data.get("content") or "").strip()
    if not content:
        raise ValidationError("content is required", details={"content": "required"})
    fb_type = data.get("type") or "observation"
    if fb_type not in FEEDBACK_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(FEEDBACK_TYPES)}")
    images = data.get("images") or []
    if not isinstance(images, list):
        raise ValidationError("images must be a list", details={"images": "invalid"})

    feedback = ClientFeedback(
        client_id=client.id,
        project_id=project.id,
        type=fb_type,
        content=content,
        images=[str(i) for i in images],
    )
    db.session.add(feedback)
    db.session.commit()
    logger.info("Portal feedback id=%s client=%s project=%s", feedback.id, client.id, project.id)
    return feedback


def list_portal_feedbacks(client, status=None):
    stmt = select(ClientFeedback).where(ClientFeedback.client_id == client.id)
    if status:
        stmt = stmt.where(ClientFeedback.status == status)
    stmt = stmt.order_by(ClientFeedback.created_at.desc(), ClientFeedback.id.desc())
    return db.session.execute(stmt).scalars().all()
