"""
Document Service — checklists, generated documents and AI commands.

Functions:
    - list_checklists / update_checklist
    - list_documents / generate_document / delete_document
    - get_ai_command / regenerate_ai_command
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from app.ai import generators
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.document import DOCUMENT_TYPES, AICommand, Document
from app.models.planning import CHECKLIST_TYPES, Checklist
from app.services.activity_service import log_activity
from app.services.project_service import get_project_for_user

logger = logging.getLogger(__name__)

AI_TARGET_PLATFORMS = ("cursor", "copilot", "claude", "generic")


# ═══════════════════════════════════════════════════════════════
# Checklists
# ═══════════════════════════════════════════════════════════════
def list_checklists(project, checklist_type=None):
    stmt = select(Checklist).where(Checklist.project_id == project.id)
    if checklist_type:
        if checklist_type not in CHECKLIST_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(CHECKLIST_TYPES)}")
        stmt = stmt.where(Checklist.type == checklist_type)
    return db.session.execute(stmt.order_by(Checklist.id)).scalars().all()


def get_checklist_for_user(checklist_id, user_id):
    checklist = db.session.get(Checklist, checklist_id)
    if not checklist:
        raise NotFoundError(resource="Checklist", resource_id=checklist_id)
    get_project_for_user(checklist.project_id, user_id)
    return checklist


def update_checklist(checklist, items):
    """Replace the item list; each item is {text, checked}."""
    if not isinstance(items, list):
        raise ValidationError("items must be a list", details={"items": "invalid"})
    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or not str(item.get("text") or "").strip():
            raise ValidationError(f"items[{index}] needs a non-empty text", details={"items": index})
        cleaned.append({"text": str(item["text"]).strip(), "checked": bool(item.get("checked"))})
    checklist.items = cleaned
    db.session.commit()
    return checklist


# ═══════════════════════════════════════════════════════════════
# Documents
# ═══════════════════════════════════════════════════════════════
def list_documents(project, doc_type=None):
    stmt = select(Document).where(Document.project_id == project.id)
    if doc_type:
        stmt = stmt.where(Document.type == doc_type)
    return db.session.execute(stmt.order_by(Document.created_at.desc(), Document.id.desc())).scalars().all()


def generate_document(project, doc_type, user_id):
    """Create or replace the project's document of ``doc_type``."""
    if doc_type not in DOCUMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(DOCUMENT_TYPES)}", details={"type": "invalid"})

    title, content = generators.generate_document(
        doc_type, project, project.briefing, project.scope, project.roadmap, user_id=user_id
    )
    document = Document.query.filter_by(project_id=project.id, type=doc_type).first()
    created = document is None
    if created:
        document = Document(project_id=project.id, type=doc_type)
        db.session.add(document)
    document.title = title[:255]
    document.content = content
    document.meta = {"generated_at": datetime.now(timezone.utc).isoformat(), "generated_by": user_id}
    db.session.flush()
    if created:
        log_activity(project.id, "document_created", user_id=user_id, document_id=document.id,
                     description=f"{title} generated")
    db.session.commit()
    logger.info("Document %s (%s) generated for project %s", document.id, doc_type, project.id)
    return document


def delete_document(project, document_id):
    document = db.session.get(Document, document_id)
    if not document or document.project_id != project.id:
        raise NotFoundError(resource="Document", resource_id=document_id)
    db.session.delete(document)
    db.session.commit()


# ═══════════════════════════════════════════════════════════════
# AI command
# ═══════════════════════════════════════════════════════════════
def get_ai_command(project):
    stmt = (
        select(AICommand)
        .where(AICommand.project_id == project.id)
        .order_by(AICommand.created_at.desc(), AICommand.id.desc())
        .limit(1)
    )
    return db.session.execute(stmt).scalars().first()


def regenerate_ai_command(project, user_id, target_platform="cursor"):
    """Rewrite the latest AI command in place, creating one if none exists."""
    if target_platform not in AI_TARGET_PLATFORMS:
        raise ValidationError(f"target_platform must be one of: {', '.join(AI_TARGET_PLATFORMS)}")
    result = generators.generate_ai_command(
        project, project.briefing, project.scope, project.roadmap, user_id=user_id
    )
    command = get_ai_command(project)
    if command is None:
        command = AICommand(project_id=project.id)
        db.session.add(command)
    command.prompt_text = result["prompt_text"]
    command.json_command = result["json_command"]
    command.target_platform = target_platform
    db.session.commit()
    return command
