"""
Briefing Service — project intake: fields, AI chat, attachments and completion.

Functions:
    - get_or_create_briefing / update_briefing (template_id attaches a briefing template)
    - parse_deadline:           "N days|weeks|months" → absolute datetime
    - chat:                     One AI interview turn, merging extracted fields
    - add_document:             Append an uploaded text file to raw_input
    - add_image_reference / remove_image_reference
    - upload_audio / delete_audio / get_transcription
    - complete_briefing:        Generate scope, roadmap, stages, checklists,
                                AI command and technical doc in one transaction
"""

import base64
import binascii
import calendar
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone

from flask import current_app
from werkzeug.utils import secure_filename

from app.ai import generators
from app.core.exceptions import NotFoundError, ValidationError
from app.integrations.object_storage import get_storage
from app.models import db
from app.models.document import AICommand, Document
from app.models.planning import BRIEFING_TEXT_FIELDS, Briefing, Checklist
from app.services import briefing_templates, planning_service, stage_service
from app.services.activity_service import log_activity

logger = logging.getLogger(__name__)

MAX_DOCUMENT_CHARS = 50_000
PRIVATE_PREFIX = ".private/"

_DEADLINE_RE = re.compile(
    r"(\d+)\s*(dias?|days?|semanas?|weeks?|meses|m[eê]s|months?)", re.IGNORECASE
)


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# Fields
# ═══════════════════════════════════════════════════════════════
def get_or_create_briefing(project):
    if project.briefing is None:
        briefing = Briefing(project_id=project.id, status="incomplete", conversation=[])
        db.session.add(briefing)
        project.briefing = briefing
        db.session.flush()
    return project.briefing


def _add_months(start, months):
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def parse_deadline(text, now=None):
    """Absolute deadline for texts like '30 days', '6 weeks' or '3 meses'."""
    match = _DEADLINE_RE.search(text or "")
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2).lower()
    now = (now or _utcnow()).replace(tzinfo=None)
    if unit.startswith(("dia", "day")):
        return now + timedelta(days=amount)
    if unit.startswith(("semana", "week")):
        return now + timedelta(weeks=amount)
    return _add_months(now, amount)


def _apply_template(briefing, template_id):
    """Attach a template; it fills project_type and stack only when they are empty."""
    if not template_id:
        briefing.template_id = None
        return
    try:
        template = briefing_templates.get_template(template_id)
    except NotFoundError:
        raise ValidationError("Unknown briefing template", details={"template_id": "invalid"})
    briefing.template_id = template["id"]
    if not briefing.project_type:
        briefing.project_type = template["name"]
    if not briefing.stack and template["suggested_stack"]:
        briefing.stack = ", ".join(template["suggested_stack"])


def update_briefing(project, data):
    briefing = get_or_create_briefing(project)
    for field in BRIEFING_TEXT_FIELDS:
        if field in data:
            setattr(briefing, field, data[field])
    if "visual_identity" in data:
        value = data["visual_identity"] or {}
        if not isinstance(value, dict):
            raise ValidationError("visual_identity must be an object", details={"visual_identity": "invalid"})
        briefing.visual_identity = dict(value)
    if "visual_references" in data:
        value = data["visual_references"] or []
        if not isinstance(value, list):
            raise ValidationError("visual_references must be a list", details={"visual_references": "invalid"})
        briefing.visual_references = list(value)
    if "current_field" in data:
        briefing.current_field = data["current_field"]
    if "deadline_text" in data:
        briefing.deadline = parse_deadline(data["deadline_text"])
    if "template_id" in data:
        _apply_template(briefing, data["template_id"])
    if briefing.status == "incomplete" and any(f in data for f in (*BRIEFING_TEXT_FIELDS, "template_id")):
        briefing.status = "in_progress"
    db.session.commit()
    return briefing


# ═══════════════════════════════════════════════════════════════
# Chat
# ═══════════════════════════════════════════════════════════════
def chat(project, message, user_id):
    message = (message or "").strip()
    if not message:
        raise ValidationError("message is required", details={"message": "required"})
    briefing = get_or_create_briefing(project)

    questions = None
    if briefing.template_id:
        questions = briefing_templates.get_template(briefing.template_id)["questions"]
    reply = generators.chat_briefing(project, briefing, message, user_id=user_id, questions=questions)

    conversation = list(briefing.conversation or [])
    conversation.append({"role": "user", "content": message, "timestamp": _utcnow().isoformat()})
    for field, value in reply["extracted_data"].items():
        if field in BRIEFING_TEXT_FIELDS and value:
            setattr(briefing, field, value)
            if field == "deadline_text":
                briefing.deadline = parse_deadline(value)
    briefing.status = "ready_to_finalize" if reply["is_complete"] else "in_progress"
    briefing.current_field = reply["current_field"]
    conversation.append({
        "role": "assistant",
        "content": reply["message"],
        "timestamp": _utcnow().isoformat(),
        "is_ready_to_finalize": reply["is_complete"],
    })
    briefing.conversation = conversation
    db.session.commit()
    return {
        "message": reply["message"],
        "extracted_data": reply["extracted_data"],
        "is_complete": reply["is_complete"],
        "current_field": briefing.current_field,
        "briefing": briefing.to_dict(),
    }


# ═══════════════════════════════════════════════════════════════
# Attachments
# ═══════════════════════════════════════════════════════════════
def add_document(project, filename, object_path):
    """Read an uploaded text document from storage into raw_input."""
    if not filename or not object_path:
        raise ValidationError("filename and object_path are required")
    if not object_path.startswith(PRIVATE_PREFIX):
        raise ValidationError(f"object_path must start with {PRIVATE_PREFIX}", details={"object_path": "invalid"})

    content = get_storage().get(object_path).decode("utf-8", errors="replace")
    if len(content) > MAX_DOCUMENT_CHARS:
        content = content[:MAX_DOCUMENT_CHARS] + "\n\n[content truncated]"

    briefing = get_or_create_briefing(project)
    section = f"--- {filename} ---\n{content}"
    briefing.raw_input = f"{briefing.raw_input}\n\n{section}" if briefing.raw_input else section
    briefing.conversation = list(briefing.conversation or []) + [{
        "role": "system",
        "content": f"Document attached: {filename}",
        "timestamp": _utcnow().isoformat(),
    }]
    db.session.commit()
    logger.info("Document %s attached to briefing of project %s", filename, project.id)
    return briefing


def add_image_reference(project, url, description=None, user_id=None):
    if not url:
        raise ValidationError("url is required", details={"url": "required"})
    briefing = get_or_create_briefing(project)
    styles = generators.extract_style(url, description, user_id=user_id)
    reference = {
        "id": f"ref-{int(_utcnow().timestamp() * 1000)}",
        "url": url,
        "description": description,
        "extracted_styles": styles,
        "uploaded_at": _utcnow().isoformat(),
    }
    identity = dict(briefing.visual_identity or {})
    identity["references"] = list(identity.get("references") or []) + [reference]
    briefing.visual_identity = identity
    db.session.commit()
    return reference, briefing


def remove_image_reference(project, index):
    briefing = get_or_create_briefing(project)
    identity = dict(briefing.visual_identity or {})
    references = list(identity.get("references") or [])
    if index < 0 or index >= len(references):
        raise NotFoundError(resource="Image reference", resource_id=index)
    references.pop(index)
    identity["references"] = references
    briefing.visual_identity = identity
    db.session.commit()
    return briefing


def upload_audio(project, audio_base64, filename, mime_type=None, title=None, user_id=None):
    """Store a base64 recording, transcribe it and append the record."""
    if not audio_base64 or not filename:
        raise ValidationError("audio and filename are required")
    try:
        audio = base64.b64decode(audio_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("audio must be base64 encoded", details={"audio": "invalid"})
    if not audio:
        raise ValidationError("audio is empty", details={"audio": "empty"})
    limit = current_app.config["MAX_AUDIO_BYTES"]
    if len(audio) > limit:
        raise ValidationError(f"audio exceeds {limit // (1024 * 1024)} MB", details={"audio": "too_large"})

    briefing = get_or_create_briefing(project)
    audio_id = f"audio-{uuid.uuid4().hex[:12]}"
    safe_name = secure_filename(filename) or "recording"
    object_path = f"briefing-audio/{project.id}/{audio_id}-{safe_name}"
    get_storage().put(object_path, audio, mime_type)

    transcription = generators.transcribe_audio(audio, safe_name, mime_type, user_id=user_id)
    record = {
        "id": audio_id,
        "filename": filename,
        "object_path": object_path,
        "mime_type": mime_type,
        "size": len(audio),
        "title": title or filename.rsplit(".", 1)[0],
        "transcription": transcription,
        "transcription_preview": (transcription or "")[:200],
        "uploaded_at": _utcnow().isoformat(),
    }
    briefing.audio_recordings = list(briefing.audio_recordings or []) + [record]
    if transcription:
        section = f"--- Audio transcription: {record['title']} ---\n{transcription}"
        briefing.raw_input = f"{briefing.raw_input}\n\n{section}" if briefing.raw_input else section
    db.session.commit()
    logger.info("Audio %s uploaded for project %s (%d bytes)", audio_id, project.id, len(audio))
    return record


def delete_audio(project, audio_id=None):
    """Delete one recording, or all of them when ``audio_id`` is None."""
    briefing = get_or_create_briefing(project)
    recordings = list(briefing.audio_recordings or [])
    if audio_id is None:
        removed, kept = recordings, []
    else:
        removed = [r for r in recordings if r.get("id") == audio_id]
        if not removed:
            raise NotFoundError(resource="Audio", resource_id=audio_id)
        kept = [r for r in recordings if r.get("id") != audio_id]

    storage = get_storage()
    for record in removed:
        if record.get("object_path"):
            storage.delete(record["object_path"])
    briefing.audio_recordings = kept
    db.session.commit()
    return len(removed)


def get_transcription(project, audio_id):
    """(download filename, transcription text) for one recording."""
    briefing = get_or_create_briefing(project)
    record = next((r for r in briefing.audio_recordings or [] if r.get("id") == audio_id), None)
    if record is None:
        raise NotFoundError(resource="Audio", resource_id=audio_id)
    if not record.get("transcription"):
        raise NotFoundError(resource="Transcription", resource_id=audio_id)
    base = (record.get("title") or audio_id).replace('"', "")
    return f"{base}-transcription.txt", record["transcription"]


# ═══════════════════════════════════════════════════════════════
# Completion
# ═══════════════════════════════════════════════════════════════
def complete_briefing(project, user_id):
    """Turn a finished briefing into the project's planning artefacts.

    Existing stages and checklists of the same type are kept; the technical
    document is replaced; a new AI command is appended.
    """
    briefing = get_or_create_briefing(project)
    missing = briefing.missing_fields()
    if missing:
        raise ValidationError("Briefing is missing required fields", details={"missing_fields": missing})

    scope_data = generators.generate_scope(project, briefing, user_id=user_id)
    scope = planning_service.upsert_scope(project, scope_data)
    roadmap_data = generators.generate_roadmap(project, briefing, scope, user_id=user_id)
    roadmap = planning_service.upsert_roadmap(project, roadmap_data)

    stages = stage_service.create_default_stages(project)

    existing_checklists = {c.type for c in project.checklists}
    checklists = generators.generate_checklists(project, briefing, scope, user_id=user_id)
    for checklist_type, items in checklists.items():
        if checklist_type in existing_checklists:
            continue
        db.session.add(Checklist(
            project_id=project.id,
            type=checklist_type,
            items=[{"text": text, "checked": False} for text in items],
        ))

    command = generators.generate_ai_command(project, briefing, scope, roadmap, user_id=user_id)
    db.session.add(AICommand(
        project_id=project.id,
        prompt_text=command["prompt_text"],
        json_command=command["json_command"],
        target_platform="cursor",
    ))

    content = generators.generate_technical_document(project, briefing, scope, user_id=user_id)
    document = Document.query.filter_by(project_id=project.id, type="technical").first()
    if document is None:
        document = Document(project_id=project.id, type="technical")
        db.session.add(document)
    document.title = "Technical Documentation"
    document.content = content
    document.meta = {"generated_from": "briefing", "generated_at": _utcnow().isoformat()}
    db.session.flush()
    log_activity(project.id, "document_created", user_id=user_id, document_id=document.id,
                 description="Technical Documentation generated from briefing")

    if project.status != "planning":
        log_activity(
            project.id, "project_status_changed", user_id=user_id,
            previous_status=project.status, new_status="planning",
            description=f"Status changed from {project.status} to planning",
        )
    project.status = "planning"
    project.progress = 10
    briefing.status = "complete"
    db.session.commit()
    logger.info("Briefing completed for project %s (%d new stages)", project.id, len(stages))
    return {
        "briefing": briefing.to_dict(),
        "scope": scope.to_dict(),
        "roadmap": roadmap.to_dict(),
        "stages": [s.to_dict(include_tasks=True) for s in stage_service.list_stages(project)],
        "project": project.to_dict(),
    }
