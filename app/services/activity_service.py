"""
Activity Service — project progress logs.

Functions:
    - log_activity:          Append a ProgressLog row (flush only; caller commits)
    - list_progress_logs:    Project history enriched with user/member names
    - list_activity:         Logs across a set of projects, newest first
"""

import logging

from sqlalchemy import select

from app.models import db
from app.models.activity import ACTIVITY_TYPES, ProgressLog

logger = logging.getLogger(__name__)


def log_activity(
    project_id,
    activity_type,
    *,
    user_id=None,
    stage_id=None,
    document_id=None,
    member_id=None,
    previous_progress=None,
    new_progress=None,
    previous_status=None,
    new_status=None,
    description=None,
    notes=None,
):
    """Record one activity entry in the current transaction."""
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")
    entry = ProgressLog(
        project_id=project_id,
        activity_type=activity_type,
        user_id=user_id,
        stage_id=stage_id,
        document_id=document_id,
        member_id=member_id,
        previous_progress=previous_progress,
        new_progress=new_progress,
        previous_status=previous_status,
        new_status=new_status,
        description=description,
        notes=notes,
    )
    db.session.add(entry)
    db.session.flush()
    logger.debug("Activity %s logged for project %s", activity_type, project_id)
    return entry


def _enrich(entry):
    d = entry.to_dict()
    d["user_name"] = entry.user.full_name if entry.user else None
    d["member_name"] = entry.member.name if entry.member else None
    return d


def list_progress_logs(project_id):
    stmt = (
        select(ProgressLog)
        .where(ProgressLog.project_id == project_id)
        .order_by(ProgressLog.created_at.desc(), ProgressLog.id.desc())
    )
    return [_enrich(e) for e in db.session.execute(stmt).scalars().all()]


def list_activity(project_ids, *, limit=None, activity_type=None):
    """Activity across ``project_ids``, newest first."""
    if not project_ids:
        return []
    stmt = select(ProgressLog).where(ProgressLog.project_id.in_(project_ids))
    if activity_type:
        stmt = stmt.where(ProgressLog.activity_type == activity_type)
    stmt = stmt.order_by(ProgressLog.created_at.desc(), ProgressLog.id.desc())
    if limit:
        stmt = stmt.limit(limit)
    return [_enrich(e) for e in db.session.execute(stmt).scalars().all()]
