"""
Team Service — project members, invitations and stage assignments.

A member added with a password for an email that has no account yet gets a
new account and becomes active immediately; that account is marked
``provisioned_by_project`` and only then may the project reset its password.
Every other member stays pending and receives an emailed invite link valid
for 7 days. An invitee who already has an account accepts by confirming their
own password.
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import select

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models import db
from app.models.planning import Stage
from app.models.project import (
    INVITE_TTL_DAYS,
    MEMBER_ROLES,
    MEMBER_STATUSES,
    ProjectInvite,
    ProjectMember,
    StageAssignment,
)
from app.services import user_service
from app.services.activity_service import log_activity
from app.services.email_service import send_invite_email
from app.services.project_service import get_project_for_user, require_manager
from app.utils.crypto import generate_token, hash_password, verify_password
from app.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def _check_role(role):
    if role not in MEMBER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(MEMBER_ROLES)}", details={"role": "invalid"})


# ═══════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════
def list_members(project):
    stmt = (
        select(ProjectMember)
        .where(ProjectMember.project_id == project.id)
        .order_by(ProjectMember.created_at, ProjectMember.id)
    )
    return db.session.execute(stmt).scalars().all()


def get_member_for_user(member_id, user_id):
    member = db.session.get(ProjectMember, member_id)
    if not member:
        raise NotFoundError(resource="Member", resource_id=member_id)
    get_project_for_user(member.project_id, user_id)
    return member


def add_member(project, inviter, data):
    """Returns (member, invite); invite is None for directly activated members."""
    require_manager(project, inviter.id, "add team members")
    email = user_service.normalize_and_validate_email(data.get("email"))
    role = data.get("role") or "contributor"
    _check_role(role)
    if ProjectMember.query.filter_by(project_id=project.id, email=email).first():
        raise ValidationError("This email is already a member of the project", details={"email": "duplicate"})
    name = (data.get("name") or "").strip() or email.split("@")[0]

    member = ProjectMember(
        project_id=project.id,
        email=email,
        name=name[:255],
        role=role,
        specialty=data.get("specialty"),
        status="pending",
    )
    db.session.add(member)

    invite = None
    password = data.get("password")
    if password:
        user_service.check_password_length(password)
    existing = user_service.get_user_by_email(email)
    if password and existing is None:
        first, _, last = name.partition(" ")
        user = user_service.create_user(email, password, first_name=first, last_name=last or None, commit=False)
        member.user_id = user.id
        member.status = "active"
        member.joined_at = _utcnow()
        member.provisioned_by_project = True
        db.session.flush()
    else:
        if password:
            logger.info("Email of member for project %s has an account; sending an invite instead", project.id)
        db.session.flush()
        invite = ProjectInvite(
            project_id=project.id,
            member_id=member.id,
            email=email,
            token=generate_token(32),
            status="pending",
            expires_at=_utcnow() + timedelta(days=INVITE_TTL_DAYS),
        )
        db.session.add(invite)

    log_activity(project.id, "member_added", user_id=inviter.id, member_id=member.id,
                 description=f"{name} added as {role}")
    db.session.commit()

    if invite is not None:
        invite_url = f"{current_app.config['PUBLIC_BASE_URL'].rstrip('/')}/invite/{invite.token}"
        send_invite_email(email, project.name, inviter.full_name or inviter.email, role, invite_url,
                          ttl_days=INVITE_TTL_DAYS)
    logger.info("Member %s added to project %s (status=%s)", member.id, project.id, member.status)
    return member, invite


def update_member(member, user_id, data):
    require_manager(member.project, user_id, "edit team members")
    if "role" in data:
        _check_role(data["role"])
        member.role = data["role"]
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        member.name = name[:255]
    if "specialty" in data:
        member.specialty = data["specialty"]
    if "status" in data:
        if data["status"] not in MEMBER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(MEMBER_STATUSES)}")
        member.status = data["status"]
    if data.get("password"):
        user_service.check_password_length(data["password"])
        if member.user is None:
            raise ValidationError("Member has no account yet; they must accept the invite first")
        if not member.provisioned_by_project:
            raise PermissionDeniedError("Only accounts created by this project can have their password reset")
        member.user.password_hash = hash_password(data["password"])
    db.session.commit()
    return member


def remove_member(member, user_id):
    require_manager(member.project, user_id, "remove team members")
    db.session.delete(member)
    db.session.commit()
    logger.info("Member %s removed by user %s", member.id, user_id)


# ═══════════════════════════════════════════════════════════════
# Invites
# ═══════════════════════════════════════════════════════════════
def get_pending_invite(token):
    invite = ProjectInvite.query.filter_by(token=token).first()
    if not invite:
        raise NotFoundError(resource="Invite", resource_id=token)
    if invite.status == "accepted":
        raise ValidationError("Invite has already been accepted")
    if invite.is_expired:
        raise ValidationError("Invite has expired")
    return invite


def describe_invite(invite):
    d = invite.to_dict()
    d["project_name"] = invite.project.name if invite.project else None
    d["member_name"] = invite.member.name if invite.member else None
    d["role"] = invite.member.role if invite.member else None
    return d


def accept_invite(token, data):
    """Activate the membership, creating the invitee's account when they have none.

    An invitee with an existing account must send that account's password.
    """
    invite = get_pending_invite(token)
    password = data.get("password")
    user_service.check_password_length(password)

    member = invite.member
    user = user_service.get_user_by_email(invite.email)
    if user is not None:
        if not verify_password(password, user.password_hash):
            raise ValidationError("Password does not match the existing account for this email",
                                  details={"password": "mismatch"})
    else:
        first, _, last = (member.name or "").partition(" ")
        user = user_service.create_user(
            invite.email, password,
            first_name=data.get("first_name") or first or None,
            last_name=data.get("last_name") or last or None,
            commit=False,
        )
    now = _utcnow()
    member.user_id = user.id
    member.status = "active"
    member.joined_at = now
    invite.status = "accepted"
    invite.accepted_at = now
    db.session.commit()
    logger.info("Invite %s accepted; user %s joined project %s", invite.id, user.id, invite.project_id)
    return user, member


# ═══════════════════════════════════════════════════════════════
# Stage assignments
# ═══════════════════════════════════════════════════════════════
def list_assignments(stage):
    return [a.to_dict(include_member=True) for a in stage.assignments]


def list_project_assignments(project):
    stmt = (
        select(StageAssignment)
        .join(Stage, StageAssignment.stage_id == Stage.id)
        .where(Stage.project_id == project.id)
        .order_by(Stage.order, StageAssignment.id)
    )
    items = []
    for assignment in db.session.execute(stmt).scalars():
        d = assignment.to_dict(include_member=True)
        d["stage_name"] = assignment.stage.name
        items.append(d)
    return items


def create_assignment(stage, user_id, data):
    require_manager(stage.project, user_id, "assign members to stages")
    member = db.session.get(ProjectMember, data.get("member_id")) if data.get("member_id") else None
    if not member or member.project_id != stage.project_id:
        raise ValidationError("member_id must reference a member of this project", details={"member_id": "invalid"})
    if member.status == "inactive":
        raise ValidationError("Inactive members cannot be assigned")
    if StageAssignment.query.filter_by(stage_id=stage.id, member_id=member.id).first():
        raise ValidationError("Member is already assigned to this stage", details={"member_id": "duplicate"})

    assignment = StageAssignment(
        stage_id=stage.id,
        member_id=member.id,
        assigned_by=user_id,
        due_date=parse_datetime(data.get("due_date")),
        notes=data.get("notes"),
    )
    db.session.add(assignment)
    db.session.commit()
    return assignment


def delete_assignment(assignment_id, user_id):
    assignment = db.session.get(StageAssignment, assignment_id)
    if not assignment:
        raise NotFoundError(resource="Assignment", resource_id=assignment_id)
    project = get_project_for_user(assignment.stage.project_id, user_id)
    require_manager(project, user_id, "remove stage assignments")
    db.session.delete(assignment)
    db.session.commit()
