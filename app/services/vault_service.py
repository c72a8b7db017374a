"""Project vault — owner-only encrypted credentials.

Values are encrypted with Fernet before they reach the session and are only
decrypted by ``reveal_item``. List views expose the masked form.
"""

from __future__ import annotations

import logging

from cryptography.fernet import InvalidToken
from sqlalchemy import select

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.project import Project
from app.models.vault import ENVIRONMENTS, VAULT_ITEM_TYPES, VaultItem, mask_value
from app.services.project_service import get_project_for_user, require_owner
from app.utils.crypto import decrypt_secret, encrypt_secret

logger = logging.getLogger(__name__)


def _masked(item: VaultItem) -> dict:
    """List form; an item the current key cannot decrypt is flagged, not raised."""
    d = item.to_dict()
    try:
        d["masked_value"] = mask_value(decrypt_secret(item.value_encrypted))
        d["readable"] = True
    except InvalidToken:
        logger.warning("Vault item %s cannot be decrypted with the current key", item.id)
        d["masked_value"] = None
        d["readable"] = False
    d["encrypted"] = True
    return d


def _name(data: dict) -> str:
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name must be a non-empty string", details={"name": "invalid" if name else "required"})
    return name.strip()[:255]


def list_items(project: Project, user_id: int) -> list[dict]:
    require_owner(project, user_id, "access the vault")
    stmt = select(VaultItem).where(VaultItem.project_id == project.id).order_by(VaultItem.name)
    return [_masked(i) for i in db.session.execute(stmt).scalars().all()]


def get_item_for_owner(item_id: int, user_id: int) -> VaultItem:
    item = db.session.get(VaultItem, item_id)
    if not item:
        raise NotFoundError(resource="VaultItem", resource_id=item_id)
    project = get_project_for_user(item.project_id, user_id)
    require_owner(project, user_id, "access the vault")
    return item


def _check_choices(data: dict) -> None:
    if "type" in data and data["type"] not in VAULT_ITEM_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(VAULT_ITEM_TYPES)}", details={"type": "invalid"})
    if "environment" in data and data["environment"] not in ENVIRONMENTS:
        raise ValidationError(
            f"environment must be one of: {', '.join(ENVIRONMENTS)}", details={"environment": "invalid"}
        )


def create_item(project: Project, user_id: int, data: dict) -> dict:
    require_owner(project, user_id, "access the vault")
    missing = [f for f in ("name", "type", "value") if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}",
                              details={f: "required" for f in missing})
    _check_choices(data)

    item = VaultItem(
        project_id=project.id,
        name=_name(data),
        type=data["type"],
        value_encrypted=encrypt_secret(str(data["value"])),
        description=data.get("description"),
        environment=data.get("environment") or "production",
    )
    db.session.add(item)
    db.session.commit()
    logger.info("Vault item %s created in project %s", item.id, project.id)
    return _masked(item)


def update_item(item: VaultItem, data: dict) -> dict:
    _check_choices(data)
    if "name" in data:
        item.name = _name(data)
    for field in ("type", "description", "environment"):
        if field in data:
            setattr(item, field, data[field])
    if data.get("value"):
        item.value_encrypted = encrypt_secret(str(data["value"]))
    db.session.commit()
    return _masked(item)


def reveal_item(item: VaultItem, user_id: int) -> dict:
    logger.info("Vault item %s revealed by user %s", item.id, user_id)
    d = item.to_dict()
    try:
        d["value"] = decrypt_secret(item.value_encrypted)
    except InvalidToken:
        raise ValidationError("This value cannot be decrypted with the current encryption key",
                              details={"value": "unreadable"})
    return d


def delete_item(item: VaultItem) -> None:
    db.session.delete(item)
    db.session.commit()
