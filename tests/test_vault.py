"""
Vault API tests: encrypted storage, masking, reveal and owner-only access.
"""

import pytest
from cryptography.fernet import Fernet

from app.models import db
from app.models.vault import MASK, VaultItem, mask_value
from app.services.jwt_service import generate_access_token
from app.services.team_service import add_member


@pytest.fixture()
def vault_item(client, auth_headers, project):
    res = client.post(f"/api/v1/projects/{project.id}/vault", json={
        "name": "Stripe secret", "type": "api_key", "value": "sk_live_1234567890abcd",
        "environment": "production",
    }, headers=auth_headers)
    assert res.status_code == 201
    return res.get_json()


def test_mask_value():
    assert mask_value("short") == MASK
    assert mask_value("sk_live_1234567890abcd") == f"sk_l{MASK}abcd"


def test_value_encrypted_at_rest(vault_item):
    stored = db.session.get(VaultItem, vault_item["id"])
    assert stored.value_encrypted != "sk_live_1234567890abcd"
    assert "value_encrypted" not in vault_item
    assert vault_item["masked_value"] == f"sk_l{MASK}abcd"


def test_list_is_masked(client, auth_headers, project, vault_item):
    res = client.get(f"/api/v1/projects/{project.id}/vault", headers=auth_headers)
    (item,) = res.get_json()
    assert "value" not in item
    assert item["encrypted"] is True


def test_reveal(client, auth_headers, vault_item):
    res = client.get(f"/api/v1/vault/{vault_item['id']}/reveal", headers=auth_headers)
    assert res.status_code == 200
    assert res.get_json()["value"] == "sk_live_1234567890abcd"


def test_update_keeps_value_unless_given(client, auth_headers, vault_item):
    url = f"/api/v1/vault/{vault_item['id']}"
    client.patch(url, json={"description": "rotated yearly", "value": ""}, headers=auth_headers)
    assert client.get(f"{url}/reveal", headers=auth_headers).get_json()["value"] == "sk_live_1234567890abcd"

    client.patch(url, json={"value": "sk_live_new_value_9999"}, headers=auth_headers)
    assert client.get(f"{url}/reveal", headers=auth_headers).get_json()["value"] == "sk_live_new_value_9999"


def test_validation(client, auth_headers, project):
    res = client.post(f"/api/v1/projects/{project.id}/vault", json={"name": "x"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.get_json()["details"] == {"type": "required", "value": "required"}

    res = client.post(f"/api/v1/projects/{project.id}/vault", json={
        "name": "x", "type": "api_key", "value": "v", "environment": "qa",
    }, headers=auth_headers)
    assert res.status_code == 400


def test_members_cannot_access_vault(client, user, project, vault_item):
    member, _ = add_member(project, user, {"email": "pm@example.com", "role": "manager", "password": "pmpass12"})
    headers = {"Authorization": f"Bearer {generate_access_token(member.user_id, 'user')}"}
    assert client.get(f"/api/v1/projects/{project.id}/vault", headers=headers).status_code == 403
    assert client.get(f"/api/v1/vault/{vault_item['id']}/reveal", headers=headers).status_code == 403


def test_delete(client, auth_headers, project, vault_item):
    assert client.delete(f"/api/v1/vault/{vault_item['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/v1/projects/{project.id}/vault", headers=auth_headers).get_json() == []


def test_name_must_be_string(client, auth_headers, project, vault_item):
    res = client.post(f"/api/v1/projects/{project.id}/vault",
                      json={"name": 42, "type": "api_key", "value": "secret"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.get_json()["details"] == {"name": "invalid"}

    res = client.patch(f"/api/v1/vault/{vault_item['id']}", json={"name": ["x"]}, headers=auth_headers)
    assert res.status_code == 400


def test_undecryptable_item_does_not_break_list(client, auth_headers, project, vault_item, monkeypatch):
    client.post(f"/api/v1/projects/{project.id}/vault", json={
        "name": "AWS key", "type": "api_key", "value": "AKIA_1234567890",
    }, headers=auth_headers)
    monkeypatch.setenv("ENCRYPTION_KEY", Fernet.generate_key().decode())
    client.post(f"/api/v1/projects/{project.id}/vault", json={
        "name": "Zapier token", "type": "api_key", "value": "zap_1234567890",
    }, headers=auth_headers)

    res = client.get(f"/api/v1/projects/{project.id}/vault", headers=auth_headers)
    assert res.status_code == 200
    readable = {i["name"]: i["readable"] for i in res.get_json()}
    assert readable == {"AWS key": False, "Stripe secret": False, "Zapier token": True}

    res = client.get(f"/api/v1/vault/{vault_item['id']}/reveal", headers=auth_headers)
    assert res.status_code == 400
    assert res.get_json()["details"] == {"value": "unreadable"}
