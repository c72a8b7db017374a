"""
Admin API tests.

Tests cover:
  - Platform admin bootstrap (check / init)
  - Dashboard stats
  - LLM provider chain CRUD and reorder
  - User management: role, block, create
  - Platform settings and the public read
  - Audit trail
"""

import pytest

from app.models import db
from app.models.activity import AdminAuditLog


# ═══════════════════════════════════════════════════════════════
# Bootstrap
# ═══════════════════════════════════════════════════════════════

class TestBootstrap:
    def test_check_without_admin(self, client, auth_headers):
        res = client.get("/api/v1/admin/check", headers=auth_headers)
        assert res.get_json() == {"is_platform_admin": False, "admin_exists": False}

    def test_init_promotes_configured_email(self, app, client, make_user, monkeypatch):
        monkeypatch.setitem(app.config, "PLATFORM_ADMIN_EMAIL", "Owner@Example.com")
        _, headers = make_user("owner@example.com")
        res = client.post("/api/v1/admin/init", headers=headers)
        assert res.status_code == 200
        assert res.get_json()["user"]["role"] == "platform_admin"

        res = client.get("/api/v1/admin/check", headers=headers)
        assert res.get_json() == {"is_platform_admin": True, "admin_exists": True}
        # only once
        assert client.post("/api/v1/admin/init", headers=headers).status_code == 400

    def test_init_rejects_other_email(self, app, client, auth_headers, monkeypatch):
        monkeypatch.setitem(app.config, "PLATFORM_ADMIN_EMAIL", "owner@example.com")
        assert client.post("/api/v1/admin/init", headers=auth_headers).status_code == 400

    def test_admin_routes_need_platform_admin(self, client, auth_headers):
        assert client.get("/api/v1/admin/stats", headers=auth_headers).status_code == 403
        assert client.get("/api/v1/admin/stats").status_code == 401


def test_stats(client, admin_headers, project):
    res = client.get("/api/v1/admin/stats", headers=admin_headers)
    assert res.status_code == 200
    body = res.get_json()
    assert body["total_users"] == 2
    assert body["total_clients"] == 1
    assert body["total_projects"] == 1
    assert body["projects_by_status"] == {"briefing": 1}
    assert body["total_exports"] == 0


# ═══════════════════════════════════════════════════════════════
# AI providers
# ═══════════════════════════════════════════════════════════════

class TestProviders:
    def _create(self, client, headers, name, provider="anthropic"):
        res = client.post("/api/v1/admin/ai-providers", json={
            "name": name, "provider": provider, "model": f"{name}-model",
            "api_key_env_var": "NOT_SET_FOR_TESTS_KEY",
        }, headers=headers)
        assert res.status_code == 201
        return res.get_json()

    def test_create_appends_priority(self, client, admin_headers):
        first = self._create(client, admin_headers, "primary")
        second = self._create(client, admin_headers, "backup", provider="openai")
        assert (first["priority"], second["priority"]) == (1, 2)
        assert first["has_api_key"] is False

    def test_validation(self, client, admin_headers):
        res = client.post("/api/v1/admin/ai-providers", json={"name": "x"}, headers=admin_headers)
        assert res.get_json()["details"] == {"provider": "required", "model": "required"}
        res = client.post("/api/v1/admin/ai-providers", json={
            "name": "x", "provider": "skynet", "model": "m",
        }, headers=admin_headers)
        assert res.status_code == 400

    def test_reorder(self, client, admin_headers):
        first = self._create(client, admin_headers, "primary")
        second = self._create(client, admin_headers, "backup")
        res = client.post("/api/v1/admin/ai-providers/reorder",
                          json={"provider_ids": [second["id"], first["id"]]}, headers=admin_headers)
        assert [p["name"] for p in res.get_json()] == ["backup", "primary"]

        res = client.post("/api/v1/admin/ai-providers/reorder", json={"provider_ids": "1,2"}, headers=admin_headers)
        assert res.status_code == 400

    def test_update_and_delete(self, client, admin_headers):
        provider = self._create(client, admin_headers, "primary")
        res = client.put(f"/api/v1/admin/ai-providers/{provider['id']}",
                         json={"is_active": False, "temperature": "30"}, headers=admin_headers)
        assert res.get_json()["is_active"] is False
        assert res.get_json()["temperature"] == 30

        assert client.delete(f"/api/v1/admin/ai-providers/{provider['id']}",
                             headers=admin_headers).status_code == 200
        assert client.get("/api/v1/admin/ai-providers", headers=admin_headers).get_json() == []
        assert client.delete(f"/api/v1/admin/ai-providers/{provider['id']}",
                             headers=admin_headers).status_code == 404


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════

class TestUsers:
    def test_list_with_counts(self, client, admin_headers, project):
        res = client.get("/api/v1/admin/users?search=agency", headers=admin_headers)
        (row,) = res.get_json()
        assert row["email"] == "agency@example.com"
        assert row["project_count"] == 1
        assert row["client_count"] == 1

    def test_block_and_unblock(self, client, admin_headers, user, auth_headers):
        res = client.put(f"/api/v1/admin/users/{user.id}/block", json={"is_blocked": True}, headers=admin_headers)
        assert res.status_code == 200
        assert client.get("/api/v1/projects", headers=auth_headers).status_code == 403

        client.put(f"/api/v1/admin/users/{user.id}/block", json={"is_blocked": False}, headers=admin_headers)
        assert client.get("/api/v1/projects", headers=auth_headers).status_code == 200

    def test_block_validation(self, client, admin_headers, admin_user, user):
        res = client.put(f"/api/v1/admin/users/{user.id}/block", json={"is_blocked": "yes"}, headers=admin_headers)
        assert res.status_code == 400
        res = client.put(f"/api/v1/admin/users/{admin_user.id}/block", json={"is_blocked": True},
                         headers=admin_headers)
        assert res.status_code == 400

    def test_set_role(self, client, admin_headers, user):
        res = client.put(f"/api/v1/admin/users/{user.id}/role", json={"role": "admin"}, headers=admin_headers)
        assert res.get_json()["role"] == "admin"
        res = client.put(f"/api/v1/admin/users/{user.id}/role", json={"role": "god"}, headers=admin_headers)
        assert res.status_code == 400
        assert client.put("/api/v1/admin/users/999/role", json={"role": "user"},
                          headers=admin_headers).status_code == 404

    def test_create_and_update_user(self, client, admin_headers, user):
        res = client.post("/api/v1/admin/users", json={
            "email": "New.Person@Example.com", "password": "welcome1", "first_name": "New",
        }, headers=admin_headers)
        assert res.status_code == 201
        created = res.get_json()
        assert created["email"] == "new.person@example.com"

        res = client.put(f"/api/v1/admin/users/{created['id']}", json={"email": "agency@example.com"},
                         headers=admin_headers)
        assert res.status_code == 400
        res = client.put(f"/api/v1/admin/users/{created['id']}", json={"password": "123"}, headers=admin_headers)
        assert res.status_code == 400


def test_cross_account_listings(client, admin_headers, project):
    (row,) = client.get("/api/v1/admin/clients", headers=admin_headers).get_json()
    assert row["owner_email"] == "agency@example.com"
    assert row["project_count"] == 1

    res = client.get("/api/v1/admin/projects?status=briefing", headers=admin_headers)
    assert [p["owner_email"] for p in res.get_json()] == ["agency@example.com"]
    assert client.get("/api/v1/admin/projects?status=completed", headers=admin_headers).get_json() == []


# ═══════════════════════════════════════════════════════════════
# Settings & audit
# ═══════════════════════════════════════════════════════════════

class TestSettings:
    def test_upsert_and_public_read(self, client, admin_headers):
        res = client.post("/api/v1/admin/settings", json={
            "key": "proposal_config", "value": {"hourly_rate": 120}, "category": "proposals",
        }, headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["category"] == "proposals"

        res = client.put("/api/v1/admin/settings/proposal_config", json={"value": {"hourly_rate": 130}},
                         headers=admin_headers)
        assert res.get_json()["value"] == {"hourly_rate": 130}
        assert len(client.get("/api/v1/admin/settings", headers=admin_headers).get_json()) == 1

        res = client.get("/api/v1/platform-settings/proposal_config")
        assert res.status_code == 200
        assert res.get_json() == {"key": "proposal_config", "value": {"hourly_rate": 130}}

    def test_validation_and_missing(self, client, admin_headers):
        res = client.post("/api/v1/admin/settings", json={"value": 1}, headers=admin_headers)
        assert res.get_json()["details"] == {"key": "required"}
        res = client.put("/api/v1/admin/settings/theme", json={}, headers=admin_headers)
        assert res.get_json()["details"] == {"value": "required"}
        assert client.get("/api/v1/platform-settings/theme").status_code == 404


class TestAuditLogs:
    def test_mutations_are_audited(self, client, admin_headers, admin_user, user):
        client.put(f"/api/v1/admin/users/{user.id}/role", json={"role": "admin"}, headers=admin_headers)
        client.put("/api/v1/admin/settings/theme", json={"value": "dark"}, headers=admin_headers)

        res = client.get("/api/v1/admin/audit-logs", headers=admin_headers)
        logs = res.get_json()
        assert [entry["action"] for entry in logs] == ["update_setting", "update_role"]
        assert logs[1]["previous_value"] == {"role": "user"}
        assert logs[1]["admin_email"] == "root@example.com"

    @pytest.mark.parametrize("limit, expected", [("0", 1), ("abc", 3), ("2", 2)])
    def test_limit(self, client, admin_headers, limit, expected):
        for value in ("a", "b", "c"):
            client.put("/api/v1/admin/settings/theme", json={"value": value}, headers=admin_headers)
        assert db.session.query(AdminAuditLog).count() == 3
        res = client.get(f"/api/v1/admin/audit-logs?limit={limit}", headers=admin_headers)
        assert len(res.get_json()) == expected
