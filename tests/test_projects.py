"""
Project API tests.

Tests cover:
  - Project CRUD, list filters and favorites
  - Role checks: contributors read, managers edit, only owners delete
  - Status change activity and the progress log feed
"""

import pytest

from app.services.jwt_service import generate_access_token
from app.services.team_service import add_member


@pytest.fixture()
def contributor_headers(project, user):
    member, _ = add_member(project, user, {
        "email": "dev@example.com", "name": "Dev Person", "role": "contributor", "password": "devpass1",
    })
    return {"Authorization": f"Bearer {generate_access_token(member.user_id, 'user')}"}


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════

class TestProjectCRUD:
    def test_create_starts_in_briefing(self, client, auth_headers, client_record):
        res = client.post("/api/v1/projects", json={
            "name": "Landing Page", "client_id": client_record.id, "start_date": "2025-02-03",
        }, headers=auth_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "briefing"
        assert body["progress"] == 0
        assert body["methodology"] == "hybrid"
        assert body["client"]["name"] == "Acme Ltda"
        assert body["start_date"].startswith("2025-02-03")

        res = client.get(f"/api/v1/projects/{body['id']}/briefing", headers=auth_headers)
        assert res.get_json()["status"] == "incomplete"

    def test_create_requires_own_client(self, client, client_record, make_user):
        _, other_headers = make_user("other@example.com")
        res = client.post("/api/v1/projects", json={"name": "X", "client_id": client_record.id},
                          headers=other_headers)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"client_id": "invalid"}

    def test_create_validation(self, client, auth_headers, client_record):
        res = client.post("/api/v1/projects", json={"client_id": client_record.id}, headers=auth_headers)
        assert res.status_code == 400
        res = client.post("/api/v1/projects", json={
            "name": "X", "client_id": client_record.id, "methodology": "chaos",
        }, headers=auth_headers)
        assert res.status_code == 400

    def test_get_includes_role(self, client, auth_headers, project):
        res = client.get(f"/api/v1/projects/{project.id}", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["role"] == "owner"

    def test_list_filters(self, client, auth_headers, user, project, client_record):
        from app.services.project_service import create_project
        create_project(user.id, {"name": "Mobile App", "client_id": client_record.id, "category": "mobile"})

        res = client.get("/api/v1/projects", headers=auth_headers)
        assert len(res.get_json()) == 2
        res = client.get("/api/v1/projects?category=mobile", headers=auth_headers)
        assert [p["name"] for p in res.get_json()] == ["Mobile App"]
        res = client.get("/api/v1/projects?search=store", headers=auth_headers)
        assert [p["name"] for p in res.get_json()] == ["Acme Storefront"]
        res = client.get(f"/api/v1/projects?client_id={client_record.id}", headers=auth_headers)
        assert len(res.get_json()) == 2

    def test_list_rejects_non_numeric_client_filter(self, client, auth_headers, project):
        res = client.get("/api/v1/projects?client_id=abc", headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"client_id": "invalid"}

    def test_favorite_toggle_and_filter(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/favorite", headers=auth_headers)
        assert res.get_json() == {"id": project.id, "is_favorite": True}
        res = client.get("/api/v1/projects?favorite=true", headers=auth_headers)
        assert [p["id"] for p in res.get_json()] == [project.id]
        res = client.post(f"/api/v1/projects/{project.id}/favorite", headers=auth_headers)
        assert res.get_json()["is_favorite"] is False

    def test_update_clamps_progress(self, client, auth_headers, project):
        res = client.put(f"/api/v1/projects/{project.id}", json={"progress": 140, "description": "v2"},
                         headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["progress"] == 100
        assert res.get_json()["description"] == "v2"

    def test_invalid_status_rejected(self, client, auth_headers, project):
        res = client.put(f"/api/v1/projects/{project.id}", json={"status": "paused"}, headers=auth_headers)
        assert res.status_code == 400

    def test_delete(self, client, auth_headers, project):
        assert client.delete(f"/api/v1/projects/{project.id}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/v1/projects/{project.id}", headers=auth_headers).status_code == 404


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════

class TestProjectRoles:
    def test_outsider_gets_404(self, client, project, make_user):
        _, headers = make_user("stranger@example.com")
        assert client.get(f"/api/v1/projects/{project.id}", headers=headers).status_code == 404

    def test_contributor_can_read(self, client, contributor_headers, project):
        res = client.get(f"/api/v1/projects/{project.id}", headers=contributor_headers)
        assert res.status_code == 200
        assert res.get_json()["role"] == "contributor"
        res = client.get("/api/v1/projects", headers=contributor_headers)
        assert [p["id"] for p in res.get_json()] == [project.id]

    def test_contributor_cannot_edit_or_delete(self, client, contributor_headers, project):
        res = client.put(f"/api/v1/projects/{project.id}", json={"name": "Hijack"}, headers=contributor_headers)
        assert res.status_code == 403
        res = client.delete(f"/api/v1/projects/{project.id}", headers=contributor_headers)
        assert res.status_code == 403

    def test_manager_can_edit_but_not_delete(self, client, project, user):
        member, _ = add_member(project, user, {
            "email": "pm@example.com", "role": "manager", "password": "pmpass12",
        })
        headers = {"Authorization": f"Bearer {generate_access_token(member.user_id, 'user')}"}
        res = client.put(f"/api/v1/projects/{project.id}", json={"name": "Renamed"}, headers=headers)
        assert res.status_code == 200
        assert client.delete(f"/api/v1/projects/{project.id}", headers=headers).status_code == 403


# ═══════════════════════════════════════════════════════════════
# Activity
# ═══════════════════════════════════════════════════════════════

class TestActivity:
    def test_status_change_is_logged(self, client, auth_headers, project):
        client.put(f"/api/v1/projects/{project.id}", json={"status": "design"}, headers=auth_headers)
        res = client.get(f"/api/v1/projects/{project.id}/progress-logs", headers=auth_headers)
        logs = [e for e in res.get_json() if e["activity_type"] == "project_status_changed"]
        assert len(logs) == 1
        assert logs[0]["previous_status"] == "briefing"
        assert logs[0]["new_status"] == "design"
        assert logs[0]["user_name"] == "Ana Lima"

    def test_member_added_shows_in_recent_activity(self, client, auth_headers, contributor_headers, project):
        res = client.get("/api/v1/activity/recent", headers=auth_headers)
        entries = res.get_json()
        assert entries[0]["activity_type"] == "member_added"
        assert entries[0]["member_name"] == "Dev Person"

    def test_activity_type_filter(self, client, auth_headers, project):
        client.put(f"/api/v1/projects/{project.id}", json={"status": "design"}, headers=auth_headers)
        res = client.get("/api/v1/activity?type=member_added", headers=auth_headers)
        assert res.get_json() == []
        res = client.get("/api/v1/activity?type=project_status_changed", headers=auth_headers)
        assert len(res.get_json()) == 1
