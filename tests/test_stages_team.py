"""
Stage, task and team API tests.

Tests cover:
  - Default stages and task-weighted progress roll-up
  - Stage approval rules (owner only, 100% progress)
  - AI task generation for empty stages
  - Team members: direct activation, email invites, invite acceptance
  - Stage assignments and contributor edit rights
"""

import pytest

from app.models.project import ProjectInvite
from app.services.jwt_service import generate_access_token
from app.services.team_service import add_member


def _stages(client, project, headers):
    res = client.get(f"/api/v1/projects/{project.id}/stages", headers=headers)
    assert res.status_code == 200
    return {s["type"]: s for s in res.get_json()}


@pytest.fixture()
def contributor(planned_project, user):
    member, _ = add_member(planned_project, user, {
        "email": "dev@example.com", "name": "Dev Person", "role": "contributor", "password": "devpass1",
    })
    headers = {"Authorization": f"Bearer {generate_access_token(member.user_id, 'user')}"}
    return member, headers


# ═══════════════════════════════════════════════════════════════
# Stages & tasks
# ═══════════════════════════════════════════════════════════════

class TestStages:
    def test_default_stages(self, client, auth_headers, planned_project):
        stages = _stages(client, planned_project, auth_headers)
        assert [stages[t]["weight"] for t in ("planning", "design", "development", "testing", "deploy")] == [
            15, 20, 35, 20, 10,
        ]
        assert all(s["status"] == "pending" and len(s["tasks"]) == 5 for s in stages.values())

    def test_completing_tasks_rolls_up_progress(self, client, auth_headers, planned_project):
        planning = _stages(client, planned_project, auth_headers)["planning"]
        task_id = planning["tasks"][0]["id"]

        res = client.put(f"/api/v1/tasks/{task_id}", json={"status": "completed"}, headers=auth_headers)
        assert res.status_code == 200

        planning = _stages(client, planned_project, auth_headers)["planning"]
        assert planning["progress"] == 20
        assert planning["status"] == "in_progress"
        project = client.get(f"/api/v1/projects/{planned_project.id}", headers=auth_headers).get_json()
        assert project["progress"] == 3

    def test_invalid_task_status(self, client, auth_headers, planned_project):
        task_id = _stages(client, planned_project, auth_headers)["design"]["tasks"][0]["id"]
        res = client.put(f"/api/v1/tasks/{task_id}", json={"status": "done"}, headers=auth_headers)
        assert res.status_code == 400

    def test_create_and_delete_task(self, client, auth_headers, planned_project):
        stage_id = _stages(client, planned_project, auth_headers)["deploy"]["id"]
        res = client.post(f"/api/v1/stages/{stage_id}/tasks", json={"title": "Configure CDN"}, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["weight"] == 1
        task_id = res.get_json()["id"]
        assert client.delete(f"/api/v1/tasks/{task_id}", headers=auth_headers).status_code == 200
        assert len(_stages(client, planned_project, auth_headers)["deploy"]["tasks"]) == 5

    def test_generate_tasks_only_for_empty_stage(self, client, auth_headers, planned_project):
        full_stage = _stages(client, planned_project, auth_headers)["testing"]["id"]
        res = client.post(f"/api/v1/stages/{full_stage}/tasks/generate", headers=auth_headers)
        assert res.status_code == 400

        res = client.post(f"/api/v1/projects/{planned_project.id}/stages",
                          json={"name": "Security Review", "type": "testing", "weight": 0}, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["order"] == 6
        stage_id = res.get_json()["id"]

        res = client.post(f"/api/v1/stages/{stage_id}/tasks/generate", headers=auth_headers)
        assert res.status_code == 201
        tasks = res.get_json()
        assert [t["weight"] for t in tasks] == [1, 3, 1]

        client.put(f"/api/v1/tasks/{tasks[1]['id']}", json={"status": "completed"}, headers=auth_headers)
        res = client.get(f"/api/v1/projects/{planned_project.id}/stages", headers=auth_headers)
        custom = next(s for s in res.get_json() if s["id"] == stage_id)
        assert custom["progress"] == 60

    def test_stage_type_validated(self, client, auth_headers, planned_project):
        res = client.post(f"/api/v1/projects/{planned_project.id}/stages",
                          json={"name": "Party", "type": "celebration"}, headers=auth_headers)
        assert res.status_code == 400


class TestApproval:
    def test_cannot_approve_unfinished_stage(self, client, auth_headers, planned_project):
        stage_id = _stages(client, planned_project, auth_headers)["planning"]["id"]
        res = client.post(f"/api/v1/stages/{stage_id}/approve", json={"approved": True}, headers=auth_headers)
        assert res.status_code == 400

    def test_approve_advances_project(self, client, auth_headers, planned_project):
        stage_id = _stages(client, planned_project, auth_headers)["planning"]["id"]
        res = client.patch(f"/api/v1/stages/{stage_id}/progress", json={"progress": 100}, headers=auth_headers)
        assert res.get_json()["status"] == "completed"

        res = client.post(f"/api/v1/stages/{stage_id}/approve",
                          json={"approved": True, "comment": "Looks great"}, headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "approved"
        assert body["approval_history"][-1]["comment"] == "Looks great"

        project = client.get(f"/api/v1/projects/{planned_project.id}", headers=auth_headers).get_json()
        assert project["progress"] == 15
        assert project["status"] == "design"

        logs = client.get(f"/api/v1/projects/{planned_project.id}/progress-logs", headers=auth_headers).get_json()
        assert "stage_approval" in {e["activity_type"] for e in logs}

    def test_reject(self, client, auth_headers, planned_project):
        stage_id = _stages(client, planned_project, auth_headers)["design"]["id"]
        res = client.post(f"/api/v1/stages/{stage_id}/approve",
                          json={"approved": False, "comment": "Needs work"}, headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["status"] == "rejected"
        assert res.get_json()["approved_by"] is None

    def test_approved_must_be_boolean(self, client, auth_headers, planned_project):
        stage_id = _stages(client, planned_project, auth_headers)["design"]["id"]
        res = client.post(f"/api/v1/stages/{stage_id}/approve", json={"approved": "yes"}, headers=auth_headers)
        assert res.status_code == 400

    def test_only_owner_approves(self, client, auth_headers, contributor, planned_project):
        _, headers = contributor
        stage_id = _stages(client, planned_project, auth_headers)["planning"]["id"]
        res = client.post(f"/api/v1/stages/{stage_id}/approve", json={"approved": True}, headers=headers)
        assert res.status_code == 403


# ═══════════════════════════════════════════════════════════════
# Team
# ═══════════════════════════════════════════════════════════════

class TestMembers:
    def test_add_with_password_activates(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/members", json={
            "email": "Designer@Example.com", "name": "Dee Signer", "role": "manager", "password": "design12",
        }, headers=auth_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "active"
        assert body["email"] == "designer@example.com"
        assert body["invite_sent"] is False

        res = client.post("/api/v1/auth/login", json={"email": "designer@example.com", "password": "design12"})
        assert res.status_code == 200

    def test_invite_flow(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/members", json={
            "email": "qa@example.com", "name": "Quinn Assur",
        }, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["status"] == "pending"
        assert res.get_json()["invite_sent"] is True

        token = ProjectInvite.query.filter_by(email="qa@example.com").one().token
        res = client.get(f"/api/v1/invites/{token}")
        assert res.status_code == 200
        assert res.get_json()["project_name"] == "Acme Storefront"
        assert res.get_json()["role"] == "contributor"

        res = client.post(f"/api/v1/invites/{token}/accept", json={"password": "qapass12"})
        assert res.status_code == 200
        body = res.get_json()
        assert body["member"]["status"] == "active"
        assert body["user"]["first_name"] == "Quinn"

        res = client.post(f"/api/v1/invites/{token}/accept", json={"password": "qapass12"})
        assert res.status_code == 400

    def test_existing_account_is_invited_not_taken_over(self, client, auth_headers, project, make_user):
        make_user("victim@example.com", password="original1")
        res = client.post(f"/api/v1/projects/{project.id}/members", json={
            "email": "victim@example.com", "password": "whatever1",
        }, headers=auth_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "pending"
        assert body["user_id"] is None
        assert body["invite_sent"] is True
        assert body["provisioned_by_project"] is False

        res = client.put(f"/api/v1/members/{body['id']}", json={"password": "attacker1"}, headers=auth_headers)
        assert res.status_code == 400

        assert client.post("/api/v1/auth/login", json={
            "email": "victim@example.com", "password": "whatever1"}).status_code == 401
        assert client.post("/api/v1/auth/login", json={
            "email": "victim@example.com", "password": "original1"}).status_code == 200

    def test_existing_account_accepts_with_own_password(self, client, auth_headers, project, make_user):
        victim, _ = make_user("known@example.com", password="original1")
        client.post(f"/api/v1/projects/{project.id}/members", json={"email": "known@example.com"},
                    headers=auth_headers)
        token = ProjectInvite.query.filter_by(email="known@example.com").one().token

        res = client.post(f"/api/v1/invites/{token}/accept", json={"password": "guessed1"})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"password": "mismatch"}

        res = client.post(f"/api/v1/invites/{token}/accept", json={"password": "original1"})
        assert res.status_code == 200
        assert res.get_json()["member"]["user_id"] == victim.id

    def test_password_reset_only_for_provisioned_accounts(self, client, auth_headers, user, project, make_user):
        make_user("linked@example.com", password="original1")
        member, _ = add_member(project, user, {"email": "linked@example.com"})
        token = ProjectInvite.query.filter_by(email="linked@example.com").one().token
        client.post(f"/api/v1/invites/{token}/accept", json={"password": "original1"})

        res = client.put(f"/api/v1/members/{member.id}", json={"password": "attacker1"}, headers=auth_headers)
        assert res.status_code == 403
        assert client.post("/api/v1/auth/login", json={
            "email": "linked@example.com", "password": "original1"}).status_code == 200

        res = client.post(f"/api/v1/projects/{project.id}/members", json={
            "email": "fresh@example.com", "password": "fresh123"}, headers=auth_headers)
        assert res.get_json()["provisioned_by_project"] is True
        res = client.put(f"/api/v1/members/{res.get_json()['id']}", json={"password": "reset123"},
                         headers=auth_headers)
        assert res.status_code == 200
        assert client.post("/api/v1/auth/login", json={
            "email": "fresh@example.com", "password": "reset123"}).status_code == 200

    def test_unknown_invite(self, client):
        assert client.get("/api/v1/invites/nope").status_code == 404

    def test_duplicate_and_invalid_role(self, client, auth_headers, project):
        payload = {"email": "dup@example.com", "password": "duppass1"}
        assert client.post(f"/api/v1/projects/{project.id}/members", json=payload,
                           headers=auth_headers).status_code == 201
        assert client.post(f"/api/v1/projects/{project.id}/members", json=payload,
                           headers=auth_headers).status_code == 400
        res = client.post(f"/api/v1/projects/{project.id}/members",
                          json={"email": "x@example.com", "role": "boss"}, headers=auth_headers)
        assert res.status_code == 400

    def test_update_and_remove(self, client, auth_headers, contributor):
        member, _ = contributor
        res = client.put(f"/api/v1/members/{member.id}", json={"role": "manager", "specialty": "Backend"},
                         headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["role"] == "manager"
        assert client.delete(f"/api/v1/members/{member.id}", headers=auth_headers).status_code == 200

    def test_contributor_cannot_add_members(self, client, contributor, planned_project):
        _, headers = contributor
        res = client.post(f"/api/v1/projects/{planned_project.id}/members",
                          json={"email": "friend@example.com"}, headers=headers)
        assert res.status_code == 403


class TestAssignments:
    def test_contributor_edits_only_assigned_stages(self, client, auth_headers, contributor, planned_project):
        member, headers = contributor
        stages = _stages(client, planned_project, auth_headers)
        design_id = stages["design"]["id"]

        res = client.patch(f"/api/v1/stages/{design_id}/progress", json={"progress": 40}, headers=headers)
        assert res.status_code == 403

        res = client.post(f"/api/v1/stages/{design_id}/assignments",
                          json={"member_id": member.id, "notes": "UI kit"}, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["member"]["name"] == "Dev Person"

        res = client.patch(f"/api/v1/stages/{design_id}/progress", json={"progress": 40}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["status"] == "in_progress"

        # structural changes stay with owners and managers
        res = client.put(f"/api/v1/stages/{design_id}", json={"weight": 50}, headers=headers)
        assert res.status_code == 403

        res = client.patch(f"/api/v1/stages/{stages['deploy']['id']}/progress",
                           json={"progress": 10}, headers=headers)
        assert res.status_code == 403

    def test_my_tasks_flags(self, client, auth_headers, contributor, planned_project):
        member, headers = contributor
        design_id = _stages(client, planned_project, auth_headers)["design"]["id"]
        client.post(f"/api/v1/stages/{design_id}/assignments", json={"member_id": member.id}, headers=auth_headers)

        items = client.get("/api/v1/my-tasks", headers=headers).get_json()
        assert len(items) == 5
        by_type = {i["type"]: i for i in items}
        assert by_type["design"]["is_assigned"] is True
        assert by_type["design"]["can_edit"] is True
        assert by_type["planning"]["can_edit"] is False
        assert by_type["planning"]["member_role"] == "contributor"

        owner_items = client.get("/api/v1/my-tasks", headers=auth_headers).get_json()
        assert all(i["can_edit"] and i["is_owner"] for i in owner_items)

    def test_duplicate_assignment_and_listing(self, client, auth_headers, contributor, planned_project):
        member, _ = contributor
        design_id = _stages(client, planned_project, auth_headers)["design"]["id"]
        url = f"/api/v1/stages/{design_id}/assignments"
        assignment_id = client.post(url, json={"member_id": member.id}, headers=auth_headers).get_json()["id"]
        assert client.post(url, json={"member_id": member.id}, headers=auth_headers).status_code == 400

        res = client.get(f"/api/v1/projects/{planned_project.id}/assignments", headers=auth_headers)
        assert [a["stage_name"] for a in res.get_json()] == ["Design"]

        assert client.delete(f"/api/v1/assignments/{assignment_id}", headers=auth_headers).status_code == 200
        assert client.get(url, headers=auth_headers).get_json() == []

    def test_assignment_requires_project_member(self, client, auth_headers, planned_project):
        design_id = _stages(client, planned_project, auth_headers)["design"]["id"]
        res = client.post(f"/api/v1/stages/{design_id}/assignments", json={"member_id": 999},
                          headers=auth_headers)
        assert res.status_code == 400
