"""
Planning API tests: scope versions, roadmap, WBS and diagrams.
"""

import json
from datetime import datetime, timezone

from app.ai import generators
from app.utils.helpers import add_working_days


def _url(project, suffix):
    return f"/api/v1/projects/{project.id}{suffix}"


# ═══════════════════════════════════════════════════════════════
# Scope
# ═══════════════════════════════════════════════════════════════

class TestScope:
    def test_scope_missing_before_completion(self, client, auth_headers, project):
        assert client.get(_url(project, "/scope"), headers=auth_headers).status_code == 404

    def test_edit_snapshots_previous_scope(self, client, auth_headers, planned_project):
        res = client.patch(_url(planned_project, "/scope"), json={
            "deliverables": ["Storefront", "Checkout"], "change_notes": "Client trimmed the list",
        }, headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["deliverables"] == ["Storefront", "Checkout"]

        versions = client.get(_url(planned_project, "/scope/versions"), headers=auth_headers).get_json()
        assert len(versions) == 1
        assert versions[0]["version"] == 1
        assert versions[0]["change_notes"] == "Client trimmed the list"
        assert "Admin dashboard" in versions[0]["deliverables"]

    def test_list_fields_must_be_lists(self, client, auth_headers, planned_project):
        res = client.patch(_url(planned_project, "/scope"), json={"risks": "none"}, headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"risks": "invalid"}

    def test_manual_version_default_notes(self, client, auth_headers, planned_project):
        res = client.post(_url(planned_project, "/scope/versions"), json={}, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["change_notes"] == "Version 1"

    def test_restore_version(self, client, auth_headers, planned_project):
        original = client.get(_url(planned_project, "/scope"), headers=auth_headers).get_json()
        client.patch(_url(planned_project, "/scope"), json={"objective": "Something else"}, headers=auth_headers)
        version_id = client.get(_url(planned_project, "/scope/versions"), headers=auth_headers).get_json()[0]["id"]

        res = client.post(_url(planned_project, f"/scope/versions/{version_id}/restore"), headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["objective"] == original["objective"]

        versions = client.get(_url(planned_project, "/scope/versions"), headers=auth_headers).get_json()
        assert [v["version"] for v in versions] == [2, 1]
        assert versions[0]["objective"] == "Something else"

    def test_restore_unknown_version(self, client, auth_headers, planned_project):
        res = client.post(_url(planned_project, "/scope/versions/999/restore"), headers=auth_headers)
        assert res.status_code == 404

    def test_regenerate_requires_complete_briefing(self, client, auth_headers, briefed_project):
        res = client.post(_url(briefed_project, "/scope/regenerate"), headers=auth_headers)
        assert res.status_code == 400

    def test_regenerate_backs_up_current_scope(self, client, auth_headers, planned_project):
        res = client.post(_url(planned_project, "/scope/regenerate"), headers=auth_headers)
        assert res.status_code == 200
        versions = client.get(_url(planned_project, "/scope/versions"), headers=auth_headers).get_json()
        assert versions[0]["change_notes"] == "Automatic backup before regeneration"


# ═══════════════════════════════════════════════════════════════
# Roadmap
# ═══════════════════════════════════════════════════════════════

class TestRoadmap:
    def test_get_and_update(self, client, auth_headers, planned_project):
        res = client.get(_url(planned_project, "/roadmap"), headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["milestones"][1]["name"] == "Go-live"

        res = client.put(_url(planned_project, "/roadmap"), json={
            "slas": [{"name": "Bug fix", "hours": 48}],
        }, headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["slas"] == [{"name": "Bug fix", "hours": 48}]
        assert len(body["phases"]) == 5

    def test_update_without_roadmap(self, client, auth_headers, project):
        res = client.put(_url(project, "/roadmap"), json={"phases": []}, headers=auth_headers)
        assert res.status_code == 404


# ═══════════════════════════════════════════════════════════════
# WBS
# ═══════════════════════════════════════════════════════════════

class TestWbs:
    def test_requires_scope(self, client, auth_headers, project):
        res = client.post(_url(project, "/wbs/generate"), headers=auth_headers)
        assert res.status_code == 400

    def test_generate_sets_project_dates(self, client, auth_headers, planned_project):
        res = client.post(_url(planned_project, "/wbs/generate"), headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["total_estimated_hours"] == 80
        assert len(body["phases"]) == 3
        assert body["critical_path"] == ["1.2", "2.1", "3.2"]

        today = datetime.now(timezone.utc).date()
        project = client.get(_url(planned_project, ""), headers=auth_headers).get_json()
        assert project["start_date"].startswith(today.isoformat())
        assert project["estimated_end_date"].startswith(add_working_days(today, 10).isoformat())

    def test_generate_tolerates_unparseable_hours(self, client, auth_headers, planned_project, monkeypatch):
        reply = json.dumps({
            "phases": [{"id": "1", "name": "Build", "estimated_hours": "40h",
                        "items": [{"id": "1.1", "title": "API", "estimated_hours": "lots"}]}],
            "total_estimated_hours": "n/a",
        })
        monkeypatch.setattr(generators, "_ask", lambda *args, **kwargs: reply)

        res = client.post(_url(planned_project, "/wbs/generate"), headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["phases"][0]["estimated_hours"] == 0
        assert body["phases"][0]["items"][0]["estimated_hours"] == 0
        assert body["total_estimated_hours"] == 0

    def test_toggle_item(self, client, auth_headers, planned_project):
        client.post(_url(planned_project, "/wbs/generate"), headers=auth_headers)
        res = client.patch(_url(planned_project, "/wbs/items/2.1"), json={"completed": True}, headers=auth_headers)
        assert res.status_code == 200
        items = {i["id"]: i for p in res.get_json()["phases"] for i in p["items"]}
        assert items["2.1"]["completed"] is True
        assert "completed" not in items["2.2"]

    def test_toggle_validation(self, client, auth_headers, planned_project):
        client.post(_url(planned_project, "/wbs/generate"), headers=auth_headers)
        res = client.patch(_url(planned_project, "/wbs/items/2.1"), json={"completed": "yes"}, headers=auth_headers)
        assert res.status_code == 400
        res = client.patch(_url(planned_project, "/wbs/items/9.9"), json={"completed": True}, headers=auth_headers)
        assert res.status_code == 404


# ═══════════════════════════════════════════════════════════════
# Diagrams
# ═══════════════════════════════════════════════════════════════

class TestDiagrams:
    def test_generate_replaces_same_type(self, client, auth_headers, planned_project):
        first = client.post(_url(planned_project, "/diagrams/generate"), json={"type": "architecture"},
                            headers=auth_headers)
        assert first.status_code == 200
        assert len(first.get_json()["data"]["nodes"]) == 3

        second = client.post(_url(planned_project, "/diagrams/generate"), json={"type": "architecture"},
                             headers=auth_headers)
        assert second.get_json()["id"] == first.get_json()["id"]
        res = client.get(_url(planned_project, "/diagrams"), headers=auth_headers)
        assert len(res.get_json()) == 1

    def test_invalid_type(self, client, auth_headers, planned_project):
        res = client.post(_url(planned_project, "/diagrams/generate"), json={"type": "gantt"},
                          headers=auth_headers)
        assert res.status_code == 400

    def test_edit_and_delete(self, client, auth_headers, planned_project):
        diagram_id = client.post(_url(planned_project, "/diagrams/generate"), json={"type": "flow"},
                                 headers=auth_headers).get_json()["id"]
        res = client.patch(f"/api/v1/diagrams/{diagram_id}", json={
            "name": "Checkout flow", "data": {"nodes": [{"id": "a"}], "edges": []},
        }, headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["name"] == "Checkout flow"
        assert res.get_json()["data"] == {"nodes": [{"id": "a"}], "edges": []}

        assert client.delete(f"/api/v1/diagrams/{diagram_id}", headers=auth_headers).status_code == 200
        assert client.get(_url(planned_project, "/diagrams"), headers=auth_headers).get_json() == []
