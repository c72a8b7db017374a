"""
Agent analysis & orchestrator tests.

Tests cover:
  - Single agent runs with the local stub provider
  - LLM outage recorded as a failed analysis, not a failed request
  - Orchestrator consolidation across every agent type
  - Applying recommendations to the briefing and scope
"""

from app.ai import generators
from app.core.exceptions import LLMUnavailableError
from app.models import db
from app.models.agent import AGENT_TYPES


def _fail(*args, **kwargs):
    raise LLMUnavailableError("agent_risks", ConnectionError("down"))


class TestRunAgent:
    def test_run_completes(self, client, auth_headers, planned_project):
        res = client.post(f"/api/v1/projects/{planned_project.id}/agents/risks/run", headers=auth_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "completed"
        assert body["confidence"] == 80
        assert body["result"]["summary"] == "Risks analysis completed."
        assert body["executed_at"] is not None

    def test_unknown_agent_type(self, client, auth_headers, planned_project):
        res = client.post(f"/api/v1/projects/{planned_project.id}/agents/astrology/run", headers=auth_headers)
        assert res.status_code == 400

    def test_llm_outage_marks_analysis_failed(self, client, auth_headers, planned_project, monkeypatch):
        monkeypatch.setattr(generators, "run_agent_analysis", _fail)
        res = client.post(f"/api/v1/projects/{planned_project.id}/agents/risks/run", headers=auth_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "failed"
        assert "unavailable" in body["metadata"]["error"]

    def test_list_filters_by_type(self, client, auth_headers, planned_project):
        for agent_type in ("scope", "timeline"):
            client.post(f"/api/v1/projects/{planned_project.id}/agents/{agent_type}/run", headers=auth_headers)
        res = client.get(f"/api/v1/projects/{planned_project.id}/agents/analyses?type=timeline",
                         headers=auth_headers)
        assert [a["agent_type"] for a in res.get_json()] == ["timeline"]


class TestOrchestrator:
    def test_orchestrate_runs_every_agent(self, client, auth_headers, planned_project):
        res = client.post(f"/api/v1/projects/{planned_project.id}/agents/orchestrate", headers=auth_headers)
        assert res.status_code == 201
        session = res.get_json()
        assert session["status"] == "completed"
        assert session["agents_executed"] == list(AGENT_TYPES)
        assert session["total_confidence"] == 80
        assert len(session["analyses"]) == len(AGENT_TYPES)
        # identical stub recommendations are de-duplicated
        assert session["consolidated_result"]["recommendations"] == ["Confirm priorities with the client"]
        assert set(session["consolidated_result"]["summaries"]) == set(AGENT_TYPES)

        res = client.get(f"/api/v1/projects/{planned_project.id}/agents/sessions", headers=auth_headers)
        assert [s["id"] for s in res.get_json()] == [session["id"]]

    def test_orchestrate_fails_when_no_agent_completes(self, client, auth_headers, planned_project, monkeypatch):
        monkeypatch.setattr(generators, "run_agent_analysis", _fail)
        res = client.post(f"/api/v1/projects/{planned_project.id}/agents/orchestrate", headers=auth_headers)
        session = res.get_json()
        assert session["status"] == "failed"
        assert session["agents_executed"] == []
        assert all(entry["status"] == "failed" for entry in session["execution_log"])


class TestApply:
    def test_apply_records_recommendations(self, client, auth_headers, planned_project):
        analysis_id = client.post(f"/api/v1/projects/{planned_project.id}/agents/financial/run",
                                  headers=auth_headers).get_json()["id"]
        res = client.post(f"/api/v1/agents/analyses/{analysis_id}/apply", headers=auth_headers)
        assert res.status_code == 200
        assert "applied_at" in res.get_json()["metadata"]

        db.session.expire_all()
        last_message = planned_project.briefing.conversation[-1]
        assert last_message["role"] == "system"
        assert "- Confirm priorities with the client" in last_message["content"]
        applied = planned_project.scope.meta["applied_recommendations"]
        assert applied[0]["agent_type"] == "financial"

    def test_apply_failed_analysis_rejected(self, client, auth_headers, planned_project, monkeypatch):
        monkeypatch.setattr(generators, "run_agent_analysis", _fail)
        analysis_id = client.post(f"/api/v1/projects/{planned_project.id}/agents/scope/run",
                                  headers=auth_headers).get_json()["id"]
        res = client.post(f"/api/v1/agents/analyses/{analysis_id}/apply", headers=auth_headers)
        assert res.status_code == 400

    def test_apply_unknown_analysis(self, client, auth_headers):
        assert client.post("/api/v1/agents/analyses/999/apply", headers=auth_headers).status_code == 404
