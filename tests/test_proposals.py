"""
Proposal tests.

Tests cover:
  - Investment and schedule arithmetic (pure calculator)
  - Proposal creation from LLM phases and from the WBS
  - Discounts, re-pricing, re-scheduling and status stamps
  - DOCX / XLSX downloads
"""

import io
from datetime import date

import docx
import openpyxl
import pytest

from app.models import db
from app.models.platform import PlatformSetting
from app.services import proposal_calculator as calc


# ═══════════════════════════════════════════════════════════════
# Calculator
# ═══════════════════════════════════════════════════════════════

class TestCalculator:
    def test_phase_hours_prefers_task_sum(self):
        assert calc.phase_hours({"estimated_hours": 10}) == 10
        assert calc.phase_hours({"estimated_hours": 10, "tasks": [
            {"estimated_hours": 4}, {"estimated_hours": 3},
        ]}) == 7
        assert calc.phase_hours({"estimated_hours": 10, "tasks": [{"estimated_hours": 0}]}) == 10

    def test_investment(self):
        result = calc.calculate_investment([
            {"name": "Design", "estimated_hours": 10},
            {"name": "Build", "tasks": [
                {"name": "API", "estimated_hours": 4}, {"name": "UI", "estimated_hours": 6},
            ]},
        ], 100)
        assert result["total_hours"] == 20
        assert result["total"] == 2000
        assert result["phases"][1]["value"] == 1000
        assert result["phases"][1]["deliverables"] == ["API", "UI"]

    def test_recalculate_keeps_hours(self):
        original = calc.calculate_investment([{"name": "A", "estimated_hours": 12}], 100)
        repriced = calc.recalculate_investment(original, 150)
        assert repriced["total_hours"] == 12
        assert repriced["subtotal"] == 1800

    def test_schedule_by_hours(self):
        friday = date(2025, 1, 3)
        schedule = calc.calculate_schedule(
            [{"name": "A", "estimated_hours": 16}, {"name": "B", "estimated_hours": 8}], friday, 8,
        )
        assert schedule[0]["working_days"] == 2
        assert schedule[0]["end_date"] == "2025-01-07"
        assert schedule[1]["start_date"] == "2025-01-08"
        assert schedule[1]["end_date"] == "2025-01-09"
        assert schedule[0]["milestones"] == ["Completion of A"]

    def test_next_phase_skips_weekend(self):
        thursday = date(2026, 10, 15)
        schedule = calc.calculate_schedule(
            [{"name": "A", "estimated_hours": 8}, {"name": "B", "estimated_hours": 8}], thursday, 8,
        )
        assert schedule[0]["end_date"] == "2026-10-16"
        assert schedule[1]["start_date"] == "2026-10-19"
        assert schedule[1]["end_date"] == "2026-10-20"

    def test_schedule_pinned_to_end_date(self):
        schedule = calc.calculate_schedule(
            [{"name": "A", "estimated_hours": 24}, {"name": "B", "estimated_hours": 16}],
            date(2025, 1, 6), 8, end=date(2025, 1, 17),
        )
        assert schedule[0]["working_days"] == 6
        assert schedule[0]["end_date"] == "2025-01-14"
        assert schedule[1]["start_date"] == "2025-01-15"
        assert schedule[1]["end_date"] == "2025-01-17"


# ═══════════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════════

@pytest.fixture()
def proposal(client, auth_headers, planned_project):
    res = client.post(f"/api/v1/projects/{planned_project.id}/proposals",
                      json={"hourly_rate": 100, "start_date": "2025-01-06"}, headers=auth_headers)
    assert res.status_code == 201
    return res.get_json()


class TestProposalAPI:
    def test_create_from_llm_phases(self, proposal):
        assert proposal["version"] == 1
        assert proposal["status"] == "draft"
        assert proposal["total_hours"] == 160
        assert proposal["hourly_rate"] == 10_000
        assert proposal["subtotal"] == 1_600_000
        assert proposal["total_value"] == 1_600_000
        assert [p["phase_name"] for p in proposal["schedule"]] == ["Discovery", "Build", "Launch"]
        assert proposal["executive_summary"].startswith("A focused engagement")
        assert proposal["technical_info"]["stack"] == ["React + Flask"]

    def test_create_from_wbs_pins_end_date(self, client, auth_headers, planned_project):
        client.post(f"/api/v1/projects/{planned_project.id}/wbs/generate", headers=auth_headers)
        project = client.get(f"/api/v1/projects/{planned_project.id}", headers=auth_headers).get_json()

        res = client.post(f"/api/v1/projects/{planned_project.id}/proposals", json={}, headers=auth_headers)
        body = res.get_json()
        assert body["total_hours"] == 80
        assert body["hourly_rate"] == 15_000
        assert [p["phase_name"] for p in body["schedule"]] == ["Discovery", "Build", "Release"]
        assert body["schedule"][-1]["end_date"] == project["estimated_end_date"][:10]

    def test_versions_increment(self, client, auth_headers, planned_project, proposal):
        res = client.post(f"/api/v1/projects/{planned_project.id}/proposals", json={}, headers=auth_headers)
        assert res.get_json()["version"] == 2
        res = client.get(f"/api/v1/projects/{planned_project.id}/proposals", headers=auth_headers)
        assert [p["version"] for p in res.get_json()] == [2, 1]

    def test_config_from_platform_setting(self, client, auth_headers, planned_project):
        db.session.add(PlatformSetting(key="proposal_config",
                                       value={"hourly_rate": 90, "company_name": "Forge Studio"}))
        db.session.commit()
        res = client.post(f"/api/v1/projects/{planned_project.id}/proposals", json={}, headers=auth_headers)
        body = res.get_json()
        assert body["hourly_rate"] == 9_000
        assert "Forge Studio may cite the project" in body["terms_and_conditions"]

    def test_invalid_rate(self, client, auth_headers, planned_project):
        res = client.post(f"/api/v1/projects/{planned_project.id}/proposals",
                          json={"hourly_rate": -5}, headers=auth_headers)
        assert res.status_code == 400


class TestProposalUpdates:
    def test_discount_and_rate(self, client, auth_headers, proposal):
        url = f"/api/v1/proposals/{proposal['id']}"
        res = client.put(url, json={"discount": 10}, headers=auth_headers)
        assert res.get_json()["total_value"] == 1_440_000

        res = client.put(url, json={"hourly_rate": 200}, headers=auth_headers)
        body = res.get_json()
        assert body["subtotal"] == 3_200_000
        assert body["total_value"] == 2_880_000
        assert body["total_hours"] == 160

    def test_discount_out_of_range(self, client, auth_headers, proposal):
        res = client.put(f"/api/v1/proposals/{proposal['id']}", json={"discount": 150}, headers=auth_headers)
        assert res.status_code == 400

    def test_hours_per_day_reschedules(self, client, auth_headers, proposal):
        assert proposal["schedule"][0]["working_days"] == 3
        res = client.put(f"/api/v1/proposals/{proposal['id']}", json={"hours_per_day": 4}, headers=auth_headers)
        assert res.get_json()["schedule"][0]["working_days"] == 6

    def test_status_stamps(self, client, auth_headers, proposal):
        res = client.put(f"/api/v1/proposals/{proposal['id']}", json={"status": "sent"}, headers=auth_headers)
        assert res.get_json()["sent_at"] is not None
        res = client.put(f"/api/v1/proposals/{proposal['id']}", json={"status": "lost"}, headers=auth_headers)
        assert res.status_code == 400

    def test_recalculate(self, client, auth_headers, proposal):
        res = client.post(f"/api/v1/proposals/{proposal['id']}/recalculate", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["total_value"] == proposal["total_value"]

    def test_other_user_cannot_read(self, client, proposal, make_user):
        _, headers = make_user("other@example.com")
        assert client.get(f"/api/v1/proposals/{proposal['id']}", headers=headers).status_code == 404


class TestDownloads:
    def test_docx(self, client, auth_headers, proposal):
        res = client.get(f"/api/v1/proposals/{proposal['id']}/download?format=docx", headers=auth_headers)
        assert res.status_code == 200
        assert "proposal-acme-storefront-v1.docx" in res.headers["Content-Disposition"]
        document = docx.Document(io.BytesIO(res.data))
        texts = [p.text for p in document.paragraphs]
        assert "Commercial Proposal - Acme Storefront" in texts
        assert "Investment" in texts

    def test_xlsx(self, client, auth_headers, proposal):
        res = client.get(f"/api/v1/proposals/{proposal['id']}/download?format=xlsx", headers=auth_headers)
        assert res.status_code == 200
        wb = openpyxl.load_workbook(io.BytesIO(res.data))
        assert wb.sheetnames == ["Investment", "Schedule"]
        assert wb["Investment"]["A4"].value == "Phase"
        assert wb["Investment"]["A5"].value == "Discovery"
        assert wb["Schedule"].max_row == 4

    def test_unsupported_format(self, client, auth_headers, proposal):
        res = client.get(f"/api/v1/proposals/{proposal['id']}/download?format=pdf", headers=auth_headers)
        assert res.status_code == 400
