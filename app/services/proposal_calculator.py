"""Pure proposal arithmetic — investment breakdown and phase schedule.

No database access here; proposal_service feeds phases in and persists the
results. Phase input shape (WBS- or LLM-derived):

    {"id": "...", "name": "Design", "estimated_hours": 40,
     "tasks": [{"name": "Wireframes", "estimated_hours": 16}, ...]}

Values are whole currency units; proposal_service converts to cents.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from app.utils.helpers import add_working_days, is_weekend, next_working_day


def phase_hours(phase: dict) -> int:
    """Task-hour sum when tasks carry hours, else the phase estimate."""
    hours = phase.get("estimated_hours") or 0
    tasks = phase.get("tasks") or []
    task_hours = sum((t.get("estimated_hours") or 0) for t in tasks)
    if task_hours > 0:
        hours = task_hours
    return hours


def _milestones(names: list[str], phase_name: str) -> list[str]:
    names = [n for n in names if n]
    return names[:3] if names else [f"Completion of {phase_name}"]


def calculate_investment(phases: list[dict], hourly_rate: float) -> dict:
    breakdown = []
    for phase in phases:
        hours = phase_hours(phase)
        breakdown.append({
            "name": phase.get("name"),
            "hours": hours,
            "value": hours * hourly_rate,
            "deliverables": [t.get("name") for t in (phase.get("tasks") or [])],
        })

    total_hours = sum(p["hours"] for p in breakdown)
    total_value = total_hours * hourly_rate
    return {
        "phases": breakdown,
        "total_hours": total_hours,
        "total_value": total_value,
        "hourly_rate": hourly_rate,
        "subtotal": total_value,
        "discount": 0,
        "total": total_value,
    }


def recalculate_investment(investment: dict, hourly_rate: float) -> dict:
    """Re-price an existing breakdown; hours are kept as-is."""
    phases = [
        {**p, "value": (p.get("hours") or 0) * hourly_rate}
        for p in (investment or {}).get("phases", [])
    ]
    total_value = sum(p["value"] for p in phases)
    total_hours = (investment or {}).get("total_hours")
    if total_hours is None:
        total_hours = sum((p.get("hours") or 0) for p in phases)
    return {
        "phases": phases,
        "total_hours": total_hours,
        "total_value": total_value,
        "hourly_rate": hourly_rate,
        "subtotal": total_value,
        "discount": 0,
        "total": total_value,
    }


def _count_working_days(start: date, end: date) -> int:
    days = 0
    current = start
    while current <= end:
        if not is_weekend(current):
            days += 1
        current += timedelta(days=1)
    return days


def calculate_schedule(
    phases: list[dict],
    start: date,
    hours_per_day: int,
    end: date | None = None,
) -> list[dict]:
    """Lay phases end to end on the working-day calendar.

    Without ``end`` each phase lasts ceil(hours / hours_per_day) working days.
    With ``end`` the working days between start and end are shared out in
    proportion to phase hours (at least one day each) and the last phase is
    pinned to ``end``.
    """
    hours_per_day = hours_per_day or 8
    enriched = [(p, phase_hours(p)) for p in phases]
    total_hours = sum(h for _, h in enriched)
    schedule = []
    current = start

    if end is not None and total_hours > 0:
        total_working_days = _count_working_days(start, end)
        for index, (phase, hours) in enumerate(enriched):
            working_days = max(1, round(total_working_days * hours / total_hours))
            phase_start = current
            is_last = index == len(enriched) - 1
            if is_last:
                phase_end = end
            else:
                phase_end = add_working_days(current, working_days)
                current = next_working_day(phase_end + timedelta(days=1))
            schedule.append(_schedule_entry(phase, hours, working_days, phase_start, phase_end))
        return schedule

    for phase, hours in enriched:
        working_days = math.ceil(hours / hours_per_day)
        phase_start = current
        phase_end = add_working_days(current, working_days)
        schedule.append(_schedule_entry(phase, hours, working_days, phase_start, phase_end))
        current = next_working_day(phase_end + timedelta(days=1))
    return schedule


def _schedule_entry(phase, hours, working_days, phase_start, phase_end):
    return {
        "phase_id": phase.get("id"),
        "phase_name": phase.get("name"),
        "start_date": phase_start.isoformat(),
        "end_date": phase_end.isoformat(),
        "hours": hours,
        "working_days": working_days,
        "milestones": _milestones([t.get("name") for t in (phase.get("tasks") or [])], phase.get("name")),
    }


def recalculate_schedule(investment_phases: list[dict], start: date, hours_per_day: int) -> list[dict]:
    """Rebuild a schedule from an investment breakdown (name/hours/deliverables)."""
    phases = [
        {
            "name": p.get("name"),
            "estimated_hours": p.get("hours") or 0,
            "tasks": [{"name": d} for d in (p.get("deliverables") or [])],
        }
        for p in investment_phases or []
    ]
    return calculate_schedule(phases, start, hours_per_day)
