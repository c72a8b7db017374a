"""
Agent Service — specialist LLM reviews of a project and the orchestrator.

Functions:
    - run_agent:          One analysis (running → completed | failed)
    - orchestrate:        Every agent type in one session, consolidated
    - list_analyses / list_sessions
    - apply_analysis:     Push recommendations into the briefing and scope

An LLM outage fails the analysis record instead of the request; the
orchestrator session fails only when no agent completed.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from app.ai import generators
from app.core.exceptions import LLMUnavailableError, NotFoundError, ValidationError
from app.models import db
from app.models.agent import AGENT_TYPES, AgentAnalysis, OrchestratorSession
from app.services.briefing_service import get_or_create_briefing
from app.services.project_service import get_project_for_user

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def _unique(values):
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def _execute(project, agent_type, user_id, session_id=None):
    """Run one agent into a new AgentAnalysis row (flush only)."""
    analysis = AgentAnalysis(
        project_id=project.id, session_id=session_id, agent_type=agent_type, status="running", meta={}
    )
    db.session.add(analysis)
    db.session.flush()
    try:
        result = generators.run_agent_analysis(
            agent_type, project, project.briefing, project.scope, user_id=user_id
        )
    except LLMUnavailableError as exc:
        logger.warning("Agent %s failed for project %s: %s", agent_type, project.id, exc)
        analysis.status = "failed"
        analysis.meta = {"error": str(exc)}
    else:
        analysis.status = "completed"
        analysis.result = result["result"]
        analysis.confidence = result["confidence"]
        analysis.recommendations = result["recommendations"]
        analysis.warnings = result["warnings"]
    analysis.executed_at = _utcnow()
    db.session.flush()
    return analysis


def run_agent(project, agent_type, user_id):
    if agent_type not in AGENT_TYPES:
        raise ValidationError(f"agent type must be one of: {', '.join(AGENT_TYPES)}")
    analysis = _execute(project, agent_type, user_id)
    db.session.commit()
    return analysis


def list_analyses(project, agent_type=None):
    stmt = select(AgentAnalysis).where(AgentAnalysis.project_id == project.id)
    if agent_type:
        stmt = stmt.where(AgentAnalysis.agent_type == agent_type)
    stmt = stmt.order_by(AgentAnalysis.created_at.desc(), AgentAnalysis.id.desc())
    return db.session.execute(stmt).scalars().all()


def list_sessions(project):
    stmt = (
        select(OrchestratorSession)
        .where(OrchestratorSession.project_id == project.id)
        .order_by(OrchestratorSession.started_at.desc(), OrchestratorSession.id.desc())
    )
    return db.session.execute(stmt).scalars().all()


def orchestrate(project, user_id):
    """Run every agent type and consolidate the findings."""
    session = OrchestratorSession(project_id=project.id, status="running", agents_executed=[], execution_log=[])
    db.session.add(session)
    db.session.flush()

    log = []
    analyses = []
    for agent_type in AGENT_TYPES:
        analysis = _execute(project, agent_type, user_id, session_id=session.id)
        analyses.append(analysis)
        log.append({
            "agent_type": agent_type,
            "status": analysis.status,
            "message": (analysis.meta or {}).get("error") or f"{agent_type} analysis {analysis.status}",
            "timestamp": _utcnow().isoformat(),
        })

    completed = [a for a in analyses if a.status == "completed"]
    session.agents_executed = [a.agent_type for a in completed]
    session.execution_log = log
    session.consolidated_result = {
        "recommendations": _unique(r for a in completed for r in a.recommendations or []),
        "warnings": _unique(w for a in completed for w in a.warnings or []),
        "summaries": {a.agent_type: (a.result or {}).get("summary") for a in completed},
    }
    session.total_confidence = round(sum(a.confidence for a in completed) / len(completed)) if completed else 0
    session.status = "completed" if completed else "failed"
    session.completed_at = _utcnow()
    db.session.commit()
    logger.info("Orchestrator session %s %s (%d/%d agents)",
                session.id, session.status, len(completed), len(AGENT_TYPES))
    return session


def apply_analysis(analysis_id, user_id):
    analysis = db.session.get(AgentAnalysis, analysis_id)
    if not analysis:
        raise NotFoundError(resource="AgentAnalysis", resource_id=analysis_id)
    project = get_project_for_user(analysis.project_id, user_id)
    if analysis.status != "completed":
        raise ValidationError("Only completed analyses can be applied")

    recommendations = analysis.recommendations or []
    briefing = get_or_create_briefing(project)
    bullet_list = "\n".join(f"- {r}" for r in recommendations) or "- (no recommendations)"
    briefing.conversation = list(briefing.conversation or []) + [{
        "role": "system",
        "content": f"Recommendations from the {analysis.agent_type} agent:\n{bullet_list}",
        "timestamp": _utcnow().isoformat(),
    }]

    if project.scope is not None:
        meta = dict(project.scope.meta or {})
        meta["applied_recommendations"] = list(meta.get("applied_recommendations") or []) + [{
            "analysis_id": analysis.id,
            "agent_type": analysis.agent_type,
            "recommendations": recommendations,
            "applied_at": _utcnow().isoformat(),
            "applied_by": user_id,
        }]
        project.scope.meta = meta

    analysis.meta = {**(analysis.meta or {}), "applied_at": _utcnow().isoformat()}
    db.session.commit()
    return analysis
