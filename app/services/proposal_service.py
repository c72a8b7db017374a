"""
Proposal Service — commercial proposals built from WBS / LLM phases.

Functions:
    - get_proposal_config:        platform setting ``proposal_config`` over defaults
    - generate_proposal_content:  phases → investment, schedule and text sections
    - create_proposal / list_proposals / get_proposal_for_user
    - update_proposal / recalculate_proposal

Phase source priority: project WBS, then LLM suggestion, then DEFAULT_PHASES.
Money columns are cents; the investment JSON keeps whole-currency values.
"""

import logging
from datetime import date, datetime, timezone

from sqlalchemy import func, select

from app.ai import generators
from app.core.exceptions import LLMUnavailableError, NotFoundError, ValidationError
from app.models import db
from app.models.platform import PlatformSetting
from app.models.proposal import PROPOSAL_STATUSES, Proposal
from app.services import proposal_calculator as calc
from app.services.project_service import get_project_for_user
from app.utils.helpers import parse_date

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "hourly_rate": 150,
    "company_name": "",
    "company_description": "",
    "default_payment_terms": "50% on approval, 50% on delivery",
    "default_terms_and_conditions": "",
    "proposal_validity": 30,
    "hours_per_day": 8,
}

DEFAULT_PHASES = (
    ("Initiation and Planning", 40, "Requirements gathering and planning", ["Requirements document", "Project plan"]),
    ("Design and Prototyping", 60, "Interface design and prototypes", ["Wireframes", "Clickable prototype", "Design system"]),
    ("Technical Setup and Architecture", 40, "Environment and architecture setup", ["Configured environments", "Defined architecture"]),
    ("Development Sprint 1", 80, "First development phase", ["Core features", "Main APIs"]),
    ("Development Sprint 2", 80, "Second development phase", ["Secondary features", "Integrations"]),
    ("Development Sprint 3", 60, "Third development phase", ["Refinements", "Additional features"]),
    ("Testing and Acceptance", 40, "Testing and final adjustments", ["Full test pass", "Fixes", "Documentation"]),
    ("Deploy and Go-live", 20, "Production rollout", ["System in production", "Training"]),
)

_TERMS = (
    ("INTELLECTUAL PROPERTY",
     "All source code, designs, documentation and other materials produced for this project become the "
     "exclusive property of the CLIENT once the investment is paid in full. {company} may cite the project "
     "in its portfolio without disclosing confidential information."),
    ("CONFIDENTIALITY",
     "Both parties keep confidential all information shared during the project. This obligation remains in "
     "force for 2 (two) years after completion or termination of the contract."),
    ("WARRANTY AND SUPPORT",
     "{company} provides a 90 (ninety) day warranty after final delivery covering bug fixes and minor "
     "adjustments. Support during this period is included; later services are billed at current rates."),
    ("RESPONSIBILITIES",
     "The CLIENT provides information, content, access and approvals within the agreed deadlines. Delays on "
     "the CLIENT's side may affect the schedule and incur additional costs. {company} is responsible for the "
     "technical quality of deliverables and for meeting the agreed deadlines."),
    ("CANCELLATION AND TERMINATION",
     "If the CLIENT cancels, hours worked to date plus 20% of the remaining project value are due. If "
     "{company} terminates, unworked hours are refunded proportionally."),
    ("FORCE MAJEURE",
     "Neither party is liable for delays or failures caused by force majeure events, including natural "
     "disasters, pandemics, strikes, wars or government acts."),
    ("SCOPE CHANGES",
     "Scope change requests after approval of this proposal are analysed and quoted separately. Significant "
     "changes may affect the schedule and total investment."),
)

_TEXT_FIELDS = ("executive_summary", "methodology", "payment_terms", "terms_and_conditions", "approved_by")
_JSON_FIELDS = ("deliverables", "timeline", "scope_section", "technical_info")


def _utcnow():
    return datetime.now(timezone.utc)


def default_terms(company_name=None):
    company = company_name or "the company"
    return "\n\n".join(
        f"{index}. {title}\n{body.format(company=company)}" for index, (title, body) in enumerate(_TERMS, start=1)
    )


def get_proposal_config():
    setting = PlatformSetting.query.filter_by(key="proposal_config").first()
    stored = setting.value if setting and isinstance(setting.value, dict) else {}
    return {key: stored.get(key) or default for key, default in DEFAULT_CONFIG.items()}


def _cents(value):
    return int(round((value or 0) * 100))


def _to_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _list_names(values):
    names = []
    for v in values or []:
        if isinstance(v, dict):
            v = v.get("name") or v.get("title")
        if v:
            names.append(str(v))
    return names


# ═══════════════════════════════════════════════════════════════
# Content
# ═══════════════════════════════════════════════════════════════
def _wbs_phases(project):
    wbs = project.wbs
    if wbs is None or not wbs.phases:
        return None
    return [
        {
            "id": p.get("id") or f"phase-{index}",
            "name": p.get("name"),
            "estimated_hours": p.get("estimated_hours") or 0,
            "tasks": [
                {"name": item.get("title") or item.get("name") or "Task",
                 "estimated_hours": item.get("estimated_hours") or 0}
                for item in p.get("items") or []
            ],
        }
        for index, p in enumerate(wbs.phases, start=1)
    ]


def _default_phases():
    return [
        {
            "id": f"phase-{index}",
            "name": name,
            "estimated_hours": hours,
            "description": description,
            "tasks": [{"name": d, "estimated_hours": 0} for d in deliverables],
        }
        for index, (name, hours, description, deliverables) in enumerate(DEFAULT_PHASES, start=1)
    ]


def generate_proposal_content(project, config, hourly_rate, start, user_id=None):
    briefing = project.briefing
    scope = project.scope
    client_name = project.client.name if project.client else "the client"
    company = config["company_name"] or "our team"

    phases = _wbs_phases(project)
    suggestion = None
    try:
        suggestion = generators.generate_proposal_phases(project, briefing, scope, user_id=user_id)
    except LLMUnavailableError as exc:
        logger.warning("Proposal LLM unavailable for project %s: %s", project.id, exc)
    if phases is None:
        phases = suggestion["phases"] if suggestion else _default_phases()
        source = "llm" if suggestion else "default"
    else:
        source = "wbs"

    end = _to_date(project.estimated_end_date) if source == "wbs" else None
    if end is not None and end < start:
        end = None
    investment = calc.calculate_investment(phases, hourly_rate)
    schedule = calc.calculate_schedule(phases, start, config["hours_per_day"], end)

    executive_summary = (suggestion or {}).get("executive_summary") or (
        f"{company.capitalize()} is pleased to present this proposal for {project.name}. "
        f"It sets out our technical approach, working method and the investment required, based on the "
        f"requirements shared by {client_name}."
    )
    methodology = (suggestion or {}).get("methodology") or (
        "We work in short iterations with incremental deliveries, weekly follow-up meetings and progress "
        "reports, so the client can validate and adjust the product continuously."
    )
    deliverables = _list_names(scope.deliverables if scope else None)
    stack = [s.strip() for s in (briefing.stack or "").split(",") if s.strip()] if briefing else []

    return {
        "phase_source": source,
        "executive_summary": executive_summary,
        "methodology": methodology,
        "deliverables": [{"name": p["name"], "description": p.get("description")} for p in phases],
        "timeline": [
            f"Estimated at {investment['total_hours']} hours across {len(phases)} phases, "
            f"starting {start.isoformat()}."
        ],
        "investment": investment,
        "schedule": schedule,
        "scope_section": {
            "objective": (scope.objective if scope else None) or project.description,
            "features": deliverables[:10],
            "exclusions": _list_names(scope.out_of_scope if scope else None)
            or ["Maintenance after the warranty period", "Content and copywriting", "Hosting and domain"],
        },
        "technical_info": {
            "stack": stack or ["To be defined"],
            "architecture": "Modern architecture with a clear split between frontend and backend",
            "integrations": ["To be defined with the requirements"],
            "requirements": [
                "Optimised performance",
                "Authentication and authorisation",
                "Responsive on mobile devices",
                "Documented, maintainable code",
            ],
        },
        "payment_terms": config["default_payment_terms"],
        "terms_and_conditions": config["default_terms_and_conditions"] or default_terms(config["company_name"]),
    }


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def _apply_totals(proposal, investment):
    proposal.investment = investment
    proposal.total_hours = int(investment.get("total_hours") or 0)
    proposal.subtotal = _cents(investment.get("subtotal"))
    discount = proposal.discount or 0
    proposal.total_value = int(round(proposal.subtotal * (100 - discount) / 100))


def _rate_from(data, key="hourly_rate"):
    try:
        rate = float(data[key])
    except (TypeError, ValueError):
        raise ValidationError("hourly_rate must be a number", details={"hourly_rate": "invalid"})
    if rate <= 0:
        raise ValidationError("hourly_rate must be positive", details={"hourly_rate": "invalid"})
    return rate


def create_proposal(project, user_id, data):
    config = get_proposal_config()
    hourly_rate = _rate_from(data) if data.get("hourly_rate") is not None else float(config["hourly_rate"])
    start = parse_date(data.get("start_date")) or _to_date(project.start_date) or _utcnow().date()
    content = generate_proposal_content(project, config, hourly_rate, start, user_id=user_id)

    current = db.session.execute(
        select(func.max(Proposal.version)).where(Proposal.project_id == project.id)
    ).scalar()
    proposal = Proposal(
        project_id=project.id,
        version=(current or 0) + 1,
        status="draft",
        executive_summary=content["executive_summary"],
        methodology=content["methodology"],
        deliverables=content["deliverables"],
        timeline=content["timeline"],
        payment_terms=content["payment_terms"],
        terms_and_conditions=content["terms_and_conditions"],
        scope_section=content["scope_section"],
        technical_info=content["technical_info"],
        validity=int(config["proposal_validity"]),
        start_date=datetime(start.year, start.month, start.day),
        hours_per_day=int(config["hours_per_day"]),
        schedule=content["schedule"],
        hourly_rate=_cents(hourly_rate),
        discount=0,
        created_by=user_id,
    )
    _apply_totals(proposal, content["investment"])
    db.session.add(proposal)
    db.session.commit()
    logger.info("Proposal v%s created for project %s (%s phases, source=%s)",
                proposal.version, project.id, len(content["schedule"]), content["phase_source"])
    return proposal


def list_proposals(project, status=None):
    stmt = select(Proposal).where(Proposal.project_id == project.id)
    if status:
        stmt = stmt.where(Proposal.status == status)
    return db.session.execute(stmt.order_by(Proposal.version.desc())).scalars().all()


def get_proposal_for_user(proposal_id, user_id):
    proposal = db.session.get(Proposal, proposal_id)
    if not proposal:
        raise NotFoundError(resource="Proposal", resource_id=proposal_id)
    get_project_for_user(proposal.project_id, user_id)
    return proposal


def _reschedule(proposal):
    start = _to_date(proposal.start_date) or _utcnow().date()
    proposal.schedule = calc.recalculate_schedule(
        (proposal.investment or {}).get("phases", []), start, proposal.hours_per_day or 8
    )


def update_proposal(proposal, data):
    for field in _TEXT_FIELDS:
        if field in data:
            setattr(proposal, field, data[field])
    for field in _JSON_FIELDS:
        if field in data:
            setattr(proposal, field, data[field])
    if "validity" in data:
        try:
            proposal.validity = int(data["validity"])
        except (TypeError, ValueError):
            raise ValidationError("validity must be an integer", details={"validity": "invalid"})

    reprice = False
    if "discount" in data:
        try:
            discount = int(data["discount"])
        except (TypeError, ValueError):
            raise ValidationError("discount must be an integer percentage")
        if not 0 <= discount <= 100:
            raise ValidationError("discount must be between 0 and 100", details={"discount": "out_of_range"})
        proposal.discount = discount
        reprice = True
    if data.get("hourly_rate") is not None:
        rate = _rate_from(data)
        proposal.hourly_rate = _cents(rate)
        _apply_totals(proposal, calc.recalculate_investment(proposal.investment, rate))
    elif reprice:
        _apply_totals(proposal, proposal.investment or {})

    reschedule = False
    if "start_date" in data:
        start = parse_date(data["start_date"])
        if start is None:
            raise ValidationError("start_date must be an ISO date", details={"start_date": "invalid"})
        proposal.start_date = datetime(start.year, start.month, start.day)
        reschedule = True
    if "hours_per_day" in data:
        try:
            hours_per_day = int(data["hours_per_day"])
        except (TypeError, ValueError):
            raise ValidationError("hours_per_day must be an integer")
        if not 1 <= hours_per_day <= 24:
            raise ValidationError("hours_per_day must be between 1 and 24")
        proposal.hours_per_day = hours_per_day
        reschedule = True
    if reschedule:
        _reschedule(proposal)

    if "status" in data and data["status"] != proposal.status:
        status = data["status"]
        if status not in PROPOSAL_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PROPOSAL_STATUSES)}")
        proposal.status = status
        if status in ("sent", "approved", "rejected"):
            setattr(proposal, f"{status}_at", _utcnow())

    db.session.commit()
    return proposal


def recalculate_proposal(proposal):
    """Re-price and re-schedule from the stored rate, dates and hours."""
    rate = (proposal.hourly_rate or 0) / 100
    _apply_totals(proposal, calc.recalculate_investment(proposal.investment, rate))
    _reschedule(proposal)
    db.session.commit()
    return proposal
