"""Commercial proposals.

Money columns (hourly_rate, subtotal, total_value) are stored in cents.
The investment JSON mirrors the calculator output in
app.services.proposal_calculator and carries whole-currency values.
"""

from datetime import datetime, timezone

from app.models import db


PROPOSAL_STATUSES = ("draft", "sent", "approved", "rejected")


def _utcnow():
    return datetime.now(timezone.utc)


class Proposal(db.Model):
    __tablename__ = "proposals"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(50), nullable=False, default="draft", comment="draft | sent | approved | rejected")

    # Content sections (editable before export)
    executive_summary = db.Column(db.Text)
    methodology = db.Column(db.Text)
    deliverables = db.Column(db.JSON, default=list)
    timeline = db.Column(db.JSON, default=list)
    investment = db.Column(db.JSON, default=dict, comment="{phases: [...], subtotal, discount, total}")
    payment_terms = db.Column(db.Text)
    validity = db.Column(db.Integer, nullable=False, default=30, comment="Days the proposal is valid.")
    terms_and_conditions = db.Column(db.Text)
    scope_section = db.Column(db.JSON, default=dict, comment="{objective, features, exclusions}")
    technical_info = db.Column(db.JSON, default=dict, comment="{stack, architecture, integrations, requirements}")

    # Schedule
    start_date = db.Column(db.DateTime)
    hours_per_day = db.Column(db.Integer, nullable=False, default=8)
    schedule = db.Column(db.JSON, default=list, comment="[{phase_id, phase_name, start_date, end_date, hours, ...}]")

    # Calculated values
    total_hours = db.Column(db.Integer, nullable=False, default=0)
    hourly_rate = db.Column(db.Integer, nullable=False, default=0, comment="cents")
    subtotal = db.Column(db.Integer, nullable=False, default=0, comment="cents")
    discount = db.Column(db.Integer, nullable=False, default=0, comment="percentage")
    total_value = db.Column(db.Integer, nullable=False, default=0, comment="cents")

    sent_at = db.Column(db.DateTime)
    approved_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)
    approved_by = db.Column(db.String(255))
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    project = db.relationship("Project", overlaps="proposals")

    def to_dict(self):
        def ts(v):
            return v.isoformat() if v else None

        return {
            "id": self.id,
            "project_id": self.project_id,
            "version": self.version,
            "status": self.status,
            "executive_summary": self.executive_summary,
            "methodology": self.methodology,
            "deliverables": self.deliverables or [],
            "timeline": self.timeline or [],
            "investment": self.investment or {},
            "payment_terms": self.payment_terms,
            "validity": self.validity,
            "terms_and_conditions": self.terms_and_conditions,
            "scope_section": self.scope_section or {},
            "technical_info": self.technical_info or {},
            "start_date": ts(self.start_date),
            "hours_per_day": self.hours_per_day,
            "schedule": self.schedule or [],
            "total_hours": self.total_hours,
            "hourly_rate": self.hourly_rate,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total_value": self.total_value,
            "sent_at": ts(self.sent_at),
            "approved_at": ts(self.approved_at),
            "rejected_at": ts(self.rejected_at),
            "approved_by": self.approved_by,
            "created_by": self.created_by,
            "created_at": ts(self.created_at),
            "updated_at": ts(self.updated_at),
        }
