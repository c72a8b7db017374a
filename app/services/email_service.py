"""
Email Service — outbound transactional mail (team invitations).

When SMTP is not configured, emails are logged but not sent (dev/test mode).
Delivery failures are logged and reported as False; they never abort the
request that triggered the email.

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any

from flask import current_app

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_TEMPLATES: dict[str, dict[str, str]] = {
    "project_invite": {
        "subject": "{inviter_name} invited you to {project_name}",
        "html": """
        <div style="font-family: 'Inter', Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background: #DE3403; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
                <h2 style="margin: 0; font-size: 18px;">ClientForge</h2>
            </div>
            <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0; border-top: none;">
                <p style="color: #1e293b;"><strong>{inviter_name}</strong> invited you to join
                   <strong>{project_name}</strong> as <strong>{role}</strong>.</p>
                <p style="margin: 24px 0;">
                    <a href="{invite_url}" style="background: #DE3403; color: white; padding: 10px 18px;
                       border-radius: 6px; text-decoration: none;">Accept invitation</a>
                </p>
                <p style="color: #64748b; font-size: 13px;">The link expires in {ttl_days} days.</p>
            </div>
        </div>
        """,
        "text": (
            "{inviter_name} invited you to join {project_name} as {role}.\n\n"
            "Accept the invitation: {invite_url}\n\nThe link expires in {ttl_days} days.\n"
        ),
    },
}


class EmailService:
    """Template-based email sending with a log-only fallback."""

    @staticmethod
    def is_configured() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        return _TEMPLATES.get(template_name)

    @classmethod
    def send(cls, *, to_email: str, subject: str, html_body: str, text_body: str | None = None,
             to_name: str | None = None) -> bool:
        """Send an email. False when SMTP delivery failed."""
        if not cls.is_configured():
            logger.info("Email (dev mode): to=%s subject='%s'", to_email, subject)
            return True

        try:
            cls._send_smtp(to_email=to_email, to_name=to_name, subject=subject,
                           html_body=html_body, text_body=text_body)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email failed: to=%s error=%s", to_email, exc)
            return False
        logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        return True

    @classmethod
    def send_from_template(cls, *, to_email: str, template_name: str,
                           context: dict[str, Any], to_name: str | None = None) -> bool:
        template = cls.get_template(template_name)
        if not template:
            logger.warning("Email template not found: %s", template_name)
            return False

        safe = _SafeDict({k: escape(str(v)) for k, v in context.items()})
        return cls.send(
            to_email=to_email,
            to_name=to_name,
            subject=template["subject"].format_map(_SafeDict(context)),
            html_body=template["html"].format_map(safe),
            text_body=template["text"].format_map(_SafeDict(context)) if "text" in template else None,
        )

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None, subject: str,
                   html_body: str, text_body: str | None = None) -> None:
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER", f"noreply@{server}")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"


def send_invite_email(to_email, project_name, inviter_name, role, invite_url, ttl_days=7):
    return EmailService.send_from_template(
        to_email=to_email,
        template_name="project_invite",
        context={
            "project_name": project_name,
            "inviter_name": inviter_name,
            "role": role,
            "invite_url": invite_url,
            "ttl_days": ttl_days,
        },
    )
