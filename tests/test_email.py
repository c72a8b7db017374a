"""
Email service tests: log-only mode, SMTP delivery and template rendering.
"""

import smtplib
from unittest.mock import MagicMock

import pytest

from app.services import email_service
from app.services.email_service import EmailService, send_invite_email


@pytest.fixture()
def smtp(app, monkeypatch):
    monkeypatch.setitem(app.config, "MAIL_SERVER", "smtp.example.com")
    monkeypatch.setitem(app.config, "MAIL_USERNAME", "mailer")
    monkeypatch.setitem(app.config, "MAIL_PASSWORD", "secret")
    server = MagicMock()
    factory = MagicMock()
    factory.return_value.__enter__.return_value = server
    monkeypatch.setattr(email_service.smtplib, "SMTP", factory)
    return factory, server


def test_log_only_when_unconfigured(monkeypatch):
    factory = MagicMock()
    monkeypatch.setattr(email_service.smtplib, "SMTP", factory)
    assert EmailService.is_configured() is False
    assert EmailService.send(to_email="a@example.com", subject="Hi", html_body="<p>Hi</p>") is True
    factory.assert_not_called()


def test_invite_sent_over_smtp(smtp):
    factory, server = smtp
    ok = send_invite_email("dev@example.com", "Acme <Storefront>", "Ana Lima", "contributor",
                           "https://app.example.com/invite/abc")
    assert ok is True
    factory.assert_called_once_with("smtp.example.com", 587, timeout=30)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer", "secret")

    message = server.send_message.call_args.args[0]
    assert message["Subject"] == "Ana Lima invited you to Acme <Storefront>"
    assert message["To"] == "dev@example.com"
    html_part = message.get_payload()[1].get_payload(decode=True).decode()
    assert "Acme &lt;Storefront&gt;" in html_part
    text_part = message.get_payload()[0].get_payload(decode=True).decode()
    assert "https://app.example.com/invite/abc" in text_part


def test_smtp_failure_returns_false(smtp):
    _, server = smtp
    server.send_message.side_effect = smtplib.SMTPRecipientsRefused({"x@example.com": (550, b"no")})
    assert EmailService.send(to_email="x@example.com", subject="Hi", html_body="<p>Hi</p>") is False


def test_unknown_template():
    assert EmailService.send_from_template(to_email="a@example.com", template_name="nope", context={}) is False
