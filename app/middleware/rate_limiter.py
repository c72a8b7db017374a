"""
Rate limiting configuration.

Applies per-blueprint and per-endpoint limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import request

logger = logging.getLogger(__name__)

AUTH_LIMIT = "10/minute"
AI_LIMIT = "20/minute"
WRITE_LIMIT = "120/minute"

# Endpoints that reach an LLM provider
AI_ENDPOINTS = (
    "briefing.chat",
    "briefing.add_image",
    "briefing.upload_audio",
    "briefing.complete_briefing",
    "planning.regenerate_scope",
    "planning.generate_wbs",
    "planning.generate_diagram",
    "stage.generate_tasks",
    "document.generate_document",
    "document.regenerate_ai_command",
    "agent.run_agent",
    "agent.orchestrate",
    "proposal.create_proposal",
    "export.create_export",
)

# Blueprints whose mutations share the generic write limit
WRITE_BLUEPRINTS = (
    "client", "project", "stage", "team", "vault", "proposal", "export", "admin",
)


def _is_read_only():
    return request.method not in ("POST", "PUT", "PATCH", "DELETE")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Login / register:  10/minute
        - AI endpoints:      20/minute  (LLM calls are expensive)
        - Other writes:      120/minute (POST/PUT/PATCH/DELETE)
        - Health check:      exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for endpoint in ("auth.login", "auth.register", "portal.portal_login"):
        view = app.view_functions.get(endpoint)
        if view:
            app.view_functions[endpoint] = limiter.limit(AUTH_LIMIT)(view)

    for endpoint in AI_ENDPOINTS:
        view = app.view_functions.get(endpoint)
        if view:
            app.view_functions[endpoint] = limiter.limit(AI_LIMIT)(view)

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, exempt_when=_is_read_only)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — auth: %s, AI: %s, write: %s",
        AUTH_LIMIT, AI_LIMIT, WRITE_LIMIT,
    )
