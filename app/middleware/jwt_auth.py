"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

The middleware never rejects a request on its own; it only resolves
identity. Access decisions belong to the decorators in app.auth:

  Authorization: Bearer <access token>  →  g.jwt_user_id, g.jwt_role
  missing / expired / invalid token     →  g.jwt_user_id = None
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/refresh",
    "/api/v1/portal/",
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None
        g.current_user = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.debug("Invalid access token on %s", path)
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_role = payload.get("role")
