"""JSON error bodies for errors raised directly in blueprints.

    return api_error(E.VALIDATION_REQUIRED, "items is required")
    return api_error(E.UPSTREAM, "github push failed", details=result)

Body: ``{"error": message, "code": code[, "details": {...}]}``.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"   # 400
    NOT_FOUND = "ERR_NOT_FOUND"                       # 404
    UPSTREAM = "ERR_UPSTREAM"                         # 502, git host / LLM


_STATUS = {
    E.VALIDATION_REQUIRED: 400,
    E.NOT_FOUND: 404,
    E.UPSTREAM: 502,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(response, status)`` for a view to return; status defaults from the code."""
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS.get(code, 400)
