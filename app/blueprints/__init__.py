"""
ClientForge
Blueprint registry and shared blueprint helpers.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    LLMUnavailableError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import db

logger = logging.getLogger(__name__)


def register_error_handlers(bp):
    """Map service-layer exceptions to JSON responses on ``bp``."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(exc):
        return jsonify({"error": str(exc)}), 404

    @bp.errorhandler(ValidationError)
    def _handle_validation(exc):
        body = {"error": str(exc)}
        if exc.details:
            body["details"] = exc.details
        return jsonify(body), 400

    @bp.errorhandler(PermissionDeniedError)
    def _handle_forbidden(exc):
        return jsonify({"error": str(exc)}), 403

    @bp.errorhandler(LLMUnavailableError)
    def _handle_llm_unavailable(exc):
        logger.error("LLM unavailable in %s: %s", bp.name, exc.last_error)
        return jsonify({"error": str(exc)}), 502

    @bp.errorhandler(Exception)
    def _handle_unexpected(exc):
        # abort(404), 413, ... keep their own status
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description or exc.name}), exc.code
        logger.exception("Unhandled error in %s: %s", bp.name, exc)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500
