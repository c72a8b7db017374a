"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/live   — simple 200 while the process is up
    GET /api/v1/health/ready  — dependency status (DB, Redis); 503 when the DB is down
"""

import logging
import time

import redis as redis_lib
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.middleware.timing import summarize_recent
from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check — always 200 if the app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Redis ────────────────────────────────────────────────────────
    redis_url = current_app.config.get("REDIS_URL", "")
    if redis_url and redis_url.startswith("redis"):
        try:
            t0 = time.perf_counter()
            r = redis_lib.from_url(redis_url, socket_timeout=2)
            r.ping()
            redis_ms = (time.perf_counter() - t0) * 1000
            checks["redis"] = {"status": "ok", "latency_ms": round(redis_ms, 1)}
        except redis_lib.RedisError as exc:
            # Redis only backs the rate limiter; it does not fail readiness
            checks["redis"] = {"status": "error", "detail": str(exc)}
    else:
        checks["redis"] = {"status": "skipped", "detail": "no REDIS_URL configured"}

    checks["requests"] = summarize_recent()

    checks["app"] = {
        "name": "ClientForge",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
