"""
Request timing middleware.

Adds X-Request-ID and X-Request-Duration-Ms to every response, logs slow
requests and server errors, and keeps a bounded in-memory buffer of recent
request metrics (read by /health/ready for a quick latency summary).
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# High-frequency health checks are not worth a log line
_SKIP_LOG = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

SLOW_THRESHOLD_MS = 1000


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        project_id = (request.view_args or {}).get("project_id")
        _record_metric(request.method, request.path, response.status_code, duration_ms)

        if request.path in _SKIP_LOG or request.path.startswith("/static"):
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.remote_addr,
            "project_id": project_id,
        }
        if response.status_code >= 500:
            logger.error("Server error: %s %s %d (%.0fms)",
                         request.method, request.path,
                         response.status_code, duration_ms, extra=extra)
        elif duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow request: %s %s %d (%.0fms)",
                           request.method, request.path,
                           response.status_code, duration_ms, extra=extra)
        else:
            logger.debug("Request: %s %s %d (%.0fms)",
                         request.method, request.path,
                         response.status_code, duration_ms, extra=extra)
        return response


# ── In-memory metrics ring buffer ──────────────────────────────────────────
_metrics_buffer: list[dict] = []
_MAX_BUFFER = 10_000


def _record_metric(method: str, path: str, status_code: int, duration_ms: float):
    _metrics_buffer.append({
        "ts": time.time(),
        "method": method,
        "path": path,
        "status": status_code,
        "ms": round(duration_ms, 1),
    })
    if len(_metrics_buffer) > _MAX_BUFFER:
        del _metrics_buffer[:_MAX_BUFFER // 2]


def get_recent_metrics(seconds: int = 3600) -> list[dict]:
    """Return metrics from the last N seconds."""
    cutoff = time.time() - seconds
    return [m for m in _metrics_buffer if m["ts"] >= cutoff]


def summarize_recent(seconds: int = 300) -> dict:
    """Request count, 5xx count and p95 latency over the last N seconds."""
    recent = get_recent_metrics(seconds)
    if not recent:
        return {"requests": 0, "errors": 0, "p95_ms": 0.0}
    durations = sorted(m["ms"] for m in recent)
    p95_index = max(0, int(len(durations) * 0.95) - 1)
    return {
        "requests": len(recent),
        "errors": sum(1 for m in recent if m["status"] >= 500),
        "p95_ms": durations[p95_index],
    }


def reset_metrics():
    """Clear metrics buffer (for testing)."""
    _metrics_buffer.clear()
