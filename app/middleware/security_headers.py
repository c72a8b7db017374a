"""
Security headers middleware.

The API serves JSON (plus zip/docx/xlsx downloads) and no HTML, so the
Content-Security-Policy is locked down to nothing. HSTS is only sent
outside debug/testing, where the app sits behind TLS.

Usage:
    from app.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"


def init_security_headers(app):
    """Register after_request handler that injects security headers."""
    send_hsts = not app.config.get("DEBUG") and not app.config.get("TESTING")

    @app.after_request
    def _add_security_headers(response):
        response.headers.setdefault("Content-Security-Policy", API_CSP)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        response.headers.setdefault(
            "Permissions-Policy",
            "camera=(), microphone=(), geolocation=(), payment=()"
        )
        if send_hsts:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        response.headers.pop("Server", None)
        return response
