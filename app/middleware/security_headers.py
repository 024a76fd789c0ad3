"""
Security headers middleware.

Every response carries a CSP, anti-clickjacking and MIME-sniffing headers,
a referrer policy and a permissions policy. HSTS is sent outside debug.

Usage:
    from app.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

_CSP = (
    "default-src 'self'; "
    "img-src 'self' data: blob:; "
    "connect-src 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self'"
)


def init_security_headers(app):
    """Register the after_request hook that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        headers = response.headers
        headers.setdefault("Content-Security-Policy", _CSP)
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("X-Frame-Options", "DENY")
        headers.setdefault("X-XSS-Protection", "1; mode=block")
        headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        headers.setdefault(
            "Permissions-Policy", "camera=(), microphone=(), geolocation=()"
        )
        if not app.debug:
            headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        headers.pop("Server", None)
        return response
