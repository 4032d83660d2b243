"""Security headers and same-origin checks for the proxy routes."""

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the fixed security headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def require_same_origin(request: Request) -> None:
    """Reject calls whose referer is not this host, except in development.

    Raises:
        HTTPException(403) when the referer does not name the request host.
    """
    settings = request.app.state.settings
    if settings.is_development:
        return
    referer = request.headers.get("referer") or ""
    host = request.headers.get("host") or ""
    if host and host in referer:
        return
    raise HTTPException(status_code=403, detail="Access denied")
