"""
Name: Security Headers Middleware

Responsibilities:
  - Hardening headers on every response of the JSON API
  - no-store on /auth responses (they carry tokens)
  - HSTS when served in production
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Resource-Policy": "same-origin",
}
HSTS_VALUE = "max-age=31536000; includeSubDomains"
TOKEN_PATH_PREFIX = "/auth"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, hsts: bool = False):
        super().__init__(app)
        self._headers = dict(BASE_HEADERS)
        if hsts:
            self._headers["Strict-Transport-Security"] = HSTS_VALUE

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(self._headers)
        if request.url.path.startswith(TOKEN_PATH_PREFIX):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        return response
