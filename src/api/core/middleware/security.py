from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.settings.app import AppSettings
from src.api.core.constants import API_VERSION_HEADER


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    def __init__(self, app, is_production: bool = False):
        super().__init__(app)
        self.is_production = is_production
        self.app_settings = AppSettings()

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=()",
            "X-Permitted-Cross-Domain-Policies": "none",
            API_VERSION_HEADER: self.app_settings.API_VERSION,
        }

        # The API only ever returns JSON or PNG
        if self.is_production:
            headers["Content-Security-Policy"] = (
                "default-src 'none'; img-src 'self' data:; frame-ancestors 'none'"
            )

        if self.is_production and request.url.scheme == "https":
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # Headers set by CORSMiddleware or the endpoint win
        for key, value in headers.items():
            if key not in response.headers:
                response.headers[key] = value

        return response
