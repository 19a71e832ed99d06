"""
middleware.py — Rate limiting in front of the authentication endpoints
Only register/login/refresh are guarded. CORS preflights (OPTIONS) never
consume a token. The client key is the address the ASGI server resolved;
forwarded headers are trusted (or not) by the server, e.g. uvicorn's
--proxy-headers / --forwarded-allow-ips, never parsed here.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from fastapi.responses import JSONResponse

from errors import RateLimited, error_body
from services.rate_limiter import RateLimiter

GUARDED_PATHS = (
    "/api/v1/auth/register",
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
)


def is_guarded(request: Request) -> bool:
    if request.method.upper() == "OPTIONS":
        return False
    return request.url.path.rstrip("/") in GUARDED_PATHS


def resolve_client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        if is_guarded(request):
            client_ip = resolve_client_ip(request)
            try:
                self.limiter.check(client_ip)
            except RateLimited as exc:
                # middleware runs outside the app exception handlers
                return JSONResponse(
                    status_code=exc.status_code,
                    content=error_body(exc.kind, exc.message),
                    headers={"Retry-After": str(int(self.limiter.window_seconds / self.limiter.capacity) or 1)},
                )
        return await call_next(request)
