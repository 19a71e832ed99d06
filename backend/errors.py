"""
errors.py — Typed error kinds raised by the services
Each kind carries a stable `kind` string and HTTP status so routes never have to
translate exceptions by hand. `register_exception_handlers` renders them as JSON.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TallyError(Exception):
    kind = "Error"
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ── Not found (also used for "exists but owned by someone else") ──
class NotFoundError(TallyError):
    kind = "NotFound"
    status_code = 404
    default_message = "Resource not found"


class HabitNotFound(NotFoundError):
    default_message = "Habit not found"


class DailyLogNotFound(NotFoundError):
    default_message = "Daily log not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


# ── Client errors ─────────────────────────────────────────────────
class InvalidDateRange(TallyError):
    kind = "InvalidDateRange"
    status_code = 400
    default_message = "Invalid date range"


class ValidationError(TallyError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Validation failed"


class ConflictError(TallyError):
    kind = "Conflict"
    status_code = 409
    default_message = "Resource already exists"


class AuthenticationError(TallyError):
    kind = "Unauthorized"
    status_code = 401
    default_message = "Invalid credentials"


# ── Transient ─────────────────────────────────────────────────────
class RateLimited(TallyError):
    kind = "RateLimited"
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


def error_body(kind: str, message: str) -> dict:
    return {"status": "error", "error": kind, "message": message}


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(TallyError)
    async def tally_error_handler(request: Request, exc: TallyError):
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.kind, exc.message),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
        return JSONResponse(
            status_code=ValidationError.status_code,
            content=error_body(ValidationError.kind, message),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=error_body("InternalError", "Internal server error"))
