import logging
import os
import sys
from datetime import datetime

# Ensure this directory is in the path when launched as a script
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.append(current_dir)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth import check_jwt_secret
from config import (
    CORS_ALLOWED_ORIGINS, RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS_PER_MINUTE,
    RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX_TRACKED_IPS, RATE_LIMIT_IDLE_SECONDS,
)
from database import init_db
from errors import register_exception_handlers
from middleware import RateLimitMiddleware
from routes.auth_routes import router as auth_router
from routes.habit_routes import router as habit_router
from routes.log_routes import router as log_router
from services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

check_jwt_secret()
init_db()

app = FastAPI(title="Tally Habit Tracker API")

auth_rate_limiter = RateLimiter(
    capacity=RATE_LIMIT_REQUESTS_PER_MINUTE,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    max_keys=RATE_LIMIT_MAX_TRACKED_IPS,
    idle_seconds=RATE_LIMIT_IDLE_SECONDS,
)


@app.get("/api/v1/health-check")
def health():
    return {
        "status": "UP",
        "service": "Tally Backend API",
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "auth_rate_limiter": auth_rate_limiter.get_stats(),
    }


register_exception_handlers(app)

# Rate limiting sits inside CORS so preflights are answered before reaching it
if RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, limiter=auth_rate_limiter)
else:
    logger.warning("Auth rate limiting is disabled (RATE_LIMIT_ENABLED=false)")

# JWT travels in the Authorization header, so credentials (cookies) stay off
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.include_router(auth_router)
app.include_router(habit_router)
app.include_router(log_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
