import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Request
from jose import jwt, JWTError, ExpiredSignatureError
import bcrypt

from config import (
    JWT_SECRET, JWT_ALGORITHM, JWT_ISSUER,
    ACCESS_TOKEN_EXPIRY_MINUTES, REFRESH_TOKEN_EXPIRY_DAYS,
    DEFAULT_JWT_SECRET, ENVIRONMENT,
)
from errors import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def check_jwt_secret():
    """Refuse to run in prod with the default secret; warn elsewhere."""
    if JWT_SECRET != DEFAULT_JWT_SECRET:
        return
    if ENVIRONMENT == "prod":
        message = (
            "Cannot start in production mode with the default JWT secret. "
            "Set the JWT_SECRET environment variable (e.g. openssl rand -base64 64)."
        )
        logger.error(message)
        raise RuntimeError(message)
    logger.warning("Using default JWT secret. Only acceptable for local development.")


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    # Ensure it doesn't exceed 72 bytes to prevent bcrypt ValueError
    pw_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(pw_bytes, bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    try:
        pw_bytes = plain_password.encode('utf-8')[:72]
        hash_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except ValueError as e:
        logger.warning(f"Bcrypt verification error: {e}")
        return False


def _create_token(user_id: int, username: str, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": username,
        "user_id": user_id,
        "type": token_type,
        "iss": JWT_ISSUER,
        "iat": now,
        "exp": now + lifetime,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(user_id: int, username: str) -> str:
    return _create_token(user_id, username, ACCESS_TOKEN, timedelta(minutes=ACCESS_TOKEN_EXPIRY_MINUTES))


def create_refresh_token(user_id: int, username: str) -> str:
    return _create_token(user_id, username, REFRESH_TOKEN, timedelta(days=REFRESH_TOKEN_EXPIRY_DAYS))


def access_token_expires_in() -> int:
    """Access token lifetime in seconds."""
    return ACCESS_TOKEN_EXPIRY_MINUTES * 60


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict:
    """Decode and verify a JWT. Raises AuthenticationError on any failure."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], issuer=JWT_ISSUER)
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    if payload.get("user_id") is None or payload.get("sub") is None:
        raise AuthenticationError("Token payload missing required claims")
    return payload


async def get_current_user(request: Request) -> int:
    """
    FastAPI dependency — extracts the Bearer token from the Authorization
    header, verifies it, and returns the user_id.
    Raises 401 if the token is missing or invalid.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid Authorization header")

    token = auth_header.split(" ", 1)[1]
    payload = verify_token(token, ACCESS_TOKEN)
    return payload["user_id"]
