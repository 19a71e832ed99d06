from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from services.user_service import UserService

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


# ── Pydantic schemas ──────────────────────────────────────────────
class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)


class LoginRequest(BaseModel):
    username_or_email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


# ── Routes ────────────────────────────────────────────────────────
@router.post("/register", status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account and return a fresh token pair."""
    data = UserService.register(db, body.username, str(body.email), body.password)
    return {"status": "success", "data": data}


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate with username or email + password."""
    data = UserService.authenticate(db, body.username_or_email, body.password)
    return {"status": "success", "data": data}


@router.post("/refresh")
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Trade a refresh token for a new access/refresh pair."""
    data = UserService.refresh(db, body.refresh_token)
    return {"status": "success", "data": data}


@router.get("/me")
def me(user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    """Return the current user's profile."""
    user = UserService.get_by_id(db, user_id)
    return {"status": "success", "data": UserService.to_dict(user)}
