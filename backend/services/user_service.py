"""
user_service.py — Accounts and token issuance
Registration, login by username or email, refresh-token rotation and profile lookup.
"""

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import (
    hash_password, verify_password, create_access_token, create_refresh_token,
    access_token_expires_in, verify_token, REFRESH_TOKEN,
)
from errors import ConflictError, AuthenticationError, UserNotFound
from models.user import User

logger = logging.getLogger(__name__)


class UserService:
    @staticmethod
    def to_dict(user: User) -> dict:
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "created_at": user.created_at.isoformat() if user.created_at else None,
        }

    @staticmethod
    def _auth_response(user: User) -> dict:
        return {
            "access_token": create_access_token(user.id, user.username),
            "refresh_token": create_refresh_token(user.id, user.username),
            "token_type": "Bearer",
            "expires_in": access_token_expires_in(),
            "user": UserService.to_dict(user),
        }

    @staticmethod
    def register(db: Session, username: str, email: str, password: str) -> dict:
        if db.query(User).filter_by(username=username).first():
            raise ConflictError(f"Username '{username}' is already taken")
        if db.query(User).filter_by(email=email).first():
            raise ConflictError(f"Email '{email}' is already registered")

        user = User(username=username, email=email, password_hash=hash_password(password))
        try:
            db.add(user)
            db.commit()
        except IntegrityError:
            # lost a race with a concurrent registration
            db.rollback()
            raise ConflictError("Username or email is already registered")
        db.refresh(user)
        logger.info(f"Registered user {user.id} ({user.username})")
        return UserService._auth_response(user)

    @staticmethod
    def authenticate(db: Session, username_or_email: str, password: str) -> dict:
        """Same error for unknown account and wrong password."""
        user = db.query(User).filter(
            or_(User.username == username_or_email, User.email == username_or_email)
        ).first()
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid username or password")

        logger.info(f"User {user.id} logged in")
        return UserService._auth_response(user)

    @staticmethod
    def refresh(db: Session, refresh_token: str) -> dict:
        payload = verify_token(refresh_token, REFRESH_TOKEN)
        user = db.query(User).filter_by(id=payload["user_id"]).first()
        if not user or user.username != payload["sub"]:
            raise AuthenticationError("Invalid refresh token")
        return UserService._auth_response(user)

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> User:
        user = db.query(User).filter_by(id=user_id).first()
        if not user:
            raise UserNotFound()
        return user
