"""
Email/password accounts with server-side sessions.

The cookie carries only an opaque token; the user it belongs to and its
expiry live in the user_sessions table.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from debtlens.models.db import User, UserSession
from debtlens.utils.db import get_db

logger = logging.getLogger("auth")

BCRYPT_ROUNDS = 10
BCRYPT_MAX_BYTES = 72
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated identity passed explicitly to route handlers."""
    id: int
    email: str


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases reject longer input
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), stored.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a bcrypt hash")
        return False


def _naive_utc(dt: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo
    return dt.astimezone(timezone.utc).replace(tzinfo=None) if dt.tzinfo else dt


class AuthService:
    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    @staticmethod
    async def register(
        db: AsyncSession,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name or None,
            last_name=last_name or None,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"Registered user {user.id}")
        return user

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
        user = await AuthService.get_user_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    async def create_session(db: AsyncSession, user_id: int, ttl_days: int) -> UserSession:
        session = UserSession(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=datetime.now(timezone.utc) + timedelta(days=ttl_days),
        )
        db.add(session)
        await db.commit()
        return session

    @staticmethod
    async def resolve_session(db: AsyncSession, token: str) -> Optional[User]:
        session = await db.get(UserSession, token)
        if session is None:
            return None
        if _naive_utc(session.expires_at) <= _naive_utc(datetime.now(timezone.utc)):
            await db.delete(session)
            await db.commit()
            return None
        return await db.get(User, session.user_id)

    @staticmethod
    async def destroy_session(db: AsyncSession, token: str) -> None:
        await db.execute(delete(UserSession).where(UserSession.token == token))
        await db.commit()


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> CurrentUser:
    """FastAPI dependency: 401 unless the request carries a live session cookie."""
    cookie_name = request.app.state.settings.SESSION_COOKIE_NAME
    token = request.cookies.get(cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = await AuthService.resolve_session(db, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CurrentUser(id=user.id, email=user.email)
