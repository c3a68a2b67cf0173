"""
Session utilities: password checks, session rows and signed bearer tokens.

A bearer token is a JWT signed with ``SECRET_KEY`` whose ``sid`` claim names
a row in ``sessions``. Deleting the row (logout, user deletion) revokes the
token even before it expires.
"""
from datetime import timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash, generate_password_hash

from app.core import config
from app.core.database.base import utcnow
from app.core.errors import Unauthenticated
from app.features.users.models import Session, User


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def issue_token(session: Session) -> str:
    """Sign a bearer token for a stored session."""
    payload = {
        "sid": session.id,
        "sub": session.user_id,
        "exp": session.expires_at.replace(tzinfo=timezone.utc),
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify a bearer token and return its payload.

    Raises:
        Unauthenticated: If token is invalid or expired
    """
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.InvalidTokenError as e:
        raise Unauthenticated(f"Invalid token: {str(e)}")


async def create_session(db: AsyncSession, user: User, remember_me: bool = False) -> tuple[Session, str]:
    ttl_days = config.REMEMBER_ME_TTL_DAYS if remember_me else config.SESSION_TTL_DAYS
    now = utcnow()
    session = Session(user_id=user.id, created_at=now, expires_at=now + timedelta(days=ttl_days))
    db.add(session)
    await db.flush()
    return session, issue_token(session)


async def find_active_session(db: AsyncSession, session_id: str, user_id: str) -> Optional[Session]:
    result = await db.execute(
        select(Session).where(
            Session.id == session_id,
            Session.user_id == user_id,
            Session.expires_at > utcnow(),
        )
    )
    return result.scalar_one_or_none()


async def revoke_session(db: AsyncSession, session_id: str) -> None:
    await db.execute(delete(Session).where(Session.id == session_id))


async def authenticate(db: AsyncSession, token: str) -> tuple[User, Session]:
    """Resolve the user and session a bearer token refers to."""
    payload = verify_token(token)
    session_id = payload.get("sid")
    user_id = payload.get("sub")

    if not session_id or not user_id:
        raise Unauthenticated("Invalid token payload")

    session = await find_active_session(db, session_id, user_id)
    if session is None:
        raise Unauthenticated("Session has expired")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated("Session has expired")

    return user, session