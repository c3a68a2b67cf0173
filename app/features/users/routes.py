"""
User and session routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.database.engine import get_db
from app.core.errors import Forbidden, Unauthenticated
from app.features.users.auth import create_session, revoke_session, verify_password
from app.features.users.dependencies import CurrentUser, INACTIVE_STATUSES, get_current_session
from app.features.users.models import Session, User
from app.features.users.schemas import LoginRequest, LoginResponse, UserResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])
auth_router = APIRouter(tags=["auth"])


@auth_router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Exchange email and password for a bearer token."""
    result = await db.execute(
        select(User).where(func.lower(User.email) == credentials.email.lower())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(user.password_hash, credentials.password):
        log.info("Failed login for user %s", user.id if user else "<unknown>")
        raise Unauthenticated("Invalid email or password")

    if user.status in INACTIVE_STATUSES:
        raise Forbidden("User account is deactivated")

    session, token = await create_session(db, user, remember_me=credentials.remember_me)
    user.last_login_at = utcnow()
    log.info("User %s logged in (session %s)", user.id, session.id)

    return LoginResponse(
        token=token,
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user),
    )


@auth_router.post("/logout")
async def logout(
    session: Annotated[Session, Depends(get_current_session)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """End the current session."""
    await revoke_session(db, session.id)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(user: CurrentUser):
    """Get current authenticated user's profile."""
    return user
