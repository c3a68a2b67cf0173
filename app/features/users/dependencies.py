"""
FastAPI dependencies for authentication.
"""
from typing import Annotated
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.database.engine import get_db
from app.core.errors import Forbidden, Unauthenticated
from app.features.users.auth import authenticate
from app.features.users.models import EmploymentStatus, Session, User


security = HTTPBearer(auto_error=False)

INACTIVE_STATUSES = (EmploymentStatus.TERMINATED, EmploymentStatus.INACTIVE)


async def get_current_session(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Session:
    """
    Resolve the caller's session from the bearer token.

    This dependency:
    1. Extracts the token from the Authorization header
    2. Verifies its signature and expiry
    3. Loads the live session row and its user
    4. Updates last_login_at timestamp

    The user is cached on ``request.state.user`` for get_current_user.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()

    user, session = await authenticate(db, credentials.credentials)

    if user.status in INACTIVE_STATUSES:
        raise Forbidden("User account is deactivated")

    user.last_login_at = utcnow()
    request.state.user = user
    return session


async def get_current_user(
    request: Request,
    _session: Annotated[Session, Depends(get_current_session)]
) -> User:
    """
    Get the current authenticated user.

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    return request.state.user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
