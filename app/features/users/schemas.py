"""
Pydantic schemas for user and session requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.permissions.roles import UserRole
from app.features.users.models import EmploymentStatus


class LoginRequest(BaseModel):
    """Credentials for opening a session."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)
    remember_me: bool = False


class UserResponse(BaseModel):
    """Schema for the authenticated user."""
    id: str
    email: str
    display_name: str
    phone: str | None = None
    role: UserRole
    status: EmploymentStatus
    organization_id: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserResponse

