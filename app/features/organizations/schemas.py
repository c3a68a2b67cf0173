"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.permissions.roles import UserRole


class OrganizationBase(BaseModel):
    """Base organization schema."""
    name: str = Field(..., min_length=1, max_length=255)
    domain: str | None = Field(None, max_length=255)
    timezone: str | None = Field("Asia/Dhaka", max_length=64)
    locale: str | None = Field("en-US", max_length=16)


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization (super admin only)."""
    owner_user_id: str | None = Field(None, description="Existing user to promote to org owner")


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    domain: str | None = Field(None, max_length=255)
    timezone: str | None = Field(None, max_length=64)
    locale: str | None = Field(None, max_length=16)
    logo_url: str | None = Field(None, max_length=500)


class OrganizationResponse(OrganizationBase):
    """Schema for organization responses."""
    id: str
    logo_url: str
    created_at: datetime
    updated_at: datetime
    member_count: int | None = Field(None, description="Number of users in this organization")

    model_config = {"from_attributes": True}


class OrganizationOverview(BaseModel):
    """Current organization plus what the viewer may do with it."""
    viewer_role: UserRole
    can_manage: bool
    can_create_organizations: bool
    organization: OrganizationResponse | None = None
