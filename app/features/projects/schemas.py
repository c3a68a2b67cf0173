"""
Pydantic schemas for project management.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.permissions.roles import UserRole
from app.features.projects.models import ProjectStatus


class ProjectMember(BaseModel):
    user_id: str
    full_name: str
    email: str | None = None
    designation: str | None = None
    avatar_url: str | None = None


class ProjectBase(BaseModel):
    name: str = Field(..., max_length=255)
    code: str | None = Field(None, max_length=50)
    description: str | None = None
    client_name: str | None = Field(None, max_length=255)
    status: ProjectStatus = ProjectStatus.ACTIVE
    start_date: datetime | None = None
    end_date: datetime | None = None
    project_manager_id: str | None = None


class ProjectCreate(ProjectBase):
    member_user_ids: list[str] = []


class ProjectUpdate(ProjectCreate):
    pass


class ProjectSummary(ProjectBase):
    id: str
    project_manager_name: str | None = None
    project_manager_email: str | None = None
    member_count: int
    member_user_ids: list[str]
    member_preview: list[ProjectMember]
    created_at: datetime
    updated_at: datetime


class ProjectOverview(BaseModel):
    viewer_role: UserRole
    can_manage: bool
    projects: list[ProjectSummary]
    employees: list[ProjectMember]


class ProjectDeleteResponse(BaseModel):
    message: str
