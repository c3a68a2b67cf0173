"""
Pydantic schemas for department management.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.permissions.roles import UserRole


class DepartmentPerson(BaseModel):
    user_id: str
    full_name: str
    email: str | None = None
    designation: str | None = None
    avatar_url: str | None = None
    department_id: str | None = None
    department_name: str | None = None


class DepartmentCreate(BaseModel):
    name: str = Field(..., max_length=255)
    code: str | None = Field(None, max_length=50)
    description: str | None = None


class DepartmentUpdate(DepartmentCreate):
    pass


class DepartmentHeadAssign(BaseModel):
    head_user_id: str | None = None


class DepartmentMembersAssign(BaseModel):
    member_user_ids: list[str] = []


class DepartmentSummary(BaseModel):
    id: str
    name: str
    code: str | None = None
    description: str | None = None
    head_user_id: str | None = None
    head_name: str | None = None
    head_email: str | None = None
    member_count: int
    member_user_ids: list[str]
    member_preview: list[DepartmentPerson]
    created_at: datetime
    updated_at: datetime


class DepartmentOverview(BaseModel):
    viewer_role: UserRole
    can_manage: bool
    departments: list[DepartmentSummary]
    employees: list[DepartmentPerson]
