"""
Pydantic schemas for team management.
"""
from pydantic import BaseModel, Field

from app.features.permissions.roles import UserRole


class TeamPerson(BaseModel):
    user_id: str
    full_name: str
    designation: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    team_id: str | None = None
    team_name: str | None = None
    is_team_lead: bool = False


class DepartmentOption(BaseModel):
    id: str
    name: str


class TeamCreate(BaseModel):
    name: str = Field(..., max_length=255)
    department_id: str
    description: str | None = None


class TeamLeadsAssign(BaseModel):
    lead_user_ids: list[str] = []


class TeamMembersAssign(BaseModel):
    member_user_ids: list[str] = []


class TeamSummary(BaseModel):
    id: str
    name: str
    description: str | None = None
    department_id: str
    department_name: str
    leads: list[TeamPerson]
    lead_user_ids: list[str]
    member_user_ids: list[str]
    member_count: int
    member_preview: list[TeamPerson]


class TeamOverview(BaseModel):
    viewer_role: UserRole
    can_manage: bool
    departments: list[DepartmentOption]
    employees: list[TeamPerson]
    teams: list[TeamSummary]
