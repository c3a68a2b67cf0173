"""
Pydantic schemas for the employee directory and employee edits.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.employees.models import EmploymentType, WorkModel
from app.features.permissions.roles import UserRole
from app.features.users.models import EmploymentStatus


class Compensation(BaseModel):
    gross_salary: float
    income_tax: float


class LeaveBalances(BaseModel):
    annual: float = 0
    sick: float = 0
    casual: float = 0
    parental: float = 0


class EmergencyContactData(BaseModel):
    name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    relationship: str | None = Field(None, max_length=100)


class DirectoryEntry(BaseModel):
    """One row of the employee directory, with the viewer's permissions on it."""
    id: str
    name: str
    email: str
    phone: str | None = None
    user_role: UserRole
    employee_code: str | None = None
    designation: str
    department: str | None = None
    team: str | None = None
    location: str | None = None
    status: EmploymentStatus
    start_date: datetime | None = None
    manager: str | None = None
    employment_type: EmploymentType | None = None
    work_model: WorkModel | None = None
    profile_photo_url: str | None = None
    created_at: datetime
    can_edit: bool
    can_terminate: bool
    compensation: Compensation | None = None


class EmployeeDirectory(BaseModel):
    viewer_id: str
    viewer_role: UserRole
    can_manage_compensation: bool
    invitable_roles: list[UserRole]
    directory: list[DirectoryEntry]


class EmployeePermissions(BaseModel):
    can_edit: bool
    reason: str | None = None
    can_edit_compensation: bool
    viewer_role: UserRole
    target_role: UserRole


class EmployeeDetail(DirectoryEntry):
    first_name: str | None = None
    last_name: str | None = None
    preferred_name: str | None = None
    work_email: str | None = None
    address: str | None = None
    department_id: str | None = None
    team_id: str | None = None
    reporting_manager_id: str | None = None
    emergency_contact: EmergencyContactData | None = None
    leave_balances: LeaveBalances


class EmployeeDetailResponse(BaseModel):
    employee: EmployeeDetail
    permissions: EmployeePermissions


class EmployeeUpdate(BaseModel):
    """
    Changes to an employee. Only the fields present in the request are
    applied; ``department_id``, ``team_id`` and ``emergency_contact`` may be
    sent as null to clear them.
    """
    full_name: str | None = Field(None, max_length=255)
    preferred_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    designation: str | None = Field(None, max_length=255)
    employment_type: EmploymentType | None = None
    work_model: WorkModel | None = None
    primary_location: str | None = Field(None, max_length=255)
    start_date: datetime | None = None
    status: EmploymentStatus | None = None
    role: UserRole | None = None
    department_id: str | None = None
    team_id: str | None = None
    reporting_manager_id: str | None = None
    emergency_contact: EmergencyContactData | None = None


class EmployeeInvite(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    role: UserRole = UserRole.EMPLOYEE
    employee_code: str = Field(..., max_length=50)
    phone: str = Field(..., max_length=50)
    designation: str = Field(..., max_length=255)
    employment_type: EmploymentType | None = None
    work_model: WorkModel | None = None
    primary_location: str | None = Field(None, max_length=255)
    start_date: datetime | None = None
    department_id: str | None = None
    team_id: str | None = None
    reporting_manager_id: str | None = None


class EmployeeInviteResponse(BaseModel):
    """The invite link carries a single-use token; delivering it is up to the caller."""
    user_id: str
    email: str
    role: UserRole
    invite_url: str
    expires_at: datetime


class CompensationUpdate(BaseModel):
    gross_salary: float | None = None
    income_tax: float | None = None


class LeaveBalancesUpdate(BaseModel):
    annual: float
    sick: float
    casual: float
    parental: float


class MessageResponse(BaseModel):
    message: str
