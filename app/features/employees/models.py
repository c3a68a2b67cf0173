"""
Employee records hanging off a user: profile, employment, emergency
contacts, bank accounts, attendance and leave.

Attendance and leave are only modelled here so the user deletion cascade can
clear them; their workflows live outside this service.
"""
import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Boolean, Integer, Numeric, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.users.models import EmploymentStatus


class WorkModel(str, enum.Enum):
    ONSITE = "ONSITE"
    HYBRID = "HYBRID"
    REMOTE = "REMOTE"


class EmploymentType(str, enum.Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"
    INTERN = "INTERN"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    LATE = "LATE"
    HALF_DAY = "HALF_DAY"
    ABSENT = "ABSENT"
    REMOTE = "REMOTE"
    HOLIDAY = "HOLIDAY"


class LeaveStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    CANCELLED = "CANCELLED"


class LeaveType(str, enum.Enum):
    CASUAL = "CASUAL"
    SICK = "SICK"
    ANNUAL = "ANNUAL"
    PATERNITY_MATERNITY = "PATERNITY_MATERNITY"


class EmployeeProfile(Base, TimestampMixin):
    __tablename__ = "employee_profiles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), unique=True, nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    preferred_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    work_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    work_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    current_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    work_model: Mapped[WorkModel | None] = mapped_column(SQLEnum(WorkModel), nullable=True)
    profile_photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<EmployeeProfile(user_id={self.user_id}, name={self.first_name!r} {self.last_name!r})>"


class EmploymentDetail(Base, TimestampMixin):
    """
    Employment record for a user inside an organization.

    Holds the department/team placement, leave balances and compensation.
    """
    __tablename__ = "employment_details"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), unique=True, nullable=False)
    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id"), nullable=False, index=True
    )

    employee_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    designation: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    employment_type: Mapped[EmploymentType] = mapped_column(
        SQLEnum(EmploymentType), nullable=False, default=EmploymentType.FULL_TIME
    )
    status: Mapped[EmploymentStatus] = mapped_column(
        SQLEnum(EmploymentStatus), nullable=False, default=EmploymentStatus.ACTIVE
    )
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    department_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    team_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )
    reporting_manager_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    current_project_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    primary_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_team_lead: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    casual_leave_balance: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    sick_leave_balance: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    annual_leave_balance: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    parental_leave_balance: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    gross_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    income_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    department: Mapped["Department"] = relationship("Department", lazy="selectin")  # type: ignore
    team: Mapped["Team"] = relationship("Team", lazy="selectin")  # type: ignore

    def __repr__(self) -> str:
        return f"<EmploymentDetail(user_id={self.user_id}, org_id={self.organization_id})>"


class EmergencyContact(Base, TimestampMixin):
    __tablename__ = "emergency_contacts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship_label: Mapped[str] = mapped_column("relationship", String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)


class EmployeeBankAccount(Base, TimestampMixin):
    __tablename__ = "employee_bank_accounts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    account_holder: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class AttendanceRecord(Base, TimestampMixin):
    __tablename__ = "attendance_records"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    employee_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    attendance_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_work_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[AttendanceStatus] = mapped_column(SQLEnum(AttendanceStatus), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)


class LeaveRequest(Base, TimestampMixin):
    __tablename__ = "leave_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    employee_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    leave_type: Mapped[LeaveType] = mapped_column(SQLEnum(LeaveType), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_days: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(SQLEnum(LeaveStatus), default=LeaveStatus.PENDING, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewer_id: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
