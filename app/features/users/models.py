"""
User, session and password-reset models.

A user belongs to at most one organization and carries one role from the
fixed hierarchy in ``app.features.permissions.roles``.
"""
import enum
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid, utcnow
from app.features.permissions.roles import UserRole


class EmploymentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PROBATION = "PROBATION"
    SABBATICAL = "SABBATICAL"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"


class User(Base, TimestampMixin):
    """
    User model representing an employee account.

    Uses ULID instead of auto-incrementing integers for better distributed systems support.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id"),
        nullable=True,
        index=True
    )

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        default=UserRole.EMPLOYEE,
        nullable=False,
        index=True
    )
    status: Mapped[EmploymentStatus] = mapped_column(
        SQLEnum(EmploymentStatus),
        default=EmploymentStatus.ACTIVE,
        nullable=False,
        index=True
    )

    invited_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    invited_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    profile: Mapped["EmployeeProfile"] = relationship(  # type: ignore
        "EmployeeProfile",
        uselist=False,
        lazy="selectin"
    )

    employment: Mapped["EmploymentDetail"] = relationship(  # type: ignore
        "EmploymentDetail",
        uselist=False,
        foreign_keys="EmploymentDetail.user_id",
        lazy="selectin"
    )

    @property
    def display_name(self) -> str:
        """Preferred name, else first and last name, else the email."""
        profile = self.profile
        if profile is not None:
            if profile.preferred_name and profile.preferred_name.strip():
                return profile.preferred_name.strip()
            parts = [
                value.strip()
                for value in (profile.first_name, profile.last_name)
                if isinstance(value, str) and value.strip()
            ]
            if parts:
                return " ".join(parts)
        return self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"


class Session(Base):
    """Server-side login session; the bearer token names one of these rows."""
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, user_id={self.user_id})>"


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
