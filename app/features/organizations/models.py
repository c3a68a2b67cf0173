"""
Organization model.

An organization is the tenant boundary: users, departments, teams, projects
and notifications all carry an organization_id.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Organization(Base, TimestampMixin):
    """Tenant owning users, departments, teams and projects."""
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True, default="Asia/Dhaka")
    locale: Mapped[str | None] = mapped_column(String(16), nullable=True, default="en-US")
    logo_url: Mapped[str] = mapped_column(String(500), nullable=False, default="/logo/demo.logo.png")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"
