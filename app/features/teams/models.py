from sqlalchemy import String, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Team(Base, TimestampMixin):
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id"), nullable=False, index=True
    )
    department_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("departments.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    leads: Mapped[list["TeamLead"]] = relationship(
        "TeamLead",
        lazy="selectin",
        order_by="TeamLead.created_at",
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r})>"


class TeamLead(Base, TimestampMixin):
    """A user leading a team. A user may lead several teams."""
    __tablename__ = "team_leads"
    __table_args__ = (
        UniqueConstraint("team_id", "lead_id", name="uq_team_leads_team_lead"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    team_id: Mapped[str] = mapped_column(String(26), ForeignKey("teams.id"), nullable=False, index=True)
    lead_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
