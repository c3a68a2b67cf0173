"""
Notification rows and per-user receipts.

A notification is immutable once sent apart from ``sent_at``; whether a user
has seen it lives in NotificationReceipt. Announcements sent together share a
``dispatch_id``.
"""
import enum
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey, DateTime, Text, JSON, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class NotificationType(str, enum.Enum):
    ANNOUNCEMENT = "ANNOUNCEMENT"
    LEAVE = "LEAVE"
    ATTENDANCE = "ATTENDANCE"
    REPORT = "REPORT"
    INVOICE = "INVOICE"


class NotificationAudience(str, enum.Enum):
    ORGANIZATION = "ORGANIZATION"
    ROLE = "ROLE"
    INDIVIDUAL = "INDIVIDUAL"


class NotificationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    SENT = "SENT"
    CANCELLED = "CANCELLED"


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id"), nullable=False, index=True
    )
    sender_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(SQLEnum(NotificationType), nullable=False, index=True)
    status: Mapped[NotificationStatus] = mapped_column(
        SQLEnum(NotificationStatus), default=NotificationStatus.DRAFT, nullable=False
    )
    audience: Mapped[NotificationAudience] = mapped_column(
        SQLEnum(NotificationAudience), default=NotificationAudience.ORGANIZATION, nullable=False
    )
    # Role values, only meaningful for ROLE audience
    target_roles: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    target_user_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=True, index=True
    )
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    dispatch_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    audience_mode: Mapped[NotificationAudience | None] = mapped_column(
        SQLEnum(NotificationAudience), nullable=True
    )

    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, audience={self.audience})>"


class NotificationReceipt(Base, TimestampMixin):
    __tablename__ = "notification_receipts"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_receipts_notification_user"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    notification_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("notifications.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    is_seen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
