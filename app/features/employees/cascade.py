"""
Ordered removal of a user and everything that references it.

References that should survive the user (department headship, project
management, sent notifications, reporting lines, invitations, thread
ownership) are detached first. Rows owned by the user are deleted next, and
the user row goes last so no foreign key is left dangling at any step.
"""
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.departments.models import Department
from app.features.employees.models import (
    AttendanceRecord,
    EmergencyContact,
    EmployeeBankAccount,
    EmployeeProfile,
    EmploymentDetail,
    LeaveRequest,
)
from app.features.messages.models import ChatMessage, Thread, ThreadParticipant
from app.features.notifications.models import Notification, NotificationReceipt
from app.features.projects.models import Project
from app.features.teams.models import TeamLead
from app.features.users.models import PasswordResetToken, Session, User
from app.utils import get_logger


log = get_logger(__name__)


async def delete_user_cascade(db: AsyncSession, user_id: str) -> None:
    """
    Delete a user inside the caller's transaction.

    The caller owns the commit; nothing here commits or rolls back.
    """
    # Detach references that outlive the user
    await db.execute(update(Department).where(Department.head_id == user_id).values(head_id=None))
    await db.execute(
        update(Project).where(Project.project_manager_id == user_id).values(project_manager_id=None)
    )
    await db.execute(update(Notification).where(Notification.sender_id == user_id).values(sender_id=None))
    await db.execute(
        update(EmploymentDetail)
        .where(EmploymentDetail.reporting_manager_id == user_id)
        .values(reporting_manager_id=None)
    )
    await db.execute(update(User).where(User.invited_by_id == user_id).values(invited_by_id=None))
    await db.execute(update(Thread).where(Thread.created_by_id == user_id).values(created_by_id=None))

    # Rows owned by the user
    await db.execute(delete(TeamLead).where(TeamLead.lead_id == user_id))
    await db.execute(delete(NotificationReceipt).where(NotificationReceipt.user_id == user_id))

    targeted = select(Notification.id).where(Notification.target_user_id == user_id)
    await db.execute(delete(NotificationReceipt).where(NotificationReceipt.notification_id.in_(targeted)))
    await db.execute(delete(Notification).where(Notification.target_user_id == user_id))

    await db.execute(delete(ChatMessage).where(ChatMessage.sender_id == user_id))
    await db.execute(delete(ThreadParticipant).where(ThreadParticipant.user_id == user_id))
    await db.execute(delete(EmergencyContact).where(EmergencyContact.user_id == user_id))
    await db.execute(delete(EmployeeBankAccount).where(EmployeeBankAccount.user_id == user_id))
    await db.execute(delete(AttendanceRecord).where(AttendanceRecord.employee_id == user_id))
    await db.execute(
        delete(LeaveRequest).where(
            or_(LeaveRequest.employee_id == user_id, LeaveRequest.reviewer_id == user_id)
        )
    )
    await db.execute(delete(Session).where(Session.user_id == user_id))
    await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id))
    await db.execute(delete(EmployeeProfile).where(EmployeeProfile.user_id == user_id))
    await db.execute(delete(EmploymentDetail).where(EmploymentDetail.user_id == user_id))

    await db.execute(delete(User).where(User.id == user_id))
    log.info("Deleted user %s and dependent records", user_id)
