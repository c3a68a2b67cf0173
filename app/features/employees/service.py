"""
Employee directory operations.

Every function takes the viewer and constrains reads and writes to the
organization resolved for that viewer. Validation happens before the first
write, and each mutation commits once, so a rejected request leaves no partial
change behind.
"""
import hashlib
import secrets
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.base import utcnow
from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.features.departments.models import Department
from app.features.employees.cascade import delete_user_cascade
from app.features.employees.models import EmergencyContact, EmployeeProfile, EmploymentDetail
from app.features.employees.schemas import (
    Compensation,
    CompensationUpdate,
    DirectoryEntry,
    EmergencyContactData,
    EmployeeDetail,
    EmployeeDetailResponse,
    EmployeeDirectory,
    EmployeeInvite,
    EmployeeInviteResponse,
    EmployeePermissions,
    EmployeeUpdate,
    LeaveBalances,
    LeaveBalancesUpdate,
    MessageResponse,
)
from app.features.permissions.guards import (
    enforce,
    get_edit_permission,
    get_invitable_roles,
    get_termination_permission,
    resolve_scope,
)
from app.features.permissions.roles import UserRole, can_manage_compensation
from app.features.teams.models import Team, TeamLead
from app.features.users.auth import hash_password
from app.features.users.dependencies import INACTIVE_STATUSES
from app.features.users.models import EmploymentStatus, PasswordResetToken, User
from app.utils import get_logger, sanitize_optional, split_full_name


log = get_logger(__name__)

EMPLOYEE_NOT_FOUND = "Employee not found."
LEAVE_BALANCE_MAX = Decimal("365")
TWO_PLACES = Decimal("0.01")


def clamp_leave_balance(value: float) -> Decimal:
    """Clamp to [0, 365] with two decimal places."""
    amount = Decimal(str(value))
    amount = max(Decimal("0"), min(amount, LEAVE_BALANCE_MAX))
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def parse_money(value: Optional[float]) -> Optional[Decimal]:
    """Non-negative amount with two decimals, or None when not given."""
    if value is None:
        return None
    amount = max(Decimal("0"), Decimal(str(value)))
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _compensation(employment: Optional[EmploymentDetail]) -> Compensation:
    if employment is None:
        return Compensation(gross_salary=0, income_tax=0)
    return Compensation(gross_salary=employment.gross_salary, income_tax=employment.income_tax)


def _leave_balances(employment: Optional[EmploymentDetail]) -> LeaveBalances:
    if employment is None:
        return LeaveBalances()
    return LeaveBalances(
        annual=employment.annual_leave_balance,
        sick=employment.sick_leave_balance,
        casual=employment.casual_leave_balance,
        parental=employment.parental_leave_balance,
    )


def _entry_fields(user: User, viewer: User, manager: Optional[User]) -> dict:
    profile = user.profile
    employment = user.employment

    termination = get_termination_permission(viewer.role, user.role, is_self=viewer.id == user.id)
    show_compensation = can_manage_compensation(viewer.role)

    return {
        "id": user.id,
        "name": user.display_name,
        "email": user.email,
        "phone": user.phone or (profile.work_phone if profile else None),
        "user_role": user.role,
        "employee_code": employment.employee_code if employment else None,
        "designation": (employment.designation if employment else None) or "Team member",
        "department": employment.department.name if employment and employment.department else None,
        "team": employment.team.name if employment and employment.team else None,
        "location": (employment.primary_location if employment else None)
        or (profile.current_address if profile else None),
        "status": employment.status if employment else user.status,
        "start_date": employment.start_date if employment else None,
        "manager": manager.display_name if manager else None,
        "employment_type": employment.employment_type if employment else None,
        "work_model": profile.work_model if profile else None,
        "profile_photo_url": profile.profile_photo_url if profile else None,
        "created_at": user.created_at,
        "can_edit": get_edit_permission(viewer.role, user.role).allowed,
        "can_terminate": termination.allowed,
        "compensation": _compensation(employment) if show_compensation else None,
    }


async def _get_scoped_user(db: AsyncSession, employee_id: str, organization_id: Optional[str]) -> User:
    query = select(User).where(User.id == employee_id)
    if organization_id is not None:
        query = query.where(User.organization_id == organization_id)
    user = (await db.execute(query)).scalar_one_or_none()
    if user is None:
        raise NotFound(EMPLOYEE_NOT_FOUND)
    return user


async def _get_user(db: AsyncSession, user_id: Optional[str]) -> Optional[User]:
    if not user_id:
        return None
    return (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()


async def _get_scoped_employment(db: AsyncSession, employee_id: str, organization_id: str) -> EmploymentDetail:
    result = await db.execute(
        select(EmploymentDetail).where(
            EmploymentDetail.user_id == employee_id,
            EmploymentDetail.organization_id == organization_id,
        )
    )
    employment = result.scalar_one_or_none()
    if employment is None:
        raise NotFound(EMPLOYEE_NOT_FOUND)
    return employment


async def directory(db: AsyncSession, viewer: User, organization_id: Optional[str] = None) -> EmployeeDirectory:
    """Every user of the organization, newest first."""
    scope = resolve_scope(viewer, organization_id)
    result = await db.execute(
        select(User)
        .where(User.organization_id == scope)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    users = result.scalars().all()
    users_by_id = {user.id: user for user in users}

    entries = []
    for user in users:
        manager_id = user.employment.reporting_manager_id if user.employment else None
        entries.append(DirectoryEntry(**_entry_fields(user, viewer, users_by_id.get(manager_id))))

    return EmployeeDirectory(
        viewer_id=viewer.id,
        viewer_role=viewer.role,
        can_manage_compensation=can_manage_compensation(viewer.role),
        invitable_roles=get_invitable_roles(viewer.role),
        directory=entries,
    )


async def get_employee(
    db: AsyncSession,
    viewer: User,
    employee_id: str,
    organization_id: Optional[str] = None
) -> EmployeeDetailResponse:
    scope = resolve_scope(viewer, organization_id)
    user = await _get_scoped_user(db, employee_id, scope)
    employment = user.employment
    profile = user.profile

    manager = await _get_user(db, employment.reporting_manager_id if employment else None)
    contact = (await db.execute(
        select(EmergencyContact)
        .where(EmergencyContact.user_id == user.id)
        .order_by(EmergencyContact.created_at)
        .limit(1)
    )).scalar_one_or_none()

    detail = EmployeeDetail(
        **_entry_fields(user, viewer, manager),
        first_name=profile.first_name if profile else None,
        last_name=profile.last_name if profile else None,
        preferred_name=profile.preferred_name if profile else None,
        work_email=profile.work_email if profile else None,
        address=profile.current_address if profile else None,
        department_id=employment.department_id if employment else None,
        team_id=employment.team_id if employment else None,
        reporting_manager_id=employment.reporting_manager_id if employment else None,
        emergency_contact=EmergencyContactData(
            name=contact.name, phone=contact.phone, relationship=contact.relationship_label
        ) if contact else None,
        leave_balances=_leave_balances(employment),
    )

    permission = get_edit_permission(viewer.role, user.role)
    return EmployeeDetailResponse(
        employee=detail,
        permissions=EmployeePermissions(
            can_edit=permission.allowed,
            reason=permission.reason,
            can_edit_compensation=can_manage_compensation(viewer.role),
            viewer_role=viewer.role,
            target_role=user.role,
        ),
    )


async def _resolve_placement(
    db: AsyncSession,
    scope: str,
    employment: Optional[EmploymentDetail],
    changes: dict
) -> tuple[Optional[str], Optional[str]]:
    """Validate department/team changes and return the resulting (department_id, team_id)."""
    department_id = employment.department_id if employment else None
    team_id = employment.team_id if employment else None
    department_changed = False

    if "department_id" in changes:
        department_id = None
        department_changed = True
        if changes["department_id"]:
            department = (await db.execute(
                select(Department).where(
                    Department.id == changes["department_id"],
                    Department.organization_id == scope,
                )
            )).scalar_one_or_none()
            if department is None:
                raise ValidationError("Selected department does not exist.")
            department_id = department.id

    if "team_id" in changes:
        team_id = None
        if changes["team_id"]:
            team = (await db.execute(
                select(Team).where(Team.id == changes["team_id"], Team.organization_id == scope)
            )).scalar_one_or_none()
            if team is None:
                raise ValidationError("Selected team does not exist.")
            if department_id is None:
                department_id = team.department_id
            elif team.department_id != department_id:
                raise ValidationError("Selected team does not belong to that department.")
            team_id = team.id
    elif department_changed and team_id is not None:
        # Moving departments drops a team that belongs elsewhere
        current_team = (await db.execute(select(Team).where(Team.id == team_id))).scalar_one_or_none()
        if current_team is None or current_team.department_id != department_id:
            team_id = None

    return department_id, team_id


async def update_employee(
    db: AsyncSession,
    viewer: User,
    employee_id: str,
    update_data: EmployeeUpdate
) -> EmployeeDetailResponse:
    """
    Edit an employee's account, profile, employment and emergency contact.

    Order of checks: tenancy, edit decision table, role assignment,
    department/team/manager placement, then all writes in one commit.
    """
    scope = resolve_scope(viewer)
    user = await _get_scoped_user(db, employee_id, scope)

    enforce(
        get_edit_permission(viewer.role, user.role),
        "You are not allowed to edit this employee.",
        viewer_id=viewer.id,
        target_id=user.id,
    )

    changes = update_data.model_dump(exclude_unset=True)

    new_role = changes.get("role")
    if new_role is not None and new_role != user.role:
        if new_role not in get_invitable_roles(viewer.role):
            raise Forbidden("You are not allowed to assign that role.")

    new_status = changes.get("status")
    if new_status is not None and new_status != user.status:
        # Termination deletes the account; only delete_employee does that
        if new_status is EmploymentStatus.TERMINATED:
            raise ValidationError("Terminate the employee instead of setting that status.")
        if new_status in INACTIVE_STATUSES:
            enforce(
                get_termination_permission(viewer.role, user.role, is_self=viewer.id == user.id),
                "You cannot deactivate this employee.",
                viewer_id=viewer.id,
                target_id=user.id,
            )

    if "designation" in changes and not sanitize_optional(changes["designation"]):
        raise ValidationError("Role/title cannot be empty.")

    department_id, team_id = await _resolve_placement(db, scope, user.employment, changes)

    if changes.get("reporting_manager_id"):
        manager = await _get_user(db, changes["reporting_manager_id"])
        if manager is None or manager.organization_id != scope or manager.id == user.id:
            raise ValidationError("Selected manager does not exist.")

    # Writes start here
    if user.profile is None:
        user.profile = EmployeeProfile(first_name="")
    if user.employment is None:
        user.employment = EmploymentDetail(organization_id=scope)
    profile = user.profile
    employment = user.employment

    if "email" in changes and changes["email"]:
        user.email = changes["email"].lower()
        profile.work_email = user.email
    if "phone" in changes:
        user.phone = sanitize_optional(changes["phone"])
        profile.work_phone = user.phone
    if new_role is not None:
        user.role = UserRole(new_role)
    if changes.get("status") is not None:
        user.status = changes["status"]
        employment.status = changes["status"]

    if changes.get("full_name"):
        profile.first_name, profile.last_name = split_full_name(changes["full_name"])
    if "preferred_name" in changes:
        profile.preferred_name = sanitize_optional(changes["preferred_name"])
    if "address" in changes:
        profile.current_address = sanitize_optional(changes["address"])
    if "work_model" in changes:
        profile.work_model = changes["work_model"]

    if "designation" in changes:
        employment.designation = changes["designation"].strip()
    if changes.get("employment_type") is not None:
        employment.employment_type = changes["employment_type"]
    if "primary_location" in changes:
        employment.primary_location = sanitize_optional(changes["primary_location"])
    if changes.get("start_date") is not None:
        employment.start_date = changes["start_date"]
    if "reporting_manager_id" in changes:
        employment.reporting_manager_id = changes["reporting_manager_id"] or None
    employment.department_id = department_id
    employment.team_id = team_id

    if "emergency_contact" in changes:
        await _write_emergency_contact(db, user.id, update_data.emergency_contact)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("An account already exists for that email address.")

    log.info("Employee %s updated by %s", user.id, viewer.id)

    # Reload so relationship attributes reflect the new placement
    db.expunge_all()
    return await get_employee(db, viewer, employee_id)


async def _write_emergency_contact(
    db: AsyncSession,
    user_id: str,
    contact_data: Optional[EmergencyContactData]
) -> None:
    existing = (await db.execute(
        select(EmergencyContact)
        .where(EmergencyContact.user_id == user_id)
        .order_by(EmergencyContact.created_at)
        .limit(1)
    )).scalar_one_or_none()

    name = sanitize_optional(contact_data.name) if contact_data else None
    phone = sanitize_optional(contact_data.phone) if contact_data else None
    relationship = sanitize_optional(contact_data.relationship) if contact_data else None

    if not (name or phone or relationship):
        if existing is not None:
            await db.delete(existing)
        return

    if existing is None:
        existing = EmergencyContact(user_id=user_id)
        db.add(existing)
    existing.name = name or "Emergency contact"
    existing.phone = phone or ""
    existing.relationship_label = relationship or "Family"


async def update_compensation(
    db: AsyncSession,
    viewer: User,
    employee_id: str,
    update_data: CompensationUpdate
) -> Compensation:
    scope = resolve_scope(viewer)
    employment = await _get_scoped_employment(db, employee_id, scope)

    gross_salary = parse_money(update_data.gross_salary)
    income_tax = parse_money(update_data.income_tax)
    if gross_salary is not None:
        employment.gross_salary = gross_salary
    if income_tax is not None:
        employment.income_tax = income_tax

    await db.commit()
    log.info("Compensation for %s updated by %s", employee_id, viewer.id)
    return _compensation(employment)


async def update_leave_balances(
    db: AsyncSession,
    viewer: User,
    employee_id: str,
    update_data: LeaveBalancesUpdate
) -> LeaveBalances:
    scope = resolve_scope(viewer)
    employment = await _get_scoped_employment(db, employee_id, scope)

    employment.annual_leave_balance = clamp_leave_balance(update_data.annual)
    employment.sick_leave_balance = clamp_leave_balance(update_data.sick)
    employment.casual_leave_balance = clamp_leave_balance(update_data.casual)
    employment.parental_leave_balance = clamp_leave_balance(update_data.parental)

    await db.commit()
    return _leave_balances(employment)


async def delete_employee(db: AsyncSession, viewer: User, employee_id: str) -> MessageResponse:
    """
    Terminate an employee by deleting the user and its dependents.

    A SUPER_ADMIN may target a user of any organization.
    """
    scope = None if viewer.role is UserRole.SUPER_ADMIN else resolve_scope(viewer)
    target = await _get_scoped_user(db, employee_id, scope)

    enforce(
        get_termination_permission(viewer.role, target.role, is_self=viewer.id == target.id),
        "You cannot terminate this employee.",
        viewer_id=viewer.id,
        target_id=target.id,
    )

    await delete_user_cascade(db, target.id)
    await db.commit()

    log.info("Employee %s terminated by %s", target.id, viewer.id)
    return MessageResponse(message="Employee terminated.")


def _hash_invite_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def _default_manager_id(
    db: AsyncSession,
    department_id: Optional[str],
    team_id: Optional[str]
) -> Optional[str]:
    """The team's first lead, else the department head."""
    if team_id:
        lead_id = (await db.execute(
            select(TeamLead.lead_id)
            .where(TeamLead.team_id == team_id)
            .order_by(TeamLead.created_at)
            .limit(1)
        )).scalar_one_or_none()
        if lead_id:
            return lead_id
    if department_id:
        return (await db.execute(
            select(Department.head_id).where(Department.id == department_id)
        )).scalar_one_or_none()
    return None


async def invite_employee(db: AsyncSession, viewer: User, invite_data: EmployeeInvite) -> EmployeeInviteResponse:
    """
    Create an inactive account for a new hire plus a single-use invite token.

    The account gets an unusable random password; the invitee picks their
    own through the invite link. Only the token's hash is stored.
    """
    if invite_data.role not in get_invitable_roles(viewer.role):
        raise Forbidden("You are not allowed to invite that role.")

    scope = resolve_scope(viewer)
    email = invite_data.email.strip().lower()

    employee_code = sanitize_optional(invite_data.employee_code)
    if not employee_code:
        raise ValidationError("Employee ID is required.")
    phone = sanitize_optional(invite_data.phone)
    if not phone:
        raise ValidationError("Phone number is required.")
    designation = sanitize_optional(invite_data.designation)
    if not designation:
        raise ValidationError("Role/title cannot be empty.")

    department_id, team_id = await _resolve_placement(
        db, scope, None, invite_data.model_dump(include={"department_id", "team_id"}, exclude_none=True)
    )

    manager_id = invite_data.reporting_manager_id
    if manager_id:
        manager = await _get_user(db, manager_id)
        if manager is None or manager.organization_id != scope:
            raise ValidationError("Selected manager does not exist.")
    else:
        manager_id = await _default_manager_id(db, department_id, team_id)

    duplicate_code = (await db.execute(
        select(EmploymentDetail.id).where(
            EmploymentDetail.organization_id == scope,
            EmploymentDetail.employee_code == employee_code,
        )
    )).scalar_one_or_none()
    if duplicate_code is not None:
        raise Conflict("This employee ID is already in use.")

    existing = (await db.execute(select(User.id).where(User.email == email))).scalar_one_or_none()
    if existing is not None:
        raise Conflict("An account already exists for that email address.")

    first_name, last_name = split_full_name(invite_data.full_name)
    now = utcnow()

    user = User(
        organization_id=scope,
        email=email,
        phone=phone,
        password_hash=hash_password(secrets.token_urlsafe(32)),
        role=invite_data.role,
        status=EmploymentStatus.INACTIVE,
        invited_by_id=viewer.id,
        invited_at=now,
    )
    db.add(user)
    await db.flush()

    db.add(EmployeeProfile(
        user_id=user.id,
        first_name=first_name,
        last_name=last_name,
        preferred_name=first_name,
        work_email=email,
        work_phone=phone,
        work_model=invite_data.work_model,
    ))
    employment = EmploymentDetail(
        user_id=user.id,
        organization_id=scope,
        employee_code=employee_code,
        designation=designation,
        status=EmploymentStatus.INACTIVE,
        start_date=invite_data.start_date,
        department_id=department_id,
        team_id=team_id,
        reporting_manager_id=manager_id,
        primary_location=sanitize_optional(invite_data.primary_location),
    )
    if invite_data.employment_type is not None:
        employment.employment_type = invite_data.employment_type
    db.add(employment)

    raw_token = secrets.token_urlsafe(48)
    expires_at = now + timedelta(hours=config.INVITE_TOKEN_TTL_HOURS)
    db.add(PasswordResetToken(user_id=user.id, token_hash=_hash_invite_token(raw_token), expires_at=expires_at))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("An account already exists for that email address.")

    log.info("Employee %s invited by %s", user.id, viewer.id)

    return EmployeeInviteResponse(
        user_id=user.id,
        email=email,
        role=invite_data.role,
        invite_url=f"{config.SITE_URL}/auth/signup?{urlencode({'token': raw_token, 'email': email})}",
        expires_at=expires_at,
    )
