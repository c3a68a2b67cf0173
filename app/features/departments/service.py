"""
Department management: overview, create, update, head and member assignment.
"""
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationError
from app.features.departments.models import Department
from app.features.departments.schemas import (
    DepartmentCreate,
    DepartmentOverview,
    DepartmentPerson,
    DepartmentSummary,
    DepartmentUpdate,
)
from app.features.employees.dependencies import count_org_employments, get_org_employments
from app.features.employees.models import EmploymentDetail
from app.features.permissions.guards import resolve_scope
from app.features.permissions.roles import can_manage_departments
from app.features.users.models import User
from app.utils import get_logger, sanitize_optional, unique_ids


log = get_logger(__name__)

MEMBER_PREVIEW_SIZE = 4


def _person(employment: EmploymentDetail, user: User) -> DepartmentPerson:
    profile = user.profile
    return DepartmentPerson(
        user_id=user.id,
        full_name=user.display_name,
        email=(profile.work_email if profile else None) or user.email,
        designation=employment.designation or None,
        avatar_url=profile.profile_photo_url if profile else None,
        department_id=employment.department_id,
        department_name=employment.department.name if employment.department else None,
    )


async def _summaries(
    db: AsyncSession,
    departments: list[Department],
    people: list[DepartmentPerson]
) -> list[DepartmentSummary]:
    head_ids = [department.head_id for department in departments if department.head_id]
    heads: dict[str, User] = {}
    if head_ids:
        result = await db.execute(select(User).where(User.id.in_(head_ids)))
        heads = {user.id: user for user in result.scalars().all()}

    summaries = []
    for department in departments:
        members = [person for person in people if person.department_id == department.id]
        head = heads.get(department.head_id) if department.head_id else None
        summaries.append(DepartmentSummary(
            id=department.id,
            name=department.name,
            code=department.code,
            description=department.description,
            head_user_id=department.head_id,
            head_name=head.display_name if head else None,
            head_email=head.email if head else None,
            member_count=len(members),
            member_user_ids=[member.user_id for member in members],
            member_preview=members[:MEMBER_PREVIEW_SIZE],
            created_at=department.created_at,
            updated_at=department.updated_at,
        ))
    return summaries


async def _get_department(db: AsyncSession, department_id: str, organization_id: str) -> Department:
    result = await db.execute(
        select(Department).where(
            Department.id == department_id,
            Department.organization_id == organization_id,
        )
    )
    department = result.scalar_one_or_none()
    if department is None:
        raise NotFound("Department not found.")
    return department


async def _summary(db: AsyncSession, department: Department) -> DepartmentSummary:
    people = [_person(*row) for row in await get_org_employments(db, department.organization_id)]
    return (await _summaries(db, [department], people))[0]


async def _ensure_unique(
    db: AsyncSession,
    organization_id: str,
    name: str,
    code: Optional[str],
    exclude_id: Optional[str] = None
) -> None:
    query = select(Department).where(Department.organization_id == organization_id)
    if exclude_id:
        query = query.where(Department.id != exclude_id)
    for existing in (await db.execute(query)).scalars().all():
        if existing.name == name:
            raise Conflict("A department with that name already exists.")
        if code and existing.code == code:
            raise Conflict("A department with that code already exists.")


async def overview(db: AsyncSession, viewer: User) -> DepartmentOverview:
    scope = resolve_scope(viewer)
    result = await db.execute(
        select(Department).where(Department.organization_id == scope).order_by(Department.name)
    )
    departments = list(result.scalars().all())
    people = [_person(*row) for row in await get_org_employments(db, scope)]

    return DepartmentOverview(
        viewer_role=viewer.role,
        can_manage=can_manage_departments(viewer.role),
        departments=await _summaries(db, departments, people),
        employees=people,
    )


async def create_department(db: AsyncSession, viewer: User, data: DepartmentCreate) -> DepartmentSummary:
    scope = resolve_scope(viewer)
    name = data.name.strip()
    if not name:
        raise ValidationError("Department name is required.")
    code = sanitize_optional(data.code)
    await _ensure_unique(db, scope, name, code)

    department = Department(
        organization_id=scope,
        name=name,
        code=code,
        description=sanitize_optional(data.description),
    )
    db.add(department)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A department with that name or code already exists.")

    log.info("Department %s created by %s", department.id, viewer.id)
    return await _summary(db, department)


async def update_department(
    db: AsyncSession,
    viewer: User,
    department_id: str,
    data: DepartmentUpdate
) -> DepartmentSummary:
    scope = resolve_scope(viewer)
    department = await _get_department(db, department_id, scope)

    name = data.name.strip()
    if not name:
        raise ValidationError("Department name cannot be empty.")
    code = sanitize_optional(data.code)
    await _ensure_unique(db, scope, name, code, exclude_id=department.id)

    department.name = name
    department.code = code
    department.description = sanitize_optional(data.description)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A department with that name or code already exists.")

    return await _summary(db, department)


async def assign_head(
    db: AsyncSession,
    viewer: User,
    department_id: str,
    head_user_id: Optional[str]
) -> DepartmentSummary:
    """Set or clear the department head; a new head also joins the department."""
    scope = resolve_scope(viewer)
    department = await _get_department(db, department_id, scope)

    head_id = None
    if head_user_id:
        if await count_org_employments(db, scope, [head_user_id]) != 1:
            raise ValidationError("Select a manager from this organization.")
        head_id = head_user_id

    department.head_id = head_id
    if head_id:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id == head_id)
            .values(department_id=department.id)
        )
    await db.commit()

    log.info("Department %s head set to %s by %s", department.id, head_id, viewer.id)
    db.expunge_all()
    return await _summary(db, await _get_department(db, department_id, scope))


async def assign_members(
    db: AsyncSession,
    viewer: User,
    department_id: str,
    member_user_ids: list[str]
) -> DepartmentSummary:
    """
    Replace the department's member list.

    The head always stays a member. Members not in the list are detached.
    """
    scope = resolve_scope(viewer)
    department = await _get_department(db, department_id, scope)

    member_ids = unique_ids(member_user_ids)
    if department.head_id and department.head_id not in member_ids:
        member_ids.append(department.head_id)

    if member_ids and await count_org_employments(db, scope, member_ids) != len(member_ids):
        raise ValidationError("All members must belong to this organization.")

    existing = await db.execute(
        select(EmploymentDetail.user_id).where(
            EmploymentDetail.organization_id == scope,
            EmploymentDetail.department_id == department.id,
        )
    )
    to_remove = [user_id for user_id in existing.scalars().all() if user_id not in member_ids]

    if member_ids:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(member_ids))
            .values(department_id=department.id)
        )
    if to_remove:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(to_remove))
            .values(department_id=None)
        )
    await db.commit()

    db.expunge_all()
    return await _summary(db, await _get_department(db, department_id, scope))
