"""
Project management: overview, create, update and delete.

A project's members are the employees whose employment points at it through
``current_project_id``.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationError
from app.features.employees.dependencies import count_org_employments, get_org_employments
from app.features.employees.models import EmploymentDetail
from app.features.permissions.guards import resolve_scope
from app.features.permissions.roles import can_manage_projects
from app.features.projects.models import Project
from app.features.projects.schemas import (
    ProjectCreate,
    ProjectDeleteResponse,
    ProjectMember,
    ProjectOverview,
    ProjectSummary,
    ProjectUpdate,
)
from app.features.users.models import User
from app.utils import get_logger, sanitize_optional, unique_ids


log = get_logger(__name__)

MEMBER_PREVIEW_SIZE = 4


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def ensure_valid_date_range(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date and end_date and _as_utc(end_date) < _as_utc(start_date):
        raise ValidationError("End date can’t be before the start date.")


async def _summaries(db: AsyncSession, organization_id: str, projects: list[Project]) -> tuple[list[ProjectSummary], list[ProjectMember]]:
    rows = await get_org_employments(db, organization_id)
    employees = []
    members_by_project: dict[str, list[ProjectMember]] = {}
    people_by_id: dict[str, ProjectMember] = {}
    for employment, user in rows:
        profile = user.profile
        person = ProjectMember(
            user_id=user.id,
            full_name=user.display_name,
            email=(profile.work_email if profile else None) or user.email,
            designation=employment.designation or None,
            avatar_url=profile.profile_photo_url if profile else None,
        )
        employees.append(person)
        people_by_id[user.id] = person
        if employment.current_project_id:
            members_by_project.setdefault(employment.current_project_id, []).append(person)

    summaries = []
    for project in projects:
        members = members_by_project.get(project.id, [])
        manager = people_by_id.get(project.project_manager_id) if project.project_manager_id else None
        summaries.append(ProjectSummary(
            id=project.id,
            name=project.name,
            code=project.code,
            description=project.description,
            client_name=project.client_name,
            status=project.status,
            start_date=project.start_date,
            end_date=project.end_date,
            project_manager_id=project.project_manager_id,
            project_manager_name=manager.full_name if manager else None,
            project_manager_email=manager.email if manager else None,
            member_count=len(members),
            member_user_ids=[member.user_id for member in members],
            member_preview=members[:MEMBER_PREVIEW_SIZE],
            created_at=project.created_at,
            updated_at=project.updated_at,
        ))
    return summaries, employees


async def _get_project(db: AsyncSession, project_id: str, organization_id: str) -> Project:
    result = await db.execute(
        select(Project).where(Project.id == project_id, Project.organization_id == organization_id)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise NotFound("Project not found.")
    return project


async def _summary(db: AsyncSession, project_id: str, organization_id: str) -> ProjectSummary:
    db.expunge_all()
    project = await _get_project(db, project_id, organization_id)
    summaries, _employees = await _summaries(db, organization_id, [project])
    return summaries[0]


async def _validate(
    db: AsyncSession,
    organization_id: str,
    data: ProjectCreate,
    exclude_id: Optional[str] = None
) -> tuple[str, Optional[str], list[str]]:
    """Check a create/update payload; returns (name, code, member ids)."""
    name = data.name.strip()
    if not name:
        raise ValidationError("Project name is required.")
    code = sanitize_optional(data.code)
    ensure_valid_date_range(data.start_date, data.end_date)

    member_ids = unique_ids(data.member_user_ids)
    if member_ids and await count_org_employments(db, organization_id, member_ids) != len(member_ids):
        raise ValidationError("Select employees that belong to this organization.")

    if data.project_manager_id and await count_org_employments(db, organization_id, [data.project_manager_id]) != 1:
        raise ValidationError("Select a project manager that belongs to this organization.")

    query = select(Project).where(Project.organization_id == organization_id)
    if exclude_id:
        query = query.where(Project.id != exclude_id)
    for existing in (await db.execute(query)).scalars().all():
        if existing.name == name:
            raise Conflict("A project with that name already exists in this organization.")
        if code and existing.code == code:
            raise Conflict("A project with that code already exists in this organization.")

    return name, code, member_ids


async def overview(db: AsyncSession, viewer: User) -> ProjectOverview:
    scope = resolve_scope(viewer)
    result = await db.execute(
        select(Project)
        .where(Project.organization_id == scope)
        .order_by(Project.status, Project.created_at.desc())
    )
    summaries, employees = await _summaries(db, scope, list(result.scalars().all()))
    return ProjectOverview(
        viewer_role=viewer.role,
        can_manage=can_manage_projects(viewer.role),
        projects=summaries,
        employees=employees,
    )


async def create_project(db: AsyncSession, viewer: User, data: ProjectCreate) -> ProjectSummary:
    scope = resolve_scope(viewer)
    name, code, member_ids = await _validate(db, scope, data)

    project = Project(
        organization_id=scope,
        name=name,
        code=code,
        description=sanitize_optional(data.description),
        client_name=sanitize_optional(data.client_name),
        status=data.status,
        start_date=data.start_date,
        end_date=data.end_date,
        project_manager_id=data.project_manager_id or None,
    )
    db.add(project)
    try:
        await db.flush()
        if member_ids:
            await db.execute(
                update(EmploymentDetail)
                .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(member_ids))
                .values(current_project_id=project.id)
            )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A project with that name or code already exists in this organization.")

    log.info("Project %s created by %s", project.id, viewer.id)
    return await _summary(db, project.id, scope)


async def update_project(db: AsyncSession, viewer: User, project_id: str, data: ProjectUpdate) -> ProjectSummary:
    scope = resolve_scope(viewer)
    project = await _get_project(db, project_id, scope)
    name, code, member_ids = await _validate(db, scope, data, exclude_id=project.id)

    existing = await db.execute(
        select(EmploymentDetail.user_id).where(
            EmploymentDetail.organization_id == scope,
            EmploymentDetail.current_project_id == project.id,
        )
    )
    to_remove = [user_id for user_id in existing.scalars().all() if user_id not in member_ids]

    project.name = name
    project.code = code
    project.description = sanitize_optional(data.description)
    project.client_name = sanitize_optional(data.client_name)
    project.status = data.status
    project.start_date = data.start_date
    project.end_date = data.end_date
    project.project_manager_id = data.project_manager_id or None

    if to_remove:
        await db.execute(
            update(EmploymentDetail)
            .where(
                EmploymentDetail.organization_id == scope,
                EmploymentDetail.user_id.in_(to_remove),
                EmploymentDetail.current_project_id == project.id,
            )
            .values(current_project_id=None)
        )
    if member_ids:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(member_ids))
            .values(current_project_id=project.id)
        )

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A project with that name or code already exists in this organization.")

    return await _summary(db, project_id, scope)


async def delete_project(db: AsyncSession, viewer: User, project_id: str) -> ProjectDeleteResponse:
    scope = resolve_scope(viewer)
    project = await _get_project(db, project_id, scope)

    await db.execute(
        update(EmploymentDetail)
        .where(EmploymentDetail.current_project_id == project.id)
        .values(current_project_id=None)
    )
    await db.execute(delete(Project).where(Project.id == project.id))
    await db.commit()

    log.info("Project %s deleted by %s", project_id, viewer.id)
    return ProjectDeleteResponse(message="Project deleted successfully.")
