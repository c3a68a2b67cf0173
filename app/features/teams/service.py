"""
Team management: overview, create, lead and member assignment.

Team membership is the employment record's ``team_id``. Leads are rows in
``team_leads`` and carry the ``is_team_lead`` flag on their employment while
they lead at least one team.
"""
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound, ValidationError
from app.features.departments.models import Department
from app.features.employees.dependencies import count_org_employments, get_org_employments
from app.features.employees.models import EmploymentDetail
from app.features.permissions.guards import resolve_scope
from app.features.permissions.roles import can_manage_teams
from app.features.teams.models import Team, TeamLead
from app.features.teams.schemas import (
    DepartmentOption,
    TeamCreate,
    TeamOverview,
    TeamPerson,
    TeamSummary,
)
from app.features.users.models import User
from app.utils import get_logger, sanitize_optional, unique_ids


log = get_logger(__name__)

MEMBER_PREVIEW_SIZE = 4


def _person(employment: EmploymentDetail, user: User) -> TeamPerson:
    profile = user.profile
    return TeamPerson(
        user_id=user.id,
        full_name=user.display_name,
        designation=employment.designation or None,
        email=(profile.work_email if profile else None) or user.email,
        avatar_url=profile.profile_photo_url if profile else None,
        team_id=employment.team_id,
        team_name=employment.team.name if employment.team else None,
        is_team_lead=employment.is_team_lead,
    )


async def _get_team(db: AsyncSession, team_id: str, organization_id: str) -> Team:
    result = await db.execute(
        select(Team).where(Team.id == team_id, Team.organization_id == organization_id)
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFound("Team not found.")
    return team


async def _summaries(db: AsyncSession, organization_id: str, teams: list[Team]) -> tuple[list[TeamSummary], list[TeamPerson]]:
    people = [_person(*row) for row in await get_org_employments(db, organization_id)]
    people_by_id = {person.user_id: person for person in people}

    department_ids = {team.department_id for team in teams}
    department_names: dict[str, str] = {}
    if department_ids:
        result = await db.execute(select(Department).where(Department.id.in_(department_ids)))
        department_names = {department.id: department.name for department in result.scalars().all()}

    summaries = []
    for team in teams:
        leads = [people_by_id[lead.lead_id] for lead in team.leads if lead.lead_id in people_by_id]
        members = [person for person in people if person.team_id == team.id]
        summaries.append(TeamSummary(
            id=team.id,
            name=team.name,
            description=team.description,
            department_id=team.department_id,
            department_name=department_names.get(team.department_id, "—"),
            leads=leads,
            lead_user_ids=[lead.user_id for lead in leads],
            member_user_ids=[member.user_id for member in members],
            member_count=len(members),
            member_preview=members[:MEMBER_PREVIEW_SIZE],
        ))
    return summaries, people


async def _summary(db: AsyncSession, team_id: str, organization_id: str) -> TeamSummary:
    # Fresh identity map so lead rows and employment flags are re-read
    db.expunge_all()
    team = await _get_team(db, team_id, organization_id)
    summaries, _people = await _summaries(db, organization_id, [team])
    return summaries[0]


async def overview(db: AsyncSession, viewer: User) -> TeamOverview:
    scope = resolve_scope(viewer)

    departments = await db.execute(
        select(Department).where(Department.organization_id == scope).order_by(Department.name)
    )
    teams = await db.execute(select(Team).where(Team.organization_id == scope).order_by(Team.name))
    summaries, people = await _summaries(db, scope, list(teams.scalars().all()))

    return TeamOverview(
        viewer_role=viewer.role,
        can_manage=can_manage_teams(viewer.role),
        departments=[DepartmentOption(id=d.id, name=d.name) for d in departments.scalars().all()],
        employees=people,
        teams=summaries,
    )


async def create_team(db: AsyncSession, viewer: User, data: TeamCreate) -> TeamSummary:
    scope = resolve_scope(viewer)
    name = data.name.strip()
    if not name:
        raise ValidationError("Team name is required.")

    department = (await db.execute(
        select(Department).where(Department.id == data.department_id, Department.organization_id == scope)
    )).scalar_one_or_none()
    if department is None:
        raise ValidationError("Select a valid department for this organization.")

    team = Team(
        organization_id=scope,
        department_id=department.id,
        name=name,
        description=sanitize_optional(data.description),
    )
    db.add(team)
    await db.commit()

    log.info("Team %s created by %s", team.id, viewer.id)
    return await _summary(db, team.id, scope)


async def assign_leads(db: AsyncSession, viewer: User, team_id: str, lead_user_ids: list[str]) -> TeamSummary:
    """
    Replace the team's leads.

    New leads join the team and are flagged as leads. A removed lead keeps
    the flag only while still leading another team.
    """
    scope = resolve_scope(viewer)
    team = await _get_team(db, team_id, scope)

    lead_ids = unique_ids(lead_user_ids)
    if lead_ids and await count_org_employments(db, scope, lead_ids) != len(lead_ids):
        raise ValidationError("Select valid teammates from this organization.")

    existing_ids = [lead.lead_id for lead in team.leads]
    to_remove = [lead_id for lead_id in existing_ids if lead_id not in lead_ids]
    to_add = [lead_id for lead_id in lead_ids if lead_id not in existing_ids]

    if to_remove:
        await db.execute(
            delete(TeamLead).where(TeamLead.team_id == team.id, TeamLead.lead_id.in_(to_remove))
        )
    for lead_id in to_add:
        db.add(TeamLead(team_id=team.id, lead_id=lead_id))
    await db.flush()

    if lead_ids:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(lead_ids))
            .values(team_id=team.id, is_team_lead=True)
        )

    if to_remove:
        still_leading = await db.execute(select(TeamLead.lead_id).where(TeamLead.lead_id.in_(to_remove)))
        still_leading_ids = set(still_leading.scalars().all())
        to_unset = [lead_id for lead_id in to_remove if lead_id not in still_leading_ids]
        if to_unset:
            await db.execute(
                update(EmploymentDetail)
                .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(to_unset))
                .values(is_team_lead=False)
            )

    await db.commit()
    log.info("Team %s leads set to %s by %s", team.id, lead_ids, viewer.id)
    return await _summary(db, team_id, scope)


async def assign_members(db: AsyncSession, viewer: User, team_id: str, member_user_ids: list[str]) -> TeamSummary:
    """Replace the team's members. Leads are always kept."""
    scope = resolve_scope(viewer)
    team = await _get_team(db, team_id, scope)

    member_ids = unique_ids(member_user_ids)
    for lead in team.leads:
        if lead.lead_id not in member_ids:
            member_ids.append(lead.lead_id)

    if member_ids and await count_org_employments(db, scope, member_ids) != len(member_ids):
        raise ValidationError("All members must belong to this organization.")

    existing = await db.execute(
        select(EmploymentDetail.user_id).where(
            EmploymentDetail.organization_id == scope,
            EmploymentDetail.team_id == team.id,
        )
    )
    to_remove = [user_id for user_id in existing.scalars().all() if user_id not in member_ids]

    if member_ids:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(member_ids))
            .values(team_id=team.id)
        )
    if to_remove:
        await db.execute(
            update(EmploymentDetail)
            .where(EmploymentDetail.organization_id == scope, EmploymentDetail.user_id.in_(to_remove))
            .values(team_id=None)
        )
    await db.commit()

    return await _summary(db, team_id, scope)
