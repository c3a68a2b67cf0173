"""
Employee lookups shared by the department, team and project features.
"""
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.employees.models import EmploymentDetail
from app.features.users.models import User


async def get_org_employments(db: AsyncSession, organization_id: str) -> list[tuple[EmploymentDetail, User]]:
    """Every employment record of the organization with its user, sorted by display name."""
    result = await db.execute(
        select(EmploymentDetail, User)
        .join(User, User.id == EmploymentDetail.user_id)
        .where(EmploymentDetail.organization_id == organization_id)
    )
    rows = [(employment, user) for employment, user in result.all()]
    rows.sort(key=lambda row: row[1].display_name.lower())
    return rows


async def count_org_employments(db: AsyncSession, organization_id: str, user_ids: Iterable[str]) -> int:
    """How many of ``user_ids`` have an employment record in the organization."""
    ids = list(user_ids)
    if not ids:
        return 0
    result = await db.execute(
        select(EmploymentDetail.user_id).where(
            EmploymentDetail.organization_id == organization_id,
            EmploymentDetail.user_id.in_(ids),
        )
    )
    return len(set(result.scalars().all()))
