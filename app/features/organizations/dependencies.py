"""
Organization-related dependency injection functions.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound
from app.features.organizations.models import Organization
from app.features.organizations.schemas import OrganizationResponse
from app.features.users.models import User


async def get_organization_by_id(organization_id: str, db: AsyncSession) -> Organization:
    """
    Get organization by ID or raise 404.

    Raises:
        NotFound: if organization not found
    """
    result = await db.execute(
        select(Organization).where(Organization.id == organization_id)
    )
    organization = result.scalar_one_or_none()

    if organization is None:
        raise NotFound("Organization not found")

    return organization


async def build_organization_response(db: AsyncSession, organization: Organization) -> OrganizationResponse:
    result = await db.execute(
        select(func.count(User.id)).where(User.organization_id == organization.id)
    )
    response = OrganizationResponse.model_validate(organization)
    response.member_count = result.scalar_one()
    return response
