"""
Organization feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import Conflict, ValidationError
from app.features.organizations.dependencies import build_organization_response, get_organization_by_id
from app.features.organizations.models import Organization
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationOverview,
    OrganizationResponse,
    OrganizationUpdate,
)
from app.features.permissions.dependencies import OrganizationManager, SuperAdmin
from app.features.permissions.guards import resolve_scope
from app.features.permissions.roles import UserRole, can_manage_organization
from app.features.users.dependencies import CurrentUser
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["organizations"])


@router.get("/", response_model=OrganizationOverview)
async def get_current_organization(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get the viewer's organization and what they may do with it."""
    organization = None
    if user.organization_id:
        organization = await build_organization_response(
            db, await get_organization_by_id(user.organization_id, db)
        )

    return OrganizationOverview(
        viewer_role=user.role,
        can_manage=can_manage_organization(user.role),
        can_create_organizations=user.role is UserRole.SUPER_ADMIN,
        organization=organization,
    )


@router.get("/all", response_model=list[OrganizationResponse])
async def list_organizations(
    _admin: SuperAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """List every organization (super admin only)."""
    result = await db.execute(
        select(Organization).order_by(Organization.name).offset(skip).limit(limit)
    )
    return [await build_organization_response(db, org) for org in result.scalars().all()]


@router.post("/", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    admin: SuperAdmin,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a new organization (super admin only)."""
    organization = Organization(**org_data.model_dump(exclude={"owner_user_id"}))
    db.add(organization)

    try:
        await db.flush()
    except IntegrityError:
        raise Conflict("An organization with that domain already exists.")

    if org_data.owner_user_id:
        result = await db.execute(select(User).where(User.id == org_data.owner_user_id))
        owner = result.scalar_one_or_none()
        if owner is None:
            raise ValidationError("Selected owner does not exist.")
        if owner.role is UserRole.SUPER_ADMIN:
            raise ValidationError("Super admins can’t become org owners.")
        owner.organization_id = organization.id
        owner.role = UserRole.ORG_OWNER

    await db.commit()
    log.info("Organization %s created by %s", organization.id, admin.id)
    return await build_organization_response(db, organization)


@router.patch("/", response_model=OrganizationResponse)
async def update_organization(
    update_data: OrganizationUpdate,
    viewer: OrganizationManager,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = None
):
    """Update organization settings (org owners; super admins may target any organization)."""
    organization = await get_organization_by_id(resolve_scope(viewer, organization_id), db)

    for field, value in update_data.model_dump(exclude_unset=True).items():
        if field == "name" and value is not None:
            value = value.strip()
        setattr(organization, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("An organization with that domain already exists.")

    return await build_organization_response(db, organization)
