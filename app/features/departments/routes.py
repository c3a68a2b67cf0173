"""
Department management routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.departments import service
from app.features.departments.schemas import (
    DepartmentCreate,
    DepartmentHeadAssign,
    DepartmentMembersAssign,
    DepartmentOverview,
    DepartmentSummary,
    DepartmentUpdate,
)
from app.features.permissions.dependencies import DepartmentManager, HrViewer


router = APIRouter(tags=["departments"])


@router.get("/", response_model=DepartmentOverview)
async def get_overview(
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List departments with their heads and members."""
    return await service.overview(db, viewer)


@router.post("/", response_model=DepartmentSummary, status_code=status.HTTP_201_CREATED)
async def create_department(
    department_data: DepartmentCreate,
    viewer: DepartmentManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.create_department(db, viewer, department_data)


@router.put("/{department_id}", response_model=DepartmentSummary)
async def update_department(
    department_id: str,
    department_data: DepartmentUpdate,
    viewer: DepartmentManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.update_department(db, viewer, department_id, department_data)


@router.put("/{department_id}/head", response_model=DepartmentSummary)
async def assign_head(
    department_id: str,
    head_data: DepartmentHeadAssign,
    viewer: DepartmentManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Set the department head, or clear it with a null id."""
    return await service.assign_head(db, viewer, department_id, head_data.head_user_id)


@router.put("/{department_id}/members", response_model=DepartmentSummary)
async def assign_members(
    department_id: str,
    members_data: DepartmentMembersAssign,
    viewer: DepartmentManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the department's members. The head is always kept."""
    return await service.assign_members(db, viewer, department_id, members_data.member_user_ids)
