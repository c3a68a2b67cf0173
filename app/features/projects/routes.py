"""
Project management routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.dependencies import HrViewer, ProjectManager
from app.features.projects import service
from app.features.projects.schemas import (
    ProjectCreate,
    ProjectDeleteResponse,
    ProjectOverview,
    ProjectSummary,
    ProjectUpdate,
)


router = APIRouter(tags=["projects"])


@router.get("/", response_model=ProjectOverview)
async def get_overview(
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.overview(db, viewer)


@router.post("/", response_model=ProjectSummary, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    viewer: ProjectManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create a project.

    Raises:
        HTTPException: 400 when the dates, manager or members are invalid
        HTTPException: 409 when the name or code is already used
    """
    return await service.create_project(db, viewer, project_data)


@router.put("/{project_id}", response_model=ProjectSummary)
async def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    viewer: ProjectManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.update_project(db, viewer, project_id, project_data)


@router.delete("/{project_id}", response_model=ProjectDeleteResponse)
async def delete_project(
    project_id: str,
    viewer: ProjectManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.delete_project(db, viewer, project_id)
