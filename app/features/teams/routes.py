"""
Team management routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.dependencies import HrViewer, TeamManager
from app.features.teams import service
from app.features.teams.schemas import (
    TeamCreate,
    TeamLeadsAssign,
    TeamMembersAssign,
    TeamOverview,
    TeamSummary,
)


router = APIRouter(tags=["teams"])


@router.get("/", response_model=TeamOverview)
async def get_overview(
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.overview(db, viewer)


@router.post("/", response_model=TeamSummary, status_code=status.HTTP_201_CREATED)
async def create_team(
    team_data: TeamCreate,
    viewer: TeamManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.create_team(db, viewer, team_data)


@router.put("/{team_id}/leads", response_model=TeamSummary)
async def assign_leads(
    team_id: str,
    leads_data: TeamLeadsAssign,
    viewer: TeamManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the team's leads."""
    return await service.assign_leads(db, viewer, team_id, leads_data.lead_user_ids)


@router.put("/{team_id}/members", response_model=TeamSummary)
async def assign_members(
    team_id: str,
    members_data: TeamMembersAssign,
    viewer: TeamManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the team's members. Leads are always kept."""
    return await service.assign_members(db, viewer, team_id, members_data.member_user_ids)
