"""
Employee directory routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.employees import service
from app.features.employees.schemas import (
    Compensation,
    CompensationUpdate,
    EmployeeDetailResponse,
    EmployeeDirectory,
    EmployeeInvite,
    EmployeeInviteResponse,
    EmployeeUpdate,
    LeaveBalances,
    LeaveBalancesUpdate,
    MessageResponse,
)
from app.features.permissions.dependencies import CompensationManager, HrViewer


router = APIRouter(tags=["employees"])


@router.get("/", response_model=EmployeeDirectory)
async def get_directory(
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = None
):
    """
    List the organization's employees, newest first.

    Compensation is only included for roles allowed to manage it.
    """
    return await service.directory(db, viewer, organization_id)


@router.post("/invite", response_model=EmployeeInviteResponse, status_code=status.HTTP_201_CREATED)
async def invite_employee(
    invite_data: EmployeeInvite,
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create an inactive account for a new hire and return its invite link.

    Raises:
        HTTPException: 403 when the viewer may not invite that role
        HTTPException: 409 when the email or employee ID is taken
    """
    return await service.invite_employee(db, viewer, invite_data)


@router.get("/{employee_id}", response_model=EmployeeDetailResponse)
async def get_employee(
    employee_id: str,
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: str | None = None
):
    """Get one employee plus the viewer's permissions on them."""
    return await service.get_employee(db, viewer, employee_id, organization_id)


@router.patch("/{employee_id}", response_model=EmployeeDetailResponse)
async def update_employee(
    employee_id: str,
    update_data: EmployeeUpdate,
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Update an employee.

    Raises:
        HTTPException: 403 when the edit decision table denies the change
        HTTPException: 400 when the department, team or manager is invalid
        HTTPException: 404 when the employee is outside the organization
    """
    return await service.update_employee(db, viewer, employee_id, update_data)


@router.put("/{employee_id}/compensation", response_model=Compensation)
async def update_compensation(
    employee_id: str,
    update_data: CompensationUpdate,
    viewer: CompensationManager,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.update_compensation(db, viewer, employee_id, update_data)


@router.put("/{employee_id}/leave-balances", response_model=LeaveBalances)
async def update_leave_balances(
    employee_id: str,
    update_data: LeaveBalancesUpdate,
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Set leave balances; each value is clamped to 0..365."""
    return await service.update_leave_balances(db, viewer, employee_id, update_data)


@router.delete("/{employee_id}", response_model=MessageResponse)
async def delete_employee(
    employee_id: str,
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Terminate an employee and remove their records."""
    return await service.delete_employee(db, viewer, employee_id)
