"""
FastAPI dependencies that wrap the authorization guard around routes.
"""
from typing import Annotated
from fastapi import Depends

from app.features.permissions.guards import require_capability, require_super_admin
from app.features.permissions.roles import Capability
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


def require(capability: Capability):
    """
    FastAPI dependency to require a role capability.

    Usage:
        @router.post("/departments")
        async def create_department(
            viewer: User = Depends(require(Capability.DEPARTMENTS))
        ):
            # Viewer may manage departments in their organization
            pass

    Raises:
        Forbidden: 403 if the viewer's role or organization does not qualify
    """
    async def capability_dependency(
        current_user: User = Depends(get_current_user)
    ) -> User:
        require_capability(current_user, capability)
        return current_user

    return capability_dependency


async def get_super_admin(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    return require_super_admin(current_user)


HrViewer = Annotated[User, Depends(require(Capability.HR_ACCESS))]
DepartmentManager = Annotated[User, Depends(require(Capability.DEPARTMENTS))]
TeamManager = Annotated[User, Depends(require(Capability.TEAMS))]
ProjectManager = Annotated[User, Depends(require(Capability.PROJECTS))]
OrganizationManager = Annotated[User, Depends(require(Capability.ORGANIZATION))]
CompensationManager = Annotated[User, Depends(require(Capability.COMPENSATION))]
SuperAdmin = Annotated[User, Depends(get_super_admin)]
