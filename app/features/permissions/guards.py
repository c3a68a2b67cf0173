"""
Authorization guard: capability enforcement, tenancy scoping and the
seniority decision tables for editing and terminating teammates.

The decision tables are pure and return a PermissionResult; the caller
decides how to surface the reason. ``require_capability`` and
``resolve_scope`` raise the shared error types.
"""
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from app.core.errors import Forbidden, NotFound
from app.features.permissions.roles import (
    Capability,
    UserRole,
    coerce_role,
    has_capability,
    is_role_senior,
)
from app.utils import get_logger


log = get_logger(__name__)


class Viewer(Protocol):
    id: str
    role: Any
    organization_id: Optional[str]


@dataclass(frozen=True)
class PermissionResult:
    allowed: bool
    reason: Optional[str] = None


ALLOWED = PermissionResult(True)

NO_ORGANIZATION_MESSAGE = "Join an organization to manage employees."

CAPABILITY_DENIED_MESSAGES: dict[Capability, str] = {
    Capability.HR_ACCESS: "HR access required.",
    Capability.TEAMS: "Manager, org admin, org owner, or super admin access required.",
    Capability.DEPARTMENTS: "Only org admins, org owners, or super admins can manage departments.",
    Capability.PROJECTS: "Only managers, org admins, org owners, or super admins can manage projects.",
    Capability.WORK: "Only org owners, org admins, or super admins can manage work policies.",
    Capability.ORGANIZATION: "Only org owners or super admins can manage organization settings.",
    Capability.COMPENSATION: "You do not have permission to update compensation details.",
}


def require_capability(viewer: Viewer, capability: Capability) -> Viewer:
    """
    Raise Forbidden unless the viewer's role satisfies the capability and the
    viewer belongs to an organization.

    Organization management is the one capability a SUPER_ADMIN may use
    without an organization of its own. Every other capability also requires
    HR access first.
    """
    role = coerce_role(viewer.role)

    if capability is Capability.ORGANIZATION:
        if not has_capability(role, capability):
            raise Forbidden(CAPABILITY_DENIED_MESSAGES[capability])
        if not viewer.organization_id and role is not UserRole.SUPER_ADMIN:
            raise Forbidden("Join an organization to manage organization settings.")
        return viewer

    if not has_capability(role, Capability.HR_ACCESS):
        raise Forbidden(CAPABILITY_DENIED_MESSAGES[Capability.HR_ACCESS])

    if not viewer.organization_id:
        raise Forbidden(NO_ORGANIZATION_MESSAGE)

    if not has_capability(role, capability):
        raise Forbidden(CAPABILITY_DENIED_MESSAGES[capability])

    return viewer


def require_super_admin(viewer: Viewer) -> Viewer:
    if coerce_role(viewer.role) is not UserRole.SUPER_ADMIN:
        raise Forbidden("Super admin access required.")
    return viewer


def resolve_scope(viewer: Viewer, organization_id: Optional[str] = None) -> str:
    """
    Organization id a query must be constrained to.

    Only a SUPER_ADMIN may explicitly target another organization. Anyone else
    asking for a foreign organization gets NotFound, as the data is outside
    their tenant.
    """
    if coerce_role(viewer.role) is UserRole.SUPER_ADMIN and organization_id:
        return organization_id

    if not viewer.organization_id:
        raise Forbidden(NO_ORGANIZATION_MESSAGE)

    if organization_id and organization_id != viewer.organization_id:
        raise NotFound("Organization not found")

    return viewer.organization_id


def get_edit_permission(viewer_role: Any, target_role: Any) -> PermissionResult:
    viewer = coerce_role(viewer_role)
    target = coerce_role(target_role)

    if viewer is None or viewer is UserRole.EMPLOYEE:
        return PermissionResult(False, "Employees can’t edit other team members.")

    if target is UserRole.SUPER_ADMIN:
        return PermissionResult(False, "Super Admin profiles can’t be edited.")

    if target is UserRole.ORG_OWNER and viewer is not UserRole.SUPER_ADMIN:
        return PermissionResult(False, "Only Super Admins can edit Org Owners.")

    if viewer in (UserRole.HR_ADMIN, UserRole.MANAGER) and target in (UserRole.MANAGER, UserRole.ORG_ADMIN):
        return PermissionResult(False, "Managers and HR admins can’t edit Manager or Org Admin accounts.")

    return ALLOWED


def get_termination_permission(viewer_role: Any, target_role: Any, is_self: bool = False) -> PermissionResult:
    if is_self:
        return PermissionResult(False, "You can’t terminate your own account.")

    viewer = coerce_role(viewer_role)
    target = coerce_role(target_role)

    if viewer is None or viewer is UserRole.EMPLOYEE:
        return PermissionResult(False, "Only admins can terminate employees.")

    if target is UserRole.SUPER_ADMIN:
        return PermissionResult(False, "Super Admin accounts can’t be terminated.")

    if is_role_senior(target, viewer):
        return PermissionResult(False, "You can’t terminate a senior position holder.")

    return ALLOWED


INVITE_ROLE_MATRIX: dict[UserRole, tuple[UserRole, ...]] = {
    UserRole.SUPER_ADMIN: (
        UserRole.EMPLOYEE, UserRole.HR_ADMIN, UserRole.MANAGER, UserRole.ORG_ADMIN, UserRole.ORG_OWNER,
    ),
    UserRole.ORG_OWNER: (UserRole.EMPLOYEE, UserRole.HR_ADMIN, UserRole.MANAGER, UserRole.ORG_ADMIN),
    UserRole.ORG_ADMIN: (UserRole.EMPLOYEE, UserRole.HR_ADMIN, UserRole.MANAGER),
    UserRole.MANAGER: (UserRole.EMPLOYEE, UserRole.HR_ADMIN),
    UserRole.HR_ADMIN: (UserRole.EMPLOYEE,),
    UserRole.EMPLOYEE: (),
}


def get_invitable_roles(viewer_role: Any) -> list[UserRole]:
    """Roles the viewer may invite or assign, most junior first. Always strictly junior."""
    viewer = coerce_role(viewer_role)
    if viewer is None:
        return []
    return list(INVITE_ROLE_MATRIX[viewer])


def enforce(result: PermissionResult, fallback: str, **log_context: Any) -> None:
    """Raise Forbidden with the decision's reason when it denies."""
    if result.allowed:
        return
    log.info("Permission denied: %s %s", result.reason or fallback, log_context)
    raise Forbidden(result.reason or fallback)
