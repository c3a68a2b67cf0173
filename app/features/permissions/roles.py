"""
Static role hierarchy and capability predicates.

Roles form a total order:

    EMPLOYEE < HR_ADMIN < MANAGER < ORG_ADMIN < ORG_OWNER < SUPER_ADMIN

Every capability is a fixed allow-list of roles. Predicates accept ``None``
or unknown values and answer ``False`` instead of raising.
"""
import enum
from typing import Any, Optional


class UserRole(str, enum.Enum):
    """User role with an explicit seniority rank per member."""
    EMPLOYEE = "EMPLOYEE"
    HR_ADMIN = "HR_ADMIN"
    MANAGER = "MANAGER"
    ORG_ADMIN = "ORG_ADMIN"
    ORG_OWNER = "ORG_OWNER"
    SUPER_ADMIN = "SUPER_ADMIN"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]


ROLE_RANK: dict[UserRole, int] = {
    UserRole.EMPLOYEE: 0,
    UserRole.HR_ADMIN: 1,
    UserRole.MANAGER: 2,
    UserRole.ORG_ADMIN: 3,
    UserRole.ORG_OWNER: 4,
    UserRole.SUPER_ADMIN: 5,
}

# Fails at import time if a role is added without a rank
assert set(ROLE_RANK) == set(UserRole), "every UserRole needs a rank"

ROLE_LABELS: dict[UserRole, str] = {
    UserRole.EMPLOYEE: "Employee",
    UserRole.HR_ADMIN: "HR Admin",
    UserRole.MANAGER: "Manager",
    UserRole.ORG_ADMIN: "Org Admin",
    UserRole.ORG_OWNER: "Org Owner",
    UserRole.SUPER_ADMIN: "Super Admin",
}


def coerce_role(value: Any) -> Optional[UserRole]:
    """Return the matching UserRole, or None for missing/unknown input."""
    if isinstance(value, UserRole):
        return value
    if isinstance(value, str):
        try:
            return UserRole(value)
        except ValueError:
            return None
    return None


def role_rank(role: Any) -> int:
    """Seniority rank of a role; unknown roles rank with EMPLOYEE."""
    parsed = coerce_role(role)
    return ROLE_RANK[parsed] if parsed is not None else 0


def is_role_senior(target_role: Any, viewer_role: Any) -> bool:
    """True when the target strictly outranks the viewer."""
    return role_rank(target_role) > role_rank(viewer_role)


class Capability(str, enum.Enum):
    HR_ACCESS = "hr_access"
    DEPARTMENTS = "departments"
    TEAMS = "teams"
    PROJECTS = "projects"
    WORK = "work"
    ORGANIZATION = "organization"
    COMPENSATION = "compensation"


CAPABILITY_ROLES: dict[Capability, frozenset[UserRole]] = {
    Capability.HR_ACCESS: frozenset({
        UserRole.HR_ADMIN, UserRole.MANAGER, UserRole.ORG_ADMIN, UserRole.ORG_OWNER, UserRole.SUPER_ADMIN,
    }),
    Capability.DEPARTMENTS: frozenset({UserRole.ORG_ADMIN, UserRole.ORG_OWNER, UserRole.SUPER_ADMIN}),
    Capability.TEAMS: frozenset({UserRole.MANAGER, UserRole.ORG_ADMIN, UserRole.ORG_OWNER, UserRole.SUPER_ADMIN}),
    Capability.PROJECTS: frozenset({UserRole.MANAGER, UserRole.ORG_ADMIN, UserRole.ORG_OWNER, UserRole.SUPER_ADMIN}),
    Capability.WORK: frozenset({UserRole.ORG_OWNER, UserRole.ORG_ADMIN, UserRole.SUPER_ADMIN}),
    Capability.ORGANIZATION: frozenset({UserRole.ORG_OWNER, UserRole.SUPER_ADMIN}),
    Capability.COMPENSATION: frozenset({
        UserRole.HR_ADMIN, UserRole.MANAGER, UserRole.ORG_ADMIN, UserRole.ORG_OWNER, UserRole.SUPER_ADMIN,
    }),
}


def has_capability(role: Any, capability: Capability) -> bool:
    parsed = coerce_role(role)
    if parsed is None:
        return False
    return parsed in CAPABILITY_ROLES[capability]


def can_access_hr(role: Any) -> bool:
    return has_capability(role, Capability.HR_ACCESS)


def can_manage_departments(role: Any) -> bool:
    return has_capability(role, Capability.DEPARTMENTS)


def can_manage_teams(role: Any) -> bool:
    return has_capability(role, Capability.TEAMS)


def can_manage_projects(role: Any) -> bool:
    return has_capability(role, Capability.PROJECTS)


def can_manage_work(role: Any) -> bool:
    return has_capability(role, Capability.WORK)


def can_manage_organization(role: Any) -> bool:
    return has_capability(role, Capability.ORGANIZATION)


def can_manage_compensation(role: Any) -> bool:
    return has_capability(role, Capability.COMPENSATION)
