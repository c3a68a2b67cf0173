"""Unit tests for the role hierarchy and capability predicates."""
import pytest

from app.features.permissions.roles import (
    UserRole,
    can_access_hr,
    can_manage_compensation,
    can_manage_departments,
    can_manage_organization,
    can_manage_projects,
    can_manage_teams,
    can_manage_work,
    coerce_role,
    is_role_senior,
    role_rank,
)

R = UserRole

ALLOW_LISTS = [
    (can_manage_departments, {R.ORG_ADMIN, R.ORG_OWNER, R.SUPER_ADMIN}),
    (can_manage_teams, {R.MANAGER, R.ORG_ADMIN, R.ORG_OWNER, R.SUPER_ADMIN}),
    (can_manage_projects, {R.MANAGER, R.ORG_ADMIN, R.ORG_OWNER, R.SUPER_ADMIN}),
    (can_manage_work, {R.ORG_OWNER, R.ORG_ADMIN, R.SUPER_ADMIN}),
    (can_manage_organization, {R.ORG_OWNER, R.SUPER_ADMIN}),
    (can_manage_compensation, {R.HR_ADMIN, R.MANAGER, R.ORG_ADMIN, R.ORG_OWNER, R.SUPER_ADMIN}),
    (can_access_hr, {R.HR_ADMIN, R.MANAGER, R.ORG_ADMIN, R.ORG_OWNER, R.SUPER_ADMIN}),
]


class TestRoleRank:

    def test_order(self):
        ordered = [R.EMPLOYEE, R.HR_ADMIN, R.MANAGER, R.ORG_ADMIN, R.ORG_OWNER, R.SUPER_ADMIN]
        assert sorted(UserRole, key=role_rank) == ordered
        assert [role.rank for role in ordered] == list(range(6))

    def test_unknown_ranks_lowest(self):
        assert role_rank(None) == 0
        assert role_rank("INTERN") == 0
        assert role_rank("MANAGER") == R.MANAGER.rank

    def test_is_role_senior_is_strict(self):
        assert is_role_senior(R.ORG_OWNER, R.ORG_ADMIN)
        assert not is_role_senior(R.MANAGER, R.MANAGER)
        assert not is_role_senior(R.EMPLOYEE, R.HR_ADMIN)

    def test_coerce_role(self):
        assert coerce_role("HR_ADMIN") is R.HR_ADMIN
        assert coerce_role(R.ORG_ADMIN) is R.ORG_ADMIN
        assert coerce_role("nope") is None
        assert coerce_role(3) is None


class TestCapabilities:

    @pytest.mark.parametrize("predicate,allowed", ALLOW_LISTS)
    def test_matches_allow_list(self, predicate, allowed):
        for role in UserRole:
            assert predicate(role) is (role in allowed), role
            assert predicate(role.value) is (role in allowed), role

    @pytest.mark.parametrize("predicate,_allowed", ALLOW_LISTS)
    def test_unknown_input_is_denied(self, predicate, _allowed):
        assert predicate(None) is False
        assert predicate("") is False
        assert predicate("ROOT") is False
