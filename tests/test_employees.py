"""Tests for the employee directory, invites, edits and the deletion cascade."""
import hashlib
from datetime import datetime
from decimal import Decimal
from urllib.parse import parse_qs, urlsplit

from sqlalchemy import func, select

from app.features.departments.models import Department
from app.features.employees.models import AttendanceRecord, AttendanceStatus, LeaveRequest, LeaveType
from app.features.employees.service import clamp_leave_balance, parse_money
from app.features.notifications.models import (
    Notification,
    NotificationAudience,
    NotificationReceipt,
    NotificationType,
)
from app.features.permissions.roles import UserRole
from app.features.users.models import EmploymentStatus, PasswordResetToken, Session, User


class TestDirectory:

    async def test_lists_only_own_organization(self, client, make_org, make_user, auth_headers):
        acme = await make_org("Acme")
        other = await make_org("Other")
        viewer = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")
        await make_user(other, UserRole.EMPLOYEE, "Oscar", "Outsider")

        response = await client.get("/hr/employees/", headers=await auth_headers(viewer))

        assert response.status_code == 200
        body = response.json()
        names = {entry["name"] for entry in body["directory"]}
        assert names == {"Hana Hr", "Eli Employee"}
        assert body["can_manage_compensation"] is True
        assert body["invitable_roles"] == ["EMPLOYEE"]

    async def test_employee_is_forbidden(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        viewer = await make_user(acme, UserRole.EMPLOYEE)

        response = await client.get("/hr/employees/", headers=await auth_headers(viewer))

        assert response.status_code == 403

    async def test_foreign_organization_filter_is_not_found(self, client, make_org, make_user, auth_headers):
        acme = await make_org("Acme")
        other = await make_org("Other")
        viewer = await make_user(acme, UserRole.ORG_OWNER)

        response = await client.get(
            "/hr/employees/", params={"organization_id": other.id}, headers=await auth_headers(viewer)
        )

        assert response.status_code == 404

    async def test_super_admin_can_target_any_organization(self, client, make_org, make_user, auth_headers):
        acme = await make_org("Acme")
        other = await make_org("Other")
        admin = await make_user(acme, UserRole.SUPER_ADMIN, "Sam", "Super")
        await make_user(other, UserRole.EMPLOYEE, "Oscar", "Outsider")

        response = await client.get(
            "/hr/employees/", params={"organization_id": other.id}, headers=await auth_headers(admin)
        )

        assert response.status_code == 200
        assert [entry["name"] for entry in response.json()["directory"]] == ["Oscar Outsider"]

    async def test_requires_session(self, client):
        response = await client.get("/hr/employees/")
        assert response.status_code == 401


class TestUpdateEmployee:

    async def test_manager_cannot_edit_org_admin(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        manager = await make_user(acme, UserRole.MANAGER, "Maya", "Manager")
        admin = await make_user(acme, UserRole.ORG_ADMIN, "Adam", "Admin")

        response = await client.patch(
            f"/hr/employees/{admin.id}",
            json={"designation": "Boss"},
            headers=await auth_headers(manager),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Managers and HR admins can’t edit Manager or Org Admin accounts."

    async def test_updates_profile_and_employment(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        owner = await make_user(acme, UserRole.ORG_OWNER, "Olivia", "Owner")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")

        response = await client.patch(
            f"/hr/employees/{employee.id}",
            json={
                "full_name": "Elias van Employee",
                "designation": "Staff Engineer",
                "reporting_manager_id": owner.id,
                "emergency_contact": {"name": "Ava", "phone": "555", "relationship": "Sister"},
            },
            headers=await auth_headers(owner),
        )

        assert response.status_code == 200
        detail = response.json()["employee"]
        assert detail["first_name"] == "Elias van"
        assert detail["last_name"] == "Employee"
        assert detail["designation"] == "Staff Engineer"
        assert detail["manager"] == "Olivia Owner"
        assert detail["emergency_contact"] == {"name": "Ava", "phone": "555", "relationship": "Sister"}

    async def test_cannot_assign_role_above_own(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        manager = await make_user(acme, UserRole.MANAGER, "Maya", "Manager")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")

        response = await client.patch(
            f"/hr/employees/{employee.id}",
            json={"role": "ORG_ADMIN"},
            headers=await auth_headers(manager),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "You are not allowed to assign that role."

    async def test_cannot_promote_to_own_rank(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        manager = await make_user(acme, UserRole.MANAGER, "Maya", "Manager")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")

        response = await client.patch(
            f"/hr/employees/{employee.id}",
            json={"role": "MANAGER"},
            headers=await auth_headers(manager),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "You are not allowed to assign that role."

    async def test_status_cannot_terminate(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")
        headers = await auth_headers(hr)

        for target in (hr, employee):
            response = await client.patch(
                f"/hr/employees/{target.id}", json={"status": "TERMINATED"}, headers=headers
            )
            assert response.status_code == 400

        assert (await client.get("/users/me", headers=headers)).status_code == 200

    async def test_cannot_deactivate_self(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        headers = await auth_headers(hr)

        response = await client.patch(f"/hr/employees/{hr.id}", json={"status": "INACTIVE"}, headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "You can’t terminate your own account."
        assert (await client.get("/users/me", headers=headers)).status_code == 200

    async def test_deactivating_junior_blocks_their_session(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")
        employee_headers = await auth_headers(employee)

        response = await client.patch(
            f"/hr/employees/{employee.id}", json={"status": "INACTIVE"}, headers=await auth_headers(hr)
        )

        assert response.status_code == 200
        assert response.json()["employee"]["status"] == "INACTIVE"
        assert (await client.get("/users/me", headers=employee_headers)).status_code == 403

    async def test_blank_designation_rejected(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        owner = await make_user(acme, UserRole.ORG_OWNER, "Olivia", "Owner")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")

        response = await client.patch(
            f"/hr/employees/{employee.id}",
            json={"designation": "   "},
            headers=await auth_headers(owner),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Role/title cannot be empty."

    async def test_leave_balances_are_clamped(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        owner = await make_user(acme, UserRole.ORG_OWNER, "Olivia", "Owner")
        employee = await make_user(acme, UserRole.EMPLOYEE, "Eli", "Employee")

        response = await client.put(
            f"/hr/employees/{employee.id}/leave-balances",
            json={"annual": 400, "sick": -3, "casual": 2.555, "parental": 10},
            headers=await auth_headers(owner),
        )

        assert response.status_code == 200
        assert response.json() == {"annual": 365.0, "sick": 0.0, "casual": 2.56, "parental": 10.0}


def invite_payload(**overrides):
    payload = {
        "full_name": "Nina van New",
        "email": "Nina.New@Example.com",
        "employee_code": "E-100",
        "phone": "555-0100",
        "designation": "Engineer",
    }
    payload.update(overrides)
    return payload


async def user_by_email(db, email):
    return (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()


class TestInviteEmployee:

    async def test_creates_inactive_account_and_hashed_token(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        head = await make_user(acme, UserRole.MANAGER, "Dee", "Head")
        department = Department(organization_id=acme.id, name="Engineering", head_id=head.id)
        db.add(department)
        await db.commit()

        response = await client.post(
            "/hr/employees/invite",
            json=invite_payload(department_id=department.id),
            headers=await auth_headers(hr),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "nina.new@example.com"
        assert body["role"] == "EMPLOYEE"
        query = parse_qs(urlsplit(body["invite_url"]).query)
        assert query["email"] == ["nina.new@example.com"]
        [token] = query["token"]

        db.expunge_all()
        invited = await db.get(User, body["user_id"])
        assert invited.status is EmploymentStatus.INACTIVE
        assert invited.invited_by_id == hr.id
        assert invited.organization_id == acme.id
        assert (invited.profile.first_name, invited.profile.last_name) == ("Nina van", "New")
        assert invited.employment.employee_code == "E-100"
        assert invited.employment.department_id == department.id
        assert invited.employment.reporting_manager_id == head.id

        [stored] = (await db.execute(
            select(PasswordResetToken).where(PasswordResetToken.user_id == invited.id)
        )).scalars().all()
        assert stored.token_hash == hashlib.sha256(token.encode()).hexdigest()
        assert stored.used_at is None

    async def test_invitee_cannot_log_in_yet(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        await client.post("/hr/employees/invite", json=invite_payload(), headers=await auth_headers(hr))

        response = await client.post("/auth/login", json={"email": "nina.new@example.com", "password": "guess"})

        assert response.status_code == 401

    async def test_cannot_invite_own_rank(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        manager = await make_user(acme, UserRole.MANAGER, "Maya", "Manager")

        response = await client.post(
            "/hr/employees/invite", json=invite_payload(role="MANAGER"), headers=await auth_headers(manager)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "You are not allowed to invite that role."
        assert await user_by_email(db, "nina.new@example.com") is None

    async def test_unknown_department_writes_nothing(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        owner = await make_user(acme, UserRole.ORG_OWNER, "Olivia", "Owner")

        response = await client.post(
            "/hr/employees/invite", json=invite_payload(department_id="missing"), headers=await auth_headers(owner)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Selected department does not exist."
        assert await user_by_email(db, "nina.new@example.com") is None

    async def test_blank_employee_code_rejected(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")

        response = await client.post(
            "/hr/employees/invite", json=invite_payload(employee_code="  "), headers=await auth_headers(hr)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Employee ID is required."

    async def test_duplicate_email_or_code_conflicts(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        headers = await auth_headers(hr)
        await client.post("/hr/employees/invite", json=invite_payload(), headers=headers)

        same_email = await client.post(
            "/hr/employees/invite", json=invite_payload(employee_code="E-200"), headers=headers
        )
        same_code = await client.post(
            "/hr/employees/invite", json=invite_payload(email="other@example.com"), headers=headers
        )

        assert same_email.status_code == 409
        assert same_email.json()["detail"] == "An account already exists for that email address."
        assert same_code.status_code == 409
        assert same_code.json()["detail"] == "This employee ID is already in use."


def test_money_helpers():
    assert clamp_leave_balance(12.345) == Decimal("12.35")
    assert parse_money(None) is None
    assert parse_money(-10) == Decimal("0.00")


class TestDeleteEmployee:

    async def test_cascade_removes_dependents_and_detaches_head(
        self, client, db, make_org, make_user, auth_headers
    ):
        acme = await make_org()
        owner = await make_user(acme, UserRole.ORG_OWNER, "Olivia", "Owner")
        target = await make_user(acme, UserRole.MANAGER, "Uma", "One")
        owner_headers = await auth_headers(owner)
        await auth_headers(target)

        department = Department(organization_id=acme.id, name="Engineering", head_id=target.id)
        db.add(department)
        now = datetime(2024, 5, 1, 9, 0)
        db.add(AttendanceRecord(employee_id=target.id, attendance_date=now, status=AttendanceStatus.PRESENT))
        db.add(LeaveRequest(
            employee_id=target.id,
            leave_type=LeaveType.SICK,
            start_date=now,
            end_date=now,
            total_days=Decimal("1"),
        ))
        notification = Notification(
            organization_id=acme.id,
            sender_id=target.id,
            title="Hi",
            body="Hello",
            type=NotificationType.ANNOUNCEMENT,
            audience=NotificationAudience.ORGANIZATION,
        )
        db.add(notification)
        await db.flush()
        db.add(NotificationReceipt(notification_id=notification.id, user_id=target.id, is_seen=True))
        await db.commit()
        department_id = department.id
        notification_id = notification.id

        response = await client.delete(f"/hr/employees/{target.id}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Employee terminated."}

        db.expunge_all()
        assert (await db.get(Department, department_id)).head_id is None
        assert (await db.get(Notification, notification_id)).sender_id is None
        for model, column in (
            (AttendanceRecord, AttendanceRecord.employee_id),
            (LeaveRequest, LeaveRequest.employee_id),
            (Session, Session.user_id),
            (NotificationReceipt, NotificationReceipt.user_id),
        ):
            count = await db.scalar(select(func.count()).select_from(model).where(column == target.id))
            assert count == 0, model.__name__
        assert await db.get(User, target.id) is None

    async def test_cannot_terminate_self(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        owner = await make_user(acme, UserRole.ORG_OWNER)

        response = await client.delete(f"/hr/employees/{owner.id}", headers=await auth_headers(owner))

        assert response.status_code == 403
        assert response.json()["detail"] == "You can’t terminate your own account."

    async def test_cannot_terminate_senior(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        owner = await make_user(acme, UserRole.ORG_OWNER, "Olivia", "Owner")

        response = await client.delete(f"/hr/employees/{owner.id}", headers=await auth_headers(hr))

        assert response.status_code == 403
