"""Tests for announcement sending, dispatch grouping and the overview."""
from datetime import datetime, timedelta
from types import SimpleNamespace

from sqlalchemy import func, select

from app.features.announcements.service import (
    build_audience_label,
    build_body_preview,
    format_display_name,
    to_recipient,
    transform_announcements,
)
from app.features.notifications.events import emit_notification_event
from app.features.notifications.models import (
    Notification,
    NotificationAudience,
    NotificationStatus,
    NotificationType,
)
from app.features.permissions.roles import UserRole
from app.features.realtime.broker import user_channel
from app.features.users.models import EmploymentStatus
from factories import FakeConnection

BASE = datetime(2024, 6, 1, 12, 0)


def person(user_id, name, preferred_name=None, last_name=None):
    profile = SimpleNamespace(preferred_name=preferred_name, first_name=name, last_name=last_name)
    return SimpleNamespace(id=user_id, profile=profile, email=f"{user_id}@example.com", role=UserRole.EMPLOYEE)


def row(row_id, dispatch_id=None, audience=NotificationAudience.INDIVIDUAL, target=None, sender="s",
        sent_at=BASE, created_at=BASE, audience_mode=None, body="Body"):
    return Notification(
        id=row_id,
        organization_id="org",
        sender_id=sender,
        title="Title",
        body=body,
        type=NotificationType.ANNOUNCEMENT,
        status=NotificationStatus.SENT,
        audience=audience,
        target_user_id=target,
        dispatch_id=dispatch_id,
        audience_mode=audience_mode,
        sent_at=sent_at,
        created_at=created_at,
    )


USERS = {
    "s": person("s", "Sender"),
    "u1": person("u1", "Zoe"),
    "u2": person("u2", "Adam"),
}


class TestBodyPreview:

    def test_short_body_unchanged(self):
        assert build_body_preview("x" * 160) == "x" * 160

    def test_long_body_truncated(self):
        preview = build_body_preview("x" * 161)
        assert preview == "x" * 159 + "…"
        assert len(preview) == 160


class TestAudienceLabel:

    def test_labels(self):
        one = [to_recipient(USERS["u1"])]
        two = one + [to_recipient(USERS["u2"])]
        assert build_audience_label(NotificationAudience.ORGANIZATION, two) == "Entire organization"
        assert build_audience_label(NotificationAudience.INDIVIDUAL, []) == "Specific teammates"
        assert build_audience_label(NotificationAudience.INDIVIDUAL, one) == "Zoe"
        assert build_audience_label(NotificationAudience.INDIVIDUAL, two) == "2 teammates"


class TestDisplayName:

    def test_preferred_name_is_joined_with_full_name(self):
        assert format_display_name(person("u", "Robert", preferred_name="Bob", last_name="Stone")) == "Bob Robert Stone"

    def test_blank_parts_skipped(self):
        assert format_display_name(person("u", "Robert", preferred_name="  ", last_name="")) == "Robert"

    def test_falls_back_to_email(self):
        assert format_display_name(person("u", "")) == "u@example.com"
        assert format_display_name(SimpleNamespace(profile=None, email="x@example.com")) == "x@example.com"


class TestTransformAnnouncements:

    def test_groups_rows_by_dispatch(self):
        rows = [
            row("n1", "d1", target="u1", sent_at=BASE, created_at=BASE),
            row("n2", "d1", target="u2", sent_at=BASE + timedelta(seconds=1), created_at=BASE - timedelta(seconds=5)),
        ]

        [item] = transform_announcements(rows, USERS)

        assert item.id == "d1"
        assert item.recipient_count == 2
        assert [r.name for r in item.recipients] == ["Adam", "Zoe"]
        assert item.audience_label == "2 teammates"
        assert item.sent_at == BASE + timedelta(seconds=1)
        assert item.created_at == BASE - timedelta(seconds=5)
        assert item.sender_name == "Sender"

    def test_rows_without_dispatch_are_separate(self):
        rows = [row("n1", None, target="u1"), row("n2", "  ", target="u2")]

        items = transform_announcements(rows, USERS)

        assert sorted(item.id for item in items) == ["n1", "n2"]

    def test_organization_row_promotes_group(self):
        rows = [
            row("n1", "d1", target="u1"),
            row("n2", "d1", audience=NotificationAudience.ORGANIZATION),
        ]

        [item] = transform_announcements(rows, USERS)

        assert item.audience is NotificationAudience.ORGANIZATION
        assert item.is_organization_wide
        assert item.audience_label == "Entire organization"

    def test_audience_mode_overrides_row_audience(self):
        [item] = transform_announcements(
            [row("n1", "d1", audience=NotificationAudience.ROLE, audience_mode=NotificationAudience.ORGANIZATION)],
            USERS,
        )
        assert item.audience is NotificationAudience.ORGANIZATION

    def test_sender_taken_from_first_row_that_has_one(self):
        rows = [row("n1", "d1", target="u1", sender=None), row("n2", "d1", target="u2", sender="s")]

        [item] = transform_announcements(rows, USERS)

        assert item.sender_id == "s"

    def test_newest_first_falling_back_to_created_at(self):
        rows = [
            row("old", "a", sent_at=BASE),
            row("draft", "b", sent_at=None, created_at=BASE + timedelta(hours=2)),
            row("new", "c", sent_at=BASE + timedelta(hours=1)),
        ]

        assert [item.id for item in transform_announcements(rows, USERS)] == ["b", "c", "a"]

    def test_is_idempotent(self):
        rows = [row("n1", "d1", target="u1"), row("n2", "d1", target="u2"), row("n3", None, target="u1")]

        first = transform_announcements(rows, USERS)
        second = transform_announcements(rows, USERS)

        assert [item.model_dump() for item in first] == [item.model_dump() for item in second]


async def count_notifications(db):
    return await db.scalar(select(func.count()).select_from(Notification))


class TestSendAnnouncement:

    async def test_organization_wide(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        headers = await auth_headers(hr)

        response = await client.post(
            "/hr/announcements/",
            json={"title": "  Holiday ", "body": "Office closed", "audience": "ORGANIZATION"},
            headers=headers,
        )

        assert response.status_code == 201
        dispatch_id = response.json()["dispatch_id"]
        [notification] = (await db.execute(select(Notification))).scalars().all()
        assert notification.dispatch_id == dispatch_id
        assert notification.target_user_id is None
        assert notification.title == "Holiday"
        assert notification.status is NotificationStatus.SENT
        assert notification.action_url == "/notification"

        overview = (await client.get("/hr/announcements/", headers=headers)).json()
        assert overview["announcements"][0]["audience_label"] == "Entire organization"

    async def test_individual_fan_out_is_one_dispatch(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        manager = await make_user(acme, UserRole.MANAGER, "Maya", "Manager")
        u1 = await make_user(acme, UserRole.EMPLOYEE, "Uma", "One")
        u2 = await make_user(acme, UserRole.EMPLOYEE, "Ugo", "Two")
        headers = await auth_headers(manager)

        response = await client.post(
            "/hr/announcements/",
            json={"title": "Review", "body": "Please review", "audience": "INDIVIDUAL",
                  "recipient_ids": [u1.id, u2.id, u1.id, ""]},
            headers=headers,
        )

        assert response.status_code == 201
        rows = (await db.execute(select(Notification))).scalars().all()
        assert len(rows) == 2
        assert {r.dispatch_id for r in rows} == {response.json()["dispatch_id"]}
        assert {r.target_user_id for r in rows} == {u1.id, u2.id}

        overview = (await client.get("/hr/announcements/", headers=headers)).json()
        [item] = overview["announcements"]
        assert item["recipient_count"] == 2
        assert item["audience_label"] == "2 teammates"
        assert item["sender_name"] == "Maya Manager"

    async def test_empty_recipients_rejected(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN)

        response = await client.post(
            "/hr/announcements/",
            json={"title": "T", "body": "B", "audience": "INDIVIDUAL", "recipient_ids": []},
            headers=await auth_headers(hr),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Select at least one teammate to notify."
        assert await count_notifications(db) == 0

    async def test_one_invalid_recipient_writes_nothing(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org("Acme")
        other = await make_org("Other")
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        valid = [await make_user(acme, UserRole.EMPLOYEE, f"Valid{i}", "User") for i in range(3)]
        outsider = await make_user(other, UserRole.EMPLOYEE, "Oscar", "Outsider")

        response = await client.post(
            "/hr/announcements/",
            json={"title": "T", "body": "B", "audience": "INDIVIDUAL",
                  "recipient_ids": [u.id for u in valid] + [outsider.id]},
            headers=await auth_headers(hr),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Some selected teammates are no longer available."
        assert await count_notifications(db) == 0

    async def test_terminated_recipient_rejected(self, client, db, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        gone = await make_user(acme, UserRole.EMPLOYEE, "Gone", "Person", status=EmploymentStatus.TERMINATED)

        response = await client.post(
            "/hr/announcements/",
            json={"title": "T", "body": "B", "audience": "INDIVIDUAL", "recipient_ids": [gone.id]},
            headers=await auth_headers(hr),
        )

        assert response.status_code == 400
        assert await count_notifications(db) == 0

    async def test_blank_title_and_body(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN)
        headers = await auth_headers(hr)

        no_title = await client.post("/hr/announcements/", json={"title": " ", "body": "B"}, headers=headers)
        no_body = await client.post("/hr/announcements/", json={"title": "T", "body": "\n"}, headers=headers)

        assert no_title.json()["detail"] == "Provide an announcement topic."
        assert no_body.json()["detail"] == "Write the announcement details."

    async def test_employee_cannot_send(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        employee = await make_user(acme, UserRole.EMPLOYEE)

        response = await client.post(
            "/hr/announcements/", json={"title": "T", "body": "B"}, headers=await auth_headers(employee)
        )

        assert response.status_code == 403


class TestOverview:

    async def test_eligible_recipients_exclude_terminated(self, client, make_org, make_user, auth_headers):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        await make_user(acme, UserRole.EMPLOYEE, "Bea", "Active")
        await make_user(acme, UserRole.EMPLOYEE, "Carl", "Gone", status=EmploymentStatus.TERMINATED)

        response = await client.get("/hr/announcements/", headers=await auth_headers(hr))

        body = response.json()
        assert body["viewer_role"] == "HR_ADMIN"
        assert [r["name"] for r in body["recipients"]] == ["Bea Active", "Hana Hr"]


class TestRealtimeDelivery:

    async def test_recipients_receive_notification_event(
        self, client, broker, make_org, make_user, auth_headers
    ):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        target = await make_user(acme, UserRole.EMPLOYEE, "Tia", "Target")
        bystander = await make_user(acme, UserRole.EMPLOYEE, "Ben", "Bystander")
        target_socket, bystander_socket = FakeConnection(), FakeConnection()
        await broker.group_add(user_channel(target.id), target_socket)
        await broker.group_add(user_channel(bystander.id), bystander_socket)

        response = await client.post(
            "/hr/announcements/",
            json={"title": "Hello", "body": "Welcome", "audience": "INDIVIDUAL", "recipient_ids": [target.id]},
            headers=await auth_headers(hr),
        )

        assert response.status_code == 201
        [event] = target_socket.sent
        assert event["type"] == "notification:new"
        assert event["payload"]["title"] == "Hello"
        assert event["payload"]["action_url"] == "/notification"
        assert event["payload"]["type"] == "ANNOUNCEMENT"
        assert bystander_socket.sent == []

    async def test_organization_wide_reaches_every_active_member(
        self, client, broker, make_org, make_user, auth_headers
    ):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        member = await make_user(acme, UserRole.EMPLOYEE, "Mia", "Member")
        gone = await make_user(acme, UserRole.EMPLOYEE, "Gus", "Gone", status=EmploymentStatus.TERMINATED)
        sockets = {user.id: FakeConnection() for user in (hr, member, gone)}
        for user_id, socket in sockets.items():
            await broker.group_add(user_channel(user_id), socket)

        await client.post(
            "/hr/announcements/", json={"title": "All hands", "body": "Friday"}, headers=await auth_headers(hr)
        )

        assert len(sockets[hr.id].sent) == 1
        assert len(sockets[member.id].sent) == 1
        assert sockets[gone.id].sent == []

    async def test_failed_push_does_not_fail_the_send(
        self, client, db, broker, monkeypatch, make_org, make_user, auth_headers
    ):
        acme = await make_org()
        hr = await make_user(acme, UserRole.HR_ADMIN, "Hana", "Hr")
        await make_user(acme, UserRole.EMPLOYEE, "Mia", "Member")

        async def broken_send(group, event):
            raise RuntimeError("broker down")

        monkeypatch.setattr(broker, "group_send", broken_send)

        response = await client.post(
            "/hr/announcements/", json={"title": "All hands", "body": "Friday"}, headers=await auth_headers(hr)
        )

        assert response.status_code == 201
        assert await count_notifications(db) == 1

    async def test_emit_swallows_session_errors(self, broker):
        def broken_factory():
            raise RuntimeError("database unavailable")

        assert await emit_notification_event(broker, broken_factory, ["missing"]) is None
