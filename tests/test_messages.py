"""Tests for message threads, unread counts and thread fan-out."""
import pytest

from app.features.messages.service import build_thread_title
from app.features.permissions.roles import UserRole
from app.features.realtime.broker import thread_channel
from app.features.users.models import EmploymentStatus
from factories import FakeConnection


class TestThreadTitle:

    def test_stored_title_wins(self):
        assert build_thread_title("  Launch  ", {"a": "Ann"}, "me") == "Launch"

    def test_personal_notes_when_alone(self):
        assert build_thread_title(None, {"me": "Me"}, "me") == "Personal Notes"

    def test_first_three_other_names(self):
        names = {"me": "Me", "a": "Ann", "b": "Bob", "c": "Cat", "d": "Dan"}
        assert build_thread_title("", names, "me") == "Ann, Bob, Cat"


@pytest.fixture
async def team(make_org, make_user, auth_headers):
    acme = await make_org()
    alice = await make_user(acme, UserRole.EMPLOYEE, "Alice", "Anders")
    bob = await make_user(acme, UserRole.EMPLOYEE, "Bob", "Brown")
    carol = await make_user(acme, UserRole.EMPLOYEE, "Carol", "Clark")
    headers = {
        "alice": await auth_headers(alice),
        "bob": await auth_headers(bob),
        "carol": await auth_headers(carol),
    }
    return acme, alice, bob, carol, headers


async def start_thread(client, headers, participant_ids, message="Hi there", title=None):
    payload = {"participant_ids": participant_ids, "message": message}
    if title is not None:
        payload["title"] = title
    return await client.post("/messages/threads", json=payload, headers=headers)


class TestCreateThread:

    async def test_creator_joins_and_opening_message_is_stored(self, client, team):
        _acme, alice, bob, _carol, headers = team

        response = await start_thread(client, headers["alice"], [bob.id])

        assert response.status_code == 201
        detail = response.json()
        assert detail["title"] == "Bob Brown"
        assert detail["viewer_id"] == alice.id
        assert {p["id"] for p in detail["participants"]} == {alice.id, bob.id}
        [message] = detail["messages"]
        assert message["body"] == "Hi there"
        assert message["sender_name"] == "Alice Anders"

    async def test_empty_message_rejected(self, client, team):
        _acme, _alice, bob, _carol, headers = team

        response = await start_thread(client, headers["alice"], [bob.id], message="   ")

        assert response.status_code == 400
        assert response.json()["detail"] == "Message cannot be empty."

    async def test_short_title_rejected(self, client, team):
        _acme, _alice, bob, _carol, headers = team

        response = await start_thread(client, headers["alice"], [bob.id], title="ab")

        assert response.status_code == 400
        assert response.json()["detail"] == "Title should be at least 3 characters."

    async def test_outsider_or_terminated_participant_rejected(self, client, make_org, make_user, team):
        acme, _alice, _bob, _carol, headers = team
        other = await make_org("Other")
        outsider = await make_user(other, UserRole.EMPLOYEE, "Oscar", "Outsider")
        gone = await make_user(acme, UserRole.EMPLOYEE, "Gus", "Gone", status=EmploymentStatus.TERMINATED)

        for participant in (outsider, gone):
            response = await start_thread(client, headers["alice"], [participant.id])
            assert response.status_code == 400
            assert response.json()["detail"] == "One or more participants could not be added to this chat."

    async def test_requires_organization(self, client, make_user, auth_headers):
        loner = await make_user(None, UserRole.EMPLOYEE, "Lone", "Wolf")

        response = await client.get("/messages/threads", headers=await auth_headers(loner))

        assert response.status_code == 400
        assert response.json()["detail"] == "Join an organization to use chat."


class TestMessages:

    async def test_unread_counts_follow_reads(self, client, team):
        _acme, _alice, bob, _carol, headers = team
        thread = (await start_thread(client, headers["alice"], [bob.id])).json()

        bob_threads = (await client.get("/messages/threads", headers=headers["bob"])).json()["threads"]
        alice_threads = (await client.get("/messages/threads", headers=headers["alice"])).json()["threads"]
        assert bob_threads[0]["unread_count"] == 1
        assert bob_threads[0]["last_message"]["body"] == "Hi there"
        assert alice_threads[0]["unread_count"] == 0

        await client.get(f"/messages/threads/{thread['id']}/messages", headers=headers["bob"])
        bob_threads = (await client.get("/messages/threads", headers=headers["bob"])).json()["threads"]
        assert bob_threads[0]["unread_count"] == 0

        await client.post(
            f"/messages/threads/{thread['id']}/messages", json={"body": "Reply"}, headers=headers["bob"]
        )
        alice_threads = (await client.get("/messages/threads", headers=headers["alice"])).json()["threads"]
        assert alice_threads[0]["unread_count"] == 1
        assert alice_threads[0]["last_message"]["body"] == "Reply"

    async def test_non_participant_cannot_read_or_post(self, client, team):
        _acme, _alice, bob, _carol, headers = team
        thread = (await start_thread(client, headers["alice"], [bob.id])).json()

        read = await client.get(f"/messages/threads/{thread['id']}/messages", headers=headers["carol"])
        post = await client.post(
            f"/messages/threads/{thread['id']}/messages", json={"body": "Let me in"}, headers=headers["carol"]
        )

        assert read.status_code == 404
        assert post.status_code == 404
        assert post.json()["detail"] == "Thread is not available."

    async def test_message_is_pushed_to_thread_channel(self, client, broker, team):
        _acme, _alice, bob, _carol, headers = team
        thread = (await start_thread(client, headers["alice"], [bob.id])).json()
        socket = FakeConnection()
        await broker.group_add(thread_channel(thread["id"]), socket)

        response = await client.post(
            f"/messages/threads/{thread['id']}/messages", json={"body": "  Ping  "}, headers=headers["bob"]
        )

        assert response.status_code == 201
        assert response.json()["body"] == "Ping"
        [event] = socket.sent
        assert event["type"] == "message:new"
        assert event["payload"]["id"] == response.json()["id"]
        assert event["payload"]["sender_name"] == "Bob Brown"

    async def test_threads_filtered_by_participant_name(self, client, team):
        _acme, _alice, bob, carol, headers = team
        await start_thread(client, headers["alice"], [bob.id])
        await start_thread(client, headers["alice"], [carol.id], title="Design review")

        by_name = (await client.get("/messages/threads", params={"query": "bob"}, headers=headers["alice"])).json()
        by_title = (await client.get(
            "/messages/threads", params={"query": "design"}, headers=headers["alice"]
        )).json()

        assert [t["title"] for t in by_name["threads"]] == ["Bob Brown"]
        assert [t["title"] for t in by_title["threads"]] == ["Design review"]


class TestDirectory:

    async def test_lists_active_members(self, client, make_user, team):
        acme, alice, _bob, _carol, headers = team
        await make_user(acme, UserRole.EMPLOYEE, "Gus", "Gone", status=EmploymentStatus.TERMINATED)

        response = await client.get("/messages/directory", headers=headers["alice"])

        body = response.json()
        assert body["viewer_id"] == alice.id
        assert [m["name"] for m in body["members"]] == ["Alice Anders", "Bob Brown", "Carol Clark"]

    async def test_query_filters_members(self, client, team):
        _acme, _alice, _bob, _carol, headers = team

        response = await client.get("/messages/directory", params={"query": "car"}, headers=headers["alice"])

        assert [m["name"] for m in response.json()["members"]] == ["Carol Clark"]
