"""Tests for the in-process channel broker."""
from app.features.realtime.broker import ChannelBroker, thread_channel, user_channel
from factories import FakeConnection


def test_channel_names():
    assert user_channel("u1") == "user:u1"
    assert thread_channel("t1") == "thread:t1"


async def test_group_send_fans_out_to_members_only():
    broker = ChannelBroker()
    first, second, outsider = FakeConnection(), FakeConnection(), FakeConnection()
    await broker.group_add("user:a", first)
    await broker.group_add("user:a", second)
    await broker.group_add("user:b", outsider)

    delivered = await broker.group_send("user:a", {"type": "ping"})

    assert delivered == 2
    assert first.sent == second.sent == [{"type": "ping"}]
    assert outsider.sent == []


async def test_failing_connection_is_dropped_and_others_still_receive():
    broker = ChannelBroker()
    healthy, broken = FakeConnection(), FakeConnection(fail=True)
    await broker.group_add("thread:t", healthy)
    await broker.group_add("thread:t", broken)

    delivered = await broker.group_send("thread:t", {"type": "message:new"})

    assert delivered == 1
    assert healthy.sent == [{"type": "message:new"}]
    assert broker.members("thread:t") == frozenset({healthy})


async def test_send_to_empty_group_is_noop():
    assert await ChannelBroker().group_send("user:nobody", {"type": "ping"}) == 0


async def test_disconnect_leaves_every_group():
    broker = ChannelBroker()
    connection, other = FakeConnection(), FakeConnection()
    await broker.group_add("user:a", connection)
    await broker.group_add("thread:t", connection)
    await broker.group_add("thread:t", other)

    await broker.disconnect(connection)

    assert broker.groups_of(connection) == set()
    assert broker.members("user:a") == frozenset()
    assert broker.members("thread:t") == frozenset({other})
