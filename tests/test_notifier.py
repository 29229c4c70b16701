import json

import redis.exceptions

from apps.workers.notifier import notifier
from core.redis import session_channel, user_channel
from services import queue


async def _next_event(pubsub):
    # The first read may only consume the subscribe confirmation
    for _ in range(3):
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
        if message is not None:
            return json.loads(message["data"])
    raise AssertionError("no event published")


async def test_pairing_notifies_both_users(db, make_user, fake_redis):
    alice = await make_user("alice")
    bob = await make_user("bob")
    await queue.join(db, alice)

    pubsub = fake_redis.pubsub()
    await pubsub.subscribe(user_channel(alice.id))
    result = await queue.join(db, bob)

    event = await _next_event(pubsub)
    assert event["event"] == "session.updated"
    assert event["session_id"] == result["session_id"]
    assert event["reason"] == "paired"
    await pubsub.aclose()


async def test_typing_event_on_session_channel(fake_redis):
    pubsub = fake_redis.pubsub()
    await pubsub.subscribe(session_channel(7))

    await notifier.typing_changed(7, 3, True)

    assert await _next_event(pubsub) == {"event": "typing.changed", "session_id": 7, "user_id": 3, "is_typing": True}
    await pubsub.aclose()


async def test_publish_failure_is_reported_not_raised(fake_redis, monkeypatch):
    async def broken_publish(*args, **kwargs):
        raise redis.exceptions.ConnectionError("redis down")

    monkeypatch.setattr(fake_redis, "publish", broken_publish)

    assert await notifier.publish("user:1", "queue.changed", user_id=1, in_queue=True) is False
