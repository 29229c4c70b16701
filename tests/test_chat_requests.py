import pytest
from sqlalchemy import or_, select

from core.errors import AlreadyInActiveSession, Conflict, NotFound, Unauthorized
from models import ChatRequest, ChatSession, Match
from models.chat import PHASE_EXTENDED, STATUS_ACTIVE
from models.chat_request import REQUEST_ACCEPTED, REQUEST_DECLINED, REQUEST_PENDING
from services import chat_requests, decisions, ledger, messages, queue


@pytest.fixture
def matched(db, pair):
    """A pair that matched and then left the extended chat."""

    async def _matched(first: str = "alice", second: str = "bob"):
        alice, bob, session_id = await pair(first, second)
        await decisions.skip_to_reveal(db, session_id, alice)
        await decisions.skip_to_reveal(db, session_id, bob)
        await messages.leave_chat(db, session_id, alice)
        match = (await db.execute(select(Match).where(Match.chat_session_id == session_id))).scalar_one()
        return alice, bob, match

    return _matched


async def test_send_creates_pending_request(db, matched):
    alice, bob, match = await matched()

    result = await chat_requests.send(db, match.id, alice)

    request = await db.get(ChatRequest, result["request_id"])
    assert request.status == REQUEST_PENDING
    assert (request.from_user, request.to_user) == (alice.id, bob.id)
    assert await ledger.request_status(db, match.id, alice) == {
        "has_pending": True,
        "is_sender": True,
        "request_id": request.id,
    }
    assert (await ledger.request_status(db, match.id, bob))["is_sender"] is False


async def test_second_pending_request_conflicts(db, matched):
    alice, bob, match = await matched()
    await chat_requests.send(db, match.id, alice)

    with pytest.raises(Conflict):
        await chat_requests.send(db, match.id, bob)


async def test_send_conflicts_with_active_chat(db, pair):
    alice, bob, session_id = await pair()
    await decisions.skip_to_reveal(db, session_id, alice)
    await decisions.skip_to_reveal(db, session_id, bob)
    match = (await db.execute(select(Match))).scalar_one()

    with pytest.raises(Conflict):
        await chat_requests.send(db, match.id, alice)


async def test_outsider_cannot_send(db, matched, make_user):
    _, _, match = await matched()
    carol = await make_user("carol")

    with pytest.raises(Unauthorized):
        await chat_requests.send(db, match.id, carol)


async def test_send_for_missing_match(db, make_user):
    alice = await make_user("alice")

    with pytest.raises(NotFound):
        await chat_requests.send(db, 404, alice)


async def test_accept_opens_untimed_extended_session(db, matched):
    alice, bob, match = await matched()
    old_session_id = match.chat_session_id
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]

    result = await chat_requests.accept(db, request_id, bob)

    chat_session = await db.get(ChatSession, result["session_id"])
    assert chat_session.id != old_session_id
    assert chat_session.phase == PHASE_EXTENDED
    assert chat_session.status == STATUS_ACTIVE
    assert chat_session.ends_at is None
    assert match.chat_session_id == chat_session.id
    request = await db.get(ChatRequest, request_id)
    assert request.status == REQUEST_ACCEPTED
    assert request.responded_at is not None


async def test_sender_cannot_accept_own_request(db, matched):
    alice, _, match = await matched()
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]

    with pytest.raises(Unauthorized):
        await chat_requests.accept(db, request_id, alice)


async def test_answered_request_cannot_be_accepted_again(db, matched):
    alice, bob, match = await matched()
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]
    await chat_requests.accept(db, request_id, bob)

    with pytest.raises(Conflict):
        await chat_requests.accept(db, request_id, bob)
    with pytest.raises(Conflict):
        await chat_requests.decline(db, request_id, bob)


async def test_accept_missing_request(db, make_user):
    bob = await make_user("bob")

    with pytest.raises(NotFound):
        await chat_requests.accept(db, 12345, bob)


async def test_decline_creates_no_session(db, matched):
    alice, bob, match = await matched()
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]

    assert await chat_requests.decline(db, request_id, bob) == {"success": True}

    request = await db.get(ChatRequest, request_id)
    assert request.status == REQUEST_DECLINED
    active = (await db.execute(select(ChatSession).where(ChatSession.status == STATUS_ACTIVE))).scalars().all()
    assert active == []
    # A new request may follow a declined one
    assert (await chat_requests.send(db, match.id, alice))["request_id"] != request_id


async def test_list_pending_shows_incoming_newest_first(db, matched, make_user):
    alice, bob, first_match = await matched("alice", "bob")
    carol = await make_user("carol")
    # Second match, between carol and bob
    await queue.join(db, carol)
    session_id = (await queue.join(db, bob))["session_id"]
    await decisions.skip_to_reveal(db, session_id, carol)
    await decisions.skip_to_reveal(db, session_id, bob)
    await messages.leave_chat(db, session_id, bob)
    second_match = (await db.execute(select(Match).where(Match.chat_session_id == session_id))).scalar_one()

    first = (await chat_requests.send(db, first_match.id, alice))["request_id"]
    second = (await chat_requests.send(db, second_match.id, carol))["request_id"]

    pending = await chat_requests.list_pending(db, bob)

    assert [p["request_id"] for p in pending] == [second, first]
    assert pending[0]["from_user"]["id"] == carol.id
    assert pending[1]["match_id"] == first_match.id
    assert await chat_requests.list_pending(db, alice) == []


async def _active_sessions(db, user):
    result = await db.execute(
        select(ChatSession).where(
            ChatSession.status == STATUS_ACTIVE, or_(ChatSession.user_a == user.id, ChatSession.user_b == user.id)
        )
    )
    return result.scalars().all()


async def test_accept_rejected_while_addressee_chats_with_someone_else(db, matched, make_user):
    alice, bob, match = await matched()
    carol = await make_user("carol")
    await queue.join(db, carol)
    await queue.join(db, bob)
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]

    with pytest.raises(AlreadyInActiveSession):
        await chat_requests.accept(db, request_id, bob)

    assert len(await _active_sessions(db, bob)) == 1
    request = await db.get(ChatRequest, request_id)
    assert request.status == REQUEST_PENDING


async def test_accept_rejected_while_sender_chats_with_someone_else(db, matched, make_user):
    alice, bob, match = await matched()
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]
    carol = await make_user("carol")
    await queue.join(db, carol)
    await queue.join(db, alice)

    with pytest.raises(AlreadyInActiveSession):
        await chat_requests.accept(db, request_id, bob)

    assert len(await _active_sessions(db, alice)) == 1


async def test_accept_rejected_while_waiting_for_reveal(db, matched, make_user):
    alice, bob, match = await matched()
    carol = await make_user("carol")
    await queue.join(db, carol)
    other_session = (await queue.join(db, bob))["session_id"]
    await decisions.make_decision(db, other_session, bob, True)
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]

    with pytest.raises(AlreadyInActiveSession):
        await chat_requests.accept(db, request_id, bob)


async def test_accept_takes_both_users_out_of_the_queue(db, matched):
    alice, bob, match = await matched()
    request_id = (await chat_requests.send(db, match.id, alice))["request_id"]
    await queue.join(db, alice)
    assert alice.in_queue is True

    await chat_requests.accept(db, request_id, bob)

    assert alice.in_queue is False
    assert bob.in_queue is False
