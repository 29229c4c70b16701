import pytest
from sqlalchemy import delete

from core.errors import NotFound, Unauthorized
from models import User
from services import chat_requests, decisions, ledger, messages, queue


async def _match(db, a, b, session_id):
    await decisions.make_decision(db, session_id, a, True)
    await decisions.make_decision(db, session_id, b, True)


async def test_no_matches(db, make_user):
    alice = await make_user("alice")

    assert await ledger.list_matches(db, alice) == []


async def test_match_entry_for_both_participants(db, pair):
    alice, bob, session_id = await pair()
    await _match(db, alice, bob, session_id)

    for me, other in ((alice, bob), (bob, alice)):
        entries = await ledger.list_matches(db, me)
        assert len(entries) == 1
        entry = entries[0]
        assert entry["session_id"] == session_id
        assert entry["has_active_chat"] is True
        assert entry["has_pending_request"] is False
        assert entry["counterpart"]["id"] == other.id
        assert entry["counterpart"]["name"] == other.name


async def test_matches_newest_first_with_request_flags(db, pair, make_user):
    alice, bob, first_session = await pair("alice", "bob")
    await _match(db, alice, bob, first_session)
    await messages.leave_chat(db, first_session, alice)

    carol, dave, second_session = await pair("carol", "dave")
    await _match(db, carol, dave, second_session)
    await messages.leave_chat(db, second_session, carol)

    # bob matches again, this time with carol
    await queue.join(db, bob)
    third_session = (await queue.join(db, carol))["session_id"]
    await _match(db, bob, carol, third_session)

    entries = await ledger.list_matches(db, bob)
    assert [e["session_id"] for e in entries] == [third_session, first_session]
    assert entries[0]["has_active_chat"] is True
    assert entries[1]["has_active_chat"] is False

    await chat_requests.send(db, entries[1]["match_id"], bob)
    entries = await ledger.list_matches(db, bob)
    assert entries[1]["has_pending_request"] is True
    assert entries[1]["is_request_sender"] is True

    alice_view = await ledger.list_matches(db, alice)
    assert alice_view[0]["has_pending_request"] is True
    assert alice_view[0]["is_request_sender"] is False


async def test_match_with_missing_counterpart_is_skipped(db, pair):
    alice, bob, session_id = await pair()
    await _match(db, alice, bob, session_id)

    await db.execute(delete(User).where(User.id == bob.id))
    await db.commit()

    assert await ledger.list_matches(db, alice) == []


async def test_request_status_without_pending(db, pair):
    alice, bob, session_id = await pair()
    await _match(db, alice, bob, session_id)
    match_id = (await ledger.list_matches(db, alice))[0]["match_id"]

    assert await ledger.request_status(db, match_id, bob) == {
        "has_pending": False,
        "is_sender": False,
        "request_id": None,
    }


async def test_request_status_errors(db, pair, make_user):
    alice, bob, session_id = await pair()
    await _match(db, alice, bob, session_id)
    match_id = (await ledger.list_matches(db, alice))[0]["match_id"]
    carol = await make_user("carol")

    with pytest.raises(Unauthorized):
        await ledger.request_status(db, match_id, carol)
    with pytest.raises(NotFound):
        await ledger.request_status(db, match_id + 100, alice)
