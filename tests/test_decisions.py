import pytest
from sqlalchemy import func, select

from core.errors import InvalidPhase, NotFound, Unauthorized
from models import ChatSession, Match, Message
from models.chat import PHASE_EXTENDED, STATUS_ACTIVE, STATUS_ENDED, STATUS_WAITING_REVEAL
from services import decisions, messages


async def _count(db, model, **filters):
    query = select(func.count()).select_from(model)
    for column, value in filters.items():
        query = query.where(getattr(model, column) == value)
    return (await db.execute(query)).scalar()


async def test_first_decision_waits_for_other(db, pair):
    alice, _, session_id = await pair()

    result = await decisions.make_decision(db, session_id, alice, True)

    assert result["both_decided"] is False
    assert result["match_created"] is False
    chat_session = await db.get(ChatSession, session_id)
    assert chat_session.status == STATUS_WAITING_REVEAL


@pytest.mark.parametrize("first", ["alice", "bob"])
async def test_both_continue_creates_one_match(db, pair, first):
    alice, bob, session_id = await pair()
    order = [alice, bob] if first == "alice" else [bob, alice]

    await decisions.make_decision(db, session_id, order[0], True)
    result = await decisions.make_decision(db, session_id, order[1], True)

    assert result == {"both_decided": True, "match_created": True, "status": STATUS_ACTIVE, "phase": PHASE_EXTENDED}
    assert await _count(db, Match, chat_session_id=session_id) == 1
    chat_session = await db.get(ChatSession, session_id)
    assert chat_session.phase == PHASE_EXTENDED
    assert chat_session.status == STATUS_ACTIVE


@pytest.mark.parametrize(
    "first_choice,second_choice,first",
    [
        (True, False, "alice"),
        (True, False, "bob"),
        (False, True, "alice"),
        (False, False, "bob"),
    ],
)
async def test_conflicting_decisions_end_and_erase(db, pair, first_choice, second_choice, first):
    alice, bob, session_id = await pair()
    await messages.send(db, session_id, alice, "hi")
    await messages.send(db, session_id, bob, "hello")
    order = [alice, bob] if first == "alice" else [bob, alice]

    await decisions.make_decision(db, session_id, order[0], first_choice)
    result = await decisions.make_decision(db, session_id, order[1], second_choice)

    assert result["both_decided"] is True
    assert result["match_created"] is False
    chat_session = await db.get(ChatSession, session_id)
    assert chat_session.status == STATUS_ENDED
    assert chat_session.ended_at is not None
    assert await _count(db, Message, chat_session_id=session_id) == 0
    assert await _count(db, Match) == 0
    assert alice.in_queue is False
    assert bob.in_queue is False


async def test_decline_scenario_leaves_no_messages(db, pair):
    alice, bob, session_id = await pair()
    await messages.send(db, session_id, alice, "so, what do you do?")

    assert (await decisions.make_decision(db, session_id, alice, True))["both_decided"] is False
    result = await decisions.make_decision(db, session_id, bob, False)

    assert (result["both_decided"], result["match_created"]) == (True, False)
    listing = await messages.list_messages(db, session_id, alice)
    assert listing["messages"] == []


async def test_decision_can_be_changed_before_other_decides(db, pair):
    alice, bob, session_id = await pair()

    await decisions.make_decision(db, session_id, alice, False)
    await decisions.make_decision(db, session_id, alice, True)
    result = await decisions.make_decision(db, session_id, bob, True)

    assert result["match_created"] is True


async def test_decision_after_end_rejected(db, pair):
    alice, bob, session_id = await pair()
    await decisions.make_decision(db, session_id, alice, False)
    await decisions.make_decision(db, session_id, bob, False)

    with pytest.raises(InvalidPhase):
        await decisions.make_decision(db, session_id, alice, True)


async def test_decision_after_match_rejected(db, pair):
    alice, bob, session_id = await pair()
    await decisions.make_decision(db, session_id, alice, True)
    await decisions.make_decision(db, session_id, bob, True)

    with pytest.raises(InvalidPhase):
        await decisions.make_decision(db, session_id, alice, False)


async def test_outsider_cannot_decide(db, pair, make_user):
    _, _, session_id = await pair()
    carol = await make_user("carol")

    with pytest.raises(Unauthorized):
        await decisions.make_decision(db, session_id, carol, True)


async def test_decision_on_missing_session(db, make_user):
    alice = await make_user("alice")

    with pytest.raises(NotFound):
        await decisions.make_decision(db, 999, alice, True)


async def test_skip_votes_count_once_per_user(db, pair):
    alice, _, session_id = await pair()

    first = await decisions.skip_to_reveal(db, session_id, alice)
    second = await decisions.skip_to_reveal(db, session_id, alice)

    assert first == {"both_skipped": False, "match_created": False, "skip_count": 1}
    assert second == {"both_skipped": False, "match_created": False, "skip_count": 1}


async def test_both_skip_votes_reveal_and_match(db, pair):
    alice, bob, session_id = await pair()

    await decisions.skip_to_reveal(db, session_id, alice)
    result = await decisions.skip_to_reveal(db, session_id, bob)

    assert result == {"both_skipped": True, "match_created": True, "skip_count": 2}
    chat_session = await db.get(ChatSession, session_id)
    assert chat_session.phase == PHASE_EXTENDED
    assert chat_session.status == STATUS_ACTIVE
    assert await _count(db, Match, chat_session_id=session_id) == 1


async def test_skip_outside_speed_dating_rejected(db, pair):
    alice, bob, session_id = await pair()
    await decisions.skip_to_reveal(db, session_id, alice)
    await decisions.skip_to_reveal(db, session_id, bob)

    with pytest.raises(InvalidPhase):
        await decisions.skip_to_reveal(db, session_id, alice)


async def test_outsider_cannot_skip(db, pair, make_user):
    _, _, session_id = await pair()
    carol = await make_user("carol")

    with pytest.raises(Unauthorized):
        await decisions.skip_to_reveal(db, session_id, carol)


async def test_skip_rejected_once_a_decision_is_recorded(db, pair):
    alice, bob, session_id = await pair()
    await decisions.make_decision(db, session_id, alice, False)

    with pytest.raises(InvalidPhase):
        await decisions.skip_to_reveal(db, session_id, alice)
    with pytest.raises(InvalidPhase):
        await decisions.skip_to_reveal(db, session_id, bob)

    assert await _count(db, Match) == 0
