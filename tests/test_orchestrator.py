"""
Tests for the Conversation Orchestrator state machine
"""

from datetime import date

import pytest

from luna.db import async_session_maker, Partner
from luna.exceptions import GatewayTimeout, QuestionRejected, QuotaExceeded, StoreUnavailable
from luna.services import (
    ConversationOrchestrator, ConversationScope, ConversationStore, QuotaLedger, TurnState,
)
from luna.services.prompt_builder import ASTROLOGER_SYSTEM_PROMPT, PARTNER_DIRECTIVE
from luna.sse import EventKind

from conftest import FakeGateway, make_identity


async def drain(orchestrator, turn):
    return [event async for event in orchestrator.relay(turn)]


async def history(scope):
    async with async_session_maker() as db:
        return await ConversationStore(db).history(scope)


async def count(scope):
    async with async_session_maker() as db:
        return await QuotaLedger(db).count_today(scope)


async def make_partner(user_id: str) -> Partner:
    async with async_session_maker() as db:
        partner = Partner(
            user_id=user_id, name="Bruno", birth_date=date(1989, 4, 2),
            birth_city="Niterói", sun_sign="Aries",
        )
        db.add(partner)
        await db.commit()
        await db.refresh(partner)
        return partner


@pytest.mark.asyncio
async def test_turn_walks_through_states(identity, gateway):
    orchestrator = ConversationOrchestrator(gateway)
    scope = ConversationScope.personal(identity.id)

    turn = await orchestrator.open_personal_turn(identity, "Q1")

    assert turn.state == TurnState.QUESTION_PERSISTED
    assert turn.count == 1
    assert turn.remaining == 2
    assert [(m.role, m.content) for m in await history(scope)] == [("user", "Q1")]

    events = await drain(orchestrator, turn)

    assert [e.kind for e in events] == [EventKind.DELTA] * 3 + [EventKind.DONE]
    assert "".join(e.text for e in events) == gateway.answer
    assert turn.state == TurnState.DONE
    messages = await history(scope)
    assert [(m.role, m.content) for m in messages] == [("user", "Q1"), ("assistant", gateway.answer)]
    assert messages[1].model_used == "fake-model"
    assert messages[1].processing_time_ms is not None
    assert messages[1].truncated is False


@pytest.mark.asyncio
async def test_model_sees_persona_context_and_new_question(identity, gateway):
    orchestrator = ConversationOrchestrator(gateway)

    await drain(orchestrator, await orchestrator.open_personal_turn(identity, "Q1"))
    await drain(orchestrator, await orchestrator.open_personal_turn(identity, "Q2"))

    call = gateway.calls[-1]
    assert call["system_prompt"] == ASTROLOGER_SYSTEM_PROMPT
    assert "Ana Paula Costa" in call["user_context"]
    assert "Leo" in call["user_context"]
    assert [m["content"] for m in call["history"]] == ["Q1", gateway.answer, "Q2"]


@pytest.mark.asyncio
async def test_context_is_limited_to_recent_messages(database):
    user = await make_identity(plan="conexao")
    gateway = FakeGateway()
    orchestrator = ConversationOrchestrator(gateway, context_limit=3)

    for i in range(3):
        await drain(orchestrator, await orchestrator.open_personal_turn(user, f"Q{i + 1}"))

    assert [m["content"] for m in gateway.calls[-1]["history"]] == ["Q2", gateway.answer, "Q3"]


@pytest.mark.asyncio
async def test_quota_exhausted_has_no_side_effects(identity, gateway):
    orchestrator = ConversationOrchestrator(gateway)
    scope = ConversationScope.personal(identity.id)
    for i in range(3):
        await drain(orchestrator, await orchestrator.open_personal_turn(identity, f"Q{i + 1}"))

    with pytest.raises(QuotaExceeded) as exc_info:
        await orchestrator.open_personal_turn(identity, "Q4")

    assert exc_info.value.to_dict() == {"error": "Daily question limit reached", "limit": 3, "count": 3}
    assert len(await history(scope)) == 6
    assert await count(scope) == 3
    assert len(gateway.calls) == 3


@pytest.mark.asyncio
async def test_plan_sets_personal_ceiling(database, gateway):
    user = await make_identity(plan="conexao")
    orchestrator = ConversationOrchestrator(gateway)

    for i in range(10):
        turn = await orchestrator.open_personal_turn(user, f"Q{i}")
        await drain(orchestrator, turn)
    assert turn.remaining == 0

    with pytest.raises(QuotaExceeded) as exc_info:
        await orchestrator.open_personal_turn(user, "one more")
    assert exc_info.value.limit == 10


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "", "   \n\t"])
async def test_blank_question_rejected(identity, gateway, content):
    orchestrator = ConversationOrchestrator(gateway)

    with pytest.raises(QuestionRejected):
        await orchestrator.open_personal_turn(identity, content)

    assert await count(ConversationScope.personal(identity.id)) == 0


@pytest.mark.asyncio
async def test_question_length_limit(identity, gateway):
    orchestrator = ConversationOrchestrator(gateway)
    scope = ConversationScope.personal(identity.id)

    with pytest.raises(QuestionRejected):
        await orchestrator.open_personal_turn(identity, "x" * 501)
    assert await history(scope) == []
    assert await count(scope) == 0

    turn = await orchestrator.open_personal_turn(identity, "x" * 500)
    assert turn.state == TurnState.QUESTION_PERSISTED


@pytest.mark.asyncio
async def test_immediate_gateway_failure_keeps_question_and_quota(identity):
    gateway = FakeGateway(failures={2: 0})
    orchestrator = ConversationOrchestrator(gateway)
    scope = ConversationScope.personal(identity.id)

    await drain(orchestrator, await orchestrator.open_personal_turn(identity, "Q1"))
    turn = await orchestrator.open_personal_turn(identity, "Q2")
    events = await drain(orchestrator, turn)

    assert [e.kind for e in events] == [EventKind.ERROR]
    assert turn.state == TurnState.FAILED
    assert [(m.role, m.content) for m in await history(scope)] == [
        ("user", "Q1"), ("assistant", gateway.answer), ("user", "Q2"),
    ]
    assert await count(scope) == 2

    # Third question of the day still goes through
    events = await drain(orchestrator, await orchestrator.open_personal_turn(identity, "Q3"))
    assert events[-1].kind == EventKind.DONE


@pytest.mark.asyncio
async def test_partial_answer_is_stored_as_truncated(identity):
    gateway = FakeGateway(failures={1: 2})
    orchestrator = ConversationOrchestrator(gateway)

    turn = await orchestrator.open_personal_turn(identity, "Q1")
    events = await drain(orchestrator, turn)

    assert [e.kind for e in events] == [EventKind.DELTA, EventKind.DELTA, EventKind.ERROR]
    messages = await history(ConversationScope.personal(identity.id))
    assert messages[-1].role == "assistant"
    assert messages[-1].content == "Dear friend, "
    assert messages[-1].truncated is True


@pytest.mark.asyncio
async def test_timeout_has_its_own_message(identity):
    gateway = FakeGateway(failures={1: 0}, error=GatewayTimeout("slow"))
    orchestrator = ConversationOrchestrator(gateway)

    events = await drain(orchestrator, await orchestrator.open_personal_turn(identity, "Q1"))

    assert events[-1].kind == EventKind.ERROR
    assert "too long" in events[-1].text


@pytest.mark.asyncio
async def test_empty_answer_is_a_failure(identity):
    orchestrator = ConversationOrchestrator(FakeGateway(fragments=[]))

    turn = await orchestrator.open_personal_turn(identity, "Q1")
    events = await drain(orchestrator, turn)

    assert [e.kind for e in events] == [EventKind.ERROR]
    assert len(await history(ConversationScope.personal(identity.id))) == 1


@pytest.mark.asyncio
async def test_answer_store_failure_ends_with_error(identity, gateway):
    orchestrator = ConversationOrchestrator(gateway)

    async def broken_persist(turn):
        raise StoreUnavailable("disk full")

    orchestrator._persist_answer = broken_persist
    events = await drain(orchestrator, await orchestrator.open_personal_turn(identity, "Q1"))

    assert events[-1].kind == EventKind.ERROR
    assert [e.kind for e in events[:-1]] == [EventKind.DELTA] * 3


@pytest.mark.asyncio
async def test_client_disconnect_keeps_committed_question(identity, gateway):
    orchestrator = ConversationOrchestrator(gateway)
    scope = ConversationScope.personal(identity.id)

    turn = await orchestrator.open_personal_turn(identity, "Q1")
    relay = orchestrator.relay(turn)
    first = await relay.__anext__()
    await relay.aclose()

    assert first.kind == EventKind.DELTA
    assert gateway.finished == 1  # Upstream stream closed with the relay
    assert turn.state == TurnState.STREAMING
    assert [m.role for m in await history(scope)] == ["user"]
    assert await count(scope) == 1


@pytest.mark.asyncio
async def test_partner_turn_uses_fixed_ceiling_and_directive(database, gateway):
    user = await make_identity(plan="plenitude")
    partner = await make_partner(user.id)
    orchestrator = ConversationOrchestrator(gateway)
    scope = ConversationScope.partner(partner.id)

    for i in range(3):
        await drain(orchestrator, await orchestrator.open_partner_turn(user, partner, f"Q{i + 1}"))

    with pytest.raises(QuotaExceeded) as exc_info:
        await orchestrator.open_partner_turn(user, partner, "Q4")
    assert exc_info.value.limit == 3

    call = gateway.calls[0]
    assert PARTNER_DIRECTIVE in call["system_prompt"]
    assert "Bruno" in call["user_context"]
    assert len(await history(scope)) == 6
    assert await count(ConversationScope.personal(user.id)) == 0


@pytest.mark.asyncio
async def test_partner_question_has_no_length_limit(database, gateway):
    user = await make_identity()
    partner = await make_partner(user.id)
    orchestrator = ConversationOrchestrator(gateway)

    turn = await orchestrator.open_partner_turn(user, partner, "x" * 800)
    assert turn.state == TurnState.QUESTION_PERSISTED
