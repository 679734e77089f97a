"""
Tests for the Quota Ledger - daily counters with atomic check-and-increment
"""

import asyncio
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from luna.db import async_session_maker, DailyQuestionCount
from luna.services import ConversationScope, QuotaLedger


class Clock:
    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture
def clock():
    return Clock(date(2026, 3, 14))


@pytest.mark.asyncio
async def test_count_is_zero_without_row(db_session, clock):
    ledger = QuotaLedger(db_session, today=clock)
    assert await ledger.count_today(ConversationScope.personal("u1")) == 0


@pytest.mark.asyncio
async def test_consume_up_to_ceiling(db_session, clock):
    ledger = QuotaLedger(db_session, today=clock)
    scope = ConversationScope.personal("u1")

    outcomes = [await ledger.try_consume(scope, 3) for _ in range(3)]
    await db_session.commit()

    assert [o.accepted for o in outcomes] == [True, True, True]
    assert [o.remaining for o in outcomes] == [2, 1, 0]
    assert [o.count for o in outcomes] == [1, 2, 3]

    rejected = await ledger.try_consume(scope, 3)
    assert rejected.accepted is False
    assert rejected.remaining == 0
    assert rejected.count == 3
    assert await ledger.count_today(scope) == 3


@pytest.mark.asyncio
async def test_zero_ceiling_rejects_without_writing(db_session, clock):
    ledger = QuotaLedger(db_session, today=clock)
    scope = ConversationScope.personal("u1")

    outcome = await ledger.try_consume(scope, 0)

    assert outcome.accepted is False
    assert outcome.count == 0
    rows = await db_session.execute(select(func.count()).select_from(DailyQuestionCount))
    assert rows.scalar_one() == 0


@pytest.mark.asyncio
async def test_scopes_are_counted_independently(db_session, clock):
    ledger = QuotaLedger(db_session, today=clock)
    personal = ConversationScope.personal("same-id")
    partner = ConversationScope.partner("same-id")

    await ledger.try_consume(personal, 3)
    await ledger.try_consume(personal, 3)
    await ledger.try_consume(partner, 3)
    await db_session.commit()

    assert await ledger.count_today(personal) == 2
    assert await ledger.count_today(partner) == 1
    assert await ledger.count_today(ConversationScope.personal("other")) == 0


@pytest.mark.asyncio
async def test_new_day_starts_from_zero(db_session, clock):
    ledger = QuotaLedger(db_session, today=clock)
    scope = ConversationScope.personal("u1")

    for _ in range(3):
        await ledger.try_consume(scope, 3)
    await db_session.commit()
    assert (await ledger.try_consume(scope, 3)).accepted is False

    clock.day += timedelta(days=1)

    assert await ledger.count_today(scope) == 0
    outcome = await ledger.try_consume(scope, 3)
    assert outcome.accepted is True
    assert outcome.count == 1


@pytest.mark.asyncio
async def test_rollback_discards_increment(db_session, clock):
    ledger = QuotaLedger(db_session, today=clock)
    scope = ConversationScope.personal("u1")

    await ledger.try_consume(scope, 3)
    await db_session.rollback()

    assert await ledger.count_today(scope) == 0


@pytest.mark.asyncio
async def test_concurrent_consumers_never_exceed_ceiling(database, clock):
    scope = ConversationScope.partner("p1")

    async def consume():
        async with async_session_maker() as db:
            outcome = await QuotaLedger(db, today=clock).try_consume(scope, 3)
            await db.commit()
            return outcome

    outcomes = await asyncio.gather(*(consume() for _ in range(8)))

    assert sum(1 for o in outcomes if o.accepted) == 3
    async with async_session_maker() as db:
        assert await QuotaLedger(db, today=clock).count_today(scope) == 3
