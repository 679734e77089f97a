"""
Quota Ledger - daily question counters per conversation scope

Check and increment happen in one conditional upsert:

    INSERT INTO daily_question_counts (...) VALUES (..., 1)
    ON CONFLICT (scope_kind, scope_id, for_date)
    DO UPDATE SET question_count = question_count + 1
    WHERE question_count < :ceiling
    RETURNING question_count

A returned row means the question was accepted. No row means the ceiling was
already reached and nothing changed. Two concurrent requests can therefore
never both pass against the same stale count.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from luna.config import settings
from luna.db.models import DailyQuestionCount
from luna.services.conversation_store import ConversationScope

logger = logging.getLogger(__name__)


@dataclass
class QuotaOutcome:
    """Result of one ``try_consume`` call"""
    accepted: bool
    remaining: int
    count: int  # Today's count after the call


def local_today(timezone: Optional[str] = None) -> date:
    """Current calendar date in the quota reference time zone."""
    return datetime.now(ZoneInfo(timezone or settings.quota_timezone)).date()


class QuotaLedger:
    """
    Daily question counters for one database session.

    ``try_consume`` flushes but does not commit, so the increment can share a
    transaction with the question it pays for.
    """

    def __init__(self, db: AsyncSession, today: Optional[Callable[[], date]] = None):
        self.db = db
        self._today = today or local_today

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(DailyQuestionCount)
        if dialect == "sqlite":
            return sqlite_insert(DailyQuestionCount)
        raise NotImplementedError(f"Quota ledger does not support the {dialect} dialect")

    async def count_today(self, scope: ConversationScope) -> int:
        """Accepted questions for ``scope`` today (0 if no counter row exists)."""
        result = await self.db.execute(
            select(DailyQuestionCount.question_count).where(
                DailyQuestionCount.scope_kind == scope.kind.value,
                DailyQuestionCount.scope_id == scope.id,
                DailyQuestionCount.for_date == self._today(),
            )
        )
        return result.scalar_one_or_none() or 0

    async def try_consume(self, scope: ConversationScope, ceiling: int) -> QuotaOutcome:
        """
        Atomically take one question from today's allowance.

        Args:
            scope: Conversation scope being charged
            ceiling: Maximum accepted questions per day for the scope

        Returns:
            QuotaOutcome; ``accepted=False`` means nothing was written
        """
        if ceiling <= 0:
            count = await self.count_today(scope)
            logger.info(f"Quota rejected for {scope}: ceiling {ceiling}")
            return QuotaOutcome(accepted=False, remaining=0, count=count)

        stmt = self._insert().values(
            id=str(uuid.uuid4()),
            scope_kind=scope.kind.value,
            scope_id=scope.id,
            for_date=self._today(),
            question_count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["scope_kind", "scope_id", "for_date"],
            set_={"question_count": DailyQuestionCount.question_count + 1},
            where=DailyQuestionCount.question_count < ceiling,
        ).returning(DailyQuestionCount.question_count)

        result = await self.db.execute(stmt)
        new_count = result.scalar_one_or_none()

        if new_count is None:
            count = await self.count_today(scope)
            logger.info(f"Quota exhausted for {scope}: {count}/{ceiling}")
            return QuotaOutcome(accepted=False, remaining=0, count=count)

        logger.debug(f"Quota consumed for {scope}: {new_count}/{ceiling}")
        return QuotaOutcome(accepted=True, remaining=ceiling - new_count, count=new_count)
