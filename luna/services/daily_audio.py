"""
Daily Audio Service - one personalized morning message per identity per day

Only the transcript is produced; speech synthesis is handled outside this
service and may later fill in ``audio_url``.
"""

import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from luna.db.models import DailyAudio, User
from luna.services.conversation_store import ConversationScope, ConversationStore
from luna.services.llm_service import LLMService
from luna.services.prompt_builder import build_daily_audio_prompt
from luna.services.quota_ledger import local_today

logger = logging.getLogger(__name__)

RECENT_CONTEXT_MESSAGES = 5


class DailyAudioService:
    """Reads and generates morning messages for one database session."""

    def __init__(
        self,
        db: AsyncSession,
        llm_service: LLMService,
        today: Optional[Callable[[], date]] = None,
    ):
        self.db = db
        self.llm = llm_service
        self._today = today or local_today

    async def get_today(self, user_id: str) -> Optional[DailyAudio]:
        result = await self.db.execute(
            select(DailyAudio).where(
                DailyAudio.user_id == user_id,
                DailyAudio.for_date == self._today(),
            )
        )
        return result.scalar_one_or_none()

    async def generate(self, user: User) -> DailyAudio:
        """
        Today's audio for ``user``, generating the transcript on first call.

        Raises:
            GatewayError: the model could not produce a transcript
        """
        user_id = user.id
        existing = await self.get_today(user_id)
        if existing:
            return existing

        recent = await ConversationStore(self.db).history(
            ConversationScope.personal(user_id), RECENT_CONTEXT_MESSAGES,
        )
        transcript = await self.llm.complete_text(build_daily_audio_prompt(user, recent))

        audio = DailyAudio(
            user_id=user_id,
            transcript=transcript,
            for_date=self._today(),
            listened=False,
        )
        self.db.add(audio)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent request stored today's audio first
            await self.db.rollback()
            logger.info(f"Daily audio for {user_id} already generated, reusing it")
            existing = await self.get_today(user_id)
            if existing is None:
                raise
            return existing

        await self.db.refresh(audio)
        logger.info(f"Generated daily audio {audio.id} for {user_id}")
        return audio

    async def get(self, audio_id: str) -> Optional[DailyAudio]:
        result = await self.db.execute(select(DailyAudio).where(DailyAudio.id == audio_id))
        return result.scalar_one_or_none()

    async def mark_listened(self, audio: DailyAudio) -> DailyAudio:
        audio.listened = True
        await self.db.commit()
        return audio
