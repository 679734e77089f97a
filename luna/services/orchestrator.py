"""
Conversation Orchestrator - one question from acceptance to persisted answer

Per question:

    received -> quota_checked -> question_persisted -> streaming
             -> answer_persisted -> done

with ``rejected`` reachable before anything is written (bad input, quota
exhausted) and ``failed`` reachable while streaming (upstream error/timeout,
store failure).

``open_*_turn`` runs the synchronous part and raises LunaError subclasses, so
the route can still answer with a plain HTTP error. ``relay`` is the streaming
part: it only yields StreamEvents and never raises for gateway or store
failures, because by then the response headers are gone.

Each step opens its own short-lived session from the session factory; a long
stream never holds a transaction open.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import AsyncGenerator, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from luna.config import settings
from luna.db import async_session_maker
from luna.db.models import MessageRole, Partner, User
from luna.exceptions import (
    GatewayError, GatewayTimeout, QuestionRejected, QuotaExceeded, StoreUnavailable,
)
from luna.services.conversation_store import ConversationScope, ConversationStore
from luna.services.llm_service import LLMService
from luna.services.prompt_builder import (
    PromptContext, build_system_prompt, build_user_context, history_as_chat,
)
from luna.services.quota_ledger import QuotaLedger
from luna.sse import StreamEvent

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Could not finish the answer. Please try again."
TIMEOUT_MESSAGE = "Luna took too long to answer. Please try again."
EMPTY_ANSWER_MESSAGE = "Luna could not find an answer this time. Please try again."


class TurnState(str, Enum):
    RECEIVED = "received"
    QUOTA_CHECKED = "quota_checked"
    QUESTION_PERSISTED = "question_persisted"
    STREAMING = "streaming"
    ANSWER_PERSISTED = "answer_persisted"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class Turn:
    """One question/answer exchange in a conversation scope"""
    scope: ConversationScope
    author_id: str
    context: PromptContext
    question: str
    ceiling: int
    state: TurnState = TurnState.RECEIVED
    question_id: Optional[int] = None
    answer_id: Optional[int] = None
    count: int = 0
    remaining: int = 0
    answer: str = ""
    truncated: bool = False
    error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    history: List[Dict[str, str]] = field(default_factory=list)


class ConversationOrchestrator:
    """
    Coordinates the Quota Ledger, the Conversation Store and the Streaming
    Completion Gateway for one question at a time.
    """

    def __init__(
        self,
        gateway: LLMService,
        session_factory: Optional[async_sessionmaker] = None,
        today: Optional[Callable[[], date]] = None,
        context_limit: Optional[int] = None,
        max_question_length: Optional[int] = None,
    ):
        self.gateway = gateway
        self.session_factory = session_factory or async_session_maker
        self._today = today
        self.context_limit = context_limit or settings.history_context_limit
        self.max_question_length = max_question_length or settings.max_question_length

    # ── Opening a turn (may reject) ──────────────────────────

    async def open_personal_turn(self, user: User, content: Optional[str]) -> Turn:
        """Validate, charge the plan quota and persist a personal-chat question."""
        question = self._validate(content, max_length=self.max_question_length)
        turn = Turn(
            scope=ConversationScope.personal(user.id),
            author_id=user.id,
            context=PromptContext.from_models(user),
            question=question,
            ceiling=settings.question_limit_for_plan(user.plan),
        )
        return await self._accept(turn)

    async def open_partner_turn(self, user: User, partner: Partner, question: Optional[str]) -> Turn:
        """Validate, charge the fixed partner quota and persist a partner question."""
        text = self._validate(question, max_length=None, empty_message="Question is required")
        turn = Turn(
            scope=ConversationScope.partner(partner.id),
            author_id=user.id,
            context=PromptContext.from_models(user, partner),
            question=text,
            ceiling=settings.partner_question_limit,
        )
        return await self._accept(turn)

    @staticmethod
    def _validate(
        content: Optional[str],
        max_length: Optional[int],
        empty_message: str = "Message is required",
    ) -> str:
        if not isinstance(content, str) or not content.strip():
            raise QuestionRejected(empty_message)
        if max_length is not None and len(content) > max_length:
            raise QuestionRejected(f"Message too long (maximum {max_length} characters)")
        return content

    async def _accept(self, turn: Turn) -> Turn:
        """Quota increment and question append, committed together or not at all."""
        async with self.session_factory() as db:
            try:
                outcome = await QuotaLedger(db, today=self._today).try_consume(turn.scope, turn.ceiling)
                if not outcome.accepted:
                    await db.rollback()
                    turn.state = TurnState.REJECTED
                    turn.count = outcome.count
                    raise QuotaExceeded(limit=turn.ceiling, count=outcome.count)
                turn.state = TurnState.QUOTA_CHECKED
                turn.count = outcome.count
                turn.remaining = outcome.remaining

                message = await ConversationStore(db).append(
                    turn.scope, MessageRole.USER, turn.question, author_id=turn.author_id,
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Could not accept question for {turn.scope}: {e}")
                raise StoreUnavailable("Could not save the question") from e

        turn.question_id = message.id
        turn.state = TurnState.QUESTION_PERSISTED
        logger.info(
            f"Accepted question {turn.question_id} for {turn.scope} "
            f"({turn.count}/{turn.ceiling} today)"
        )
        return turn

    # ── Streaming (never raises for upstream/store failures) ─

    async def relay(self, turn: Turn) -> AsyncGenerator[StreamEvent, None]:
        """
        Stream the answer to an accepted turn.

        Yields a delta per gateway fragment, then ``done`` once the answer is
        stored, or a single ``error`` event if the turn fails.
        """
        turn.state = TurnState.STREAMING
        fragments: List[str] = []
        answer_stream = None

        try:
            turn.history = await self._load_context(turn.scope)
            answer_stream = self.gateway.complete(
                build_system_prompt(turn.context),
                turn.history,
                build_user_context(turn.context),
            )
            async for fragment in answer_stream:
                fragments.append(fragment)
                yield StreamEvent.delta(fragment)
        except GatewayTimeout as e:
            logger.warning(f"Gateway timeout for {turn.scope}: {e}")
            turn.error = TIMEOUT_MESSAGE
        except GatewayError as e:
            logger.warning(f"Gateway failure for {turn.scope}: {e}")
            turn.error = RETRY_MESSAGE
        except StoreUnavailable as e:
            logger.error(f"History unavailable for {turn.scope}: {e}")
            turn.error = RETRY_MESSAGE
        except (asyncio.CancelledError, GeneratorExit):
            logger.info(
                f"Client left {turn.scope} after {len(fragments)} fragments; "
                "question stays recorded"
            )
            raise
        except Exception:
            logger.exception(f"Unexpected streaming error for {turn.scope}")
            turn.error = RETRY_MESSAGE
        finally:
            if answer_stream is not None:
                await answer_stream.aclose()

        turn.answer = "".join(fragments)

        if turn.error is None and not turn.answer:
            turn.error = EMPTY_ANSWER_MESSAGE

        if turn.error is not None:
            turn.state = TurnState.FAILED
            if turn.answer:
                # Keep what the user already saw as part of the conversation
                turn.truncated = True
                try:
                    await self._persist_answer(turn)
                except StoreUnavailable as e:
                    logger.error(f"Could not save partial answer for {turn.scope}: {e}")
            yield StreamEvent.error(turn.error)
            return

        try:
            await self._persist_answer(turn)
        except StoreUnavailable as e:
            logger.error(f"Could not save answer for {turn.scope}: {e}")
            turn.state = TurnState.FAILED
            turn.error = RETRY_MESSAGE
            yield StreamEvent.error(turn.error)
            return

        turn.state = TurnState.ANSWER_PERSISTED
        yield StreamEvent.done()
        turn.state = TurnState.DONE

    async def _load_context(self, scope: ConversationScope) -> List[Dict[str, str]]:
        """Most recent messages of the scope (including the new question), oldest first."""
        async with self.session_factory() as db:
            try:
                messages = await ConversationStore(db).history(scope, self.context_limit)
            except SQLAlchemyError as e:
                raise StoreUnavailable("Could not load conversation history") from e
        return history_as_chat(messages)

    async def _persist_answer(self, turn: Turn) -> None:
        processing_time_ms = int((time.time() - turn.started_at) * 1000)
        async with self.session_factory() as db:
            try:
                message = await ConversationStore(db).append(
                    turn.scope,
                    MessageRole.ASSISTANT,
                    turn.answer,
                    author_id=turn.author_id,
                    model_used=getattr(self.gateway, "model", None),
                    processing_time_ms=processing_time_ms,
                    truncated=turn.truncated,
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreUnavailable("Could not save the answer") from e
        turn.answer_id = message.id
        logger.info(
            f"Stored {'partial ' if turn.truncated else ''}answer {turn.answer_id} "
            f"for {turn.scope} in {processing_time_ms}ms"
        )
