"""
Conversation Store - append-only message log per conversation scope

A scope is either a user's personal chat or the Q&A thread about one partner.
Both are stored as ordinary role-tagged messages in the same table; the scope
kind and id keep the logs apart.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.db.models import Message, MessageRole, ScopeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationScope:
    """Tagged scope: ``personal(identity_id)`` or ``partner(partner_id)``."""
    kind: ScopeKind
    id: str

    @classmethod
    def personal(cls, identity_id: str) -> "ConversationScope":
        return cls(ScopeKind.PERSONAL, identity_id)

    @classmethod
    def partner(cls, partner_id: str) -> "ConversationScope":
        return cls(ScopeKind.PARTNER, partner_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class ConversationStore:
    """
    Message persistence for one database session.

    Writes are flushed so ids and timestamps are assigned, but never committed
    here: the caller decides the transaction boundary.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        scope: ConversationScope,
        role: MessageRole,
        content: str,
        author_id: Optional[str] = None,
        model_used: Optional[str] = None,
        processing_time_ms: Optional[int] = None,
        truncated: bool = False,
    ) -> Message:
        """Persist one immutable message and return it with id and timestamp."""
        message = Message(
            scope_kind=scope.kind.value,
            scope_id=scope.id,
            author_id=author_id,
            role=MessageRole(role).value,
            content=content,
            model_used=model_used,
            processing_time_ms=processing_time_ms,
            truncated=truncated,
        )
        self.db.add(message)
        await self.db.flush()
        logger.debug(f"Appended {message.role} message {message.id} to {scope}")
        return message

    async def history(self, scope: ConversationScope, limit: Optional[int] = 50) -> List[Message]:
        """
        Most recent ``limit`` messages of a scope, oldest first. ``None``
        reads the whole scope.

        Returns an empty list for a scope without messages.
        """
        if limit is not None and limit <= 0:
            return []
        query = (
            select(Message)
            .where(
                Message.scope_kind == scope.kind.value,
                Message.scope_id == scope.id,
            )
            .order_by(Message.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(reversed(result.scalars().all()))  # Oldest first
