"""Partner records and the partner Q&A view"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.db.models import Message, MessageRole, Partner, User
from luna.exceptions import LunaError
from luna.services.zodiac import sun_sign

logger = logging.getLogger(__name__)


async def get_partner(db: AsyncSession, partner_id: str) -> Optional[Partner]:
    result = await db.execute(select(Partner).where(Partner.id == partner_id))
    return result.scalar_one_or_none()


async def list_partners(db: AsyncSession, user_id: str) -> List[Partner]:
    """All partners of an identity, oldest first"""
    result = await db.execute(
        select(Partner)
        .where(Partner.user_id == user_id)
        .order_by(Partner.created_at, Partner.id)
    )
    return list(result.scalars().all())


async def get_partner_by_user(db: AsyncSession, user_id: str) -> Optional[Partner]:
    """The identity's partner (the first one, for identities with legacy extras)"""
    partners = await list_partners(db, user_id)
    return partners[0] if partners else None


async def create_partner(db: AsyncSession, user: User, data: Dict[str, Any]) -> Partner:
    """
    Register the identity's partner.

    Only one partner per identity is allowed; the sun sign is derived from the
    birth date.
    """
    if await get_partner_by_user(db, user.id):
        raise LunaError("A partner is already registered", status_code=400)

    partner = Partner(user_id=user.id, sun_sign=sun_sign(data["birth_date"]), **data)
    db.add(partner)
    await db.commit()
    await db.refresh(partner)
    logger.info(f"Created partner {partner.id} for identity {user.id}")
    return partner


def pair_questions(messages: List[Message]) -> List[Dict[str, Any]]:
    """
    Partner Q&A view of a partner-scope log.

    Each ``user`` message is paired with the ``assistant`` message that follows
    it; a question whose answer never arrived has ``answer=None``.
    """
    pairs: List[Dict[str, Any]] = []
    for message in messages:
        if message.role == MessageRole.USER.value:
            pairs.append({
                "question": message.content,
                "answer": None,
                "created_at": message.created_at,
            })
        elif pairs and pairs[-1]["answer"] is None:
            pairs[-1]["answer"] = message.content
    return pairs
