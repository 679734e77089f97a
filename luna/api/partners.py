"""Partner endpoints - partner profile and the compatibility Q&A chat"""

import logging
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from luna.api.deps import (
    ensure_owner, get_identity, get_orchestrator, get_owned_partner, load_partner_with_owner,
)
from luna.db import get_db, Partner, User
from luna.exceptions import StoreUnavailable
from luna.schemas import (
    PartnerCreate, PartnerResponse, PartnerQuestionCreate, PartnerQuestionResponse,
)
from luna.services import (
    ConversationOrchestrator, ConversationScope, ConversationStore, QuotaLedger,
    create_partner, get_partner_by_user, list_partners, pair_questions,
)
from luna.sse import event_stream_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Partners"])


# ============ Partner Profile ============

@router.get("/identities/{identity_id}/partner", response_model=Optional[PartnerResponse])
async def get_identity_partner(
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """The identity's partner, or null"""
    return await get_partner_by_user(db, user.id)


@router.get("/identities/{identity_id}/partners", response_model=List[PartnerResponse])
async def list_identity_partners(
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    return await list_partners(db, user.id)


@router.post(
    "/identities/{identity_id}/partner",
    response_model=PartnerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_partner(
    data: PartnerCreate,
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Register the identity's partner (one per identity)"""
    return await create_partner(db, user, data.model_dump())


# ============ Partner Q&A ============

@router.post("/partners/{partner_id}/questions")
async def ask_partner_question(
    body: PartnerQuestionCreate,
    owned: Tuple[Partner, User] = Depends(load_partner_with_owner),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """
    Ask about the relationship with this partner; streams like the personal
    chat. ``userId``, when sent, must be the partner's owner.
    """
    partner, user = owned
    if body.user_id is not None:
        ensure_owner(partner.user_id, body.user_id)

    turn = await orchestrator.open_partner_turn(user, partner, body.question)
    return event_stream_response(orchestrator.relay(turn))


@router.get("/partners/{partner_id}/questions", response_model=List[PartnerQuestionResponse])
async def get_partner_questions(
    partner: Partner = Depends(get_owned_partner),
    db: AsyncSession = Depends(get_db)
):
    """Every partner Q&A pair, oldest first"""
    try:
        messages = await ConversationStore(db).history(ConversationScope.partner(partner.id), None)
    except SQLAlchemyError as e:
        logger.error(f"Could not load partner questions for {partner.id}: {e}")
        raise StoreUnavailable("Could not load questions") from e
    return pair_questions(messages)


@router.get("/partners/{partner_id}/questions/count", response_model=int)
async def get_partner_question_count(
    partner: Partner = Depends(get_owned_partner),
    db: AsyncSession = Depends(get_db)
):
    """Questions accepted today about this partner"""
    return await QuotaLedger(db).count_today(ConversationScope.partner(partner.id))
