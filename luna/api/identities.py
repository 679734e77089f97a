"""Identity endpoints - sign-up, profile and the personal chat"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from luna.api.deps import get_identity, get_orchestrator, load_identity
from luna.config import settings
from luna.db import get_db, User
from luna.exceptions import StoreUnavailable
from luna.schemas import (
    IdentityCreate, IdentityUpdate, IdentityResponse, SignupResponse,
    MessageCreate, MessageResponse,
)
from luna.services import (
    ConversationOrchestrator, ConversationScope, ConversationStore, QuotaLedger,
    create_access_token, create_user, update_user,
)
from luna.sse import event_stream_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/identities", tags=["Identities"])


@router.post("", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    data: IdentityCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new identity and return it with a bearer token"""
    user = await create_user(db, data.model_dump())
    response = SignupResponse.model_validate(user)
    response.access_token = create_access_token(user.id)
    return response


@router.get("/{identity_id}", response_model=IdentityResponse)
async def get_identity_profile(user: User = Depends(get_identity)):
    return user


@router.patch("/{identity_id}", response_model=IdentityResponse)
async def update_identity(
    data: IdentityUpdate,
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Partial profile update (plan changes included)"""
    return await update_user(db, user, data.model_dump(exclude_unset=True))


# ============ Personal Chat ============

@router.post("/{identity_id}/messages")
async def ask_personal_question(
    body: MessageCreate,
    user: User = Depends(load_identity),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """
    Ask Luna a question and stream the answer as Server-Sent Events.

    Events: ``{"content": ...}`` per fragment, then ``{"done": true}``, or
    ``{"error": ...}`` if the answer could not be completed. Rejections
    (blank/too long, daily limit) are plain JSON errors sent before the stream.
    """
    turn = await orchestrator.open_personal_turn(user, body.content)
    return event_stream_response(orchestrator.relay(turn))


@router.get("/{identity_id}/messages", response_model=List[MessageResponse])
async def get_personal_history(
    limit: int = Query(default=settings.history_default_limit, ge=1, le=500),
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Most recent personal chat messages, oldest first"""
    try:
        return await ConversationStore(db).history(ConversationScope.personal(user.id), limit)
    except SQLAlchemyError as e:
        logger.error(f"Could not load history for {user.id}: {e}")
        raise StoreUnavailable("Could not load messages") from e


@router.get("/{identity_id}/questions/count", response_model=int)
async def get_personal_question_count(
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Questions accepted today in the personal chat"""
    return await QuotaLedger(db).count_today(ConversationScope.personal(user.id))
