"""Daily audio endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from luna.api.deps import ensure_owner, get_current_identity_id, get_identity
from luna.db import get_db, User
from luna.exceptions import GatewayError, LunaError
from luna.schemas import DailyAudioResponse, SuccessResponse
from luna.services import DailyAudioService, LLMService, get_llm_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Daily Audio"])


@router.get("/identities/{identity_id}/audio/today", response_model=Optional[DailyAudioResponse])
async def get_today_audio(
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    llm_service: LLMService = Depends(get_llm_service),
):
    """Today's morning message, or null if not generated yet"""
    return await DailyAudioService(db, llm_service).get_today(user.id)


@router.post("/identities/{identity_id}/audio/generate", response_model=DailyAudioResponse)
async def generate_today_audio(
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    llm_service: LLMService = Depends(get_llm_service),
):
    """Generate today's morning message (returns the existing one if present)"""
    try:
        return await DailyAudioService(db, llm_service).generate(user)
    except GatewayError as e:
        logger.error(f"Could not generate daily audio for {user.id}: {e}")
        raise LunaError("Could not generate today's audio", status_code=500) from e


@router.patch("/audio/{audio_id}/listened", response_model=SuccessResponse)
async def mark_audio_listened(
    audio_id: str,
    db: AsyncSession = Depends(get_db),
    llm_service: LLMService = Depends(get_llm_service),
    current_id: Optional[str] = Depends(get_current_identity_id),
):
    service = DailyAudioService(db, llm_service)
    audio = await service.get(audio_id)
    if not audio:
        raise LunaError("Audio not found", status_code=404)
    ensure_owner(audio.user_id, current_id)
    await service.mark_listened(audio)
    return SuccessResponse()
