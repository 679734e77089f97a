"""Mood journal endpoints"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from luna.api.deps import ensure_owner, get_current_identity_id, get_identity
from luna.config import settings
from luna.db import get_db, DiaryEntry, User
from luna.exceptions import GatewayError, IdentityNotFound, LunaError
from luna.schemas import DiaryEntryCreate, DiaryEntryUpdate, DiaryEntryResponse
from luna.services import (
    LLMService, create_entry, get_entry, get_llm_service, get_user_by_id,
    list_entries, reflect_on_entry, update_entry,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Mood Journal"])


async def get_owned_entry(
    entry_id: str,
    db: AsyncSession = Depends(get_db),
    current_id: Optional[str] = Depends(get_current_identity_id),
) -> DiaryEntry:
    entry = await get_entry(db, entry_id)
    if not entry:
        raise LunaError("Diary entry not found", status_code=404)
    ensure_owner(entry.user_id, current_id)
    return entry


@router.get("/identities/{identity_id}/diary", response_model=List[DiaryEntryResponse])
async def list_diary_entries(
    limit: int = Query(default=settings.diary_default_limit, ge=1, le=100),
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Journal entries, newest first"""
    return await list_entries(db, user.id, limit)


@router.post(
    "/identities/{identity_id}/diary",
    response_model=DiaryEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def write_diary_entry(
    data: DiaryEntryCreate,
    user: User = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    return await create_entry(db, user, data.model_dump())


@router.patch("/diary/{entry_id}", response_model=DiaryEntryResponse)
async def edit_diary_entry(
    data: DiaryEntryUpdate,
    entry: DiaryEntry = Depends(get_owned_entry),
    db: AsyncSession = Depends(get_db)
):
    return await update_entry(db, entry, data.model_dump(exclude_unset=True))


@router.post("/diary/{entry_id}/reflection", response_model=DiaryEntryResponse)
async def request_reflection(
    entry: DiaryEntry = Depends(get_owned_entry),
    db: AsyncSession = Depends(get_db),
    llm_service: LLMService = Depends(get_llm_service),
):
    """Luna's answer to an entry, plus any recurring mood across recent entries"""
    user = await get_user_by_id(db, entry.user_id)
    if not user:
        raise IdentityNotFound()
    try:
        return await reflect_on_entry(db, llm_service, user, entry)
    except GatewayError as e:
        logger.error(f"Could not reflect on diary entry {entry.id}: {e}")
        raise LunaError("Could not reflect on this entry", status_code=500) from e
