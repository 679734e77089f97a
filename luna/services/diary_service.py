"""
Mood journal - free-text entries tagged with a mood, with an optional
reflection from Luna

Writing in the journal is a plenitude feature. Reading it back is not gated,
so an identity that downgrades keeps access to what it wrote.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.config import settings
from luna.db.models import DiaryEntry, MoodType, PlanType, User
from luna.exceptions import LunaError
from luna.services.llm_service import LLMService
from luna.services.prompt_builder import build_diary_reflection_prompt

logger = logging.getLogger(__name__)

JOURNAL_PLAN = PlanType.PLENITUDE
PATTERN_WINDOW = 5  # Entries looked at for a recurring mood
PATTERN_MIN_REPEATS = 3

_CLEARABLE_FIELDS = {"mood"}


def _ensure_journal_plan(user: User) -> None:
    if user.plan != JOURNAL_PLAN.value:
        raise LunaError("The mood journal is part of the plenitude plan", status_code=403)


def _clean_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise LunaError("Entry content is required", status_code=400)
    return content


async def get_entry(db: AsyncSession, entry_id: str) -> Optional[DiaryEntry]:
    result = await db.execute(select(DiaryEntry).where(DiaryEntry.id == entry_id))
    return result.scalar_one_or_none()


async def list_entries(db: AsyncSession, user_id: str, limit: Optional[int] = None) -> List[DiaryEntry]:
    """Most recent journal entries of an identity, newest first"""
    result = await db.execute(
        select(DiaryEntry)
        .where(DiaryEntry.user_id == user_id)
        .order_by(DiaryEntry.created_at.desc())
        .limit(limit or settings.diary_default_limit)
    )
    return list(result.scalars().all())


async def create_entry(db: AsyncSession, user: User, data: Dict[str, Any]) -> DiaryEntry:
    """
    Write a journal entry.

    Raises:
        LunaError: 403 outside the journal plan, 400 for blank content
    """
    _ensure_journal_plan(user)
    mood = data.get("mood")
    entry = DiaryEntry(
        user_id=user.id,
        content=_clean_content(data.get("content")),
        mood=MoodType(mood).value if mood else None,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    logger.info(f"Created diary entry {entry.id} for identity {user.id}")
    return entry


async def update_entry(db: AsyncSession, entry: DiaryEntry, changes: Dict[str, Any]) -> DiaryEntry:
    """Edit content and/or mood; ``mood=None`` clears the tag."""
    for field, value in changes.items():
        if value is None and field not in _CLEARABLE_FIELDS:
            continue
        if field == "content":
            value = _clean_content(value)
        elif field == "mood" and value is not None:
            value = MoodType(value).value
        setattr(entry, field, value)

    await db.commit()
    await db.refresh(entry)
    return entry


def detect_mood_pattern(entries: List[DiaryEntry]) -> Optional[str]:
    """
    Recurring mood among the newest ``PATTERN_WINDOW`` entries.

    ``entries`` is newest first. Returns a short description when one mood
    shows up at least ``PATTERN_MIN_REPEATS`` times, otherwise None.
    """
    window = entries[:PATTERN_WINDOW]
    moods = Counter(e.mood for e in window if e.mood)
    if not moods:
        return None
    mood, repeats = moods.most_common(1)[0]
    if repeats < PATTERN_MIN_REPEATS:
        return None
    return f"Mood '{mood}' in {repeats} of the last {len(window)} entries"


async def reflect_on_entry(
    db: AsyncSession,
    llm_service: LLMService,
    user: User,
    entry: DiaryEntry,
) -> DiaryEntry:
    """
    Ask Luna to answer a journal entry and store the reflection.

    The recurring-mood check looks at the entries written up to this one.

    Raises:
        LunaError: 403 outside the journal plan
        GatewayError: the model could not produce a reflection
    """
    _ensure_journal_plan(user)
    recent = [
        e for e in await list_entries(db, user.id)
        if e.created_at <= entry.created_at
    ]
    pattern = detect_mood_pattern(recent)
    earlier = [e for e in recent if e.id != entry.id][:PATTERN_WINDOW - 1]

    reflection = await llm_service.complete_text(
        build_diary_reflection_prompt(user, entry, earlier, pattern)
    )

    entry.ai_response = reflection
    entry.pattern_detected = pattern
    await db.commit()
    await db.refresh(entry)
    logger.info(f"Stored reflection for diary entry {entry.id}")
    return entry
