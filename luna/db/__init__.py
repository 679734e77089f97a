from luna.db.models import (
    Base, User, Partner, Message, DailyQuestionCount, DailyAudio, DiaryEntry,
    PlanType, ScopeKind, MessageRole, MoodType,
)
from luna.db.database import get_db, init_db, drop_db, async_session_maker, engine

__all__ = [
    "Base",
    "User",
    "Partner",
    "Message",
    "DailyQuestionCount",
    "DailyAudio",
    "DiaryEntry",
    "PlanType",
    "ScopeKind",
    "MessageRole",
    "MoodType",
    # Database
    "get_db",
    "init_db",
    "drop_db",
    "async_session_maker",
    "engine",
]
