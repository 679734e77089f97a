"""
Database models for the Luna astrology service

- Identities (users) with a subscription plan and natal data
- Partners owned by an identity
- One message log shared by every conversation scope (personal, partner)
- Daily question counters per scope and calendar day
- Daily audio transcripts
- Mood journal entries
"""

from datetime import datetime, date
from typing import Optional, List
from enum import Enum
import uuid

from sqlalchemy import (
    String, Text, DateTime, Date, Integer, Boolean,
    ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column, declarative_base

Base = declarative_base()


class PlanType(str, Enum):
    """Subscription tiers, lowest first"""
    ESSENCIA = "essencia"     # tier 1
    CONEXAO = "conexao"       # tier 2
    PLENITUDE = "plenitude"   # tier 3


class ScopeKind(str, Enum):
    """Conversation surfaces with independent quotas and logs"""
    PERSONAL = "personal"   # keyed by user id
    PARTNER = "partner"     # keyed by partner id


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class User(Base):
    """Subscriber identity"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    whatsapp: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255))

    # Natal data
    birth_date: Mapped[date] = mapped_column(Date)
    birth_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)  # "HH:MM", improves accuracy
    birth_city: Mapped[str] = mapped_column(String(255))
    birth_state: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sun_sign: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    moon_sign: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    ascendant_sign: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Preferences
    voice_preference: Mapped[str] = mapped_column(String(20), default="feminine")  # masculine | feminine
    notification_time: Mapped[str] = mapped_column(String(5), default="08:00")
    plan: Mapped[str] = mapped_column(String(20), default=PlanType.ESSENCIA.value, index=True)
    terms_accepted: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relationships
    partners: Mapped[List["Partner"]] = relationship("Partner", back_populates="user", order_by="Partner.created_at")


class Partner(Base):
    """Relationship partner for the compatibility chat"""
    __tablename__ = "partners"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    birth_date: Mapped[date] = mapped_column(Date)
    birth_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    birth_city: Mapped[str] = mapped_column(String(255))
    birth_state: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sun_sign: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="partners")


class Message(Base):
    """
    Immutable chat message in one conversation scope.

    The integer id is the ordering key: it increases with every insert, so
    history is read back in exactly the order it was appended.
    """
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope_kind: Mapped[str] = mapped_column(String(20))  # ScopeKind value
    scope_id: Mapped[str] = mapped_column(String(36))
    author_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # Asking identity
    role: Mapped[str] = mapped_column(String(20))  # "user" | "assistant"
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Assistant metadata
    model_used: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    truncated: Mapped[bool] = mapped_column(Boolean, default=False)  # Upstream failed mid-answer

    __table_args__ = (
        Index("ix_messages_scope", "scope_kind", "scope_id", "id"),
    )


class DailyQuestionCount(Base):
    """Accepted questions per scope per calendar day. Missing row == 0."""
    __tablename__ = "daily_question_counts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    scope_kind: Mapped[str] = mapped_column(String(20))
    scope_id: Mapped[str] = mapped_column(String(36))
    for_date: Mapped[date] = mapped_column(Date)
    question_count: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("scope_kind", "scope_id", "for_date", name="uq_daily_question_counts_scope_day"),
    )


class DailyAudio(Base):
    """Morning message for one identity and one day"""
    __tablename__ = "daily_audios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transcript: Mapped[str] = mapped_column(Text)
    for_date: Mapped[date] = mapped_column(Date)
    listened: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "for_date", name="uq_daily_audios_user_day"),
    )


class MoodType(str, Enum):
    """Moods a journal entry can be tagged with"""
    HAPPY = "happy"
    SAD = "sad"
    ANXIOUS = "anxious"
    CONFUSED = "confused"
    ANGRY = "angry"
    IN_LOVE = "in_love"


class DiaryEntry(Base):
    """Mood journal entry, optionally answered by Luna"""
    __tablename__ = "diary_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    content: Mapped[str] = mapped_column(Text)
    mood: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # MoodType value
    ai_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pattern_detected: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
