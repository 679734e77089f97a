"""Pydantic schemas for API request/response validation

Wire names are camelCase (``fullName``, ``createdAt``); request bodies also
accept the snake_case field names.
"""

import re
from datetime import date, datetime
from typing import Annotated, Optional, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from luna.db.models import MoodType, PlanType

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_hhmm(value: str) -> str:
    if not _HHMM.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


ClockTime = Annotated[str, AfterValidator(_check_hhmm)]  # "HH:MM"


# ============ Auth Schemas ============

class LoginRequest(BaseModel):
    email: str = Field(min_length=1)


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    access_token: str
    token_type: str = "bearer"


# ============ Identity Schemas ============

class IdentityCreate(CamelModel):
    email: EmailStr
    whatsapp: str = Field(min_length=8, max_length=32)
    full_name: str = Field(min_length=1, max_length=255)
    birth_date: date
    birth_time: Optional[ClockTime] = None
    birth_city: str = Field(min_length=1, max_length=255)
    birth_state: Optional[str] = None
    voice_preference: Literal["masculine", "feminine"] = "feminine"
    notification_time: ClockTime = "08:00"
    plan: Optional[PlanType] = None  # Falls back to the configured default plan
    terms_accepted: bool = False


class IdentityUpdate(CamelModel):
    """Partial update; omitted fields stay unchanged"""
    email: Optional[EmailStr] = None
    whatsapp: Optional[str] = Field(default=None, min_length=8, max_length=32)
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    birth_date: Optional[date] = None
    birth_time: Optional[ClockTime] = None
    birth_city: Optional[str] = Field(default=None, min_length=1, max_length=255)
    birth_state: Optional[str] = None
    voice_preference: Optional[Literal["masculine", "feminine"]] = None
    notification_time: Optional[ClockTime] = None
    plan: Optional[PlanType] = None
    terms_accepted: Optional[bool] = None


class IdentityResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: str
    whatsapp: str
    full_name: str
    birth_date: date
    birth_time: Optional[str] = None
    birth_city: str
    birth_state: Optional[str] = None
    sun_sign: Optional[str] = None
    moon_sign: Optional[str] = None
    ascendant_sign: Optional[str] = None
    voice_preference: str
    notification_time: str
    plan: str
    terms_accepted: bool
    is_active: bool
    created_at: datetime


class SignupResponse(IdentityResponse):
    """Created identity plus a bearer token for it"""
    access_token: str = Field(default="", alias="access_token")
    token_type: str = Field(default="bearer", alias="token_type")


# ============ Message Schemas ============

class MessageCreate(BaseModel):
    content: Optional[str] = None  # Blank/missing is rejected with a 400


class MessageResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    role: str
    content: str
    truncated: bool = False
    created_at: datetime


# ============ Partner Schemas ============

class PartnerCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    birth_date: date
    birth_time: Optional[ClockTime] = None
    birth_city: str = Field(min_length=1, max_length=255)
    birth_state: Optional[str] = None


class PartnerResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    user_id: str
    name: str
    birth_date: date
    birth_time: Optional[str] = None
    birth_city: str
    birth_state: Optional[str] = None
    sun_sign: Optional[str] = None
    created_at: datetime


class PartnerQuestionCreate(CamelModel):
    question: Optional[str] = None
    user_id: Optional[str] = None  # Asking identity; must own the partner when given


class PartnerQuestionResponse(CamelModel):
    """One partner Q&A pair; ``answer`` is None while unanswered"""
    question: str
    answer: Optional[str] = None
    created_at: datetime


# ============ Daily Audio Schemas ============

class DailyAudioResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    user_id: str
    audio_url: Optional[str] = None
    transcript: str
    for_date: date
    listened: bool
    created_at: datetime


# ============ Mood Journal Schemas ============

class DiaryEntryCreate(CamelModel):
    content: str = Field(min_length=1, max_length=5000)
    mood: Optional[MoodType] = None


class DiaryEntryUpdate(CamelModel):
    """Partial update; ``mood: null`` clears the tag"""
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    mood: Optional[MoodType] = None


class DiaryEntryResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    user_id: str
    content: str
    mood: Optional[str] = None
    ai_response: Optional[str] = None
    pattern_detected: Optional[str] = None
    created_at: datetime


class SuccessResponse(BaseModel):
    success: bool = True
