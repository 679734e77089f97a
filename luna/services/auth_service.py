"""Authentication service - JWT token handling and identity lookup"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import logging
import uuid

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from luna.config import settings
from luna.db.models import PlanType, User
from luna.exceptions import LunaError
from luna.services.zodiac import sun_sign

logger = logging.getLogger(__name__)

# Optional identity fields an update may reset to null
_CLEARABLE_FIELDS = {"birth_time", "birth_state"}


def create_access_token(user_id: str) -> str:
    """Create a JWT access token"""
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {
        "sub": user_id,
        "exp": expire,
        "iat": datetime.utcnow(),
        "jti": str(uuid.uuid4()),  # Unique token ID
    }
    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm
    )
    return encoded_jwt


def decode_access_token(token: str) -> Optional[str]:
    """Decode a JWT token and return the user ID"""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm]
        )
        user_id: str = payload.get("sub")
        if user_id is None:
            return None
        return user_id
    except JWTError:
        return None


async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """Get a user by ID"""
    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Get a user by email"""
    result = await db.execute(
        select(User).where(User.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def get_user_by_whatsapp(db: AsyncSession, whatsapp: str) -> Optional[User]:
    """Get a user by WhatsApp contact"""
    result = await db.execute(
        select(User).where(User.whatsapp == whatsapp)
    )
    return result.scalar_one_or_none()


async def _ensure_unique_contacts(
    db: AsyncSession,
    email: Optional[str],
    whatsapp: Optional[str],
    exclude_id: Optional[str] = None,
) -> None:
    if email:
        existing = await get_user_by_email(db, email)
        if existing and existing.id != exclude_id:
            raise LunaError("This email is already registered", status_code=400)
    if whatsapp:
        existing = await get_user_by_whatsapp(db, whatsapp)
        if existing and existing.id != exclude_id:
            raise LunaError("This WhatsApp number is already registered", status_code=400)


async def create_user(db: AsyncSession, data: Dict[str, Any]) -> User:
    """
    Create a new identity.

    ``data`` holds the validated sign-up fields. The sun sign is derived from
    the birth date; the plan falls back to the configured default.
    """
    await _ensure_unique_contacts(db, data.get("email"), data.get("whatsapp"))

    fields = dict(data)
    fields["email"] = fields["email"].strip().lower()
    fields["plan"] = PlanType(fields.get("plan") or settings.default_plan).value
    fields["sun_sign"] = sun_sign(fields["birth_date"])

    user = User(**fields)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Created identity {user.id} on plan {user.plan}")
    return user


async def update_user(db: AsyncSession, user: User, changes: Dict[str, Any]) -> User:
    """
    Apply a partial update.

    A new birth date recomputes the sun sign; a plan change takes effect on the
    next question (today's count is kept).
    """
    changes = {
        k: v for k, v in changes.items()
        if v is not None or k in _CLEARABLE_FIELDS
    }
    await _ensure_unique_contacts(
        db, changes.get("email"), changes.get("whatsapp"), exclude_id=user.id,
    )

    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
    if changes.get("plan"):
        changes["plan"] = PlanType(changes["plan"]).value

    for field, value in changes.items():
        setattr(user, field, value)

    if "birth_date" in changes and changes["birth_date"] is not None:
        user.sun_sign = sun_sign(changes["birth_date"])

    await db.commit()
    await db.refresh(user)
    logger.info(f"Updated identity {user.id}: {', '.join(sorted(changes)) or 'no changes'}")
    return user
