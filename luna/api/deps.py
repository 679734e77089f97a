"""Shared API dependencies - bearer auth, resource ownership, orchestrator"""

import logging
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from luna.config import settings
from luna.db import get_db, async_session_maker, User, Partner
from luna.exceptions import IdentityNotFound, PartnerNotFound
from luna.services import (
    ConversationOrchestrator, LLMService, decode_access_token,
    get_llm_service, get_partner, get_user_by_id,
)
from luna.structured_logging import identity_id_var

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_identity_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Identity id from the bearer token.

    Returns None when auth is disabled (``AUTH_REQUIRED=false``), in which
    case every identity-scoped route is open.
    """
    if not settings.auth_required:
        return None

    user_id = None
    if credentials and credentials.credentials:
        user_id = decode_access_token(credentials.credentials)

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity_id_var.set(user_id)
    return user_id


def ensure_owner(owner_id: str, current_id: Optional[str]) -> None:
    """403 unless the authenticated identity owns the resource."""
    if current_id is not None and current_id != owner_id:
        logger.warning(f"Identity {current_id} denied access to resources of {owner_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access this user",
        )


async def get_identity(
    identity_id: str,
    db: AsyncSession = Depends(get_db),
    current_id: Optional[str] = Depends(get_current_identity_id),
) -> User:
    """The identity named in the path, owned by the caller."""
    user = await get_user_by_id(db, identity_id)
    if not user:
        raise IdentityNotFound()
    ensure_owner(user.id, current_id)
    return user


async def get_owned_partner(
    partner_id: str,
    db: AsyncSession = Depends(get_db),
    current_id: Optional[str] = Depends(get_current_identity_id),
) -> Partner:
    """The partner named in the path, owned by the caller."""
    partner = await get_partner(db, partner_id)
    if not partner:
        raise PartnerNotFound()
    ensure_owner(partner.user_id, current_id)
    return partner


# ============ Streaming routes ============
# These load what the turn needs in a short session of their own so that no
# request-scoped session stays checked out while the answer streams.

async def load_identity(
    identity_id: str,
    current_id: Optional[str] = Depends(get_current_identity_id),
) -> User:
    """Like ``get_identity``, without holding a request session."""
    async with async_session_maker() as db:
        user = await get_user_by_id(db, identity_id)
    if not user:
        raise IdentityNotFound()
    ensure_owner(user.id, current_id)
    return user


async def load_partner_with_owner(
    partner_id: str,
    current_id: Optional[str] = Depends(get_current_identity_id),
) -> Tuple[Partner, User]:
    """The owned partner and its owning identity, loaded in one short session."""
    async with async_session_maker() as db:
        partner = await get_partner(db, partner_id)
        if not partner:
            raise PartnerNotFound()
        ensure_owner(partner.user_id, current_id)
        user = await get_user_by_id(db, partner.user_id)
    if not user:
        raise IdentityNotFound()
    return partner, user


def get_orchestrator(
    llm_service: LLMService = Depends(get_llm_service),
) -> ConversationOrchestrator:
    return ConversationOrchestrator(llm_service)
