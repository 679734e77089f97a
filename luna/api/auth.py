"""Authentication endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from luna.db import get_db
from luna.schemas import LoginRequest, LoginResponse
from luna.services import create_access_token, get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a registered email for a bearer token"""
    user = await get_user_by_email(db, credentials.email)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email not found. Create an account first.",
        )

    logger.info(f"Identity {user.id} logged in")
    return LoginResponse(user_id=user.id, access_token=create_access_token(user.id))
