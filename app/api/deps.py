import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.db import get_db
from app.core.security import decode_access_token
from app.models.fleet import Fleet
from app.models.user import User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


async def get_current_user(
    request: Request,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    db: AsyncSession = Depends(get_db),
) -> User:
    cookie_token = request.cookies.get("roadready_token")
    credentials_token = token or cookie_token
    if not credentials_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing credentials")

    payload = decode_access_token(credentials_token)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = await db.get(User, user_id)
    if user is None:
        # Accounts live in the identity provider; mirror on first sight
        email = payload.get("email")
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
        metadata = payload.get("user_metadata") or {}
        user = User(id=user_id, email=email, full_name=metadata.get("full_name"), phone=payload.get("phone") or None)
        db.add(user)
        await db.commit()
        logger.info("user_mirrored", extra={"user_id": user_id})
    return user


async def get_current_fleet(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Fleet id owned by the authenticated user; every fleet-scoped query filters on it."""
    result = await db.execute(
        select(Fleet.id).where(Fleet.owner_id == current_user.id).order_by(Fleet.created_at).limit(1)
    )
    fleet_id = result.scalar_one_or_none()
    if fleet_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fleet not found")
    return fleet_id


async def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Guard for scheduler-triggered job endpoints. Open when no secret is configured."""
    settings = get_settings()
    if not settings.cron_secret:
        return
    if authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
