"""
FastAPI dependencies resolving the authenticated caller.
"""
from typing import Annotated
from datetime import datetime, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.auth import verify_token


security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the bearer token.

    First sight of a subject creates the local user from the token's
    profile claims; afterwards last_login_at is refreshed.
    """
    identity = verify_token(credentials.credentials)

    result = await db.execute(
        select(User).where(User.external_id == identity.subject)
    )
    user = result.scalar_one_or_none()

    if user is None:
        if not identity.email:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has no email claim",
            )
        user = User(
            external_id=identity.subject,
            email=identity.email,
            name=identity.name or identity.email,
        )
        db.add(user)

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
