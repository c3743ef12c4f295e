"""
FastAPI dependencies: the request's DB session and the acting user.

Tokens are minted by the identity service; here they are only verified.
The bearer header wins over the ``access_token`` cookie.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.core.security import decode_access_token
from hrms.db.session import async_session_factory
from hrms.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)

PRIVILEGED_ROLES = frozenset({"admin", "hr"})

_UNAUTHORIZED = dict(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


# ── Acting user ─────────────────────────────────────────────────────
def _raw_token(
    credentials: HTTPAuthorizationCredentials | None, cookie: str | None
) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    if cookie:
        return cookie.removeprefix("Bearer ").strip() or None
    return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    token = _raw_token(credentials, access_token)
    payload = decode_access_token(token) if token else None
    subject = payload.get("sub") if payload else None
    if not isinstance(subject, str) or not subject.isdigit():
        raise HTTPException(**_UNAUTHORIZED)

    user = await db.scalar(select(User).where(User.id == int(subject)))
    if user is None:
        raise HTTPException(**_UNAUTHORIZED)
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user account")
    return current_user


async def require_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Admin and HR roles only."""
    if current_user.role not in PRIVILEGED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user
