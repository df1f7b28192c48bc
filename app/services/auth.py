"""Session authentication."""

from __future__ import annotations

from datetime import timedelta

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.models.mixins import as_utc, utcnow
from app.models.token import SessionToken
from app.models.user import User
from app.services.security import (
    issue_session_token,
    lookup_hash,
    verify_session_token,
)

bearer_scheme = HTTPBearer(auto_error=False)


async def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    token: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Authenticate the session token and return its user.

    Browser redirects into the OAuth flow cannot set headers, so the token
    may also arrive as the ``token`` query parameter.

    Parameters
    ----------
    credentials : HTTPAuthorizationCredentials | None
        Parsed bearer token.
    token : str | None
        Session token from the query string.
    session : AsyncSession
        Active database session.

    Returns
    -------
    User
        Authenticated user.
    """
    raw_token = credentials.credentials if credentials is not None else token
    if not raw_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
        )
    user = await resolve_session_user(session, raw_token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    return user


async def resolve_session_user(session: AsyncSession, raw_token: str) -> User | None:
    """Find the user owning an active session token.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    raw_token : str
        Raw bearer token.

    Returns
    -------
    User | None
        Owning user, or ``None`` when the token is unknown, revoked or expired.
    """
    result = await session.execute(
        select(SessionToken).where(
            SessionToken.token_lookup == lookup_hash(raw_token),
            SessionToken.revoked_at.is_(None),
        )
    )
    now = utcnow()
    for row in result.scalars().all():
        if as_utc(row.expires_at) <= now:
            continue
        if verify_session_token(raw_token, row.token_hash):
            return await session.get(User, row.user_id)
    return None


async def create_session(
    session: AsyncSession, user: User, *, ttl_seconds: int
) -> str:
    """Persist a new session token for a user.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    user : User
        Session owner.
    ttl_seconds : int
        Session lifetime.

    Returns
    -------
    str
        Raw token. Only its hashes are stored.
    """
    issued = issue_session_token()
    session.add(
        SessionToken(
            user_id=user.id,
            token_hash=issued.token_hash,
            token_lookup=issued.token_lookup,
            expires_at=utcnow() + timedelta(seconds=ttl_seconds),
        )
    )
    await session.flush()
    return issued.plaintext
