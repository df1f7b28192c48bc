"""Credential store tests."""

import time
from datetime import timedelta

import pytest
from fastapi import FastAPI
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crypto.errors import AuthenticationError
from app.models.audit import AuditLog
from app.models.credential import OAuthCredential
from app.models.mixins import as_utc, utcnow
from app.models.source import CONNECTED, DISCONNECTED, Source
from app.models.user import User
from app.schemas.common import SourceType
from app.services.credentials import (
    ReconnectRequiredError,
    disconnect_source,
    get_access_token,
    get_credential,
    store_oauth_tokens,
)
from app.services.google import ProviderTokens
from app.services.sources import set_source_status


def _tokens(
    access: str, refresh: str | None, expires_in: int = 3600
) -> ProviderTokens:
    return ProviderTokens(
        access_token=access,
        refresh_token=refresh,
        expires_at_ms=time.time_ns() // 1_000_000 + expires_in * 1000,
        scope="https://www.googleapis.com/auth/gmail.readonly",
    )


@pytest.fixture()
async def user(db_session: AsyncSession) -> User:
    """Persist a user."""
    user = User(email="grace@example.com", display_name="Grace")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.mark.asyncio
async def test_store_encrypts_tokens(
    db_session: AsyncSession, application: FastAPI, user: User
) -> None:
    """Persist only ciphertext."""
    cipher = application.state.cipher

    credential = await store_oauth_tokens(
        db_session,
        cipher,
        user_id=user.id,
        source_type=SourceType.GMAIL,
        tokens=_tokens("ya29.first", "1//first"),
    )

    assert credential.access_token_enc != "ya29.first"
    assert cipher.decrypt(credential.access_token_enc) == "ya29.first"
    assert cipher.decrypt(credential.refresh_token_enc) == "1//first"


@pytest.mark.asyncio
async def test_restore_keeps_existing_refresh_token(
    db_session: AsyncSession, application: FastAPI, user: User
) -> None:
    """Keep the stored refresh token when the new grant omits one."""
    cipher = application.state.cipher
    for tokens in (_tokens("ya29.first", "1//first"), _tokens("ya29.second", None)):
        await store_oauth_tokens(
            db_session,
            cipher,
            user_id=user.id,
            source_type=SourceType.GMAIL,
            tokens=tokens,
        )
    await db_session.commit()

    rows = (await db_session.execute(select(OAuthCredential))).scalars().all()
    assert len(rows) == 1
    assert cipher.decrypt(rows[0].access_token_enc) == "ya29.second"
    assert cipher.decrypt(rows[0].refresh_token_enc) == "1//first"


@pytest.mark.asyncio
async def test_fresh_token_is_returned_without_refresh(
    db_session: AsyncSession, application: FastAPI, google, user: User
) -> None:
    """Skip the provider while the access token is still valid."""
    await store_oauth_tokens(
        db_session,
        application.state.cipher,
        user_id=user.id,
        source_type=SourceType.DRIVE,
        tokens=_tokens("ya29.valid", "1//refresh"),
    )

    token = await get_access_token(
        db_session,
        application.state.cipher,
        application.state.provider,
        user_id=user.id,
        source_type=SourceType.DRIVE,
    )

    assert token == "ya29.valid"
    assert google.requests == []


@pytest.mark.asyncio
async def test_token_near_expiry_is_refreshed(
    db_session: AsyncSession, application: FastAPI, google, user: User
) -> None:
    """Refresh and re-encrypt when the access token is about to expire."""
    cipher = application.state.cipher
    await store_oauth_tokens(
        db_session,
        cipher,
        user_id=user.id,
        source_type=SourceType.GMAIL,
        tokens=_tokens("ya29.stale", "1//refresh", expires_in=30),
    )
    google.queue(200, {"access_token": "ya29.refreshed", "expires_in": 3599})

    token = await get_access_token(
        db_session,
        cipher,
        application.state.provider,
        user_id=user.id,
        source_type=SourceType.GMAIL,
    )

    assert token == "ya29.refreshed"
    [refresh_request] = google.requests
    assert refresh_request["grant_type"] == "refresh_token"
    assert refresh_request["refresh_token"] == "1//refresh"
    credential = await get_credential(
        db_session, user_id=user.id, source_type=SourceType.GMAIL
    )
    assert cipher.decrypt(credential.access_token_enc) == "ya29.refreshed"
    assert cipher.decrypt(credential.refresh_token_enc) == "1//refresh"
    assert as_utc(credential.expires_at) > utcnow() + timedelta(minutes=50)


@pytest.mark.asyncio
async def test_revoked_grant_disconnects_source(
    db_session: AsyncSession, application: FastAPI, google, user: User
) -> None:
    """Delete the credential and require a reconnect on invalid_grant."""
    await store_oauth_tokens(
        db_session,
        application.state.cipher,
        user_id=user.id,
        source_type=SourceType.GMAIL,
        tokens=_tokens("ya29.stale", "1//revoked", expires_in=0),
    )
    await set_source_status(
        db_session, user_id=user.id, source_type=SourceType.GMAIL, status=CONNECTED
    )
    await db_session.commit()
    google.queue(400, {"error": "invalid_grant"})

    with pytest.raises(ReconnectRequiredError):
        await get_access_token(
            db_session,
            application.state.cipher,
            application.state.provider,
            user_id=user.id,
            source_type=SourceType.GMAIL,
        )
    await db_session.commit()

    assert (await db_session.execute(select(OAuthCredential))).first() is None
    source = (await db_session.execute(select(Source))).scalar_one()
    assert source.status == DISCONNECTED
    audit = (await db_session.execute(select(AuditLog))).scalar_one()
    assert audit.action == "source_disconnected"


@pytest.mark.asyncio
async def test_missing_credential_requires_reconnect(
    db_session: AsyncSession, application: FastAPI, user: User
) -> None:
    """Refuse to return a token that was never stored."""
    with pytest.raises(ReconnectRequiredError):
        await get_access_token(
            db_session,
            application.state.cipher,
            application.state.provider,
            user_id=user.id,
            source_type=SourceType.DRIVE,
        )


@pytest.mark.asyncio
async def test_tampered_ciphertext_propagates(
    db_session: AsyncSession, application: FastAPI, user: User
) -> None:
    """Surface integrity failures instead of returning garbage."""
    cipher = application.state.cipher
    credential = await store_oauth_tokens(
        db_session,
        cipher,
        user_id=user.id,
        source_type=SourceType.GMAIL,
        tokens=_tokens("ya29.valid", "1//refresh"),
    )
    other = cipher.encrypt("ya29.other")
    iv, _, _ = credential.access_token_enc.split(":")
    _, tag, ciphertext = other.split(":")
    credential.access_token_enc = f"{iv}:{tag}:{ciphertext}"

    with pytest.raises(AuthenticationError):
        await get_access_token(
            db_session,
            cipher,
            application.state.provider,
            user_id=user.id,
            source_type=SourceType.GMAIL,
        )


@pytest.mark.asyncio
async def test_disconnect_without_credential(
    db_session: AsyncSession, user: User
) -> None:
    """Mark the source disconnected even when nothing is stored."""
    deleted = await disconnect_source(
        db_session, user_id=user.id, source_type=SourceType.DRIVE
    )

    assert deleted is False
    source = (await db_session.execute(select(Source))).scalar_one()
    assert (source.source_type, source.status) == ("drive", DISCONNECTED)
