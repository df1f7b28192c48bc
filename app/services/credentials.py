"""Encrypted OAuth credential store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crypto.cipher import CredentialCipher
from app.models.credential import OAuthCredential
from app.models.mixins import as_utc, utcnow
from app.models.source import DISCONNECTED
from app.schemas.common import SourceType
from app.services.audit import log_event
from app.services.google import GoogleOAuthClient, InvalidGrantError, ProviderTokens
from app.services.sources import set_source_status

logger = structlog.get_logger(__name__)

REFRESH_MARGIN = timedelta(minutes=1)


class ReconnectRequiredError(Exception):
    """Stored credentials are missing or no longer accepted by the provider."""


def _from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


async def get_credential(
    session: AsyncSession, *, user_id: UUID, source_type: SourceType
) -> OAuthCredential | None:
    """Return the credential row for a user and integration."""
    result = await session.execute(
        select(OAuthCredential).where(
            OAuthCredential.user_id == user_id,
            OAuthCredential.source_type == source_type.value,
        )
    )
    return result.scalar_one_or_none()


async def store_oauth_tokens(
    session: AsyncSession,
    cipher: CredentialCipher,
    *,
    user_id: UUID,
    source_type: SourceType,
    tokens: ProviderTokens,
) -> OAuthCredential:
    """Encrypt and upsert provider tokens.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    cipher : CredentialCipher
        Cipher bound to the deployment encryption secret.
    user_id : UUID
        Owning user.
    source_type : SourceType
        Integration the tokens were granted for.
    tokens : ProviderTokens
        Tokens from the code exchange.

    Returns
    -------
    OAuthCredential
        Persisted credential row.
    """
    access_token_enc = cipher.encrypt(tokens.access_token)
    refresh_token_enc = (
        cipher.encrypt(tokens.refresh_token) if tokens.refresh_token else None
    )
    expires_at = _from_epoch_ms(tokens.expires_at_ms)

    credential = await get_credential(
        session, user_id=user_id, source_type=source_type
    )
    if credential is None:
        credential = OAuthCredential(
            user_id=user_id,
            source_type=source_type.value,
            access_token_enc=access_token_enc,
            refresh_token_enc=refresh_token_enc,
            scope=tokens.scope,
            expires_at=expires_at,
        )
        session.add(credential)
    else:
        credential.access_token_enc = access_token_enc
        # Google omits the refresh token when the grant already has one.
        if refresh_token_enc is not None:
            credential.refresh_token_enc = refresh_token_enc
        credential.scope = tokens.scope
        credential.expires_at = expires_at
    await session.flush()
    return credential


async def get_access_token(
    session: AsyncSession,
    cipher: CredentialCipher,
    provider: GoogleOAuthClient,
    *,
    user_id: UUID,
    source_type: SourceType,
) -> str:
    """Return a usable access token, refreshing it near expiry.

    Decryption failures propagate unchanged.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    cipher : CredentialCipher
        Cipher bound to the deployment encryption secret.
    provider : GoogleOAuthClient
        Provider client used for refreshes.
    user_id : UUID
        Owning user.
    source_type : SourceType
        Integration type.

    Returns
    -------
    str
        Plaintext access token.

    Raises
    ------
    ReconnectRequiredError
        No credentials are stored, or the provider revoked the grant. On
        revocation the credential row is already deleted in ``session``;
        commit to persist the cleanup.
    """
    credential = await get_credential(
        session, user_id=user_id, source_type=source_type
    )
    if credential is None:
        raise ReconnectRequiredError("No OAuth tokens found for user")

    if as_utc(credential.expires_at) - utcnow() > REFRESH_MARGIN:
        return cipher.decrypt(credential.access_token_enc)

    if not credential.refresh_token_enc:
        raise ReconnectRequiredError("Refresh token not available")
    refresh_token = cipher.decrypt(credential.refresh_token_enc)
    try:
        tokens = await provider.refresh(refresh_token)
    except InvalidGrantError as exc:
        logger.warning(
            "oauth_refresh_invalid_grant",
            user_id=str(user_id),
            source_type=source_type.value,
        )
        await disconnect_source(
            session, user_id=user_id, source_type=source_type, reason="invalid_grant"
        )
        raise ReconnectRequiredError("OAuth grant revoked or expired") from exc

    credential.access_token_enc = cipher.encrypt(tokens.access_token)
    if tokens.refresh_token:
        credential.refresh_token_enc = cipher.encrypt(tokens.refresh_token)
    credential.expires_at = _from_epoch_ms(tokens.expires_at_ms)
    await session.flush()
    logger.info(
        "oauth_access_token_refreshed",
        user_id=str(user_id),
        source_type=source_type.value,
    )
    return tokens.access_token


async def disconnect_source(
    session: AsyncSession,
    *,
    user_id: UUID,
    source_type: SourceType,
    reason: str = "user_request",
) -> bool:
    """Delete stored credentials and mark the source disconnected.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    user_id : UUID
        Owning user.
    source_type : SourceType
        Integration type.
    reason : str, default="user_request"
        Recorded in the audit log.

    Returns
    -------
    bool
        Whether a credential row was deleted.
    """
    credential = await get_credential(
        session, user_id=user_id, source_type=source_type
    )
    if credential is not None:
        await session.delete(credential)
    await set_source_status(
        session, user_id=user_id, source_type=source_type, status=DISCONNECTED
    )
    await log_event(
        session,
        user_id=user_id,
        action="source_disconnected",
        resource_type="source",
        resource_id=source_type.value,
        metadata={"reason": reason, "credential_deleted": int(credential is not None)},
    )
    return credential is not None
