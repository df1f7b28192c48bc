"""Google OAuth routes."""

from urllib.parse import urlencode
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.crypto.cipher import CredentialCipher
from app.crypto.results import Rejected, attempt
from app.crypto.state import StateTokenCodec
from app.database import get_session
from app.models.source import CONNECTED
from app.models.user import User
from app.routers.dependencies import (
    commit_session,
    get_app_settings,
    get_cipher,
    get_provider,
    get_state_codec,
)
from app.schemas.common import DEFAULT_SOURCE_TYPE, SourceType
from app.services.audit import log_event
from app.services.auth import require_user
from app.services.credentials import store_oauth_tokens
from app.services.google import GoogleOAuthClient, ProviderError
from app.services.sources import set_source_status

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["oauth"])


def _frontend_redirect(settings: Settings, **params: str) -> RedirectResponse:
    """Redirect to the frontend sources page with query parameters.

    Parameters
    ----------
    settings : Settings
        Application settings.
    **params : str
        Query parameters.

    Returns
    -------
    RedirectResponse
        302 redirect.
    """
    url = f"{settings.frontend_url.rstrip('/')}/sources?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


def _oauth_failed(settings: Settings, reason: str) -> RedirectResponse:
    return _frontend_redirect(settings, error="oauth_failed", reason=reason)


@router.get("/google")
async def start_google_oauth(
    source_type: str | None = Query(default=None, alias="sourceType"),
    user: User = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
    codec: StateTokenCodec = Depends(get_state_codec),
    provider: GoogleOAuthClient = Depends(get_provider),
) -> RedirectResponse:
    """Start the Google consent flow for the signed-in user.

    Parameters
    ----------
    source_type : str | None
        ``gmail`` or ``drive``. Defaults to ``gmail``.
    user : User
        Authenticated user.
    settings : Settings
        Application settings.
    codec : StateTokenCodec
        State token codec.
    provider : GoogleOAuthClient
        Google OAuth client.

    Returns
    -------
    RedirectResponse
        Redirect to Google, or back to the frontend on bad input.
    """
    try:
        source = SourceType(source_type) if source_type else DEFAULT_SOURCE_TYPE
    except ValueError:
        return _frontend_redirect(settings, error="invalid_source_type")

    state = codec.generate(str(user.id), source)
    logger.info(
        "oauth_flow_started", user_id=str(user.id), source_type=source.value
    )
    return RedirectResponse(
        provider.authorization_url(state), status_code=status.HTTP_302_FOUND
    )


@router.get("/google/callback")
async def google_oauth_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    settings: Settings = Depends(get_app_settings),
    codec: StateTokenCodec = Depends(get_state_codec),
    cipher: CredentialCipher = Depends(get_cipher),
    provider: GoogleOAuthClient = Depends(get_provider),
    session: AsyncSession = Depends(get_session),
) -> RedirectResponse:
    """Complete the Google consent flow.

    Validates the state token, exchanges the code, encrypts and stores the
    tokens, and marks the source connected. Every failure redirects with a
    generic reason; state failure detail stays in server logs.

    Parameters
    ----------
    code : str | None
        Authorization code.
    state : str | None
        State token minted by ``start_google_oauth``.
    error : str | None
        Error reported by Google, e.g. ``access_denied``.
    settings : Settings
        Application settings.
    codec : StateTokenCodec
        State token codec.
    cipher : CredentialCipher
        Credential cipher.
    provider : GoogleOAuthClient
        Google OAuth client.
    session : AsyncSession
        Active database session.

    Returns
    -------
    RedirectResponse
        Redirect to the frontend sources page.
    """
    if error:
        logger.info("oauth_provider_error", error=error)
        return _oauth_failed(settings, "provider_denied")
    if not code:
        return _oauth_failed(settings, "no_code")

    outcome = attempt(codec.validate, state)
    if isinstance(outcome, Rejected):
        logger.warning(
            "oauth_state_rejected", kind=outcome.kind.value, detail=outcome.detail
        )
        return _oauth_failed(settings, "state_validation_failed")
    claims = outcome.value

    try:
        user_id = UUID(claims.subject_id)
    except ValueError:
        return _oauth_failed(settings, "user_not_found")
    user = await session.get(User, user_id)
    if user is None:
        return _oauth_failed(settings, "user_not_found")

    try:
        tokens = await provider.exchange_code(code)
    except ProviderError as exc:
        logger.warning(
            "oauth_code_exchange_failed",
            user_id=str(user.id),
            status_code=exc.status_code,
            error_code=exc.error_code,
        )
        return _oauth_failed(settings, "token_exchange_failed")

    await store_oauth_tokens(
        session,
        cipher,
        user_id=user.id,
        source_type=claims.source_type,
        tokens=tokens,
    )
    await set_source_status(
        session, user_id=user.id, source_type=claims.source_type, status=CONNECTED
    )
    await log_event(
        session,
        user_id=user.id,
        action="source_connected",
        resource_type="source",
        resource_id=claims.source_type.value,
        metadata={"scope": tokens.scope},
    )
    await commit_session(session)
    return _frontend_redirect(settings, connected=claims.source_type.value)
