"""FastAPI application factory."""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import httpx
import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import app.models  # noqa: F401
from app.config import Settings
from app.crypto.cipher import CredentialCipher
from app.crypto.errors import FailureKind, PerimeterError
from app.crypto.state import StateTokenCodec
from app.database import Base, build_engine
from app.routers.oauth import router as oauth_router
from app.routers.sources import router as sources_router
from app.services.google import GoogleOAuthClient

logger = structlog.get_logger(__name__)

SERVER_FAULTS = {FailureKind.CONFIGURATION, FailureKind.AUTHENTICATION}


async def perimeter_error_handler(
    request: Request, exc: PerimeterError
) -> JSONResponse:
    """Convert an escaped perimeter error into a generic response.

    Parameters
    ----------
    request : Request
        Request being handled.
    exc : PerimeterError
        Error raised by a route.

    Returns
    -------
    JSONResponse
        500 for configuration or integrity faults, 400 otherwise. The body
        never carries the failure detail.
    """
    logger.error(
        "perimeter_error",
        path=request.url.path,
        kind=exc.kind.value,
        detail=exc.detail,
    )
    if exc.kind in SERVER_FAULTS:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal error"},
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Request rejected"},
    )


def create_app(
    settings: Settings,
    *,
    provider_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application around one immutable settings object.

    Parameters
    ----------
    settings : Settings
        Validated settings.
    provider_transport : httpx.AsyncBaseTransport | None, default=None
        Optional transport for the Google client, used by tests.

    Returns
    -------
    FastAPI
        Configured application.
    """
    engine, session_factory = build_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        yield
        await application.state.provider.aclose()
        await engine.dispose()

    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.state.settings = settings
    application.state.engine = engine
    application.state.session_factory = session_factory
    application.state.state_codec = StateTokenCodec(
        settings.jwt_secret,
        max_age=timedelta(seconds=settings.state_max_age_seconds),
    )
    application.state.cipher = CredentialCipher(settings.encryption_key)
    application.state.provider = GoogleOAuthClient.from_settings(
        settings, transport=provider_transport
    )
    application.add_exception_handler(PerimeterError, perimeter_error_handler)
    application.include_router(oauth_router)
    application.include_router(sources_router)
    return application
