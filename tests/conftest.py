"""Pytest fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import Base
from app.main import create_app
from app.models.user import User
from app.services.auth import create_session

SIGNING_SECRET = "f3b9c2d1e8a7465b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f"
ENCRYPTION_SECRET = "9d8c7b6a5f4e3d2c1b0a99887766554433221100ffeeddcc"
FRONTEND_URL = "http://frontend.test"
BACKEND_URL = "http://backend.test"


class FakeGoogleTokenEndpoint:
    """Scripted stand-in for Google's token endpoint.

    Responses are consumed in order; once the queue is empty every request
    gets a fresh successful token set.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, str]] = []
        self.responses: list[tuple[int, dict[str, Any]]] = []

    def queue(self, status_code: int, body: dict[str, Any]) -> None:
        """Queue a response."""
        self.responses.append((status_code, body))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(dict(parse_qsl(request.content.decode("utf-8"))))
        if self.responses:
            status_code, body = self.responses.pop(0)
        else:
            status_code, body = 200, {
                "access_token": "ya29.default-access",
                "refresh_token": "1//default-refresh",
                "expires_in": 3599,
                "scope": "https://www.googleapis.com/auth/gmail.readonly",
            }
        return httpx.Response(status_code, json=body)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Build settings with synthetic secrets and a throwaway database.

    Parameters
    ----------
    tmp_path : Path
        Temporary path fixture.

    Returns
    -------
    Settings
        Test settings.
    """
    return Settings(
        jwt_secret=SIGNING_SECRET,
        encryption_key=ENCRYPTION_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        app_env="test",
        frontend_url=FRONTEND_URL,
        backend_url=BACKEND_URL,
        google_client_id="1234567890-test.apps.googleusercontent.com",
        google_client_secret="GOCSPX-f00dfacecafebeef0123",
    )


@pytest.fixture()
def google() -> FakeGoogleTokenEndpoint:
    """Return the scripted Google token endpoint."""
    return FakeGoogleTokenEndpoint()


@pytest.fixture()
async def application(
    settings: Settings, google: FakeGoogleTokenEndpoint
) -> AsyncIterator[FastAPI]:
    """Create the application with its schema in place.

    Parameters
    ----------
    settings : Settings
        Test settings.
    google : FakeGoogleTokenEndpoint
        Token endpoint stub.

    Yields
    ------
    FastAPI
        Configured application.
    """
    application = create_app(settings, provider_transport=httpx.MockTransport(google))
    async with application.state.engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield application
    await application.state.provider.aclose()
    await application.state.engine.dispose()


@pytest.fixture()
async def client(application: FastAPI) -> AsyncIterator[AsyncClient]:
    """Create a test HTTP client.

    Parameters
    ----------
    application : FastAPI
        Application under test.

    Yields
    ------
    AsyncClient
        Configured test client. Redirects are not followed.
    """
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as test_client:
        yield test_client


@pytest.fixture()
async def db_session(application: FastAPI) -> AsyncIterator[AsyncSession]:
    """Yield a session bound to the test database."""
    async with application.state.session_factory() as session:
        yield session


@pytest.fixture()
async def user_and_token(application: FastAPI) -> tuple[User, str]:
    """Persist a user with an active session token.

    Parameters
    ----------
    application : FastAPI
        Application under test.

    Returns
    -------
    tuple[User, str]
        User row and raw session token.
    """
    async with application.state.session_factory() as session:
        user = User(email="ada@example.com", display_name="Ada")
        session.add(user)
        await session.flush()
        token = await create_session(session, user, ttl_seconds=3600)
        await session.commit()
    return user, token
