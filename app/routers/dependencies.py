"""Shared router helpers."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.crypto.cipher import CredentialCipher
from app.crypto.state import StateTokenCodec
from app.services.google import GoogleOAuthClient


async def commit_session(session: AsyncSession) -> None:
    """Commit the current transaction.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    """
    await session.commit()


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was built with."""
    return request.app.state.settings


def get_state_codec(request: Request) -> StateTokenCodec:
    """Return the process-wide state token codec."""
    return request.app.state.state_codec


def get_cipher(request: Request) -> CredentialCipher:
    """Return the process-wide credential cipher."""
    return request.app.state.cipher


def get_provider(request: Request) -> GoogleOAuthClient:
    """Return the Google OAuth client."""
    return request.app.state.provider
