"""Database primitives."""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base declarative model class."""

    metadata = MetaData()


def build_engine(
    database_url: str,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine and its session factory.

    Parameters
    ----------
    database_url : str
        SQLAlchemy database URL.

    Returns
    -------
    tuple[AsyncEngine, async_sessionmaker[AsyncSession]]
        Engine and bound session factory.
    """
    engine = create_async_engine(database_url, future=True)
    session_factory = async_sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession
    )
    return engine, session_factory


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the application's session factory.

    Parameters
    ----------
    request : Request
        Incoming request.

    Yields
    ------
    AsyncSession
        Active async SQLAlchemy session.
    """
    async with request.app.state.session_factory() as session:
        yield session
