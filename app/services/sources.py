"""Source status operations."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.source import CONNECTED, DISCONNECTED, Source
from app.schemas.common import SourceType


async def get_source(
    session: AsyncSession, *, user_id: UUID, source_type: SourceType
) -> Source | None:
    """Return a user's source row for an integration, if any."""
    result = await session.execute(
        select(Source).where(
            Source.user_id == user_id,
            Source.source_type == source_type.value,
        )
    )
    return result.scalar_one_or_none()


async def set_source_status(
    session: AsyncSession,
    *,
    user_id: UUID,
    source_type: SourceType,
    status: str,
) -> Source:
    """Create or update a source with the given status.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    user_id : UUID
        Owning user.
    source_type : SourceType
        Integration type.
    status : str
        ``connected`` or ``disconnected``.

    Returns
    -------
    Source
        Updated source row.
    """
    if status not in (CONNECTED, DISCONNECTED):
        raise ValueError(f"Unknown source status {status!r}")
    source = await get_source(session, user_id=user_id, source_type=source_type)
    if source is None:
        source = Source(
            user_id=user_id,
            source_type=source_type.value,
            source_name=source_type.display_name,
            status=status,
        )
        session.add(source)
    else:
        source.status = status
    await session.flush()
    return source


async def list_sources(session: AsyncSession, user_id: UUID) -> list[Source]:
    """List a user's sources ordered by type.

    Parameters
    ----------
    session : AsyncSession
        Active database session.
    user_id : UUID
        Owning user.

    Returns
    -------
    list[Source]
        Source rows.
    """
    result = await session.execute(
        select(Source)
        .where(Source.user_id == user_id)
        .order_by(Source.source_type.asc())
    )
    return list(result.scalars().all())
