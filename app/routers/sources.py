"""Source routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.models.user import User
from app.routers.dependencies import commit_session
from app.schemas.common import MessageResponse, SourceType
from app.schemas.sources import SourceResponse
from app.services.auth import require_user
from app.services.credentials import disconnect_source
from app.services.sources import list_sources

router = APIRouter(prefix="/v1/sources", tags=["sources"])


@router.get("", response_model=list[SourceResponse])
async def list_user_sources(
    user: User = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> list[SourceResponse]:
    """List the caller's sources."""
    rows = await list_sources(session, user.id)
    return [SourceResponse.model_validate(row) for row in rows]


@router.delete("/{source_type}", response_model=MessageResponse)
async def disconnect_user_source(
    source_type: SourceType,
    user: User = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Disconnect a source and delete its stored credentials."""
    await disconnect_source(session, user_id=user.id, source_type=source_type)
    await commit_session(session)
    return MessageResponse(message=f"{source_type.display_name} disconnected")
