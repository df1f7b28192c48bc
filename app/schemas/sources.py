"""Source schemas."""

from datetime import datetime
from uuid import UUID

from app.schemas.common import APIModel


class SourceResponse(APIModel):
    """Connected or disconnected integration."""

    id: UUID
    source_type: str
    source_name: str
    status: str
    updated_at: datetime
