"""Common schema primitives."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class SourceType(str, Enum):
    """Integrations a user can connect."""

    GMAIL = "gmail"
    DRIVE = "drive"

    @property
    def display_name(self) -> str:
        """Return the human-readable source name."""
        return "Gmail" if self is SourceType.GMAIL else "Google Drive"


DEFAULT_SOURCE_TYPE = SourceType.GMAIL


class APIModel(BaseModel):
    """Base API model with attribute validation enabled."""

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(APIModel):
    """Simple message response."""

    message: str
    timestamp: datetime | None = None


class ErrorResponse(APIModel):
    """Generic error body. Never carries failure detail."""

    detail: str
