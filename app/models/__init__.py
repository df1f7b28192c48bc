"""ORM models."""

from app.models.audit import AuditLog
from app.models.credential import OAuthCredential
from app.models.source import Source
from app.models.token import SessionToken
from app.models.user import User

__all__ = [
    "AuditLog",
    "OAuthCredential",
    "SessionToken",
    "Source",
    "User",
]
