"""Encrypted OAuth credential model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.mixins import UpdatedAtMixin, uuid_column


class OAuthCredential(UpdatedAtMixin, Base):
    """Provider tokens for one user and integration.

    Token columns hold ``iv:tag:ciphertext`` strings produced by
    ``CredentialCipher``; plaintext tokens are never stored.
    """

    __tablename__ = "oauth_credentials"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "source_type", name="uq_oauth_credentials_user_source"
        ),
    )

    id: Mapped[uuid.UUID] = uuid_column()
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))
    source_type: Mapped[str] = mapped_column(String(50))
    access_token_enc: Mapped[str] = mapped_column(Text)
    refresh_token_enc: Mapped[str | None] = mapped_column(Text)
    scope: Mapped[str] = mapped_column(Text, default="")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    user = relationship("User", back_populates="credentials")
