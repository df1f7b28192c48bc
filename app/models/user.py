"""User model."""

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.mixins import TimestampMixin, uuid_column


class User(TimestampMixin, Base):
    """Account owning sources and OAuth credentials."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_column()
    email: Mapped[str] = mapped_column(String(320), unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255))

    session_tokens = relationship("SessionToken", back_populates="user")
    credentials = relationship("OAuthCredential", back_populates="user")
    sources = relationship("Source", back_populates="user")
