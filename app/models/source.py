"""Connected source model."""

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.mixins import UpdatedAtMixin, uuid_column

CONNECTED = "connected"
DISCONNECTED = "disconnected"


class Source(UpdatedAtMixin, Base):
    """Integration a user has connected or disconnected."""

    __tablename__ = "sources"
    __table_args__ = (
        UniqueConstraint("user_id", "source_type", name="uq_sources_user_source"),
    )

    id: Mapped[uuid.UUID] = uuid_column()
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))
    source_type: Mapped[str] = mapped_column(String(50))
    source_name: Mapped[str] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(50), default=DISCONNECTED)

    user = relationship("User", back_populates="sources")
