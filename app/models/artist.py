"""Artist model - the tenant that owns fans."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.fan import Fan
    from app.models.snapshot import ArtistMetricsHistory


class Artist(Base):
    """An artist account. All fan data is scoped to one artist."""

    __tablename__ = "artists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    fans: Mapped[list["Fan"]] = relationship(
        "Fan", back_populates="artist", cascade="all, delete-orphan"
    )
    metrics_history: Mapped[list["ArtistMetricsHistory"]] = relationship(
        "ArtistMetricsHistory", back_populates="artist", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_artists_slug", "slug"),)
