"""Daily fan snapshots and per-artist metrics history."""

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.artist import Artist
    from app.models.fan import Fan


class FanSnapshot(Base):
    """
    Frozen score/tier/activity of a fan for one calendar day.

    Written at most once per (fan, date); later writes for the same day are
    skipped, never merged.
    """

    __tablename__ = "fan_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    fan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fans.id"), nullable=False
    )
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    stan_score: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    fan: Mapped["Fan"] = relationship("Fan", back_populates="snapshots")

    __table_args__ = (
        UniqueConstraint("fan_id", "snapshot_date", name="uq_fan_snapshot_day"),
        Index("idx_fan_snapshots_date", "snapshot_date"),
    )


class ArtistMetricsHistory(Base):
    """
    Daily tier counts and SCR components for an artist.

    This is the only persisted source for SCR trend comparison.
    Upserted by (artist_id, date).
    """

    __tablename__ = "artist_metrics_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("artists.id"), nullable=False
    )
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_fans: Mapped[int] = mapped_column(Integer, default=0)
    casual_count: Mapped[int] = mapped_column(Integer, default=0)
    engaged_count: Mapped[int] = mapped_column(Integer, default=0)
    dedicated_count: Mapped[int] = mapped_column(Integer, default=0)
    superfan_count: Mapped[int] = mapped_column(Integer, default=0)

    # SCR components
    hold_rate_90d: Mapped[float | None] = mapped_column(Float)
    hold_rate_30d: Mapped[float | None] = mapped_column(Float)
    depth_velocity: Mapped[float | None] = mapped_column(Float)
    platform_independence: Mapped[float | None] = mapped_column(Float)
    churn_rate: Mapped[float | None] = mapped_column(Float)
    scr: Mapped[float | None] = mapped_column(Float)

    avg_stan_score: Mapped[float] = mapped_column(Float, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    artist: Mapped["Artist"] = relationship("Artist", back_populates="metrics_history")

    __table_args__ = (
        UniqueConstraint("artist_id", "snapshot_date", name="uq_artist_metrics_day"),
        Index("idx_artist_metrics_artist_date", "artist_id", "snapshot_date"),
    )
