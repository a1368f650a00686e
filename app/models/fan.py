"""Fan, platform link and fan event models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.artist import Artist
    from app.models.snapshot import FanSnapshot


class FanTier(str, Enum):
    """
    Ordinal fan classification.

    Ordering comes from ``rank``, never from the string values
    ("CASUAL" > "ENGAGED" alphabetically would be wrong).
    """

    CASUAL = "CASUAL"
    ENGAGED = "ENGAGED"
    DEDICATED = "DEDICATED"
    SUPERFAN = "SUPERFAN"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    @classmethod
    def from_score(cls, score: float) -> "FanTier":
        """Step function over the stan score thresholds (75/50/25)."""
        if score >= 75:
            return cls.SUPERFAN
        if score >= 50:
            return cls.DEDICATED
        if score >= 25:
            return cls.ENGAGED
        return cls.CASUAL

    def __lt__(self, other):
        if not isinstance(other, FanTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, FanTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, FanTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, FanTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_RANKS = {
    FanTier.CASUAL: 1,
    FanTier.ENGAGED: 2,
    FanTier.DEDICATED: 3,
    FanTier.SUPERFAN: 4,
}


def tier_rank(tier: "FanTier | str | None") -> int:
    """Rank of a tier given as enum or raw string; unknown values rank 0."""
    if tier is None:
        return 0
    try:
        return FanTier(tier).rank
    except ValueError:
        return 0


class Platform(str, Enum):
    """Platforms a fan can be linked on."""

    SPOTIFY = "SPOTIFY"
    APPLE_MUSIC = "APPLE_MUSIC"
    YOUTUBE = "YOUTUBE"
    INSTAGRAM = "INSTAGRAM"
    TIKTOK = "TIKTOK"
    TWITTER = "TWITTER"
    EMAIL = "EMAIL"


class FanEventType(str, Enum):
    """Kinds of entries in the append-only fan event log."""

    TIER_UPGRADE = "TIER_UPGRADE"
    TIER_DOWNGRADE = "TIER_DOWNGRADE"
    BECAME_SUPERFAN = "BECAME_SUPERFAN"
    FIRST_STREAM = "FIRST_STREAM"
    FIRST_FOLLOW = "FIRST_FOLLOW"
    EMAIL_SUBSCRIBE = "EMAIL_SUBSCRIBE"
    MILESTONE_STREAMS = "MILESTONE_STREAMS"
    MILESTONE_ENGAGEMENT = "MILESTONE_ENGAGEMENT"


class Fan(Base):
    """
    A fan of an artist, aggregated across platforms.

    Score columns are only written by the scoring service:
    stan_score == clamp(platform + engagement + longevity + recency, 0, 100)
    and tier == FanTier.from_score(stan_score).
    """

    __tablename__ = "fans"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("artists.id"), nullable=False
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))

    # Lifecycle (earliest / latest across platform links)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Current classification
    tier: Mapped[str] = mapped_column(String(20), default=FanTier.CASUAL.value)
    stan_score: Mapped[int] = mapped_column(Integer, default=0)
    platform_score: Mapped[int] = mapped_column(Integer, default=0)
    engagement_score: Mapped[int] = mapped_column(Integer, default=0)
    longevity_score: Mapped[int] = mapped_column(Integer, default=0)
    recency_score: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    artist: Mapped["Artist"] = relationship("Artist", back_populates="fans")
    platform_links: Mapped[list["FanPlatformLink"]] = relationship(
        "FanPlatformLink", back_populates="fan", cascade="all, delete-orphan"
    )
    events: Mapped[list["FanEvent"]] = relationship(
        "FanEvent", back_populates="fan", cascade="all, delete-orphan"
    )
    snapshots: Mapped[list["FanSnapshot"]] = relationship(
        "FanSnapshot", back_populates="fan", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_fans_artist", "artist_id"),
        Index("idx_fans_artist_tier", "artist_id", "tier"),
        Index("idx_fans_first_seen", "first_seen_at"),
        Index("idx_fans_last_active", "last_active_at"),
    )


class FanPlatformLink(Base):
    """
    Per-platform engagement counters for a fan.

    One row per (fan, platform). Counters are CUMULATIVE as reported by the
    platform metrics provider.
    """

    __tablename__ = "fan_platform_links"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    fan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fans.id"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    platform_fan_id: Mapped[str | None] = mapped_column(String(255))

    # Streaming
    streams: Mapped[int] = mapped_column(Integer, default=0)
    playlist_adds: Mapped[int] = mapped_column(Integer, default=0)
    saves: Mapped[int] = mapped_column(Integer, default=0)

    # Social
    follows: Mapped[bool] = mapped_column(Boolean, default=False)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    shares: Mapped[int] = mapped_column(Integer, default=0)

    # Video
    subscribed: Mapped[bool] = mapped_column(Boolean, default=False)
    video_views: Mapped[int] = mapped_column(Integer, default=0)
    watch_time: Mapped[float] = mapped_column(Float, default=0)

    # Email
    email_opens: Mapped[int] = mapped_column(Integer, default=0)
    email_clicks: Mapped[int] = mapped_column(Integer, default=0)

    first_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    fan: Mapped["Fan"] = relationship("Fan", back_populates="platform_links")

    __table_args__ = (
        UniqueConstraint("fan_id", "platform", name="uq_fan_platform"),
        Index("idx_platform_links_fan", "fan_id"),
        Index("idx_platform_links_platform", "platform"),
    )


class FanEvent(Base):
    """An immutable entry in a fan's event log."""

    __tablename__ = "fan_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    fan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fans.id"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(20))
    description: Mapped[str | None] = mapped_column(Text)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    fan: Mapped["Fan"] = relationship("Fan", back_populates="events")

    __table_args__ = (
        Index("idx_fan_events_fan_time", "fan_id", "occurred_at"),
        Index("idx_fan_events_type_time", "event_type", "occurred_at"),
    )
