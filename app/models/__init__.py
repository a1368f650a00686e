"""SQLAlchemy models for Stanvault."""

from app.models.artist import Artist
from app.models.fan import (
    Fan,
    FanEvent,
    FanEventType,
    FanPlatformLink,
    FanTier,
    Platform,
    tier_rank,
)
from app.models.snapshot import ArtistMetricsHistory, FanSnapshot
from app.models.verification import VerificationToken

__all__ = [
    "Artist",
    "Fan",
    "FanEvent",
    "FanEventType",
    "FanPlatformLink",
    "FanTier",
    "Platform",
    "tier_rank",
    "FanSnapshot",
    "ArtistMetricsHistory",
    "VerificationToken",
]
