"""Stan score calculation.

Turns per-platform engagement counters plus a fan's lifecycle dates into
four bounded sub-scores, a 0-100 total and a tier:

- Platform presence   0-30  (10 per active platform)
- Engagement depth    0-40  (individually capped signals, summed)
- Longevity           0-20  (days since first seen)
- Recency             0-10  (days since last activity)

Pure and deterministic: the only clock is the ``now`` passed in.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from app.models.fan import FanTier

MAX_PLATFORM_SCORE = 30
MAX_ENGAGEMENT_SCORE = 40
MAX_LONGEVITY_SCORE = 20
MAX_RECENCY_SCORE = 10

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class PlatformMetrics:
    """Engagement counters for one platform. Missing values count as zero."""

    platform: str
    streams: int = 0
    playlist_adds: int = 0
    saves: int = 0
    follows: bool = False
    likes: int = 0
    comments: int = 0
    shares: int = 0
    subscribed: bool = False
    video_views: int = 0
    watch_time: float = 0
    email_opens: int = 0
    email_clicks: int = 0

    @classmethod
    def from_link(cls, link: Any) -> "PlatformMetrics":
        """Build from a FanPlatformLink row (or anything with the same attributes)."""
        return cls(
            platform=_platform_name(getattr(link, "platform", "")),
            streams=_count(getattr(link, "streams", 0)),
            playlist_adds=_count(getattr(link, "playlist_adds", 0)),
            saves=_count(getattr(link, "saves", 0)),
            follows=bool(getattr(link, "follows", False)),
            likes=_count(getattr(link, "likes", 0)),
            comments=_count(getattr(link, "comments", 0)),
            shares=_count(getattr(link, "shares", 0)),
            subscribed=bool(getattr(link, "subscribed", False)),
            video_views=_count(getattr(link, "video_views", 0)),
            watch_time=max(0.0, float(getattr(link, "watch_time", 0) or 0)),
            email_opens=_count(getattr(link, "email_opens", 0)),
            email_clicks=_count(getattr(link, "email_clicks", 0)),
        )

    @property
    def is_active(self) -> bool:
        """Any positive signal on this platform."""
        return (
            self.follows
            or self.subscribed
            or self.streams > 0
            or self.likes > 0
            or self.email_opens > 0
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    """Result of a stan score calculation."""

    platform_score: int
    engagement_score: int
    longevity_score: int
    recency_score: int
    total_score: int
    tier: FanTier

    def to_dict(self) -> dict:
        return {
            "platform_score": self.platform_score,
            "engagement_score": self.engagement_score,
            "longevity_score": self.longevity_score,
            "recency_score": self.recency_score,
            "total_score": self.total_score,
            "tier": self.tier.value,
        }


def _platform_name(platform: Any) -> str:
    return str(getattr(platform, "value", platform) or "")


def _count(value: Any) -> int:
    if not value:
        return 0
    return max(0, int(value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, floored; never negative."""
    seconds = (later - earlier).total_seconds()
    return max(0, int(seconds // SECONDS_PER_DAY))


class ScoreCalculator:
    """
    Compute stan scores from platform metrics.

    Thresholds:
    - SUPERFAN >= 75, DEDICATED >= 50, ENGAGED >= 25, else CASUAL
    """

    POINTS_PER_PLATFORM = 10

    def calculate(
        self,
        platform_metrics: Iterable[PlatformMetrics],
        first_seen_at: datetime,
        last_active_at: datetime,
        now: datetime,
    ) -> ScoreBreakdown:
        """
        Score one fan.

        Args:
            platform_metrics: One entry per platform the fan is linked on
            first_seen_at: Earliest sighting across platforms
            last_active_at: Latest activity across platforms
            now: Reference time for longevity and recency

        Returns:
            ScoreBreakdown with sub-scores, clamped total and tier
        """
        metrics = list(platform_metrics)

        platform_score = self.platform_score(metrics)
        engagement_score = self.engagement_score(metrics)
        longevity_score = self.longevity_score(first_seen_at, now)
        recency_score = self.recency_score(last_active_at, now)

        total = platform_score + engagement_score + longevity_score + recency_score
        total = max(0, min(100, total))

        return ScoreBreakdown(
            platform_score=platform_score,
            engagement_score=engagement_score,
            longevity_score=longevity_score,
            recency_score=recency_score,
            total_score=total,
            tier=FanTier.from_score(total),
        )

    def platform_score(self, metrics: list[PlatformMetrics]) -> int:
        active = len([m for m in metrics if m.is_active])
        return min(active * self.POINTS_PER_PLATFORM, MAX_PLATFORM_SCORE)

    def engagement_score(self, metrics: list[PlatformMetrics]) -> int:
        """Each signal is capped on its own before summing; the sum caps at 40."""
        score = 0.0

        for m in metrics:
            # Streaming
            score += min(m.streams / 10, 10)
            score += min(m.playlist_adds * 2, 5)
            score += min(m.saves, 5)

            # Social
            if m.follows:
                score += 3
            score += min(m.likes / 5, 5)
            score += min(m.comments * 2, 5)
            score += min(m.shares * 3, 5)

            # Video
            if m.subscribed:
                score += 3
            score += min(m.video_views / 20, 5)

            # Email
            score += min(m.email_opens / 2, 5)
            score += min(m.email_clicks * 2, 5)

        return min(round_half_up(score), MAX_ENGAGEMENT_SCORE)

    def longevity_score(self, first_seen_at: datetime | None, now: datetime) -> int:
        if first_seen_at is None:
            return 0
        days = whole_days_between(first_seen_at, now)

        if days < 30:
            return round_half_up(days / 30 * 5)
        if days < 90:
            return round_half_up(5 + (days - 30) / 60 * 5)
        if days < 180:
            return round_half_up(10 + (days - 90) / 90 * 5)
        return min(15 + 5 * ((days - 180) // 180), MAX_LONGEVITY_SCORE)

    def recency_score(self, last_active_at: datetime | None, now: datetime) -> int:
        if last_active_at is None:
            return 0
        days = whole_days_between(last_active_at, now)

        if days <= 1:
            return 10
        if days <= 7:
            return 8
        if days <= 14:
            return 6
        if days <= 30:
            return 4
        if days <= 60:
            return 2
        return 0


def calculate_stan_score(
    platform_metrics: Iterable[PlatformMetrics],
    first_seen_at: datetime,
    last_active_at: datetime,
    now: datetime,
) -> ScoreBreakdown:
    """Module-level shortcut for ScoreCalculator().calculate()."""
    return ScoreCalculator().calculate(platform_metrics, first_seen_at, last_active_at, now)
