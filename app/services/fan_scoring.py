"""Fan scoring service - ingestion of platform metrics and recalculation.

Called whenever a platform metrics provider reports new counters for a fan.
Writes the link row, appends first-touch and milestone events, recomputes
the stan score and records any tier transition.
"""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import Fan, FanEvent, FanEventType, FanPlatformLink, FanTier, Platform
from app.services.stan_score import PlatformMetrics, ScoreBreakdown, ScoreCalculator
from app.services.tier_transitions import TierTransition, TierTransitionTracker

logger = structlog.get_logger()

STREAM_MILESTONES = (100, 500, 1000)

COUNTER_FIELDS = (
    "streams",
    "playlist_adds",
    "saves",
    "follows",
    "likes",
    "comments",
    "shares",
    "subscribed",
    "video_views",
    "watch_time",
    "email_opens",
    "email_clicks",
)


def ingestion_events(
    fan_id: uuid.UUID,
    platform: Platform,
    before: PlatformMetrics | None,
    after: PlatformMetrics,
    total_streams_before: int,
    total_streams_after: int,
    occurred_at: datetime,
) -> list[FanEvent]:
    """First-touch and milestone events implied by a metrics update."""
    events: list[FanEvent] = []

    def add(event_type: FanEventType, description: str) -> None:
        events.append(
            FanEvent(
                fan_id=fan_id,
                event_type=event_type.value,
                platform=platform.value,
                description=description,
                occurred_at=occurred_at,
            )
        )

    if after.streams > 0 and (before is None or before.streams == 0):
        add(FanEventType.FIRST_STREAM, f"First stream on {platform.value}")

    followed_before = before is not None and (before.follows or before.subscribed)
    if (after.follows or after.subscribed) and not followed_before:
        add(FanEventType.FIRST_FOLLOW, f"Started following on {platform.value}")

    if platform == Platform.EMAIL and before is None:
        add(FanEventType.EMAIL_SUBSCRIBE, "Subscribed to the mailing list")

    for milestone in STREAM_MILESTONES:
        if total_streams_before < milestone <= total_streams_after:
            add(FanEventType.MILESTONE_STREAMS, f"Reached {milestone} streams")

    return events


class FanScoringService:
    """Keeps a fan's score columns and event log in step with its metrics."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.calculator = ScoreCalculator()
        self.tracker = TierTransitionTracker()

    async def get_fan(self, fan_id: uuid.UUID) -> Fan | None:
        result = await self.db.execute(
            select(Fan)
            .options(selectinload(Fan.platform_links))
            .where(Fan.id == fan_id)
        )
        return result.scalar_one_or_none()

    def score_fan(self, fan: Fan, now: datetime) -> ScoreBreakdown:
        return self.calculator.calculate(
            [PlatformMetrics.from_link(link) for link in fan.platform_links],
            fan.first_seen_at,
            fan.last_active_at,
            now,
        )

    def apply_score(
        self, fan: Fan, now: datetime, is_new: bool = False
    ) -> tuple[ScoreBreakdown, TierTransition | None]:
        """Write the breakdown onto the fan and record a transition if the tier moved."""
        previous_tier = None if is_new else fan.tier
        breakdown = self.score_fan(fan, now)

        fan.platform_score = breakdown.platform_score
        fan.engagement_score = breakdown.engagement_score
        fan.longevity_score = breakdown.longevity_score
        fan.recency_score = breakdown.recency_score
        fan.stan_score = breakdown.total_score
        fan.tier = breakdown.tier.value
        fan.updated_at = now

        transition = self.tracker.decide(previous_tier, breakdown.tier, fan.id, now)
        if transition is not None:
            self.tracker.record(self.db, transition)

        return breakdown, transition

    async def recalculate(
        self, fan_id: uuid.UUID, now: datetime | None = None
    ) -> ScoreBreakdown | None:
        now = now or datetime.utcnow()
        fan = await self.get_fan(fan_id)
        if fan is None:
            return None

        breakdown, _ = self.apply_score(fan, now)
        await self.db.flush()
        return breakdown

    async def create_fan(
        self,
        artist_id: uuid.UUID,
        display_name: str,
        platform: Platform,
        metrics: PlatformMetrics,
        first_seen_at: datetime,
        last_active_at: datetime,
        email: str | None = None,
        platform_fan_id: str | None = None,
        now: datetime | None = None,
    ) -> Fan:
        """Create a fan from its first platform sighting. No tier event on creation."""
        now = now or datetime.utcnow()

        fan = Fan(
            id=uuid.uuid4(),
            artist_id=artist_id,
            display_name=display_name,
            email=email,
            first_seen_at=first_seen_at,
            last_active_at=last_active_at,
            tier=FanTier.CASUAL.value,
            created_at=now,
        )
        link = FanPlatformLink(
            fan_id=fan.id,
            platform=platform.value,
            platform_fan_id=platform_fan_id,
            first_seen_at=first_seen_at,
            last_active_at=last_active_at,
        )
        _write_counters(link, metrics)
        fan.platform_links = [link]
        self.db.add(fan)

        for event in ingestion_events(
            fan.id, platform, None, metrics, 0, metrics.streams, first_seen_at
        ):
            self.db.add(event)

        breakdown, _ = self.apply_score(fan, now, is_new=True)
        await self.db.flush()

        logger.info(
            "fan_created",
            fan_id=str(fan.id),
            artist_id=str(artist_id),
            platform=platform.value,
            tier=breakdown.tier.value,
            stan_score=breakdown.total_score,
        )
        return fan

    async def apply_platform_metrics(
        self,
        fan_id: uuid.UUID,
        platform: Platform,
        metrics: PlatformMetrics,
        observed_at: datetime,
        now: datetime | None = None,
    ) -> ScoreBreakdown | None:
        """
        Store new cumulative counters for one platform and rescore the fan.

        Returns None when the fan does not exist.
        """
        now = now or datetime.utcnow()
        fan = await self.get_fan(fan_id)
        if fan is None:
            return None

        link = next((l for l in fan.platform_links if l.platform == platform.value), None)
        before = PlatformMetrics.from_link(link) if link is not None else None
        streams_before = sum(l.streams or 0 for l in fan.platform_links)

        if link is None:
            link = FanPlatformLink(
                fan_id=fan.id,
                platform=platform.value,
                first_seen_at=observed_at,
                last_active_at=observed_at,
            )
            fan.platform_links.append(link)

        _write_counters(link, metrics)
        link.last_active_at = max(link.last_active_at, observed_at)

        fan.first_seen_at = min(fan.first_seen_at, link.first_seen_at)
        fan.last_active_at = max(fan.last_active_at, link.last_active_at)

        streams_after = sum(l.streams or 0 for l in fan.platform_links)
        for event in ingestion_events(
            fan.id, platform, before, metrics, streams_before, streams_after, observed_at
        ):
            self.db.add(event)

        breakdown, _ = self.apply_score(fan, now)
        await self.db.flush()
        return breakdown


def _write_counters(link: FanPlatformLink, metrics: PlatformMetrics) -> None:
    for name in COUNTER_FIELDS:
        setattr(link, name, getattr(metrics, name))
