"""Stan Conversion Rate (SCR) - cohort-level fan conversion metric.

    SCR = (hold_rate_90d x depth_velocity x platform_independence) / max(churn_rate, 0.01)

Every component falls back to a documented constant when the tenant has no
data for it. Those fallbacks are product placeholders, not measurements:
results built on them are flagged as low confidence.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Fan,
    FanEvent,
    FanEventType,
    FanPlatformLink,
    FanTier,
)
from app.services.snapshot_store import ArtistMetricsRecord, SnapshotStore, SqlSnapshotStore
from app.services.stan_score import round_half_up

logger = structlog.get_logger()


@dataclass(frozen=True)
class CohortFan:
    """The slice of a fan the cohort metrics need."""

    fan_id: uuid.UUID
    first_seen_at: datetime
    last_active_at: datetime
    tier: FanTier
    # First BECAME_SUPERFAN event, if any
    became_superfan_at: datetime | None = None


@dataclass(frozen=True)
class PlatformEngagement:
    """Raw counters from one platform link, used for the HHI."""

    platform: str
    streams: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    video_views: int = 0
    email_opens: int = 0

    @property
    def weighted(self) -> int:
        return (
            (self.streams or 0)
            + (self.likes or 0) * 2
            + (self.comments or 0) * 3
            + (self.shares or 0) * 4
            + (self.video_views or 0)
            + (self.email_opens or 0) * 2
        )


@dataclass
class CohortData:
    """Everything the engine reads for one tenant, fetched up front."""

    fans: list[CohortFan] = field(default_factory=list)
    platform_engagement: list[PlatformEngagement] = field(default_factory=list)
    recent_downgrades: int = 0


@dataclass
class SCRComponents:
    """The four SCR inputs plus the 30-day hold rate."""

    hold_rate: float
    hold_rate_30d: float
    depth_velocity: float
    platform_independence: float
    churn_rate: float
    # Components that came from fallback constants instead of data
    defaulted: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hold_rate": round(self.hold_rate, 4),
            "hold_rate_30d": round(self.hold_rate_30d, 4),
            "depth_velocity": round(self.depth_velocity, 4),
            "platform_independence": round(self.platform_independence, 4),
            "churn_rate": round(self.churn_rate, 4),
            "defaulted": self.defaulted,
        }


@dataclass
class SCRResult:
    """Composite SCR with its interpretation."""

    scr: float
    components: SCRComponents
    label: str
    interpretation: str

    @property
    def low_confidence(self) -> bool:
        return bool(self.components.defaulted)

    def to_dict(self) -> dict:
        return {
            "scr": self.scr,
            "components": self.components.to_dict(),
            "label": self.label,
            "interpretation": self.interpretation,
            "low_confidence": self.low_confidence,
        }


@dataclass(frozen=True)
class SCRTrend:
    direction: str  # "up", "down", "stable"
    percent: int

    def to_dict(self) -> dict:
        return {"direction": self.direction, "percent": self.percent}


INTERPRETATION_BUCKETS = [
    (3.0, "Exceptional", "Exceptional fan conversion. Your audience builds lasting connections."),
    (1.5, "Strong", "Strong fan conversion. Most listeners become genuine fans."),
    (0.5, "Average", "Average fan conversion. Room for deeper engagement."),
    (0.2, "Below average", "Below average conversion. Focus on retention and depth."),
]
LOW_BUCKET = ("Low", "Low conversion. High churn or shallow engagement.")


def interpret_scr(scr: float) -> tuple[str, str]:
    """Map an SCR value to (label, sentence)."""
    for threshold, label, sentence in INTERPRETATION_BUCKETS:
        if scr >= threshold:
            return label, sentence
    return LOW_BUCKET


def compose_scr(
    hold_rate: float,
    depth_velocity: float,
    platform_independence: float,
    churn_rate: float,
) -> float:
    """Composite SCR, rounded to 2 decimals. Never negative."""
    churn_drag = max(churn_rate, CohortMetricsEngine.MIN_CHURN_DRAG)
    raw = (hold_rate * depth_velocity * platform_independence) / churn_drag
    return max(0.0, round_half_up(raw * 100) / 100)


def compute_trend(current_scr: float | None, history: list[float | None]) -> SCRTrend:
    """
    Compare the live SCR with the value recorded 7 snapshot-days earlier.

    Args:
        current_scr: Live SCR
        history: Daily SCR values, oldest first (trailing 30 days)
    """
    if len(history) < CohortMetricsEngine.TREND_LOOKBACK_ROWS:
        return SCRTrend("stable", 0)

    week_ago = history[-CohortMetricsEngine.TREND_LOOKBACK_ROWS]
    if not week_ago or not current_scr:
        return SCRTrend("stable", 0)

    diff = (current_scr - week_ago) / week_ago * 100
    if diff > CohortMetricsEngine.TREND_THRESHOLD_PCT:
        direction = "up"
    elif diff < -CohortMetricsEngine.TREND_THRESHOLD_PCT:
        direction = "down"
    else:
        direction = "stable"
    return SCRTrend(direction, round_half_up(diff))


class CohortMetricsEngine:
    """
    Pure SCR computation over pre-fetched CohortData.

    Fallbacks (used when the relevant data set is empty):
    - HOLD_RATE_FALLBACK = 0.7
    - DEPTH_VELOCITY_FALLBACK = 0.3
    - PLATFORM_INDEPENDENCE_FALLBACK = 0.5
    - CHURN_RATE_FALLBACK = 0.1
    """

    HOLD_RATE_FALLBACK = 0.7
    DEPTH_VELOCITY_FALLBACK = 0.3
    PLATFORM_INDEPENDENCE_FALLBACK = 0.5
    CHURN_RATE_FALLBACK = 0.1

    COHORT_WINDOW_DAYS = 7
    ACTIVE_WITHIN_DAYS = 30
    DORMANT_AFTER_DAYS = 60
    DOWNGRADE_LOOKBACK_DAYS = 30
    VELOCITY_HORIZON_DAYS = 365
    MIN_VELOCITY = 0.1
    MIN_CHURN_DRAG = 0.01

    TREND_LOOKBACK_ROWS = 7
    TREND_THRESHOLD_PCT = 2.0

    def compute(self, data: CohortData, now: datetime) -> SCRResult:
        components = self.components(data, now)
        scr = compose_scr(
            components.hold_rate,
            components.depth_velocity,
            components.platform_independence,
            components.churn_rate,
        )
        label, interpretation = interpret_scr(scr)
        return SCRResult(
            scr=scr,
            components=components,
            label=label,
            interpretation=interpretation,
        )

    def components(self, data: CohortData, now: datetime) -> SCRComponents:
        defaulted: list[str] = []

        hold_90, hold_90_measured = self.hold_rate(data.fans, 90, now)
        hold_30, hold_30_measured = self.hold_rate(data.fans, 30, now)
        velocity, velocity_measured = self.depth_velocity(data.fans, now)
        independence, independence_measured = self.platform_independence(
            data.platform_engagement
        )
        churn, churn_measured = self.churn_rate(data.fans, data.recent_downgrades, now)

        for name, measured in (
            ("hold_rate", hold_90_measured),
            ("hold_rate_30d", hold_30_measured),
            ("depth_velocity", velocity_measured),
            ("platform_independence", independence_measured),
            ("churn_rate", churn_measured),
        ):
            if not measured:
                defaulted.append(name)

        return SCRComponents(
            hold_rate=hold_90,
            hold_rate_30d=hold_30,
            depth_velocity=velocity,
            platform_independence=independence,
            churn_rate=churn,
            defaulted=defaulted,
        )

    def hold_rate(
        self, fans: list[CohortFan], days: int, now: datetime
    ) -> tuple[float, bool]:
        """
        Share of the cohort first seen in the 7 days ending `days` ago that is
        still active (activity within the last 30 days).

        Returns (rate, measured). Empty cohort -> (0.7, False).
        """
        window_end = now - timedelta(days=days)
        window_start = window_end - timedelta(days=self.COHORT_WINDOW_DAYS)
        active_since = now - timedelta(days=self.ACTIVE_WITHIN_DAYS)

        cohort = [f for f in fans if window_start <= f.first_seen_at <= window_end]
        if not cohort:
            return self.HOLD_RATE_FALLBACK, False

        still_active = [f for f in cohort if f.last_active_at >= active_since]
        return len(still_active) / len(cohort), True

    def depth_velocity(self, fans: list[CohortFan], now: datetime) -> tuple[float, bool]:
        """
        How fast current superfans got there, mapped onto [0.1, 1.0].

        Days to superfan come from the first BECAME_SUPERFAN event, or from
        first sighting until now when the event is missing.
        """
        superfans = [f for f in fans if FanTier(f.tier) == FanTier.SUPERFAN]
        if not superfans:
            return self.DEPTH_VELOCITY_FALLBACK, False

        days_to_superfan = []
        for fan in superfans:
            reached_at = fan.became_superfan_at or now
            days_to_superfan.append(max(0, (reached_at - fan.first_seen_at).days))

        days_to_superfan.sort()
        median = days_to_superfan[len(days_to_superfan) // 2]

        velocity = 1 - min(median / self.VELOCITY_HORIZON_DAYS, 1)
        return max(self.MIN_VELOCITY, velocity), True

    def platform_independence(
        self, engagement: list[PlatformEngagement]
    ) -> tuple[float, bool]:
        """1 - HHI of weighted engagement share per platform."""
        by_platform: dict[str, int] = {}
        for row in engagement:
            by_platform[row.platform] = by_platform.get(row.platform, 0) + row.weighted

        total = sum(by_platform.values())
        if total <= 0:
            return self.PLATFORM_INDEPENDENCE_FALLBACK, False

        hhi = sum((value / total) ** 2 for value in by_platform.values())
        return 1 - hhi, True

    def churn_rate(
        self, fans: list[CohortFan], recent_downgrades: int, now: datetime
    ) -> tuple[float, bool]:
        """(dormant fans + downgrades in the last 30 days) / total fans."""
        if not fans:
            return self.CHURN_RATE_FALLBACK, False

        dormant_before = now - timedelta(days=self.DORMANT_AFTER_DAYS)
        dormant = [
            f
            for f in fans
            if f.last_active_at < dormant_before and f.first_seen_at < dormant_before
        ]
        return (len(dormant) + max(0, recent_downgrades)) / len(fans), True


class CohortMetricsService:
    """Loads cohort data for an artist and runs the SCR engine on it."""

    def __init__(self, db: AsyncSession, store: SnapshotStore | None = None):
        self.db = db
        self.store = store or SqlSnapshotStore(db)
        self.engine = CohortMetricsEngine()

    async def load_cohort(self, artist_id: uuid.UUID, now: datetime) -> CohortData:
        fans_result = await self.db.execute(
            select(Fan.id, Fan.first_seen_at, Fan.last_active_at, Fan.tier).where(
                Fan.artist_id == artist_id
            )
        )
        fan_rows = fans_result.fetchall()

        # First BECAME_SUPERFAN per fan
        reached_result = await self.db.execute(
            select(FanEvent.fan_id, func.min(FanEvent.occurred_at))
            .join(Fan, Fan.id == FanEvent.fan_id)
            .where(
                Fan.artist_id == artist_id,
                FanEvent.event_type == FanEventType.BECAME_SUPERFAN.value,
            )
            .group_by(FanEvent.fan_id)
        )
        reached = {row[0]: row[1] for row in reached_result.fetchall()}

        links_result = await self.db.execute(
            select(
                FanPlatformLink.platform,
                FanPlatformLink.streams,
                FanPlatformLink.likes,
                FanPlatformLink.comments,
                FanPlatformLink.shares,
                FanPlatformLink.video_views,
                FanPlatformLink.email_opens,
            )
            .join(Fan, Fan.id == FanPlatformLink.fan_id)
            .where(Fan.artist_id == artist_id)
        )

        downgrades_result = await self.db.execute(
            select(func.count(FanEvent.id))
            .join(Fan, Fan.id == FanEvent.fan_id)
            .where(
                Fan.artist_id == artist_id,
                FanEvent.event_type == FanEventType.TIER_DOWNGRADE.value,
                FanEvent.occurred_at
                >= now - timedelta(days=CohortMetricsEngine.DOWNGRADE_LOOKBACK_DAYS),
            )
        )

        return CohortData(
            fans=[
                CohortFan(
                    fan_id=row[0],
                    first_seen_at=row[1],
                    last_active_at=row[2],
                    tier=FanTier(row[3]),
                    became_superfan_at=reached.get(row[0]),
                )
                for row in fan_rows
            ],
            platform_engagement=[
                PlatformEngagement(
                    platform=row[0],
                    streams=row[1] or 0,
                    likes=row[2] or 0,
                    comments=row[3] or 0,
                    shares=row[4] or 0,
                    video_views=row[5] or 0,
                    email_opens=row[6] or 0,
                )
                for row in links_result.fetchall()
            ],
            recent_downgrades=downgrades_result.scalar() or 0,
        )

    async def calculate(self, artist_id: uuid.UUID, now: datetime | None = None) -> SCRResult:
        now = now or datetime.utcnow()
        data = await self.load_cohort(artist_id, now)
        result = self.engine.compute(data, now)

        if result.low_confidence:
            logger.info(
                "scr_fallbacks_used",
                artist_id=str(artist_id),
                defaulted=result.components.defaulted,
            )
        return result

    async def get_history(
        self, artist_id: uuid.UUID, days: int = 30, now: datetime | None = None
    ) -> list[ArtistMetricsRecord]:
        """Daily metrics rows for the trailing `days`, oldest first."""
        now = now or datetime.utcnow()
        start: date = (now - timedelta(days=days)).date()
        return await self.store.list_artist_metrics(artist_id, start)

    async def get_dashboard(
        self, artist_id: uuid.UUID, now: datetime | None = None
    ) -> dict[str, Any]:
        """Live SCR plus 30-day history and week-over-week trend."""
        now = now or datetime.utcnow()
        result = await self.calculate(artist_id, now)
        history = await self.get_history(artist_id, 30, now)
        trend = compute_trend(result.scr, [h.scr for h in history])

        return {
            **result.to_dict(),
            "trend": trend.to_dict(),
            "history": [
                {
                    "date": h.snapshot_date.isoformat(),
                    "scr": h.scr,
                    "hold_rate": h.hold_rate_90d,
                    "churn_rate": h.churn_rate,
                }
                for h in history
            ],
        }
