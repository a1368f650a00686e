"""Daily snapshot job.

Once per calendar day per artist:
1. Freeze every fan's score, tier and activity into a FanSnapshot
   (create-if-absent, so reruns on the same day are no-ops).
2. Compute tier counts and SCR components and upsert one
   ArtistMetricsHistory row for the day.

Scheduling itself (cron, hosted timers) lives outside this module.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Fan, FanTier
from app.services.scr import CohortData, CohortMetricsEngine, CohortMetricsService
from app.services.snapshot_store import (
    ArtistMetricsRecord,
    FanSnapshotRecord,
    SnapshotStore,
    SqlSnapshotStore,
)

logger = structlog.get_logger()


@dataclass
class SnapshotRunResult:
    """Outcome of one artist's daily snapshot."""

    artist_id: uuid.UUID
    success: bool
    fans: int = 0
    snapshots_created: int = 0
    scr: float | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "artist_id": str(self.artist_id),
            "success": self.success,
            "fans": self.fans,
            "snapshots_created": self.snapshots_created,
            "scr": self.scr,
            "error": self.error,
        }


class SnapshotScheduler:
    """Freezes fan and artist state for a day into a SnapshotStore."""

    ACTIVE_WITHIN_DAYS = 30

    def __init__(self, store: SnapshotStore, engine: CohortMetricsEngine | None = None):
        self.store = store
        self.engine = engine or CohortMetricsEngine()

    async def take_daily_snapshot(
        self,
        artist_id: uuid.UUID,
        fans: Iterable[Any],
        cohort: CohortData,
        now: datetime,
    ) -> SnapshotRunResult:
        """
        Snapshot one artist.

        Args:
            artist_id: Tenant being snapshotted
            fans: Current Fan rows (id, stan_score, tier, last_active_at)
            cohort: Pre-loaded cohort data for the SCR components
            now: Job time; its calendar date keys every row written
        """
        fans = list(fans)
        today = now.date()
        active_since = now - timedelta(days=self.ACTIVE_WITHIN_DAYS)

        records = [
            FanSnapshotRecord(
                fan_id=fan.id,
                snapshot_date=today,
                stan_score=fan.stan_score or 0,
                tier=FanTier(fan.tier).value,
                is_active=fan.last_active_at >= active_since,
            )
            for fan in fans
        ]
        created = await self.store.put_fan_snapshots(records)

        scr_result = self.engine.compute(cohort, now)
        components = scr_result.components
        tier_counts = count_tiers(fans)

        await self.store.upsert_artist_metrics(
            ArtistMetricsRecord(
                artist_id=artist_id,
                snapshot_date=today,
                total_fans=len(fans),
                casual_count=tier_counts[FanTier.CASUAL],
                engaged_count=tier_counts[FanTier.ENGAGED],
                dedicated_count=tier_counts[FanTier.DEDICATED],
                superfan_count=tier_counts[FanTier.SUPERFAN],
                hold_rate_90d=components.hold_rate,
                hold_rate_30d=components.hold_rate_30d,
                depth_velocity=components.depth_velocity,
                platform_independence=components.platform_independence,
                churn_rate=components.churn_rate,
                scr=scr_result.scr,
                avg_stan_score=(
                    sum(f.stan_score or 0 for f in fans) / len(fans) if fans else 0
                ),
            )
        )

        logger.info(
            "daily_snapshot_taken",
            artist_id=str(artist_id),
            date=today.isoformat(),
            fans=len(fans),
            snapshots_created=created,
            skipped=len(records) - created,
            scr=scr_result.scr,
        )

        return SnapshotRunResult(
            artist_id=artist_id,
            success=True,
            fans=len(fans),
            snapshots_created=created,
            scr=scr_result.scr,
        )


def count_tiers(fans: Iterable[Any]) -> dict[FanTier, int]:
    counts = {tier: 0 for tier in FanTier}
    for fan in fans:
        counts[FanTier(fan.tier)] += 1
    return counts


async def snapshot_artist(
    db: AsyncSession, artist_id: uuid.UUID, now: datetime | None = None
) -> SnapshotRunResult:
    """Load one artist from the database and snapshot it."""
    now = now or datetime.utcnow()

    fans_result = await db.execute(select(Fan).where(Fan.artist_id == artist_id))
    fans = fans_result.scalars().all()
    cohort = await CohortMetricsService(db).load_cohort(artist_id, now)

    scheduler = SnapshotScheduler(SqlSnapshotStore(db))
    return await scheduler.take_daily_snapshot(artist_id, fans, cohort, now)


async def run_daily_snapshots(
    db: AsyncSession, now: datetime | None = None
) -> list[SnapshotRunResult]:
    """
    Snapshot every artist that has at least one fan.

    A failing artist is logged and reported; the others still run.
    """
    now = now or datetime.utcnow()

    artists_result = await db.execute(select(Fan.artist_id).distinct())
    artist_ids = [row[0] for row in artists_result.fetchall()]

    results: list[SnapshotRunResult] = []
    for artist_id in artist_ids:
        try:
            async with db.begin_nested():
                results.append(await snapshot_artist(db, artist_id, now))
        except Exception as e:
            logger.error("daily_snapshot_failed", artist_id=str(artist_id), error=str(e))
            results.append(
                SnapshotRunResult(artist_id=artist_id, success=False, error=str(e))
            )

    logger.info(
        "daily_snapshot_run_complete",
        processed=len(results),
        failed=len([r for r in results if not r.success]),
    )
    return results
