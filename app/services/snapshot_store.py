"""Snapshot persistence.

Fan snapshots are create-if-absent keyed by (fan_id, date); artist metrics
rows are upserted keyed by (artist_id, date). Both operations are safe to
repeat, so overlapping daily runs never fail on duplicate keys.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Iterator, Protocol, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ArtistMetricsHistory, FanSnapshot

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass(frozen=True)
class FanSnapshotRecord:
    fan_id: uuid.UUID
    snapshot_date: date
    stan_score: int
    tier: str
    is_active: bool


@dataclass(frozen=True)
class ArtistMetricsRecord:
    artist_id: uuid.UUID
    snapshot_date: date
    total_fans: int
    casual_count: int
    engaged_count: int
    dedicated_count: int
    superfan_count: int
    hold_rate_90d: float
    hold_rate_30d: float
    depth_velocity: float
    platform_independence: float
    churn_rate: float
    scr: float
    avg_stan_score: float


class SnapshotStore(Protocol):
    """Where the daily job freezes its results."""

    async def put_fan_snapshots(self, records: list[FanSnapshotRecord]) -> int:
        """Insert missing (fan, date) rows; return how many were new."""
        ...

    async def upsert_artist_metrics(self, record: ArtistMetricsRecord) -> None:
        ...

    async def list_artist_metrics(
        self, artist_id: uuid.UUID, since: date
    ) -> list[ArtistMetricsRecord]:
        """Rows on or after `since`, oldest first."""
        ...


class SqlSnapshotStore:
    """PostgreSQL store using INSERT .. ON CONFLICT."""

    # asyncpg caps a statement at 32767 bind parameters; ~7 per snapshot row
    INSERT_CHUNK_SIZE = 1000

    def __init__(self, db: AsyncSession):
        self.db = db

    async def put_fan_snapshots(self, records: list[FanSnapshotRecord]) -> int:
        created = 0
        for chunk in chunked(records, self.INSERT_CHUNK_SIZE):
            stmt = (
                insert(FanSnapshot)
                .values([{"id": uuid.uuid4(), **asdict(r)} for r in chunk])
                .on_conflict_do_nothing(constraint="uq_fan_snapshot_day")
            )
            result = await self.db.execute(stmt)
            created += max(result.rowcount or 0, 0)
        return created

    async def upsert_artist_metrics(self, record: ArtistMetricsRecord) -> None:
        values = asdict(record)
        updates = {
            k: v for k, v in values.items() if k not in ("artist_id", "snapshot_date")
        }
        updates["updated_at"] = datetime.utcnow()

        stmt = (
            insert(ArtistMetricsHistory)
            .values(id=uuid.uuid4(), updated_at=datetime.utcnow(), **values)
            .on_conflict_do_update(constraint="uq_artist_metrics_day", set_=updates)
        )
        await self.db.execute(stmt)

    async def list_artist_metrics(
        self, artist_id: uuid.UUID, since: date
    ) -> list[ArtistMetricsRecord]:
        result = await self.db.execute(
            select(ArtistMetricsHistory)
            .where(
                ArtistMetricsHistory.artist_id == artist_id,
                ArtistMetricsHistory.snapshot_date >= since,
            )
            .order_by(ArtistMetricsHistory.snapshot_date.asc())
        )
        return [
            ArtistMetricsRecord(
                artist_id=row.artist_id,
                snapshot_date=row.snapshot_date,
                total_fans=row.total_fans,
                casual_count=row.casual_count,
                engaged_count=row.engaged_count,
                dedicated_count=row.dedicated_count,
                superfan_count=row.superfan_count,
                hold_rate_90d=row.hold_rate_90d,
                hold_rate_30d=row.hold_rate_30d,
                depth_velocity=row.depth_velocity,
                platform_independence=row.platform_independence,
                churn_rate=row.churn_rate,
                scr=row.scr,
                avg_stan_score=row.avg_stan_score,
            )
            for row in result.scalars().all()
        ]


class InMemorySnapshotStore:
    """Dict-backed store keyed by the natural keys. Used by tests and scripts."""

    def __init__(self):
        self.fan_snapshots: dict[tuple[uuid.UUID, date], FanSnapshotRecord] = {}
        self.artist_metrics: dict[tuple[uuid.UUID, date], ArtistMetricsRecord] = {}

    async def put_fan_snapshots(self, records: list[FanSnapshotRecord]) -> int:
        created = 0
        for record in records:
            key = (record.fan_id, record.snapshot_date)
            if key in self.fan_snapshots:
                continue
            self.fan_snapshots[key] = record
            created += 1
        return created

    async def upsert_artist_metrics(self, record: ArtistMetricsRecord) -> None:
        self.artist_metrics[(record.artist_id, record.snapshot_date)] = record

    async def list_artist_metrics(
        self, artist_id: uuid.UUID, since: date
    ) -> list[ArtistMetricsRecord]:
        rows = [
            r
            for (a_id, day), r in self.artist_metrics.items()
            if a_id == artist_id and day >= since
        ]
        return sorted(rows, key=lambda r: r.snapshot_date)
