"""Seed script to populate dev database with sample data."""

import asyncio
import random
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select

from app.database import async_session_factory, engine, Base
from app.models import Artist, Platform
from app.services.fan_scoring import FanScoringService
from app.services.snapshot_scheduler import run_daily_snapshots
from app.services.stan_score import PlatformMetrics


def sample_metrics(rng: random.Random, platform: Platform) -> PlatformMetrics:
    """Plausible cumulative counters for one platform."""
    if platform in (Platform.SPOTIFY, Platform.APPLE_MUSIC):
        return PlatformMetrics(
            platform=platform.value,
            streams=rng.randint(0, 1500),
            playlist_adds=rng.randint(0, 12),
            saves=rng.randint(0, 20),
            follows=rng.random() < 0.5,
        )
    if platform == Platform.YOUTUBE:
        return PlatformMetrics(
            platform=platform.value,
            subscribed=rng.random() < 0.4,
            video_views=rng.randint(0, 120),
            watch_time=rng.uniform(0, 900),
            comments=rng.randint(0, 6),
        )
    if platform == Platform.EMAIL:
        return PlatformMetrics(
            platform=platform.value,
            email_opens=rng.randint(0, 25),
            email_clicks=rng.randint(0, 8),
        )
    return PlatformMetrics(
        platform=platform.value,
        follows=rng.random() < 0.7,
        likes=rng.randint(0, 60),
        comments=rng.randint(0, 10),
        shares=rng.randint(0, 5),
    )


async def seed_database():
    """Seed the database with sample data for development."""

    # Create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        # Check if we already have data
        existing = await db.execute(select(Artist).limit(1))
        if existing.scalar_one_or_none():
            print("Database already has data. Skipping seed.")
            return

        print("Seeding database with sample data...")
        rng = random.Random(42)
        now = datetime.utcnow()

        artist = Artist(id=uuid.uuid4(), name="Nova Vale", slug="nova-vale")
        db.add(artist)
        await db.flush()
        print(f"Created artist: {artist.name} (ID: {artist.id})")

        scoring = FanScoringService(db)
        platforms = list(Platform)
        first_fan_id = None

        for i in range(60):
            first_seen = now - timedelta(days=rng.randint(0, 720))
            last_active = min(now, first_seen + timedelta(days=rng.randint(0, 720)))
            primary = rng.choice(platforms)

            fan = await scoring.create_fan(
                artist_id=artist.id,
                display_name=f"Fan {i + 1:03d}",
                platform=primary,
                metrics=sample_metrics(rng, primary),
                first_seen_at=first_seen,
                last_active_at=last_active,
                now=now,
            )
            first_fan_id = first_fan_id or fan.id

            # Some fans show up on a second platform later
            if rng.random() < 0.4:
                other = rng.choice([p for p in platforms if p != primary])
                await scoring.apply_platform_metrics(
                    fan.id, other, sample_metrics(rng, other), observed_at=last_active, now=now
                )

        print("Created 60 sample fans")

        results = await run_daily_snapshots(db, now)
        print(f"Took daily snapshot for {len(results)} artist(s)")

        await db.commit()
        print("\nDatabase seeded successfully!")
        print(f"\nUse these IDs for testing:")
        print(f"  Artist ID: {artist.id}")
        print(f"  Fan ID:    {first_fan_id}")


if __name__ == "__main__":
    asyncio.run(seed_database())
