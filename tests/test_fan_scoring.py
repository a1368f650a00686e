"""Tests for app.services.fan_scoring - rescoring and ingestion events."""

import uuid
from datetime import timedelta

from app.models import Fan, FanEventType, FanPlatformLink, Platform
from app.services.fan_scoring import FanScoringService, ingestion_events
from app.services.stan_score import PlatformMetrics
from tests.conftest import NOW


def make_fan(tier="CASUAL", links=None, first_seen_days=200, last_active_days=0):
    fan = Fan(
        id=uuid.uuid4(),
        artist_id=uuid.uuid4(),
        display_name="Test Fan",
        first_seen_at=NOW - timedelta(days=first_seen_days),
        last_active_at=NOW - timedelta(days=last_active_days),
        tier=tier,
        stan_score=0,
    )
    fan.platform_links = links or []
    return fan


def link(platform, **counters):
    return FanPlatformLink(
        id=uuid.uuid4(),
        platform=platform,
        first_seen_at=NOW - timedelta(days=200),
        last_active_at=NOW,
        **counters,
    )


class TestApplyScore:
    def test_writes_score_columns(self, fake_db):
        fan = make_fan(links=[link("SPOTIFY", streams=100, follows=True)])

        breakdown, _ = FanScoringService(fake_db).apply_score(fan, NOW)

        assert fan.stan_score == breakdown.total_score
        assert fan.platform_score == 10
        assert fan.engagement_score == 13
        assert fan.longevity_score == 15
        assert fan.recency_score == 10
        assert fan.tier == breakdown.tier.value
        assert fan.updated_at == NOW

    def test_tier_change_records_event(self, fake_db):
        fan = make_fan(
            tier="CASUAL",
            links=[
                link("SPOTIFY", streams=1000, playlist_adds=5, saves=5, follows=True),
                link("YOUTUBE", subscribed=True, video_views=200),
                link("INSTAGRAM", follows=True, likes=50, comments=5, shares=5),
            ],
        )

        breakdown, transition = FanScoringService(fake_db).apply_score(fan, NOW)

        assert breakdown.tier.value == "SUPERFAN"
        assert transition.event_type == FanEventType.BECAME_SUPERFAN
        assert [e.event_type for e in fake_db.added] == ["BECAME_SUPERFAN"]

    def test_new_fan_records_no_tier_event(self, fake_db):
        fan = make_fan(tier="CASUAL", links=[link("SPOTIFY", streams=1000, follows=True)])

        _, transition = FanScoringService(fake_db).apply_score(fan, NOW, is_new=True)

        assert transition is None
        assert fake_db.added == []


class TestIngestionEvents:
    def test_first_stream_and_follow(self):
        events = ingestion_events(
            uuid.uuid4(),
            Platform.SPOTIFY,
            None,
            PlatformMetrics(platform="SPOTIFY", streams=3, follows=True),
            0,
            3,
            NOW,
        )

        assert [e.event_type for e in events] == ["FIRST_STREAM", "FIRST_FOLLOW"]
        assert all(e.platform == "SPOTIFY" for e in events)

    def test_repeat_update_emits_nothing(self):
        before = PlatformMetrics(platform="SPOTIFY", streams=3, follows=True)
        after = PlatformMetrics(platform="SPOTIFY", streams=9, follows=True)

        assert ingestion_events(uuid.uuid4(), Platform.SPOTIFY, before, after, 3, 9, NOW) == []

    def test_email_subscribe_on_first_email_link(self):
        events = ingestion_events(
            uuid.uuid4(),
            Platform.EMAIL,
            None,
            PlatformMetrics(platform="EMAIL"),
            0,
            0,
            NOW,
        )
        assert [e.event_type for e in events] == ["EMAIL_SUBSCRIBE"]

    def test_crossing_several_milestones(self):
        before = PlatformMetrics(platform="SPOTIFY", streams=50)
        after = PlatformMetrics(platform="SPOTIFY", streams=600)

        events = ingestion_events(uuid.uuid4(), Platform.SPOTIFY, before, after, 50, 600, NOW)

        assert [e.description for e in events] == ["Reached 100 streams", "Reached 500 streams"]


class TestApplyPlatformMetrics:
    async def test_new_platform_link(self, fake_db, monkeypatch):
        fan = make_fan(tier="CASUAL", links=[link("SPOTIFY", streams=50)], last_active_days=10)
        service = FanScoringService(fake_db)

        async def get_fan(fan_id):
            return fan

        monkeypatch.setattr(service, "get_fan", get_fan)
        observed = NOW - timedelta(days=1)

        breakdown = await service.apply_platform_metrics(
            fan.id,
            Platform.INSTAGRAM,
            PlatformMetrics(platform="INSTAGRAM", follows=True, likes=20),
            observed_at=observed,
            now=NOW,
        )

        assert [l.platform for l in fan.platform_links] == ["SPOTIFY", "INSTAGRAM"]
        assert fan.last_active_at == observed
        assert breakdown.total_score == 57
        assert fan.tier == "DEDICATED"
        assert [e.event_type for e in fake_db.added] == ["FIRST_FOLLOW", "TIER_UPGRADE"]
        assert fake_db.flushes == 1

    async def test_unknown_fan(self, fake_db, monkeypatch):
        service = FanScoringService(fake_db)

        async def get_fan(fan_id):
            return None

        monkeypatch.setattr(service, "get_fan", get_fan)

        result = await service.apply_platform_metrics(
            uuid.uuid4(), Platform.EMAIL, PlatformMetrics(platform="EMAIL"), NOW, now=NOW
        )
        assert result is None
