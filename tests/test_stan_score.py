"""Tests for app.services.stan_score - sub-scores, clamping and tiers."""

import random
from datetime import timedelta

import pytest

from app.models import FanTier
from app.services.stan_score import (
    PlatformMetrics,
    ScoreCalculator,
    calculate_stan_score,
    round_half_up,
    whole_days_between,
)
from tests.conftest import NOW


@pytest.fixture
def calculator():
    return ScoreCalculator()


def spotify(**kwargs):
    return PlatformMetrics(platform="SPOTIFY", **kwargs)


# ── platform score ───────────────────────────────────────────────────────────

class TestPlatformScore:
    """Ten points per active platform, capped at 30."""

    def test_inactive_platform_scores_nothing(self, calculator):
        assert calculator.platform_score([spotify(playlist_adds=3)]) == 0

    @pytest.mark.parametrize(
        "metrics",
        [
            PlatformMetrics(platform="SPOTIFY", streams=1),
            PlatformMetrics(platform="INSTAGRAM", follows=True),
            PlatformMetrics(platform="YOUTUBE", subscribed=True),
            PlatformMetrics(platform="TIKTOK", likes=1),
            PlatformMetrics(platform="EMAIL", email_opens=1),
        ],
    )
    def test_any_activity_signal_counts(self, calculator, metrics):
        assert calculator.platform_score([metrics]) == 10

    def test_caps_at_thirty(self, calculator):
        metrics = [PlatformMetrics(platform=p, follows=True) for p in ("A", "B", "C", "D", "E")]
        assert calculator.platform_score(metrics) == 30


# ── engagement score ─────────────────────────────────────────────────────────

class TestEngagementScore:
    """Each signal capped individually, then the sum capped at 40."""

    def test_streams_capped_at_ten(self, calculator):
        assert calculator.engagement_score([spotify(streams=5000)]) == 10

    def test_signals_sum_before_rounding(self, calculator):
        # 25/10 + 1*2 + 2 = 6.5 -> rounds half up to 7
        assert calculator.engagement_score([spotify(streams=25, playlist_adds=1, saves=2)]) == 7

    def test_total_capped_at_forty(self, calculator):
        heavy = [
            spotify(streams=1000, playlist_adds=10, saves=10, follows=True),
            PlatformMetrics(
                platform="YOUTUBE",
                subscribed=True,
                video_views=1000,
                likes=100,
                comments=10,
                shares=10,
            ),
        ]
        assert calculator.engagement_score(heavy) == 40

    def test_boolean_signals_add_three(self, calculator):
        assert calculator.engagement_score([PlatformMetrics(platform="X", follows=True)]) == 3
        assert calculator.engagement_score([PlatformMetrics(platform="X", subscribed=True)]) == 3


# ── longevity and recency ────────────────────────────────────────────────────

class TestLongevityScore:
    @pytest.mark.parametrize(
        "days,expected",
        [
            (0, 0),
            (15, 3),  # 2.5 rounds up
            (30, 5),
            (60, 8),  # 7.5 rounds up
            (90, 10),
            (135, 13),  # 12.5 rounds up
            (180, 15),
            (359, 15),
            (360, 20),
            (2000, 20),
        ],
    )
    def test_piecewise_curve(self, calculator, days, expected):
        assert calculator.longevity_score(NOW - timedelta(days=days), NOW) == expected

    def test_missing_date_scores_zero(self, calculator):
        assert calculator.longevity_score(None, NOW) == 0

    def test_future_first_seen_is_zero_days(self, calculator):
        assert calculator.longevity_score(NOW + timedelta(days=3), NOW) == 0


class TestRecencyScore:
    @pytest.mark.parametrize(
        "days,expected",
        [(0, 10), (1, 10), (2, 8), (7, 8), (8, 6), (14, 6), (30, 4), (31, 2), (60, 2), (61, 0)],
    )
    def test_steps(self, calculator, days, expected):
        assert calculator.recency_score(NOW - timedelta(days=days), NOW) == expected

    def test_partial_days_are_floored(self, calculator):
        assert calculator.recency_score(NOW - timedelta(days=1, hours=23), NOW) == 10


# ── totals and tiers ─────────────────────────────────────────────────────────

class TestCalculate:
    def test_empty_metrics(self, calculator):
        result = calculator.calculate([], NOW, NOW, NOW)

        assert result.platform_score == 0
        assert result.engagement_score == 0
        assert result.recency_score == 10
        assert result.total_score == 10
        assert result.tier == FanTier.CASUAL

    def test_total_is_sum_of_parts(self, calculator):
        result = calculator.calculate(
            [spotify(streams=100, follows=True), PlatformMetrics(platform="EMAIL", email_opens=4)],
            NOW - timedelta(days=90),
            NOW - timedelta(days=3),
            NOW,
        )

        assert result.platform_score == 20
        assert result.engagement_score == 15
        assert result.longevity_score == 10
        assert result.recency_score == 8
        assert result.total_score == 53
        assert result.tier == FanTier.DEDICATED

    def test_shortcut_matches_calculator(self, calculator):
        args = ([spotify(streams=40)], NOW - timedelta(days=45), NOW, NOW)
        assert calculate_stan_score(*args) == calculator.calculate(*args)

    def test_deterministic_for_random_inputs(self, calculator):
        rng = random.Random(1234)

        for _ in range(200):
            metrics = [
                PlatformMetrics(
                    platform=f"P{i}",
                    streams=rng.randint(0, 2000),
                    playlist_adds=rng.randint(0, 10),
                    saves=rng.randint(0, 10),
                    follows=rng.random() < 0.5,
                    likes=rng.randint(0, 100),
                    comments=rng.randint(0, 10),
                    shares=rng.randint(0, 5),
                    subscribed=rng.random() < 0.5,
                    video_views=rng.randint(0, 200),
                    email_opens=rng.randint(0, 20),
                    email_clicks=rng.randint(0, 5),
                )
                for i in range(rng.randint(0, 6))
            ]
            first_seen = NOW - timedelta(days=rng.randint(0, 1000))
            last_active = NOW - timedelta(days=rng.randint(0, 100))

            first = calculator.calculate(metrics, first_seen, last_active, NOW)
            second = calculator.calculate(metrics, first_seen, last_active, NOW)

            assert first == second
            assert 0 <= first.platform_score <= 30
            assert 0 <= first.engagement_score <= 40
            assert 0 <= first.longevity_score <= 20
            assert 0 <= first.recency_score <= 10
            assert 0 <= first.total_score <= 100
            assert first.tier == FanTier.from_score(first.total_score)


class TestTierThresholds:
    @pytest.mark.parametrize(
        "score,tier",
        [
            (0, FanTier.CASUAL),
            (24, FanTier.CASUAL),
            (25, FanTier.ENGAGED),
            (49, FanTier.ENGAGED),
            (50, FanTier.DEDICATED),
            (74, FanTier.DEDICATED),
            (75, FanTier.SUPERFAN),
            (100, FanTier.SUPERFAN),
        ],
    )
    def test_from_score(self, score, tier):
        assert FanTier.from_score(score) == tier

    def test_tier_is_monotonic_in_score(self):
        ranks = [FanTier.from_score(s).rank for s in range(101)]
        assert ranks == sorted(ranks)


class TestHelpers:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_whole_days_never_negative(self):
        assert whole_days_between(NOW, NOW - timedelta(days=2)) == 0
        assert whole_days_between(NOW - timedelta(hours=47), NOW) == 1
