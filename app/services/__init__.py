"""Stanvault services."""

from app.services.credentials import CredentialExporter, ExportFormat
from app.services.eligibility import EligibilityPolicy, check_eligibility, event_access
from app.services.fan_scoring import FanScoringService
from app.services.scr import CohortMetricsEngine, CohortMetricsService
from app.services.signing import SigningKey, TokenPayload
from app.services.snapshot_scheduler import SnapshotScheduler, run_daily_snapshots
from app.services.stan_score import PlatformMetrics, ScoreCalculator, calculate_stan_score
from app.services.tier_transitions import TierTransitionTracker
from app.services.token_registry import InMemoryTokenRegistry, SqlTokenRegistry
from app.services.verification import (
    EngineError,
    TokenOwnershipError,
    VerificationStatus,
    VerificationTokenService,
)

__all__ = [
    "CohortMetricsEngine",
    "CohortMetricsService",
    "CredentialExporter",
    "EligibilityPolicy",
    "EngineError",
    "ExportFormat",
    "FanScoringService",
    "InMemoryTokenRegistry",
    "PlatformMetrics",
    "ScoreCalculator",
    "SigningKey",
    "SnapshotScheduler",
    "SqlTokenRegistry",
    "TierTransitionTracker",
    "TokenOwnershipError",
    "TokenPayload",
    "VerificationStatus",
    "VerificationTokenService",
    "calculate_stan_score",
    "check_eligibility",
    "event_access",
    "run_daily_snapshots",
]
