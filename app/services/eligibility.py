"""Eligibility checks for gated content and ticket presales.

A verified token payload is checked against a policy of optional minimums.
Every unmet requirement is reported with the required and actual value so
consumers can tell the fan exactly what is missing.
"""

from dataclasses import dataclass, field

from app.models import FanTier, tier_rank
from app.services.signing import TokenPayload


@dataclass(frozen=True)
class EligibilityPolicy:
    """Optional minimums; None means the check is skipped."""

    min_tier: FanTier | None = None
    min_score: int | None = None
    min_months: int | None = None


@dataclass(frozen=True)
class EligibilityFailure:
    requirement: str  # "min_tier", "min_score" or "min_months"
    required: str | int
    actual: str | int
    message: str

    def to_dict(self) -> dict:
        return {
            "requirement": self.requirement,
            "required": self.required,
            "actual": self.actual,
            "message": self.message,
        }


@dataclass
class EligibilityResult:
    eligible: bool
    failures: list[EligibilityFailure] = field(default_factory=list)

    @property
    def reason(self) -> str | None:
        if not self.failures:
            return None
        return "; ".join(f.message for f in self.failures)


@dataclass(frozen=True)
class EventAccess:
    """Ticketing privileges derived from tier."""

    presale_eligible: bool
    priority_level: int  # 1-4, higher = earlier access
    max_tickets: int

    def to_dict(self) -> dict:
        return {
            "presaleEligible": self.presale_eligible,
            "priorityLevel": self.priority_level,
            "maxTickets": self.max_tickets,
        }


PRESALE_MIN_RANK = FanTier.ENGAGED.rank
MAX_TICKETS_CAP = 6
BASE_TICKETS = 2


def check_eligibility(payload: TokenPayload, policy: EligibilityPolicy) -> EligibilityResult:
    """Run each configured check independently and collect every failure."""
    failures: list[EligibilityFailure] = []

    if policy.min_tier is not None:
        required_tier = FanTier(policy.min_tier)
        if tier_rank(payload.tier) < required_tier.rank:
            failures.append(
                EligibilityFailure(
                    requirement="min_tier",
                    required=required_tier.value,
                    actual=payload.tier,
                    message=(
                        f"Requires {required_tier.value} tier or higher "
                        f"(current: {payload.tier})"
                    ),
                )
            )

    if policy.min_score is not None and payload.stan_score < policy.min_score:
        failures.append(
            EligibilityFailure(
                requirement="min_score",
                required=policy.min_score,
                actual=payload.stan_score,
                message=(
                    f"Requires minimum score of {policy.min_score} "
                    f"(current: {payload.stan_score})"
                ),
            )
        )

    if policy.min_months is not None and payload.relationship_months < policy.min_months:
        failures.append(
            EligibilityFailure(
                requirement="min_months",
                required=policy.min_months,
                actual=payload.relationship_months,
                message=(
                    f"Requires {policy.min_months}+ months as a fan "
                    f"(current: {payload.relationship_months})"
                ),
            )
        )

    return EligibilityResult(eligible=not failures, failures=failures)


def event_access(tier: FanTier | str, eligible: bool) -> EventAccess:
    rank = tier_rank(tier)
    return EventAccess(
        presale_eligible=eligible and rank >= PRESALE_MIN_RANK,
        priority_level=rank,
        max_tickets=min(BASE_TICKETS + rank, MAX_TICKETS_CAP),
    )
