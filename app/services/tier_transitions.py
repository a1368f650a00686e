"""Tier transition tracking.

Decides which event, if any, a recomputation produces when a fan's tier
changes, and appends it to the fan event log.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import FanEvent, FanEventType, FanTier

logger = structlog.get_logger()


@dataclass(frozen=True)
class TierTransition:
    """A tier change that must be written to the event log."""

    fan_id: uuid.UUID
    event_type: FanEventType
    previous_tier: FanTier
    new_tier: FanTier
    description: str
    occurred_at: datetime

    @property
    def is_upgrade(self) -> bool:
        return self.new_tier > self.previous_tier


class TierTransitionTracker:
    """
    Zero or one event per recomputation:

    - no previous tier, or unchanged tier -> nothing
    - moved up -> TIER_UPGRADE (BECAME_SUPERFAN when landing on SUPERFAN)
    - moved down -> TIER_DOWNGRADE
    """

    def decide(
        self,
        previous_tier: FanTier | str | None,
        new_tier: FanTier | str,
        fan_id: uuid.UUID,
        occurred_at: datetime,
    ) -> TierTransition | None:
        if previous_tier is None:
            return None

        previous = FanTier(previous_tier)
        new = FanTier(new_tier)

        if previous == new:
            return None

        if new > previous:
            event_type = (
                FanEventType.BECAME_SUPERFAN
                if new == FanTier.SUPERFAN
                else FanEventType.TIER_UPGRADE
            )
            description = f"Upgraded from {previous.value} to {new.value}"
        else:
            event_type = FanEventType.TIER_DOWNGRADE
            description = f"Downgraded from {previous.value} to {new.value}"

        return TierTransition(
            fan_id=fan_id,
            event_type=event_type,
            previous_tier=previous,
            new_tier=new,
            description=description,
            occurred_at=occurred_at,
        )

    def record(self, db: AsyncSession, transition: TierTransition) -> FanEvent:
        """Append the transition to the event log (flushed with the caller's unit of work)."""
        event = FanEvent(
            fan_id=transition.fan_id,
            event_type=transition.event_type.value,
            description=transition.description,
            occurred_at=transition.occurred_at,
        )
        db.add(event)

        logger.info(
            "tier_transition_recorded",
            fan_id=str(transition.fan_id),
            event_type=transition.event_type.value,
            previous_tier=transition.previous_tier.value,
            new_tier=transition.new_tier.value,
        )
        return event

    def track(
        self,
        db: AsyncSession,
        previous_tier: FanTier | str | None,
        new_tier: FanTier | str,
        fan_id: uuid.UUID,
        occurred_at: datetime,
    ) -> FanEvent | None:
        """decide() then record() when a transition happened."""
        transition = self.decide(previous_tier, new_tier, fan_id, occurred_at)
        if transition is None:
            return None
        return self.record(db, transition)
