"""Fan score API endpoints."""

import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import FanEvent
from app.services.fan_scoring import FanScoringService

router = APIRouter(prefix="/api/v1/fans", tags=["fans"])


class ScoreResponse(BaseModel):
    """Stan score breakdown for a fan."""

    fan_id: str
    artist_id: str
    platform_score: int
    engagement_score: int
    longevity_score: int
    recency_score: int
    total_score: int
    tier: str
    first_seen_at: str
    last_active_at: str


class FanEventResponse(BaseModel):
    id: str
    event_type: str
    platform: str | None
    description: str | None
    occurred_at: str


def _parse_fan_id(fan_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(fan_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid fan_id format")


def _score_response(fan, breakdown) -> ScoreResponse:
    return ScoreResponse(
        fan_id=str(fan.id),
        artist_id=str(fan.artist_id),
        first_seen_at=fan.first_seen_at.isoformat(),
        last_active_at=fan.last_active_at.isoformat(),
        **breakdown.to_dict(),
    )


@router.get("/{fan_id}/score", response_model=ScoreResponse)
async def get_fan_score(
    fan_id: str,
    db: AsyncSession = Depends(get_db),
) -> ScoreResponse:
    """
    Get a fan's current score breakdown.

    Computed live from the platform links; nothing is written.
    """
    service = FanScoringService(db)
    fan = await service.get_fan(_parse_fan_id(fan_id))
    if not fan:
        raise HTTPException(status_code=404, detail="Fan not found")

    return _score_response(fan, service.score_fan(fan, datetime.utcnow()))


@router.post("/{fan_id}/recalculate", response_model=ScoreResponse)
async def recalculate_fan_score(
    fan_id: str,
    db: AsyncSession = Depends(get_db),
) -> ScoreResponse:
    """Recompute and store the score. Records a tier event if the tier moved."""
    service = FanScoringService(db)
    fan = await service.get_fan(_parse_fan_id(fan_id))
    if not fan:
        raise HTTPException(status_code=404, detail="Fan not found")

    breakdown = await service.recalculate(fan.id)

    return _score_response(fan, breakdown)


@router.get("/{fan_id}/events", response_model=list[FanEventResponse])
async def list_fan_events(
    fan_id: str,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    db: AsyncSession = Depends(get_db),
) -> list[FanEventResponse]:
    """Fan event log, newest first."""
    fan_uuid = _parse_fan_id(fan_id)

    result = await db.execute(
        select(FanEvent)
        .where(FanEvent.fan_id == fan_uuid)
        .order_by(FanEvent.occurred_at.desc())
        .limit(limit)
    )

    return [
        FanEventResponse(
            id=str(e.id),
            event_type=e.event_type,
            platform=e.platform,
            description=e.description,
            occurred_at=e.occurred_at.isoformat(),
        )
        for e in result.scalars().all()
    ]
